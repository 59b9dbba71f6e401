"""Per-application session state.

The session owns the temp directory where acquired videos live, the one
"current" video the preview route may serve, the single active job, and
the event bus that carries job progress to listeners.
"""

import asyncio
import contextlib
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import structlog

from clipper.core.logging import set_job_id
from clipper.core.progress import ProgressCallback, ProgressChannel
from clipper.models.job import Job, JobKind, LoadedVideo, TrimRequest
from clipper.providers.exceptions import (
    ClipperError,
    InvalidURLError,
    NoVideoLoadedError,
    PathNotAllowedError,
)
from clipper.services.acquisition import AcquisitionOrchestrator
from clipper.services.events import (
    DOWNLOAD_COMPLETE,
    DOWNLOAD_PROGRESS,
    EXPORT_COMPLETE,
    EXPORT_PROGRESS,
    JOB_FAILED,
    EventBus,
)
from clipper.services.export import ORIGINAL_QUALITY, TrimExportEngine
from clipper.services.job_service import JobService

logger = structlog.get_logger(__name__)

# Runs a job's work with a progress callback; returns (result_path, completion payload)
JobWork = Callable[[ProgressCallback], Awaitable[Tuple[str, Any]]]


class Session:
    """Owns everything one running clipper instance works with."""

    def __init__(
        self,
        orchestrator: AcquisitionOrchestrator,
        exporter: TrimExportEngine,
        temp_root: Optional[str] = None,
        temp_prefix: str = "clipper-",
        events: Optional[EventBus] = None,
        jobs: Optional[JobService] = None,
        default_quality: str = ORIGINAL_QUALITY,
    ) -> None:
        """
        Create the session and its temp directory.

        Args:
            orchestrator: Acquisition orchestrator
            exporter: Trim/export engine
            temp_root: Parent for the temp directory (system default when None)
            temp_prefix: Temp directory name prefix
            events: Event bus (a new one when None)
            jobs: Job registry (a new one when None)
            default_quality: Export quality tier used when a request names none
        """
        self.orchestrator = orchestrator
        self.exporter = exporter
        self.events = events or EventBus()
        self.jobs = jobs or JobService()
        self.default_quality = default_quality
        self.temp_dir = Path(tempfile.mkdtemp(prefix=temp_prefix, dir=temp_root))

        self._lock = threading.Lock()
        self._current: Optional[LoadedVideo] = None
        self._active_task: Optional["asyncio.Task[None]"] = None
        self._active_job_id: Optional[str] = None

        logger.info("session_created", temp_dir=str(self.temp_dir))

    # Current video

    @property
    def current(self) -> Optional[LoadedVideo]:
        with self._lock:
            return self._current

    def current_or_raise(self) -> LoadedVideo:
        current = self.current
        if current is None:
            raise NoVideoLoadedError("No video loaded")
        return current

    def set_current(self, video: LoadedVideo) -> None:
        with self._lock:
            self._current = video
        logger.info("current_video_set", video_id=video.video_id, path=str(video.path))

    def clear_current(self) -> None:
        """Stop serving the current video and remove its file."""
        with self._lock:
            previous = self._current
            self._current = None

        if previous is not None:
            with contextlib.suppress(FileNotFoundError):
                previous.path.unlink()
            logger.info("current_video_cleared", video_id=previous.video_id)

    def resolve_for_serving(self, video_id: str) -> Path:
        """
        Return the file to serve for ``video_id``.

        Raises:
            NoVideoLoadedError: If nothing is loaded or ``video_id`` is not current
            PathNotAllowedError: If the file lies outside the session directory
        """
        with self._lock:
            current = self._current

        if current is None or current.video_id != video_id:
            raise NoVideoLoadedError(f"Video not loaded: {video_id}")

        path = current.path.resolve()
        if not path.is_relative_to(self.temp_dir.resolve()):
            raise PathNotAllowedError("Access denied")
        return path

    # Jobs

    @property
    def active_job_id(self) -> Optional[str]:
        if self._active_task is None or self._active_task.done():
            return None
        return self._active_job_id

    async def start_acquisition(self, url: str) -> Job:
        """
        Start acquiring ``url`` in the background, replacing any running job.

        The current video stops being served before the new download starts.

        Raises:
            InvalidURLError: If the provider does not recognise the URL
        """
        if not self.orchestrator.provider.validate_url(url):
            raise InvalidURLError(f"Invalid video URL: {url}")

        job = self.jobs.create_job(JobKind.ACQUISITION, {"url": url})
        await self._cancel_active()
        self.clear_current()

        async def work(report: ProgressCallback) -> Tuple[str, Any]:
            result = await self.orchestrator.acquire(url, self.temp_dir, report)
            self.set_current(LoadedVideo(result.info.video_id, result.path, result.info))
            return str(result.path), result.info.video_id

        self._launch(job, work, DOWNLOAD_PROGRESS, DOWNLOAD_COMPLETE)
        return job

    async def start_export(self, request: TrimRequest, quality: str = ORIGINAL_QUALITY) -> Job:
        """
        Start exporting a clip in the background, replacing any running job.

        The request is validated before the job is created.

        Raises:
            EncoderUnavailableError: If no encoder is configured
            InvalidRequestError: If the request is malformed
        """
        self.exporter.validate(request)

        params: Dict[str, Any] = {
            "start": request.start,
            "end": request.end,
            "output_path": str(request.output_path),
            "quality": quality,
        }
        job = self.jobs.create_job(JobKind.EXPORT, params)
        await self._cancel_active()

        async def work(report: ProgressCallback) -> Tuple[str, Any]:
            output = await self.exporter.export(request, report, quality=quality)
            return str(output), str(output)

        self._launch(job, work, EXPORT_PROGRESS, EXPORT_COMPLETE)
        return job

    async def cancel_job(self, job_id: str) -> Job:
        """
        Cancel a job if it is still running.

        Raises:
            JobNotFoundError: If the job is not found
        """
        self.jobs.get_job_or_raise(job_id)
        if job_id == self._active_job_id:
            await self._cancel_active()
        return self.jobs.get_job_or_raise(job_id)

    async def wait_active(self) -> None:
        """Wait for the active job, if any, to finish."""
        task = self._active_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def close(self) -> None:
        """Cancel the active job and remove the session directory."""
        await self._cancel_active()
        self.clear_current()
        shutil.rmtree(self.temp_dir, ignore_errors=True)
        logger.info("session_closed", temp_dir=str(self.temp_dir))

    def _launch(self, job: Job, work: JobWork, progress_event: str, complete_event: str) -> None:
        self._active_job_id = job.job_id
        self._active_task = asyncio.create_task(
            self._run_job(job, work, progress_event, complete_event),
            name=job.job_id,
        )

    async def _cancel_active(self) -> None:
        task = self._active_task
        job_id = self._active_job_id
        if task is None:
            return

        if not task.done():
            task.cancel()
            await asyncio.wait({task})
            logger.info("job_replaced", job_id=job_id)

        # A task cancelled before it ever ran never marked its job
        if job_id is not None:
            self.jobs.cancel_job(job_id)

        self._active_task = None
        self._active_job_id = None

    async def _run_job(
        self,
        job: Job,
        work: JobWork,
        progress_event: str,
        complete_event: str,
    ) -> None:
        set_job_id(job.job_id)
        channel = ProgressChannel()

        async def drain() -> None:
            async for value in channel:
                self.jobs.update_progress(job.job_id, value)
                self.events.publish(progress_event, value)

        drainer = asyncio.create_task(drain())
        self.jobs.start_processing(job.job_id)

        try:
            try:
                result_path, payload = await work(channel.push)
            finally:
                channel.close()
                await drainer
        except asyncio.CancelledError:
            self.jobs.cancel_job(job.job_id)
            logger.info("job_cancelled", kind=job.kind.value)
            raise
        except ClipperError as e:
            self.jobs.fail_job(job.job_id, str(e))
            self.events.publish(JOB_FAILED, str(e))
            logger.error("job_failed", kind=job.kind.value, error=str(e))
            return
        except Exception as e:
            self.jobs.fail_job(job.job_id, f"Unexpected error: {e}")
            self.events.publish(JOB_FAILED, str(e))
            logger.error("job_failed_unexpected_error", error=str(e), exc_info=True)
            return

        self.jobs.complete_job(job.job_id, result_path)
        self.events.publish(complete_event, payload)
        logger.info("job_completed", kind=job.kind.value, result_path=result_path)
