"""Video acquisition: turn a video URL into one browser-playable MP4.

Strategies are tried in a fixed order and each reports whether it produced
a file, could not apply, or failed. The caller only sees an error once
every strategy has been exhausted.
"""

import contextlib
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

import structlog

from clipper.core.metrics import MetricsCollector
from clipper.core.process import AsyncioProcessRunner, ProcessRunner
from clipper.core.progress import (
    FULL_PHASE,
    SPLIT_PHASES,
    ProgressCallback,
    clamp,
    compose_phases,
)
from clipper.models.job import AcquisitionJob
from clipper.models.video import VideoInfo
from clipper.providers.base import VideoProvider
from clipper.providers.exceptions import (
    AcquisitionError,
    ClipperError,
    FormatUnavailableError,
    ProcessFailedError,
    TransferError,
)
from clipper.services.catalog import (
    is_browser_compatible,
    needs_audio_transcode,
    needs_video_transcode,
    select,
)
from clipper.services.fetcher import StreamFetcher

logger = structlog.get_logger(__name__)

# H.264 + AAC first since Safari/WebKit plays those without re-encoding
YTDLP_FORMAT = (
    "bestvideo[vcodec^=avc1]+bestaudio[acodec^=mp4a]"
    "/bestvideo[vcodec^=avc1]+bestaudio"
    "/best[vcodec^=avc1]"
    "/bestvideo+bestaudio"
    "/best"
)

PROGRESS_PREFIX = "clipper:"
PROGRESS_TEMPLATE = (
    "clipper:downloaded=%(progress.downloaded_bytes)s "
    "total=%(progress.total_bytes)s "
    "total_est=%(progress.total_bytes_estimate)s"
)

PREVIEW_SUFFIX = "-preview.mp4"


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    UNUSABLE = "unusable"
    FAILED = "failed"


@dataclass(frozen=True)
class StrategyOutcome:
    """Result of one acquisition strategy."""

    kind: OutcomeKind
    path: Optional[Path] = None
    reason: str = ""
    error: Optional[Exception] = None

    @classmethod
    def success(cls, path: Path) -> "StrategyOutcome":
        return cls(OutcomeKind.SUCCESS, path=path)

    @classmethod
    def unusable(cls, reason: str) -> "StrategyOutcome":
        return cls(OutcomeKind.UNUSABLE, reason=reason)

    @classmethod
    def failed(cls, error: Exception) -> "StrategyOutcome":
        return cls(OutcomeKind.FAILED, reason=str(error), error=error)


@dataclass
class AcquisitionResult:
    """The acquired file and how it was obtained."""

    path: Path
    strategy: str
    info: VideoInfo
    attempts: Dict[str, str] = field(default_factory=dict)


def parse_ytdlp_progress(line: str) -> Optional[float]:
    """
    Parse one ``--progress-template`` line into a 0-1 fraction.

    Args:
        line: A stdout line from yt-dlp

    Returns:
        Fraction downloaded, or None if the line is not a progress line or
        carries no usable totals
    """
    if not line.startswith(PROGRESS_PREFIX):
        return None

    values: Dict[str, float] = {}
    for part in line[len(PROGRESS_PREFIX) :].split():
        key, sep, raw = part.partition("=")
        if not sep:
            continue
        try:
            values[key] = float(raw)
        except ValueError:
            # yt-dlp prints "NA" for unknown values
            continue

    downloaded = values.get("downloaded")
    total = values.get("total") or values.get("total_est")
    if downloaded is None or not total or total <= 0:
        return None
    return clamp(downloaded / total)


def build_ytdlp_command(downloader: str, encoder: str, url: str, output: Path) -> List[str]:
    return [
        downloader,
        "-f",
        YTDLP_FORMAT,
        "--merge-output-format",
        "mp4",
        "--ffmpeg-location",
        str(Path(encoder).parent),
        "-o",
        str(output),
        "--no-playlist",
        "--no-warnings",
        "--newline",
        "--progress-template",
        f"download:{PROGRESS_TEMPLATE}",
        "--",
        url,
    ]


def build_mux_command(
    encoder: str,
    video_path: Path,
    audio_path: Path,
    output: Path,
    transcode_video: bool,
    transcode_audio: bool,
) -> List[str]:
    """
    Build the ffmpeg command combining a video-only and an audio-only file.

    Compatible tracks are stream-copied; VP9/AV1 video becomes H.264 and
    Opus audio becomes AAC.
    """
    cmd = [
        encoder,
        "-y",
        "-hide_banner",
        "-loglevel",
        "error",
        "-i",
        str(video_path),
        "-i",
        str(audio_path),
        "-map",
        "0:v:0",
        "-map",
        "1:a:0",
    ]

    if transcode_video:
        cmd += ["-c:v", "libx264", "-preset", "medium", "-crf", "18", "-pix_fmt", "yuv420p"]
    else:
        cmd += ["-c:v", "copy"]

    if transcode_audio:
        cmd += ["-c:a", "aac", "-b:a", "192k"]
    else:
        cmd += ["-c:a", "copy"]

    cmd += ["-movflags", "+faststart", "-shortest", str(output)]
    return cmd


def build_compat_transcode_command(encoder: str, input_path: Path, output: Path) -> List[str]:
    return [
        encoder,
        "-y",
        "-hide_banner",
        "-loglevel",
        "error",
        "-i",
        str(input_path),
        "-c:v",
        "libx264",
        "-pix_fmt",
        "yuv420p",
        "-c:a",
        "aac",
        "-movflags",
        "+faststart",
        str(output),
    ]


def _remove(*paths: Path) -> None:
    for path in paths:
        with contextlib.suppress(FileNotFoundError):
            path.unlink()


def _monotonic(sink: Optional[ProgressCallback]) -> ProgressCallback:
    """Forward only values that move progress forward.

    yt-dlp restarts its percentage for each stream it downloads.
    """
    highest = [0.0]

    def report(value: float) -> None:
        if sink is not None and value > highest[0]:
            highest[0] = value
            sink(value)

    return report


Strategy = Callable[[AcquisitionJob, VideoInfo], Awaitable[StrategyOutcome]]


class AcquisitionOrchestrator:
    """Runs the acquisition strategies in order until one produces a file."""

    def __init__(
        self,
        provider: VideoProvider,
        fetcher: Optional[StreamFetcher] = None,
        runner: Optional[ProcessRunner] = None,
        encoder_path: Optional[str] = None,
        downloader_path: Optional[str] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            provider: Metadata provider supplying VideoInfo and variants
            fetcher: Stream fetcher for direct downloads
            runner: Process runner for yt-dlp and ffmpeg
            encoder_path: Default ffmpeg path for ``acquire``
            downloader_path: Default yt-dlp path for ``acquire``
        """
        self.provider = provider
        self.fetcher = fetcher or StreamFetcher()
        self.runner = runner or AsyncioProcessRunner()
        self.encoder_path = encoder_path
        self.downloader_path = downloader_path

    def strategies(self) -> List[Tuple[str, Strategy]]:
        return [
            ("external_tool", self._external_tool),
            ("split_mux", self._split_mux),
            ("progressive", self._progressive),
        ]

    async def acquire(
        self,
        url: str,
        destination_dir: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AcquisitionResult:
        """Acquire ``url`` into ``destination_dir`` with the configured tools."""
        job = AcquisitionJob(
            url=url,
            destination_dir=Path(destination_dir),
            encoder_path=self.encoder_path,
            downloader_path=self.downloader_path,
            on_progress=on_progress,
        )
        return await self.run(job)

    async def run(self, job: AcquisitionJob) -> AcquisitionResult:
        """
        Acquire the job's video as a local MP4.

        Args:
            job: What to acquire, where to put it, and which tools to use

        Returns:
            AcquisitionResult with the file path and winning strategy

        Raises:
            InvalidURLError: If the URL is not recognised
            VideoUnavailableError: If the video is not accessible
            AcquisitionError: If every strategy was exhausted
            asyncio.CancelledError: If the calling task is cancelled
        """
        started = time.monotonic()
        job.destination_dir.mkdir(parents=True, exist_ok=True)

        info = await self.provider.get_info(job.url)

        errors: Dict[str, str] = {}
        last_failure: Optional[StrategyOutcome] = None

        for name, strategy in self.strategies():
            log = logger.bind(strategy=name, video_id=info.video_id)
            log.info("strategy_started")

            outcome = await strategy(job, info)

            if outcome.kind is OutcomeKind.SUCCESS:
                assert outcome.path is not None
                if job.on_progress is not None:
                    job.on_progress(1.0)
                duration = time.monotonic() - started
                MetricsCollector.record_acquisition(name, "success", duration)
                log.info(
                    "acquisition_completed",
                    path=str(outcome.path),
                    duration_seconds=round(duration, 2),
                )
                return AcquisitionResult(
                    path=outcome.path, strategy=name, info=info, attempts=errors
                )

            errors[name] = outcome.reason
            MetricsCollector.record_strategy_failure(name, outcome.kind.value)
            if outcome.kind is OutcomeKind.FAILED:
                last_failure = outcome
                log.warning("strategy_failed", error=outcome.reason)
            else:
                log.info("strategy_unusable", reason=outcome.reason)

        MetricsCollector.record_acquisition("none", "failed", time.monotonic() - started)
        message = last_failure.reason if last_failure else "no acquisition strategy was usable"
        raise AcquisitionError(
            f"Could not acquire video {info.video_id}: {message}", errors=errors
        )

    def _base_name(self, info: VideoInfo) -> str:
        return info.title or info.video_id

    async def _external_tool(self, job: AcquisitionJob, info: VideoInfo) -> StrategyOutcome:
        if not job.downloader_path:
            return StrategyOutcome.unusable("downloader not available")
        if not job.encoder_path:
            return StrategyOutcome.unusable("encoder not available")

        output = job.destination_dir / f"{self._base_name(info)}{PREVIEW_SUFFIX}"
        report = _monotonic(job.on_progress)

        def on_line(line: str) -> None:
            fraction = parse_ytdlp_progress(line)
            if fraction is not None:
                report(fraction)

        url = self.provider.canonical_url(info.video_id)
        cmd = build_ytdlp_command(job.downloader_path, job.encoder_path, url, output)
        try:
            result = await self.runner.run(cmd, on_stdout_line=on_line)
            result.check("yt-dlp")
            if not output.exists():
                raise ProcessFailedError("yt-dlp did not produce an output file")
        except ClipperError as e:
            self._remove_ytdlp_leftovers(output)
            return StrategyOutcome.failed(e)
        except BaseException:
            self._remove_ytdlp_leftovers(output)
            raise

        return StrategyOutcome.success(output)

    def _remove_ytdlp_leftovers(self, output: Path) -> None:
        # yt-dlp writes "<name>.part" and per-format "<stem>.f<id>.<ext>" files
        _remove(output, output.with_name(output.name + ".part"))
        prefix = f"{output.stem}.f"
        for leftover in output.parent.iterdir():
            if leftover.name.startswith(prefix):
                _remove(leftover)

    async def _split_mux(self, job: AcquisitionJob, info: VideoInfo) -> StrategyOutcome:
        if not job.encoder_path:
            return StrategyOutcome.unusable("encoder not available")

        selection = select(info.variants)
        if selection is None or not selection.is_pair:
            return StrategyOutcome.unusable("no video-only and audio-only pair available")
        video, audio = selection.video, selection.audio
        report_video, report_audio, report_mux = compose_phases(job.on_progress, SPLIT_PHASES)

        base = self._base_name(info)
        video_path = job.destination_dir / f"{base}-video{video.extension}"
        audio_path = job.destination_dir / f"{base}-audio{audio.extension}"
        output = job.destination_dir / f"{base}{PREVIEW_SUFFIX}"

        logger.info(
            "split_pair_selected",
            video_format=video.format_id,
            video_height=video.height,
            video_mime=video.mime_type,
            audio_format=audio.format_id,
            audio_mime=audio.mime_type,
        )

        succeeded = False
        try:
            try:
                await self.fetcher.fetch(video, video_path, report_video)
            except ClipperError as e:
                return StrategyOutcome.failed(TransferError(f"failed to download video stream: {e}"))
            try:
                await self.fetcher.fetch(audio, audio_path, report_audio)
            except ClipperError as e:
                return StrategyOutcome.failed(TransferError(f"failed to download audio stream: {e}"))

            cmd = build_mux_command(
                job.encoder_path,
                video_path,
                audio_path,
                output,
                transcode_video=needs_video_transcode(video),
                transcode_audio=needs_audio_transcode(audio),
            )
            try:
                result = await self.runner.run(cmd)
                result.check("ffmpeg mux")
            except ClipperError as e:
                return StrategyOutcome.failed(e)

            report_mux(1.0)
            succeeded = True
            return StrategyOutcome.success(output)
        finally:
            _remove(video_path, audio_path)
            if not succeeded:
                _remove(output)

    async def _progressive(self, job: AcquisitionJob, info: VideoInfo) -> StrategyOutcome:
        selection = select(info.variants, allow_split=False)
        if selection is None:
            return StrategyOutcome.failed(
                FormatUnavailableError("no suitable video format found")
            )
        variant = selection.progressive

        logger.info(
            "progressive_selected",
            format_id=variant.format_id,
            height=variant.height,
            mime=variant.mime_type,
        )

        base = self._base_name(info)
        path = job.destination_dir / f"{base}{variant.extension}"
        try:
            await self.fetcher.fetch(variant, path, FULL_PHASE.wrap(job.on_progress))
        except ClipperError as e:
            return StrategyOutcome.failed(e)

        if is_browser_compatible(variant) or not job.encoder_path:
            return StrategyOutcome.success(path)

        preview = job.destination_dir / f"{base}{PREVIEW_SUFFIX}"
        try:
            result = await self.runner.run(
                build_compat_transcode_command(job.encoder_path, path, preview)
            )
            result.check("ffmpeg transcode")
        except ClipperError as e:
            # The original file is still playable in some browsers
            _remove(preview)
            logger.warning("compatibility_transcode_failed", error=str(e), path=str(path))
            return StrategyOutcome.success(path)
        except BaseException:
            _remove(preview, path)
            raise

        _remove(path)
        return StrategyOutcome.success(preview)
