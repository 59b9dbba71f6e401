"""Job service for tracking acquisition and export jobs.

- In-memory job storage owned by the session
- Status updates and progress tracking
- TTL-based cleanup of finished jobs
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import structlog

from clipper.core.logging import new_job_id
from clipper.core.progress import clamp
from clipper.models.job import Job, JobKind, JobStatus
from clipper.providers.exceptions import JobNotFoundError

logger = structlog.get_logger(__name__)


class JobService:
    """Service for managing jobs.

    Jobs are retained for a configurable TTL (default 24 hours) after
    they reach a terminal state.
    """

    def __init__(self, job_ttl_hours: int = 24) -> None:
        """Initialize the job service.

        Args:
            job_ttl_hours: Time-to-live for finished jobs in hours.
        """
        self.job_ttl_hours = job_ttl_hours
        self._jobs: Dict[str, Job] = {}

        logger.debug("job_service_initialized", job_ttl_hours=job_ttl_hours)

    def create_job(self, kind: JobKind, params: Optional[Dict[str, Any]] = None) -> Job:
        """Create a new pending job.

        Args:
            kind: Acquisition or export.
            params: Request parameters kept for status reporting.

        Returns:
            The created Job object.
        """
        job = Job(
            job_id=new_job_id(),
            kind=kind,
            params=params or {},
            status=JobStatus.PENDING,
            created_at=datetime.now(timezone.utc),
        )
        self._jobs[job.job_id] = job

        logger.info("job_created", job_id=job.job_id, kind=kind.value, params=params)
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def get_job_or_raise(self, job_id: str) -> Job:
        """Get a job by ID or raise an error.

        Raises:
            JobNotFoundError: If the job is not found.
        """
        job = self.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        return job

    def update_status(self, job_id: str, status: JobStatus, **kwargs: Any) -> Job:
        """Update a job's status and optional fields.

        Args:
            job_id: The job's unique identifier.
            status: The new status.
            **kwargs: Additional fields to update (progress, error_message, etc.).

        Returns:
            The updated Job object.

        Raises:
            JobNotFoundError: If the job is not found.
        """
        job = self.get_job_or_raise(job_id)

        old_status = job.status
        job.status = status

        if status == JobStatus.PROCESSING and old_status == JobStatus.PENDING:
            job.started_at = datetime.now(timezone.utc)
        elif job.is_terminal():
            job.completed_at = datetime.now(timezone.utc)

        for key, value in kwargs.items():
            if hasattr(job, key):
                setattr(job, key, value)

        logger.info(
            "job_status_updated",
            job_id=job_id,
            old_status=old_status.value,
            new_status=status.value,
            **kwargs,
        )
        return job

    def update_progress(self, job_id: str, progress: float) -> Job:
        """Update a job's progress fraction.

        Progress never moves backwards.

        Args:
            job_id: The job's unique identifier.
            progress: Progress fraction (0.0-1.0).
        """
        job = self.get_job_or_raise(job_id)
        job.progress = max(job.progress, clamp(progress))

        logger.debug("job_progress_updated", job_id=job_id, progress=job.progress)
        return job

    def start_processing(self, job_id: str) -> Job:
        return self.update_status(job_id, JobStatus.PROCESSING)

    def complete_job(self, job_id: str, result_path: str) -> Job:
        """Mark a job as completed with its output file."""
        return self.update_status(
            job_id,
            JobStatus.COMPLETED,
            result_path=result_path,
            progress=1.0,
        )

    def fail_job(self, job_id: str, error_message: str) -> Job:
        """Mark a job as failed with an error message."""
        return self.update_status(job_id, JobStatus.FAILED, error_message=error_message)

    def cancel_job(self, job_id: str) -> Job:
        """Mark a job as cancelled, unless it already finished."""
        job = self.get_job_or_raise(job_id)
        if job.is_terminal():
            return job
        return self.update_status(job_id, JobStatus.CANCELLED)

    def list_jobs(self, status: Optional[JobStatus] = None, limit: int = 100) -> List[Job]:
        """List jobs, optionally filtered by status.

        Args:
            status: Filter by job status (optional).
            limit: Maximum number of jobs to return.

        Returns:
            List of Job objects, sorted by creation time (newest first).
        """
        jobs = list(self._jobs.values())

        if status is not None:
            jobs = [j for j in jobs if j.status == status]

        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs[:limit]

    def cleanup_expired_jobs(self) -> int:
        """Remove finished jobs that have exceeded their TTL.

        Returns:
            Number of jobs removed.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(hours=self.job_ttl_hours)

        expired_ids = [
            job_id
            for job_id, job in self._jobs.items()
            if job.is_terminal() and job.completed_at is not None and job.completed_at < cutoff
        ]

        for job_id in expired_ids:
            del self._jobs[job_id]

        if expired_ids:
            logger.info(
                "expired_jobs_cleaned",
                count=len(expired_ids),
                ttl_hours=self.job_ttl_hours,
            )

        return len(expired_ids)

    def get_job_count(self) -> int:
        return len(self._jobs)


async def job_cleanup_scheduler(
    job_service: JobService,
    interval: int = 3600,
    run_once: bool = False,
) -> Optional[int]:
    """Run periodic job cleanup.

    Args:
        job_service: JobService instance to use for cleanup.
        interval: Seconds between cleanup runs (default: 1 hour).
        run_once: If True, run only one cleanup cycle (for testing).

    Returns:
        Number of jobs cleaned if run_once is True, None otherwise.
    """
    logger.info("job_cleanup_scheduler_started", interval_seconds=interval)

    while True:
        await asyncio.sleep(interval)

        count = job_service.cleanup_expired_jobs()

        if count > 0:
            logger.info("scheduled_job_cleanup_completed", jobs_removed=count)

        if run_once:
            return count
