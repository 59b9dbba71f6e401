"""Job status API endpoints.

- GET /api/v1/jobs
- GET /api/v1/jobs/{job_id}
- DELETE /api/v1/jobs/{job_id}
"""

from typing import Any, List, Optional

import structlog
from fastapi import APIRouter, Depends, Query

from clipper.api.schemas import JobResponse
from clipper.models.job import JobStatus
from clipper.services.session import Session

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["jobs"])


# Dependency placeholder (to be configured in main app)
async def get_session() -> Session:
    """Get session instance."""
    raise NotImplementedError("Session dependency not configured")


@router.get("/jobs", response_model=List[JobResponse])
async def list_jobs(
    status: Optional[JobStatus] = None,
    limit: int = Query(100, ge=1, le=1000),
    session: Session = Depends(get_session),  # noqa: B008
) -> Any:
    """
    List jobs of this session, newest first.

    Args:
        status: Only return jobs in this status (optional)
        limit: Maximum number of jobs to return
        session: Session instance
    """
    found = session.jobs.list_jobs(status=status, limit=limit)
    return [JobResponse(**job.to_dict()) for job in found]


@router.get(
    "/jobs/{job_id}",
    response_model=JobResponse,
    responses={
        404: {"description": "Job not found"},
    },
)
async def get_job_status(
    job_id: str,
    session: Session = Depends(get_session),  # noqa: B008
) -> Any:
    """
    Get job status.

    Returns the current status of an acquisition or export job including
    its progress fraction, result path once completed, and error message
    if it failed.

    Args:
        job_id: Job unique identifier
        session: Session instance

    Returns:
        Job status information
    """
    logger.debug("job_status_requested", job_id=job_id)

    job = session.jobs.get_job_or_raise(job_id)
    return JobResponse(**job.to_dict())


@router.delete(
    "/jobs/{job_id}",
    response_model=JobResponse,
    responses={
        404: {"description": "Job not found"},
    },
)
async def cancel_job(
    job_id: str,
    session: Session = Depends(get_session),  # noqa: B008
) -> Any:
    """
    Cancel a running job.

    The job's subprocess is killed and its partial files removed. Cancelling
    a finished job has no effect and returns its final status.
    """
    logger.info("job_cancel_requested", job_id=job_id)

    job = await session.cancel_job(job_id)
    return JobResponse(**job.to_dict())
