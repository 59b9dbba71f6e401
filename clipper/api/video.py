"""Video API endpoints.

- POST /api/v1/videos: acquire a video in the background
- GET /api/v1/videos/current: the loaded video and its preview URL
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, status

from clipper.api.schemas import (
    JobResponse,
    LoadedVideoResponse,
    LoadVideoRequest,
    VideoInfoResponse,
)
from clipper.services.session import Session

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["video"])


# Dependency placeholder (to be configured in main app)
async def get_session() -> Session:
    """Get session instance."""
    raise NotImplementedError("Session dependency not configured")


@router.post(
    "/videos",
    response_model=JobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        400: {"description": "Invalid URL"},
    },
)
async def load_video(
    request: LoadVideoRequest,
    session: Session = Depends(get_session),  # noqa: B008
) -> Any:
    """
    Load a video for preview.

    Starts an acquisition job and returns immediately. Any running job is
    cancelled and the previously loaded video stops being served.

    Args:
        request: Video URL or ID
        session: Session instance

    Returns:
        The created acquisition job
    """
    logger.info("load_video_requested", url=request.url)

    job = await session.start_acquisition(request.url)
    return JobResponse(**job.to_dict())


@router.get(
    "/videos/current",
    response_model=LoadedVideoResponse,
    responses={
        404: {"description": "No video loaded"},
    },
)
async def get_current_video(
    session: Session = Depends(get_session),  # noqa: B008
) -> Any:
    """Return the loaded video's metadata and preview URL."""
    current = session.current_or_raise()

    info = None
    if current.info is not None:
        info = VideoInfoResponse(**current.info.to_dict())

    return LoadedVideoResponse(
        video_id=current.video_id,
        preview_url=f"/video/{current.video_id}",
        info=info,
    )
