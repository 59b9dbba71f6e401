"""Preview serving for the in-page video player.

- GET /video/{video_id}: the loaded video file, with byte-range support
"""

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from clipper.services.session import Session

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["preview"])


# Dependency placeholder (to be configured in main app)
async def get_session() -> Session:
    """Get session instance."""
    raise NotImplementedError("Session dependency not configured")


@router.api_route(
    "/video/{video_id}",
    methods=["GET", "HEAD"],
    response_class=FileResponse,
    responses={
        206: {"description": "Partial content for a byte range request"},
        403: {"description": "File outside the session directory"},
        404: {"description": "Video not loaded"},
    },
)
async def serve_video(
    video_id: str,
    session: Session = Depends(get_session),  # noqa: B008
) -> FileResponse:
    """
    Serve the currently loaded video.

    Only the current video's ID resolves; anything else is a 404. Range
    requests get 206 responses so the player can seek.
    """
    path = session.resolve_for_serving(video_id)
    logger.debug("preview_served", video_id=video_id)
    return FileResponse(
        path,
        media_type="video/mp4",
        headers={"Accept-Ranges": "bytes", "Cache-Control": "no-cache"},
    )
