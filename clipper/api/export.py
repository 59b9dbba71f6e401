"""Clip export API endpoint.

- POST /api/v1/exports
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, status

from clipper.api.schemas import ExportRequest, JobResponse
from clipper.services.export import build_output_path, build_trim_request
from clipper.services.session import Session

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["export"])


# Dependency placeholder (to be configured in main app)
async def get_session() -> Session:
    """Get session instance."""
    raise NotImplementedError("Session dependency not configured")


@router.post(
    "/exports",
    response_model=JobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        400: {"description": "Invalid export request"},
        404: {"description": "No video loaded"},
        503: {"description": "FFmpeg not available"},
    },
)
async def export_clip(
    request: ExportRequest,
    session: Session = Depends(get_session),  # noqa: B008
) -> Any:
    """
    Export a clip of the loaded video.

    The request is validated before the job starts, so malformed ranges
    or relative output directories fail with 400 and no encoder runs.

    Args:
        request: Clip range, destination and encode settings
        session: Session instance

    Returns:
        The created export job
    """
    current = session.current_or_raise()
    quality = request.quality or session.default_quality

    output_path = build_output_path(request.output_dir, request.filename)
    trim = build_trim_request(
        input_path=current.path,
        output_path=output_path,
        start=request.start_time,
        end=request.end_time,
        strip_audio=request.remove_audio,
        quality=quality,
        max_height=request.max_height,
        crf=request.crf,
        preset=request.preset,
        audio_bitrate=request.audio_bitrate,
    )

    logger.info(
        "export_requested",
        video_id=current.video_id,
        start=request.start_time,
        end=request.end_time,
        quality=quality,
        crf=trim.crf,
        preset=trim.preset,
        max_height=trim.max_height,
    )

    job = await session.start_export(trim, quality=quality)
    return JobResponse(**job.to_dict())
