"""Health check endpoints.

- GET /health: tool availability and the session directory
- GET /health/live: liveness probe
"""

import asyncio
import os
import time
from datetime import datetime, timezone
from typing import Literal, Optional

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from clipper import __version__
from clipper.api.schemas import ComponentHealth, HealthResponse, LivenessResponse
from clipper.core.checks import CheckResult, check_ffmpeg, check_ytdlp
from clipper.services.session import Session

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["health"])

# Components whose failure makes the service unhealthy; yt-dlp only adds a strategy
REQUIRED_COMPONENTS = ("ffmpeg", "storage")

# Track application start time for uptime calculation
_start_time: float = time.time()


def reset_start_time() -> None:
    """Reset the start time (for testing)."""
    global _start_time
    _start_time = time.time()


# Dependency placeholder (to be configured in main app)
async def get_session() -> Session:
    """Get session instance."""
    raise NotImplementedError("Session dependency not configured")


def _tool_health(result: CheckResult, path: Optional[str]) -> ComponentHealth:
    if path is None:
        return ComponentHealth(status="unhealthy", details={"error": f"{result.name} not found"})
    if result.available:
        return ComponentHealth(status="healthy", version=result.version, details={"path": path})
    return ComponentHealth(
        status="unhealthy",
        details={"error": result.error or f"{result.name} not available", "path": path},
    )


async def _check_tool(name: str, path: Optional[str]) -> ComponentHealth:
    if path is None:
        return _tool_health(CheckResult(name=name, available=False), None)
    if name == "ffmpeg":
        result = await check_ffmpeg(path)
    else:
        result = await check_ytdlp(path)
    return _tool_health(result, path)


def _check_storage(session: Session) -> ComponentHealth:
    """Check that the session directory is usable."""
    temp_dir = session.temp_dir
    if temp_dir.is_dir() and os.access(temp_dir, os.W_OK):
        return ComponentHealth(status="healthy", details={"temp_dir": str(temp_dir)})
    return ComponentHealth(
        status="unhealthy",
        details={"error": "Session directory is not writable", "temp_dir": str(temp_dir)},
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        200: {"description": "Required components healthy"},
        503: {"description": "A required component is unhealthy"},
    },
)
async def health_check(
    session: Session = Depends(get_session),  # noqa: B008
) -> JSONResponse:
    """
    Detailed health check endpoint.

    Verifies:
    - ffmpeg availability and version (required)
    - yt-dlp availability and version
    - Session temp directory (required)

    Returns HTTP 200 if the required components are healthy,
    HTTP 503 otherwise.
    """
    ffmpeg_health, ytdlp_health = await asyncio.gather(
        _check_tool("ffmpeg", session.exporter.encoder_path),
        _check_tool("ytdlp", session.orchestrator.downloader_path),
    )

    components = {
        "ffmpeg": ffmpeg_health,
        "ytdlp": ytdlp_health,
        "storage": _check_storage(session),
    }

    healthy = all(components[name].status == "healthy" for name in REQUIRED_COMPONENTS)
    overall_status: Literal["healthy", "unhealthy"] = "healthy" if healthy else "unhealthy"

    response = HealthResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=__version__,
        uptime_seconds=round(time.time() - _start_time, 2),
        components=components,
    )

    status_code = status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE

    logger.info(
        "health_check_completed",
        status=overall_status,
        components={k: v.status for k, v in components.items()},
    )

    return JSONResponse(content=response.model_dump(), status_code=status_code)


@router.get("/health/live", response_model=LivenessResponse)
async def liveness_check() -> LivenessResponse:
    """
    Liveness probe endpoint.

    Returns HTTP 200 if the process is alive.
    """
    return LivenessResponse(status="alive")
