"""FastAPI application entry point.

This module assembles all components and creates the main application.
"""

import asyncio
import contextlib
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from clipper import __version__
from clipper.api import events, export, health, jobs, metrics, preview, video
from clipper.core.checks import locate_tool
from clipper.core.config import Config, ConfigService
from clipper.core.errors import APIError, global_exception_handler
from clipper.core.logging import configure_logging
from clipper.core.metrics import MetricsCollector, initialize_metrics
from clipper.core.process import AsyncioProcessRunner
from clipper.providers.exceptions import ClipperError
from clipper.providers.youtube import YouTubeProvider
from clipper.services.acquisition import AcquisitionOrchestrator
from clipper.services.export import TrimExportEngine
from clipper.services.fetcher import StreamFetcher
from clipper.services.job_service import JobService, job_cleanup_scheduler
from clipper.services.session import Session

logger = structlog.get_logger(__name__)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to track HTTP request metrics.

    Records request count and duration for all endpoints,
    using FastAPI route templates to normalize paths.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Process request and record metrics."""
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        # Fixed label for unmatched routes keeps cardinality bounded
        route = request.scope.get("route")
        endpoint = route.path if route else "/unmatched"

        MetricsCollector.record_request(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
            duration=duration,
        )

        return response


# Global service instances
_session: Optional[Session] = None
_cleanup_task: Optional[asyncio.Task] = None


def get_session() -> Session:
    """Get the global session instance."""
    if _session is None:
        raise RuntimeError("Session not configured")
    return _session


def build_session(config: Config) -> Session:
    """
    Wire the acquisition and export services from configuration.

    Args:
        config: Loaded application configuration

    Returns:
        A new session owning its own temp directory
    """
    ffmpeg_path = locate_tool("ffmpeg", config.tools.ffmpeg_path)
    ytdlp_path = locate_tool("yt-dlp", config.tools.ytdlp_path)

    if ffmpeg_path is None:
        logger.warning("ffmpeg_not_found", hint="Install ffmpeg or set CLIPPER_TOOLS_FFMPEG_PATH")
    if ytdlp_path is None:
        logger.warning("ytdlp_not_found", hint="Install yt-dlp or set CLIPPER_TOOLS_YTDLP_PATH")

    runner = AsyncioProcessRunner()
    provider = YouTubeProvider(
        ytdlp_path=ytdlp_path,
        runner=runner,
        timeout=config.timeouts.metadata,
    )
    fetcher = StreamFetcher(
        chunk_size=config.fetch.chunk_size,
        connect_timeout=config.fetch.connect_timeout,
        read_timeout=config.fetch.read_timeout,
    )
    orchestrator = AcquisitionOrchestrator(
        provider=provider,
        fetcher=fetcher,
        runner=runner,
        encoder_path=ffmpeg_path,
        downloader_path=ytdlp_path,
    )
    exporter = TrimExportEngine(encoder_path=ffmpeg_path, runner=runner)

    logger.info("tools_located", ffmpeg=ffmpeg_path, ytdlp=ytdlp_path)

    return Session(
        orchestrator=orchestrator,
        exporter=exporter,
        temp_root=config.storage.temp_root,
        temp_prefix=config.storage.temp_prefix,
        jobs=JobService(job_ttl_hours=config.server.job_ttl_hours),
        default_quality=config.export.default_quality,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown."""
    global _session, _cleanup_task

    logger.info("application_starting", version=__version__)

    initialize_metrics(__version__)

    config = app.state.config
    configure_logging(config.logging.level, config.logging.format)

    logger.info(
        "configuration_loaded",
        server_port=config.server.port,
        temp_root=config.storage.temp_root,
    )

    _session = build_session(config)

    _cleanup_task = asyncio.create_task(job_cleanup_scheduler(_session.jobs, interval=3600))
    logger.info("job_cleanup_scheduler_started")

    logger.info("application_startup_complete", version=__version__)

    yield

    logger.info("application_shutting_down")

    if _cleanup_task:
        _cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await _cleanup_task
        _cleanup_task = None

    await _session.close()
    _session = None

    logger.info("application_shutdown_complete")


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if config is None:
        config = ConfigService().load()

    app = FastAPI(
        title="Clipper",
        description="Acquire a video for browser preview and export trimmed clips",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if config.monitoring.metrics_enabled:
        app.add_middleware(MetricsMiddleware)

    # Register global exception handlers
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(APIError, global_exception_handler)
    app.add_exception_handler(ClipperError, global_exception_handler)

    # Override dependency injection for routers
    app.dependency_overrides[health.get_session] = get_session
    app.dependency_overrides[video.get_session] = get_session
    app.dependency_overrides[export.get_session] = get_session
    app.dependency_overrides[jobs.get_session] = get_session
    app.dependency_overrides[preview.get_session] = get_session
    app.dependency_overrides[events.get_session] = get_session

    # Register routers
    app.include_router(health.router)
    app.include_router(video.router)
    app.include_router(export.router)
    app.include_router(jobs.router)
    app.include_router(preview.router)
    app.include_router(events.router)
    if config.monitoring.metrics_enabled:
        app.include_router(metrics.router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn  # type: ignore[import-not-found]

    settings = app.state.config.server
    uvicorn.run(app, host=settings.host, port=settings.port)
