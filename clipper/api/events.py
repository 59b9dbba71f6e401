"""Server-Sent Events stream of job progress.

- GET /api/v1/events
"""

import asyncio
import json
from typing import AsyncIterator

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from clipper.services.events import EventBus
from clipper.services.session import Session

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["events"])

# Seconds between keepalive comments on an idle stream
KEEPALIVE_INTERVAL = 15.0


# Dependency placeholder (to be configured in main app)
async def get_session() -> Session:
    """Get session instance."""
    raise NotImplementedError("Session dependency not configured")


async def event_stream(
    bus: EventBus,
    request: Request,
    keepalive: float = KEEPALIVE_INTERVAL,
) -> AsyncIterator[str]:
    """Yield SSE frames for every published event until the client leaves."""
    with bus.subscription() as queue:
        while not await request.is_disconnected():
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            yield f"event: {event.name}\ndata: {json.dumps(event.payload)}\n\n"


@router.get("/events")
async def stream_events(
    request: Request,
    session: Session = Depends(get_session),  # noqa: B008
) -> StreamingResponse:
    """
    Stream job events.

    Event names are ``download:progress``, ``download:complete``,
    ``export:progress``, ``export:complete`` and ``job:failed``.
    """
    logger.info("event_stream_opened", subscribers=session.events.subscriber_count + 1)
    return StreamingResponse(
        event_stream(session.events, request),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
