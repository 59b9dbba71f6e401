"""In-process event fan-out for progress and completion notifications."""

import asyncio
import contextlib
from dataclasses import dataclass
from typing import Any, Iterator, List

import structlog

logger = structlog.get_logger(__name__)

DOWNLOAD_PROGRESS = "download:progress"
DOWNLOAD_COMPLETE = "download:complete"
EXPORT_PROGRESS = "export:progress"
EXPORT_COMPLETE = "export:complete"
JOB_FAILED = "job:failed"


@dataclass(frozen=True)
class Event:
    name: str
    payload: Any


class EventBus:
    """Publishes events to every subscriber's bounded queue.

    A slow subscriber loses its oldest events rather than blocking the
    publisher. Must be used from a single event loop.
    """

    def __init__(self, max_queue_size: int = 100) -> None:
        self.max_queue_size = max_queue_size
        self._subscribers: List["asyncio.Queue[Event]"] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, name: str, payload: Any = None) -> None:
        event = Event(name=name, payload=payload)
        for queue in self._subscribers:
            if queue.full():
                with contextlib.suppress(asyncio.QueueEmpty):
                    queue.get_nowait()
            queue.put_nowait(event)

    def subscribe(self) -> "asyncio.Queue[Event]":
        queue: "asyncio.Queue[Event]" = asyncio.Queue(maxsize=self.max_queue_size)
        self._subscribers.append(queue)
        logger.debug("event_subscriber_added", subscribers=len(self._subscribers))
        return queue

    def unsubscribe(self, queue: "asyncio.Queue[Event]") -> None:
        with contextlib.suppress(ValueError):
            self._subscribers.remove(queue)
        logger.debug("event_subscriber_removed", subscribers=len(self._subscribers))

    @contextlib.contextmanager
    def subscription(self) -> Iterator["asyncio.Queue[Event]"]:
        """Subscribe for the duration of a ``with`` block."""
        queue = self.subscribe()
        try:
            yield queue
        finally:
            self.unsubscribe(queue)
