"""Service layer implementations."""

from clipper.services.acquisition import AcquisitionOrchestrator, AcquisitionResult
from clipper.services.events import Event, EventBus
from clipper.services.export import TrimExportEngine
from clipper.services.fetcher import StreamFetcher
from clipper.services.job_service import JobService, job_cleanup_scheduler
from clipper.services.session import Session

__all__ = [
    # Acquisition
    "AcquisitionOrchestrator",
    "AcquisitionResult",
    "StreamFetcher",
    # Export
    "TrimExportEngine",
    # Jobs and events
    "Event",
    "EventBus",
    "JobService",
    "job_cleanup_scheduler",
    # Session
    "Session",
]
