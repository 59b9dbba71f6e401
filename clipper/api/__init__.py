"""API endpoints."""

from clipper.api import events, export, health, jobs, metrics, preview, video

__all__ = [
    "events",
    "export",
    "health",
    "jobs",
    "metrics",
    "preview",
    "video",
]
