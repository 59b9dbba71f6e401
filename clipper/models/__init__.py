"""Data models for the application."""

from clipper.models.job import (
    AcquisitionJob,
    Job,
    JobKind,
    JobStatus,
    LoadedVideo,
    QualityTier,
    TrimRequest,
)
from clipper.models.video import SelectionResult, StreamVariant, VideoInfo

__all__ = [
    "AcquisitionJob",
    "Job",
    "JobKind",
    "JobStatus",
    "LoadedVideo",
    "QualityTier",
    "TrimRequest",
    "SelectionResult",
    "StreamVariant",
    "VideoInfo",
]
