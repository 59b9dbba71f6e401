"""Job data models for acquisition and export tracking.

A session runs at most one job at a time. Acquisition jobs produce the
session's current video; export jobs produce a user-chosen clip file.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from clipper.models.video import VideoInfo

ProgressCallback = Callable[[float], None]


class JobKind(str, Enum):
    """What a job does."""

    ACQUISITION = "acquisition"
    EXPORT = "export"


class JobStatus(str, Enum):
    """Status of a job.

    State transitions:
    - PENDING -> PROCESSING: When the session starts the job task
    - PROCESSING -> COMPLETED: When the job succeeds
    - PROCESSING -> FAILED: When the job raises
    - PENDING/PROCESSING -> CANCELLED: When a newer job replaces it or it is cancelled
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class Job:
    """Represents one acquisition or export run."""

    job_id: str
    kind: JobKind
    status: JobStatus = JobStatus.PENDING
    params: Dict[str, Any] = field(default_factory=dict)
    progress: float = 0.0  # 0.0-1.0
    error_message: Optional[str] = None
    result_path: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def is_terminal(self) -> bool:
        """Check if the job is in a terminal state."""
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)

    def to_dict(self) -> Dict[str, Any]:
        """Convert job to dictionary for API responses."""
        return {
            "job_id": self.job_id,
            "kind": self.kind.value,
            "status": self.status.value,
            "progress": self.progress,
            "error_message": self.error_message,
            "result_path": self.result_path,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class AcquisitionJob:
    """Input for one "load video" request."""

    url: str
    destination_dir: Path
    encoder_path: Optional[str] = None
    downloader_path: Optional[str] = None
    on_progress: Optional[ProgressCallback] = None


@dataclass(frozen=True)
class QualityTier:
    """Encode settings for one export quality level."""

    max_height: int  # 0 = keep source resolution
    crf: int
    preset: str
    audio_bitrate: str


@dataclass
class TrimRequest:
    """A trim/export of ``[start, end)`` seconds of an acquired file."""

    input_path: Path
    output_path: Path
    start: float
    end: float
    strip_audio: bool = False
    max_height: int = 0
    crf: int = 23
    preset: str = "medium"
    audio_bitrate: str = "128k"

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class LoadedVideo:
    """The session's current video: the one file the preview route may serve."""

    video_id: str
    path: Path
    info: Optional[VideoInfo] = None
