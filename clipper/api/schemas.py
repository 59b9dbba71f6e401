"""Request and response schemas for API endpoints.

This module provides Pydantic models for API request validation
and response serialization with OpenAPI examples.
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class LoadVideoRequest(BaseModel):
    """Request to acquire a video for preview and trimming."""

    url: str = Field(
        ...,
        description="YouTube URL or 11 character video ID",
        examples=["https://www.youtube.com/watch?v=dQw4w9WgXcQ"],
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("url must not be empty")
        return v


class VideoInfoResponse(BaseModel):
    """Metadata of the loaded video."""

    video_id: str = Field(..., examples=["dQw4w9WgXcQ"])
    title: str = Field(..., examples=["Rick Astley - Never Gonna Give You Up"])
    duration: float = Field(..., description="Duration in seconds", examples=[212.0])
    author: str = Field(..., examples=["Rick Astley"])
    thumbnail_url: str = Field(
        ..., examples=["https://i.ytimg.com/vi/dQw4w9WgXcQ/maxresdefault.jpg"]
    )
    description: str = Field("", examples=["The official video for Never Gonna Give You Up"])
    source_width: int = Field(0, examples=[1920])
    source_height: int = Field(0, examples=[1080])


class LoadedVideoResponse(BaseModel):
    """The video the preview route currently serves."""

    video_id: str = Field(..., examples=["dQw4w9WgXcQ"])
    preview_url: str = Field(..., examples=["/video/dQw4w9WgXcQ"])
    info: Optional[VideoInfoResponse] = None


class ExportRequest(BaseModel):
    """Request to trim and export a clip of the loaded video."""

    start_time: float = Field(..., ge=0, description="Clip start in seconds", examples=[10.0])
    end_time: float = Field(..., gt=0, description="Clip end in seconds", examples=[15.0])
    remove_audio: bool = Field(False, description="Drop the audio track")
    filename: Optional[str] = Field(None, description="Clip file name", examples=["intro"])
    output_dir: str = Field(
        ..., description="Absolute destination directory", examples=["/home/user/Videos"]
    )
    quality: Optional[str] = Field(
        None,
        description="Quality tier; the configured default when omitted",
        examples=["1080p", "720p", "480p", "360p", "original"],
    )
    crf: Optional[int] = Field(None, ge=0, le=51, description="Override the tier's CRF")
    preset: Optional[str] = Field(None, description="Override the tier's x264 preset")
    audio_bitrate: Optional[str] = Field(None, examples=["128k"])
    max_height: Optional[int] = Field(None, ge=0, description="Override the tier's height cap")

    @field_validator("audio_bitrate")
    @classmethod
    def validate_audio_bitrate(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().lower()
        if not v[:-1].isdigit() or v[-1] != "k":
            raise ValueError("audio_bitrate must look like '128k'")
        return v


class JobResponse(BaseModel):
    """Status of an acquisition or export job."""

    job_id: str = Field(..., examples=["job_3f2a9c1b7e44"])
    kind: Literal["acquisition", "export"] = Field(..., examples=["acquisition"])
    status: str = Field(
        ...,
        description="Job status",
        examples=["pending", "processing", "completed", "failed", "cancelled"],
    )
    progress: float = Field(..., description="Progress fraction (0.0-1.0)", examples=[0.75])
    error_message: Optional[str] = Field(None, examples=["Video unavailable"])
    result_path: Optional[str] = Field(None, examples=["/tmp/clipper-x1/video-preview.mp4"])
    created_at: str = Field(..., examples=["2025-12-25T10:30:00Z"])
    started_at: Optional[str] = Field(None, examples=["2025-12-25T10:30:05Z"])
    completed_at: Optional[str] = Field(None, examples=["2025-12-25T10:31:00Z"])


class ComponentHealth(BaseModel):
    """Health status of a single component."""

    status: Literal["healthy", "unhealthy"] = Field(..., examples=["healthy"])
    version: Optional[str] = Field(default=None, examples=["2024.12.01"])
    details: Optional[Dict[str, Any]] = Field(default=None, examples=[{"path": "/usr/bin/ffmpeg"}])


class HealthResponse(BaseModel):
    """Detailed health check response."""

    status: Literal["healthy", "unhealthy"] = Field(..., examples=["healthy"])
    timestamp: str = Field(..., examples=["2025-12-25T10:30:00Z"])
    version: str = Field(..., examples=["0.3.0"])
    uptime_seconds: float = Field(..., examples=[3600.5])
    components: Dict[str, ComponentHealth]


class LivenessResponse(BaseModel):
    """Simple liveness check response."""

    status: Literal["alive"] = Field(..., examples=["alive"])


class ErrorDetail(BaseModel):
    """Structured error response.

    All API errors follow this format with machine-readable error codes
    and optional suggestions for resolution.
    """

    error_code: str = Field(
        ...,
        description="Machine-readable error code",
        examples=["INVALID_URL", "NO_VIDEO_LOADED", "PROCESS_FAILED"],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Invalid video URL: https://example.com"],
    )
    details: Optional[str] = Field(
        None,
        description="Additional error context",
        examples=["external_tool: downloader not available"],
    )
    timestamp: str = Field(..., examples=["2025-12-25T10:30:00Z"])
    job_id: Optional[str] = Field(
        None,
        description="Job ID for tracing",
        examples=["job_3f2a9c1b7e44"],
    )
    suggestion: Optional[str] = Field(
        None,
        description="Suggested action to resolve the error",
        examples=["Load a video with POST /api/v1/videos first"],
    )
