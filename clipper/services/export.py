"""Trim and re-encode a sub-range of the acquired video."""

import asyncio
import contextlib
import os
import time
from pathlib import Path
from typing import Dict, List, Optional

import structlog

from clipper.core.metrics import MetricsCollector
from clipper.core.process import AsyncioProcessRunner, ProcessRunner
from clipper.core.progress import ProgressCallback, clamp
from clipper.models.job import QualityTier, TrimRequest
from clipper.providers.exceptions import (
    ClipperError,
    EncoderUnavailableError,
    InvalidRequestError,
)

logger = structlog.get_logger(__name__)

ORIGINAL_QUALITY = "original"

QUALITY_TIERS: Dict[str, QualityTier] = {
    "1080p": QualityTier(max_height=1080, crf=21, preset="slow", audio_bitrate="160k"),
    "720p": QualityTier(max_height=720, crf=23, preset="medium", audio_bitrate="128k"),
    "480p": QualityTier(max_height=480, crf=26, preset="medium", audio_bitrate="112k"),
    "360p": QualityTier(max_height=360, crf=28, preset="fast", audio_bitrate="96k"),
    ORIGINAL_QUALITY: QualityTier(max_height=0, crf=23, preset="medium", audio_bitrate="128k"),
}

X264_PRESETS = (
    "ultrafast",
    "superfast",
    "veryfast",
    "faster",
    "fast",
    "medium",
    "slow",
    "slower",
    "veryslow",
    "placebo",
)

DEFAULT_CLIP_NAME = "clip"
MAX_CLIP_NAME_LENGTH = 120


def resolve_quality(name: Optional[str]) -> QualityTier:
    """Look up a quality tier; unknown names mean the original resolution."""
    return QUALITY_TIERS.get((name or "").lower(), QUALITY_TIERS[ORIGINAL_QUALITY])


def format_time(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS.mmm`` for ffmpeg."""
    # Rounded to milliseconds before splitting so carries reach the minutes
    total_ms = int(round(seconds * 1000))
    total_secs, millis = divmod(total_ms, 1000)
    minutes, secs = divmod(total_secs, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"


def sanitize_filename(name: str) -> str:
    """Make a user-supplied clip name safe to join onto a directory."""
    name = name.strip()
    for char in ("/", "\\", "\0"):
        name = name.replace(char, "_")
    name = name.strip(". ")
    return name[:MAX_CLIP_NAME_LENGTH]


def build_output_path(output_dir: str, filename: Optional[str]) -> Path:
    """
    Resolve the export destination file.

    Args:
        output_dir: Absolute directory for the clip
        filename: Requested clip name; ``clip`` when empty

    Returns:
        Absolute output path ending in ``.mp4``

    Raises:
        InvalidRequestError: If the directory is not absolute
    """
    if not output_dir or not os.path.isabs(output_dir):
        raise InvalidRequestError("output directory must be an absolute path")

    name = sanitize_filename(filename or "") or DEFAULT_CLIP_NAME
    if not name.lower().endswith(".mp4"):
        name += ".mp4"
    return Path(output_dir) / name


def build_trim_request(
    input_path: Path,
    output_path: Path,
    start: float,
    end: float,
    strip_audio: bool = False,
    quality: Optional[str] = None,
    max_height: Optional[int] = None,
    crf: Optional[int] = None,
    preset: Optional[str] = None,
    audio_bitrate: Optional[str] = None,
) -> TrimRequest:
    """
    Build a TrimRequest from a quality tier plus per-request overrides.

    Args:
        input_path: Acquired video file
        output_path: Clip destination
        start: Start time in seconds
        end: End time in seconds
        strip_audio: Drop the audio track
        quality: Tier name (``1080p``, ``720p``, ``480p``, ``360p``, ``original``)
        max_height: Override the tier's height cap (0 = no resize)
        crf: Override the tier's CRF
        preset: Override the tier's x264 preset
        audio_bitrate: Override the tier's AAC bitrate

    Returns:
        TrimRequest (not yet validated)
    """
    tier = resolve_quality(quality)
    return TrimRequest(
        input_path=Path(input_path),
        output_path=Path(output_path),
        start=start,
        end=end,
        strip_audio=strip_audio,
        max_height=tier.max_height if max_height is None else max_height,
        crf=tier.crf if crf is None else crf,
        preset=preset or tier.preset,
        audio_bitrate=audio_bitrate or tier.audio_bitrate,
    )


def build_trim_command(encoder: str, request: TrimRequest) -> List[str]:
    cmd = [
        encoder,
        "-y",
        "-hide_banner",
        "-loglevel",
        "error",
        "-progress",
        "pipe:1",
        "-nostats",
        "-ss",
        format_time(request.start),
        "-i",
        str(request.input_path),
        "-t",
        format_time(request.duration),
    ]

    if request.strip_audio:
        cmd.append("-an")
    else:
        cmd += ["-c:a", "aac", "-b:a", request.audio_bitrate]

    if request.max_height > 0:
        # Never upscale; -2 keeps the width even for libx264
        cmd += ["-vf", f"scale=-2:'min({request.max_height},ih)'"]

    cmd += [
        "-c:v",
        "libx264",
        "-preset",
        request.preset,
        "-crf",
        str(request.crf),
        "-movflags",
        "+faststart",
        str(request.output_path),
    ]
    return cmd


def parse_out_time(line: str) -> Optional[float]:
    """Parse an ``out_time_ms=`` progress line into seconds.

    ffmpeg reports this key in microseconds despite its name.
    """
    if not line.startswith("out_time_ms="):
        return None
    value = line.split("=", 1)[1].strip()
    if not value.lstrip("-").isdigit():
        return None
    return max(int(value), 0) / 1_000_000


class TrimExportEngine:
    """Runs ffmpeg to produce delivery-quality clips."""

    def __init__(self, encoder_path: Optional[str], runner: Optional[ProcessRunner] = None):
        self.encoder_path = encoder_path
        self.runner = runner or AsyncioProcessRunner()

    def validate(self, request: TrimRequest) -> None:
        """
        Check a request before any process is launched.

        Creates the output directory when it does not exist yet.

        Raises:
            EncoderUnavailableError: If no encoder is configured
            InvalidRequestError: If the request is malformed
        """
        if not self.encoder_path:
            raise EncoderUnavailableError("FFmpeg is not installed")
        if request.start < 0:
            raise InvalidRequestError("start time must not be negative")
        if request.end <= request.start:
            raise InvalidRequestError("end time must be greater than start time")
        if not request.output_path.is_absolute():
            raise InvalidRequestError("output path must be absolute")
        if not request.input_path.is_file():
            raise InvalidRequestError(f"input file does not exist: {request.input_path}")
        if request.output_path.resolve() == request.input_path.resolve():
            raise InvalidRequestError("output path must differ from the input file")
        if not 0 <= request.crf <= 51:
            raise InvalidRequestError(f"crf must be between 0 and 51: {request.crf}")
        if request.preset not in X264_PRESETS:
            raise InvalidRequestError(f"unknown encoder preset: {request.preset}")
        if request.max_height < 0:
            raise InvalidRequestError("max height must not be negative")

        try:
            request.output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InvalidRequestError(f"failed to create output directory: {e}") from e

    async def export(
        self,
        request: TrimRequest,
        on_progress: Optional[ProgressCallback] = None,
        quality: str = ORIGINAL_QUALITY,
    ) -> Path:
        """
        Trim and re-encode ``request``.

        Args:
            request: What to cut and how to encode it
            on_progress: Called with 0-1 progress; always ends with 1.0 on success
            quality: Tier name, used for metrics only

        Returns:
            The output path

        Raises:
            EncoderUnavailableError: If no encoder is configured
            InvalidRequestError: If validation fails (no process launched)
            ProcessFailedError: If ffmpeg fails; carries its stderr verbatim
            asyncio.CancelledError: If the calling task is cancelled
        """
        self.validate(request)
        assert self.encoder_path is not None

        duration = request.duration
        log = logger.bind(
            input=str(request.input_path),
            output=str(request.output_path),
            start=request.start,
            end=request.end,
        )

        def on_line(line: str) -> None:
            seconds = parse_out_time(line)
            if seconds is not None and on_progress is not None:
                on_progress(clamp(seconds / duration))

        started = time.monotonic()
        log.info("export_started", crf=request.crf, preset=request.preset, max_height=request.max_height)

        try:
            result = await self.runner.run(
                build_trim_command(self.encoder_path, request), on_stdout_line=on_line
            )
            result.check("ffmpeg")
        except asyncio.CancelledError:
            self._remove_output(request.output_path, only_empty=False)
            MetricsCollector.record_export(quality, "cancelled", time.monotonic() - started)
            log.info("export_cancelled")
            raise
        except ClipperError as e:
            self._remove_output(request.output_path, only_empty=True)
            MetricsCollector.record_export(quality, "failed", time.monotonic() - started)
            log.error("export_failed", error=str(e))
            raise

        if on_progress is not None:
            on_progress(1.0)

        elapsed = time.monotonic() - started
        MetricsCollector.record_export(quality, "success", elapsed)
        log.info("export_completed", duration_seconds=round(elapsed, 2))
        return request.output_path

    def _remove_output(self, path: Path, only_empty: bool) -> None:
        with contextlib.suppress(FileNotFoundError):
            if only_empty and path.stat().st_size > 0:
                return
            path.unlink()
