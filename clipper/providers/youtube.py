"""YouTube provider implementation."""

import asyncio
import json
import re
from urllib.parse import urlsplit
from typing import Any, Dict, List, Optional

import structlog

from clipper.core.process import AsyncioProcessRunner, ProcessResult, ProcessRunner
from clipper.models.video import StreamVariant, VideoInfo
from clipper.providers.base import VideoProvider
from clipper.providers.exceptions import (
    InvalidURLError,
    ProcessFailedError,
    VideoUnavailableError,
)

logger = structlog.get_logger(__name__)

# Characters that are not allowed in file names on common filesystems
_INVALID_TITLE_CHARS = re.compile(r'[/\\:*?"<>|]')

MAX_TITLE_LENGTH = 200


def sanitize_title(title: str) -> str:
    """Make a video title usable as a file name stem."""
    result = _INVALID_TITLE_CHARS.sub("_", title)
    result = result.strip().strip(".")
    return result[:MAX_TITLE_LENGTH]


class YouTubeProvider(VideoProvider):
    """YouTube video provider backed by ``yt-dlp --dump-json``."""

    # Pattern to extract the 11 character video ID
    VIDEO_ID_PATTERN = re.compile(
        r"(?:v=|/v/|youtu\.be/|/embed/|/shorts/)([a-zA-Z0-9_-]{11})"
    )
    BARE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{11}$")

    WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

    HOSTS = ("youtube.com", "youtu.be", "youtube-nocookie.com")

    UNAVAILABLE_MARKERS = (
        "Video unavailable",
        "Private video",
        "This video has been removed",
        "Sign in to confirm your age",
    )

    def __init__(
        self,
        ytdlp_path: Optional[str] = None,
        runner: Optional[ProcessRunner] = None,
        timeout: float = 30.0,
        retry_attempts: int = 3,
        retry_backoff: Optional[List[float]] = None,
    ):
        """
        Initialize YouTube provider.

        Args:
            ytdlp_path: yt-dlp executable (defaults to "yt-dlp" on PATH)
            runner: Process runner used for every yt-dlp invocation
            timeout: Timeout in seconds for each metadata attempt
            retry_attempts: Number of attempts for retriable failures
            retry_backoff: Seconds to wait before each retry
        """
        self.ytdlp_path = ytdlp_path or "yt-dlp"
        self.runner = runner or AsyncioProcessRunner()
        self.timeout = timeout
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff = retry_backoff if retry_backoff is not None else [2, 4, 8]

        logger.info(
            "youtube_provider_initialized",
            ytdlp_path=self.ytdlp_path,
            retry_attempts=self.retry_attempts,
        )

    def validate_url(self, url: str) -> bool:
        """
        Validate if URL is a YouTube URL or a bare video ID.

        Args:
            url: URL to validate

        Returns:
            True if a video ID can be extracted, False otherwise
        """
        return self.extract_video_id(url) is not None

    def extract_video_id(self, url: str) -> Optional[str]:
        """
        Extract video ID from YouTube URL.

        Args:
            url: YouTube URL or bare 11 character ID

        Returns:
            Video ID if found, None otherwise
        """
        if not url:
            return None

        url = url.strip()
        if self.BARE_ID_PATTERN.match(url):
            return url

        if self._is_youtube_host(url):
            match = self.VIDEO_ID_PATTERN.search(url)
            if match:
                return match.group(1)

        logger.debug("video_id_not_found", url=url)
        return None

    def canonical_url(self, video_id: str) -> str:
        return self.WATCH_URL.format(video_id=video_id)

    def _is_youtube_host(self, url: str) -> bool:
        if url.startswith("-"):
            return False
        try:
            parts = urlsplit(url if "://" in url else f"https://{url}")
        except ValueError:
            return False
        if parts.scheme not in ("http", "https"):
            return False
        host = (parts.hostname or "").lower()
        return any(host == h or host.endswith("." + h) for h in self.HOSTS)

    async def get_info(self, url: str) -> VideoInfo:
        """
        Extract video metadata and stream variants.

        Args:
            url: YouTube video URL or ID

        Returns:
            VideoInfo with variants

        Raises:
            InvalidURLError: If URL is invalid
            VideoUnavailableError: If video is not accessible
            ProcessFailedError: If yt-dlp fails or its output cannot be parsed
        """
        video_id = self.extract_video_id(url)
        if not video_id:
            raise InvalidURLError(f"Invalid YouTube URL: {url}")

        logger.info("getting_video_info", video_id=video_id)

        cmd = [
            self.ytdlp_path,
            "--dump-json",
            "--no-playlist",
            "--no-warnings",
            "--",
            self.canonical_url(video_id),
        ]

        try:
            result = await self._execute_with_retry(cmd)
        except ProcessFailedError as e:
            if any(marker in e.stderr for marker in self.UNAVAILABLE_MARKERS):
                raise VideoUnavailableError(f"Video is not accessible: {e.stderr}") from e
            raise

        try:
            info = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            logger.error("ytdlp_output_parse_failed", error=str(e))
            raise ProcessFailedError(f"Failed to parse video info: {e}") from e

        video_info = self._parse_info(info, video_id)
        logger.info(
            "video_info_extracted",
            video_id=video_info.video_id,
            variants=len(video_info.variants),
            duration=video_info.duration,
        )
        return video_info

    def _parse_info(self, info: Dict[str, Any], video_id: str) -> VideoInfo:
        """
        Convert yt-dlp's JSON document into a VideoInfo.

        Args:
            info: Parsed ``--dump-json`` output
            video_id: ID extracted from the request, used if yt-dlp omits it

        Returns:
            VideoInfo
        """
        # Manifest-based formats (HLS, DASH segments) cannot be fetched as one file
        variants = [
            variant
            for variant in (
                StreamVariant.from_ytdlp(fmt) for fmt in info.get("formats") or [] if fmt.get("url")
            )
            if variant.is_direct
        ]

        # Source resolution is taken from the widest advertised variant
        source_width = 0
        source_height = 0
        for variant in variants:
            if variant.width > source_width:
                source_width = variant.width
                source_height = variant.height

        return VideoInfo(
            video_id=info.get("id") or video_id,
            title=sanitize_title(info.get("title") or video_id) or video_id,
            duration=float(info.get("duration") or 0),
            author=info.get("uploader") or info.get("channel") or "",
            thumbnail_url=info.get("thumbnail") or "",
            description=info.get("description") or "",
            source_width=source_width,
            source_height=source_height,
            variants=variants,
        )

    def _is_retriable_error(self, error_msg: str) -> bool:
        """
        Determine if a yt-dlp failure should trigger a retry.

        Args:
            error_msg: Error message from yt-dlp stderr

        Returns:
            True if error is retriable, False otherwise
        """
        retriable_patterns = [
            "HTTP Error 5",  # Server errors (5xx)
            "Connection reset",
            "Timeout",
            "Too Many Requests",
            "HTTP Error 429",
            "Unable to connect",
        ]
        return any(pattern in error_msg for pattern in retriable_patterns)

    async def _execute_with_retry(self, cmd: List[str]) -> ProcessResult:
        """
        Execute a yt-dlp command with retry logic.

        Retries with backoff on network-level failures and timeouts only;
        anything else (private video, bad ID) fails immediately.

        Args:
            cmd: Command to execute

        Returns:
            Successful ProcessResult

        Raises:
            ProcessFailedError: If all attempts fail or a non-retriable error occurs
            ProcessLaunchError: If yt-dlp is not installed
        """
        last_error: Optional[ProcessFailedError] = None

        for attempt in range(self.retry_attempts):
            try:
                result = await self.runner.run(cmd, timeout=self.timeout)
                return result.check("yt-dlp")
            except asyncio.TimeoutError:
                last_error = ProcessFailedError(f"yt-dlp timed out after {self.timeout}s")
                logger.warning(
                    "ytdlp_timeout",
                    attempt=attempt + 1,
                    max_attempts=self.retry_attempts,
                    timeout=self.timeout,
                )
            except ProcessFailedError as e:
                if not self._is_retriable_error(e.stderr):
                    raise
                last_error = e

            if attempt < self.retry_attempts - 1:
                wait_time = (
                    self.retry_backoff[min(attempt, len(self.retry_backoff) - 1)]
                    if self.retry_backoff
                    else 0
                )
                logger.warning(
                    "ytdlp_retrying",
                    attempt=attempt + 1,
                    max_attempts=self.retry_attempts,
                    wait_seconds=wait_time,
                    error=str(last_error)[:200],
                )
                await asyncio.sleep(wait_time)

        assert last_error is not None
        raise ProcessFailedError(
            f"yt-dlp failed after {self.retry_attempts} attempts",
            returncode=last_error.returncode,
            stderr=last_error.stderr or str(last_error),
        )
