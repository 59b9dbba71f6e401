"""Fake process runner and provider.

``FakeRunner`` replays scripted handlers in place of ffmpeg and yt-dlp so
strategy fallbacks, cancellation and cleanup can be driven from tests.
"""

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from clipper.core.process import LineHandler, ProcessResult, ProcessRunner
from clipper.models.video import StreamVariant, VideoInfo
from clipper.providers.base import VideoProvider
from clipper.providers.exceptions import InvalidURLError

# (command, on_stdout_line) -> ProcessResult, or an awaitable of one
Handler = Callable[[List[str], Optional[LineHandler]], Any]

FTYP_HEADER = b"\x00\x00\x00\x18ftypmp42\x00\x00\x00\x00mp42isom"


class FakeRunner(ProcessRunner):
    """Process runner that replays scripted handlers instead of launching binaries.

    Each run consumes the next handler. With none left the command exits 0
    without output.
    """

    def __init__(self, *handlers: Handler) -> None:
        self.handlers: List[Handler] = list(handlers)
        self.calls: List[List[str]] = []

    def add(self, handler: Handler) -> None:
        self.handlers.append(handler)

    async def run(
        self,
        command: List[str],
        *,
        env: Optional[Dict[str, str]] = None,
        on_stdout_line: Optional[LineHandler] = None,
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        self.calls.append(list(command))
        if not self.handlers:
            return ProcessResult(command=command, returncode=0)
        handler = self.handlers.pop(0)
        result = handler(command, on_stdout_line)
        if asyncio.iscoroutine(result):
            result = await result
        return result


def write_output(path: Path, data: bytes = FTYP_HEADER) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def succeed_writing(index: int = -1, lines: Optional[List[str]] = None) -> Handler:
    """Handler that emits ``lines``, creates the file at ``command[index]`` and exits 0."""

    def handler(command: List[str], on_line: Optional[LineHandler]) -> ProcessResult:
        for line in lines or []:
            if on_line is not None:
                on_line(line)
        write_output(Path(command[index]))
        return ProcessResult(command=command, returncode=0)

    return handler


def fail_with(stderr: str, returncode: int = 1) -> Handler:
    """Handler that exits non-zero with ``stderr``."""

    def handler(command: List[str], on_line: Optional[LineHandler]) -> ProcessResult:
        return ProcessResult(command=command, returncode=returncode, stderr=stderr)

    return handler


def block_forever(started: Optional[asyncio.Event] = None) -> Handler:
    """Handler that never finishes; only cancellation ends it."""

    async def handler(command: List[str], on_line: Optional[LineHandler]) -> ProcessResult:
        if started is not None:
            started.set()
        await asyncio.Event().wait()
        raise AssertionError("unreachable")

    return handler


class FakeProvider(VideoProvider):
    """Provider returning a fixed VideoInfo for YouTube URLs and 11 character IDs."""

    def __init__(self, info: VideoInfo, error: Optional[Exception] = None) -> None:
        self.info = info
        self.error = error
        self.requested: List[str] = []

    def validate_url(self, url: str) -> bool:
        return self.extract_video_id(url) is not None

    def extract_video_id(self, url: str) -> Optional[str]:
        if "youtube.com" in url or "youtu.be" in url or len(url) == 11:
            return self.info.video_id
        return None

    def canonical_url(self, video_id: str) -> str:
        return f"https://www.youtube.com/watch?v={video_id}"

    async def get_info(self, url: str) -> VideoInfo:
        self.requested.append(url)
        if not self.validate_url(url):
            raise InvalidURLError(f"Invalid YouTube URL: {url}")
        if self.error is not None:
            raise self.error
        return self.info


def make_variant(
    format_id: str,
    container: str = "mp4",
    video_codec: Optional[str] = "avc1.64001F",
    audio_codec: Optional[str] = "mp4a.40.2",
    height: int = 720,
    bitrate: int = 1_000_000,
    url: Optional[str] = None,
    filesize: Optional[int] = None,
    protocol: str = "https",
) -> StreamVariant:
    """Build a variant with sensible defaults: a progressive 720p H.264/AAC MP4."""
    return StreamVariant(
        format_id=format_id,
        container=container,
        video_codec=video_codec,
        audio_codec=audio_codec,
        width=height * 16 // 9,
        height=height,
        bitrate=bitrate,
        url=url or f"https://media.example.com/{format_id}",
        filesize=filesize,
        protocol=protocol,
    )
