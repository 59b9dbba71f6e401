"""Video data models for provider abstraction and format selection."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

# Upstream extensions mapped onto the container category used for ranking
_CONTAINERS = {
    "mp4": "mp4",
    "m4a": "mp4",
    "m4v": "mp4",
    "webm": "webm",
    "weba": "webm",
}

# Protocols whose URL is the media itself rather than a manifest
DIRECT_PROTOCOLS = ("http", "https")


def _codec_or_none(value: Optional[str]) -> Optional[str]:
    if not value or value == "none":
        return None
    return value


@dataclass(frozen=True)
class StreamVariant:
    """One advertised stream of a video.

    Many variants describe the same logical stream at different qualities.
    ``bitrate`` is in bits per second.
    """

    format_id: str
    container: str
    video_codec: Optional[str] = None
    audio_codec: Optional[str] = None
    width: int = 0
    height: int = 0
    bitrate: int = 0
    url: str = ""
    filesize: Optional[int] = None
    http_headers: Tuple[Tuple[str, str], ...] = ()
    protocol: str = "https"

    @property
    def has_video(self) -> bool:
        return self.video_codec is not None

    @property
    def has_audio(self) -> bool:
        return self.audio_codec is not None

    @property
    def is_direct(self) -> bool:
        """True when ``url`` serves the media bytes (not an HLS or DASH manifest)."""
        return self.protocol in DIRECT_PROTOCOLS

    @property
    def mime_type(self) -> str:
        """MIME type with codecs, e.g. ``video/mp4; codecs="avc1.64001F, mp4a.40.2"``."""
        kind = "video" if self.has_video else "audio"
        codecs = [c for c in (self.video_codec, self.audio_codec) if c]
        mime = f"{kind}/{self.container}"
        if codecs:
            mime += f'; codecs="{", ".join(codecs)}"'
        return mime

    @property
    def extension(self) -> str:
        if self.container == "mp4":
            return ".mp4" if self.has_video else ".m4a"
        if self.container == "webm":
            return ".webm"
        return f".{self.container}" if self.container else ".mp4"

    def headers(self) -> Dict[str, str]:
        return dict(self.http_headers)

    @classmethod
    def from_ytdlp(cls, fmt: Dict[str, Any]) -> "StreamVariant":
        """Build a variant from one entry of yt-dlp's ``formats`` list."""
        ext = (fmt.get("ext") or "").lower()
        # yt-dlp reports tbr in kbit/s
        tbr = fmt.get("tbr") or fmt.get("vbr") or fmt.get("abr") or 0
        headers = fmt.get("http_headers") or {}
        url = fmt.get("url") or ""
        protocol = fmt.get("protocol") or urlsplit(url).scheme or "https"
        return cls(
            format_id=str(fmt.get("format_id", "")),
            container=_CONTAINERS.get(ext, ext),
            video_codec=_codec_or_none(fmt.get("vcodec")),
            audio_codec=_codec_or_none(fmt.get("acodec")),
            width=int(fmt.get("width") or 0),
            height=int(fmt.get("height") or 0),
            bitrate=int(float(tbr) * 1000),
            url=url,
            filesize=fmt.get("filesize") or fmt.get("filesize_approx"),
            http_headers=tuple(sorted(headers.items())),
            protocol=protocol.lower(),
        )


@dataclass(frozen=True)
class SelectionResult:
    """Either a single progressive variant or a video-only/audio-only pair."""

    progressive: Optional[StreamVariant] = None
    video: Optional[StreamVariant] = None
    audio: Optional[StreamVariant] = None

    def __post_init__(self) -> None:
        is_pair = self.video is not None and self.audio is not None
        if self.progressive is None and not is_pair:
            raise ValueError("SelectionResult needs a progressive variant or a full pair")
        if self.progressive is not None and (self.video or self.audio):
            raise ValueError("SelectionResult cannot hold both a progressive variant and a pair")

    @property
    def is_pair(self) -> bool:
        return self.progressive is None


@dataclass
class VideoInfo:
    """Video metadata information."""

    video_id: str
    title: str
    duration: float  # seconds
    author: str = ""
    thumbnail_url: str = ""
    description: str = ""
    source_width: int = 0
    source_height: int = 0
    variants: List[StreamVariant] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "video_id": self.video_id,
            "title": self.title,
            "duration": self.duration,
            "author": self.author,
            "thumbnail_url": self.thumbnail_url,
            "description": self.description,
            "source_width": self.source_width,
            "source_height": self.source_height,
        }
