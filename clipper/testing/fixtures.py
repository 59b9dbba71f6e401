"""Demo video fixtures.

Realistic ``yt-dlp --dump-json`` documents so metadata parsing and
format selection can be tested without contacting YouTube.
"""

import copy
from typing import Any, Dict, Optional

from clipper.models.video import VideoInfo
from clipper.providers.youtube import YouTubeProvider

_MEDIA_URL = "https://rr1---sn-demo.googlevideo.com/videoplayback?itag={itag}"

# Demo video: Rick Astley - Never Gonna Give You Up
RICK_ASTLEY_VIDEO: Dict[str, Any] = {
    "id": "dQw4w9WgXcQ",
    "title": "Rick Astley - Never Gonna Give You Up (Official Music Video)",
    "duration": 212,
    "uploader": "Rick Astley",
    "channel": "Rick Astley",
    "thumbnail": "https://i.ytimg.com/vi/dQw4w9WgXcQ/maxresdefault.jpg",
    "description": (
        "The official music video for Never Gonna Give You Up by Rick Astley.\n\n"
        "The song was a worldwide number-one hit."
    ),
    "webpage_url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
    "formats": [
        {
            # Storyboard entries carry no media URL usable for playback
            "format_id": "sb0",
            "ext": "mhtml",
            "vcodec": "none",
            "acodec": "none",
        },
        {
            "format_id": "18",
            "ext": "mp4",
            "width": 640,
            "height": 360,
            "filesize": 15000000,
            "vcodec": "avc1.42001E",
            "acodec": "mp4a.40.2",
            "tbr": 596.0,
            "url": _MEDIA_URL.format(itag=18),
            "protocol": "https",
            "http_headers": {"User-Agent": "Mozilla/5.0"},
        },
        {
            "format_id": "22",
            "ext": "mp4",
            "width": 1280,
            "height": 720,
            "filesize": 45000000,
            "vcodec": "avc1.64001F",
            "acodec": "mp4a.40.2",
            "tbr": 2692.0,
            "url": _MEDIA_URL.format(itag=22),
            "protocol": "https",
            "http_headers": {"User-Agent": "Mozilla/5.0"},
        },
        {
            # HLS entries point at a playlist, not at media bytes
            "format_id": "95",
            "ext": "mp4",
            "width": 1280,
            "height": 720,
            "vcodec": "avc1.4D401F",
            "acodec": "mp4a.40.2",
            "tbr": 2700.0,
            "url": "https://manifest.googlevideo.com/api/manifest/hls_playlist/itag/95/index.m3u8",
            "protocol": "m3u8_native",
        },
        {
            "format_id": "137",
            "ext": "mp4",
            "width": 1920,
            "height": 1080,
            "filesize": 80000000,
            "vcodec": "avc1.640028",
            "acodec": "none",
            "tbr": 4500.0,
            "url": _MEDIA_URL.format(itag=137),
            "protocol": "https",
        },
        {
            "format_id": "248",
            "ext": "webm",
            "width": 1920,
            "height": 1080,
            "filesize_approx": 60000000,
            "vcodec": "vp9",
            "acodec": "none",
            "tbr": 3900.0,
            "url": _MEDIA_URL.format(itag=248),
            "protocol": "https",
        },
        {
            "format_id": "140",
            "ext": "m4a",
            "filesize": 3400000,
            "vcodec": "none",
            "acodec": "mp4a.40.2",
            "abr": 129.5,
            "url": _MEDIA_URL.format(itag=140),
            "protocol": "https",
        },
        {
            "format_id": "251",
            "ext": "webm",
            "filesize": 3500000,
            "vcodec": "none",
            "acodec": "opus",
            "abr": 135.0,
            "url": _MEDIA_URL.format(itag=251),
            "protocol": "https",
        },
    ],
}

# Demo video with only WebM streams
WEBM_ONLY_VIDEO: Dict[str, Any] = {
    "id": "jNQXAC9IVRw",
    "title": "Me at the zoo",
    "duration": 19,
    "uploader": "jawed",
    "thumbnail": "https://i.ytimg.com/vi/jNQXAC9IVRw/maxresdefault.jpg",
    "description": "The first video on YouTube.",
    "formats": [
        {
            "format_id": "43",
            "ext": "webm",
            "width": 640,
            "height": 360,
            "vcodec": "vp8.0",
            "acodec": "vorbis",
            "tbr": 500.0,
            "url": _MEDIA_URL.format(itag=43),
            "protocol": "https",
        },
    ],
}

DEMO_VIDEOS: Dict[str, Dict[str, Any]] = {
    "dQw4w9WgXcQ": RICK_ASTLEY_VIDEO,
    "jNQXAC9IVRw": WEBM_ONLY_VIDEO,
}


def get_demo_video(video_id: str) -> Optional[Dict[str, Any]]:
    """Return a copy of the demo ``--dump-json`` document for ``video_id``."""
    video = DEMO_VIDEOS.get(video_id)
    return copy.deepcopy(video) if video is not None else None


def demo_video_info(video_id: str = "dQw4w9WgXcQ") -> VideoInfo:
    """Build the parsed VideoInfo for a demo video."""
    document = get_demo_video(video_id)
    if document is None:
        raise KeyError(video_id)
    return YouTubeProvider()._parse_info(document, video_id)
