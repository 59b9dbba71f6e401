"""Pytest configuration and shared fixtures"""

import os

import pytest

from clipper.models.video import VideoInfo
from clipper.testing import FakeProvider, FakeRunner, make_variant


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset environment variables before each test"""
    # Clear any CLIPPER_ prefixed environment variables
    for key in list(os.environ.keys()):
        if key.startswith("CLIPPER_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def video_info() -> VideoInfo:
    """Metadata advertising progressive 360p/720p and a 1080p/audio split pair."""
    return VideoInfo(
        video_id="dQw4w9WgXcQ",
        title="Never Gonna Give You Up",
        duration=212.0,
        author="Rick Astley",
        thumbnail_url="https://i.ytimg.com/vi/dQw4w9WgXcQ/maxresdefault.jpg",
        source_width=1920,
        source_height=1080,
        variants=[
            make_variant("18", height=360, bitrate=500_000),
            make_variant("22", height=720, bitrate=1_500_000),
            make_variant("137", audio_codec=None, height=1080, bitrate=4_000_000),
            make_variant("140", video_codec=None, height=0, bitrate=128_000),
        ],
    )


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def fake_provider(video_info: VideoInfo) -> FakeProvider:
    return FakeProvider(video_info)
