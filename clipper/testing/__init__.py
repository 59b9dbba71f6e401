"""Test doubles and demo data for exercising clipper without real binaries."""

from clipper.testing.fakes import (
    FakeProvider,
    FakeRunner,
    block_forever,
    fail_with,
    make_variant,
    succeed_writing,
    write_output,
)
from clipper.testing.fixtures import DEMO_VIDEOS, demo_video_info, get_demo_video

__all__ = [
    "DEMO_VIDEOS",
    "demo_video_info",
    "get_demo_video",
    "FakeProvider",
    "FakeRunner",
    "block_forever",
    "fail_with",
    "make_variant",
    "succeed_writing",
    "write_output",
]
