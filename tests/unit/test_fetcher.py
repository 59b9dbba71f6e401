"""Tests for the streaming stream fetcher."""

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import AsyncIterator, List

import httpx
import pytest

from clipper.providers.exceptions import TransferError
from clipper.services.fetcher import StreamFetcher
from clipper.testing import make_variant

PAYLOAD = bytes(range(256)) * 64  # 16 KiB


def _fetcher(handler, chunk_size: int = 1024) -> StreamFetcher:  # type: ignore[no-untyped-def]
    return StreamFetcher(chunk_size=chunk_size, transport=httpx.MockTransport(handler))


class TestStreamFetcher:
    """Tests for StreamFetcher.fetch."""

    @pytest.mark.asyncio
    async def test_writes_file_and_reports_progress(self, tmp_path: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=PAYLOAD)

        destination = tmp_path / "video.mp4"
        seen: List[float] = []

        written = await _fetcher(handler).fetch(make_variant("22"), destination, seen.append)

        assert written == len(PAYLOAD)
        assert destination.read_bytes() == PAYLOAD
        assert seen == sorted(seen)
        assert seen[-1] == 1.0

    @pytest.mark.asyncio
    async def test_sends_variant_headers(self, tmp_path: Path) -> None:
        captured: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, content=b"data")

        variant = replace(make_variant("22"), http_headers=(("User-Agent", "demo"),))

        await _fetcher(handler).fetch(variant, tmp_path / "out.mp4")

        assert captured[0].headers["User-Agent"] == "demo"
        assert str(captured[0].url) == variant.url

    @pytest.mark.asyncio
    async def test_uses_filesize_without_content_length(self, tmp_path: Path) -> None:
        async def body() -> AsyncIterator[bytes]:
            yield PAYLOAD[:8192]
            yield PAYLOAD[8192:]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body())

        seen: List[float] = []
        variant = make_variant("22", filesize=len(PAYLOAD))

        await _fetcher(handler).fetch(variant, tmp_path / "out.mp4", seen.append)

        assert seen[-1] == 1.0

    @pytest.mark.asyncio
    async def test_no_progress_without_known_size(self, tmp_path: Path) -> None:
        async def body() -> AsyncIterator[bytes]:
            yield PAYLOAD

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body())

        seen: List[float] = []
        written = await _fetcher(handler).fetch(make_variant("22"), tmp_path / "out.mp4", seen.append)

        assert written == len(PAYLOAD)
        assert seen == []

    @pytest.mark.asyncio
    async def test_http_error_raises_and_leaves_no_file(self, tmp_path: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        destination = tmp_path / "video.mp4"

        with pytest.raises(TransferError, match="HTTP 404"):
            await _fetcher(handler).fetch(make_variant("22"), destination)

        assert not destination.exists()

    @pytest.mark.asyncio
    async def test_network_error_raises_transfer_error(self, tmp_path: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        destination = tmp_path / "video.mp4"

        with pytest.raises(TransferError, match="connection refused"):
            await _fetcher(handler).fetch(make_variant("22"), destination)

        assert not destination.exists()

    @pytest.mark.asyncio
    async def test_cancellation_mid_transfer_leaves_no_file(self, tmp_path: Path) -> None:
        first_chunk_written = asyncio.Event()

        async def body() -> AsyncIterator[bytes]:
            yield PAYLOAD[:1024]
            first_chunk_written.set()
            await asyncio.Event().wait()
            yield PAYLOAD[1024:]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, headers={"Content-Length": str(len(PAYLOAD))}, content=body()
            )

        destination = tmp_path / "video.mp4"
        task = asyncio.create_task(_fetcher(handler).fetch(make_variant("22"), destination))

        await asyncio.wait_for(first_chunk_written.wait(), timeout=5)
        assert destination.exists()

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not destination.exists()

    @pytest.mark.asyncio
    async def test_disk_error_raises_transfer_error(self, tmp_path: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=PAYLOAD)

        destination = tmp_path / "missing-dir" / "video.mp4"

        with pytest.raises(TransferError):
            await _fetcher(handler).fetch(make_variant("22"), destination)
