"""Streaming HTTP fetch of a single stream variant to a local file."""

import asyncio
import contextlib
from pathlib import Path
from typing import Optional

import httpx
import structlog

from clipper.core.metrics import MetricsCollector
from clipper.core.progress import ProgressCallback
from clipper.models.video import StreamVariant
from clipper.providers.exceptions import TransferError

logger = structlog.get_logger(__name__)

# Minimum fraction change between two progress reports
PROGRESS_STEP = 0.01


class StreamFetcher:
    """Downloads a variant's bytes to disk, reporting fractional progress.

    A partially written file never survives a failed or cancelled fetch.
    """

    def __init__(
        self,
        chunk_size: int = 256 * 1024,
        connect_timeout: float = 15.0,
        read_timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the fetcher.

        Args:
            chunk_size: Read size in bytes
            connect_timeout: Connection timeout in seconds
            read_timeout: Per-read timeout in seconds
            client: Shared client to use instead of one per fetch
            transport: Transport for per-fetch clients (tests use MockTransport)
        """
        self.chunk_size = chunk_size
        self.timeout = httpx.Timeout(read_timeout, connect=connect_timeout)
        self._client = client
        self._transport = transport

    async def fetch(
        self,
        source: StreamVariant,
        destination: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """
        Stream ``source`` into a new file at ``destination``.

        Args:
            source: Variant to download
            destination: File to create (overwritten if present)
            on_progress: Called with the completed fraction when the total
                size is known

        Returns:
            Number of bytes written

        Raises:
            TransferError: On HTTP error status, network error or disk error
            asyncio.CancelledError: If the calling task is cancelled
        """
        destination = Path(destination)
        logger.info(
            "fetch_started",
            format_id=source.format_id,
            destination=str(destination),
        )

        try:
            if self._client is not None:
                written = await self._stream(self._client, source, destination, on_progress)
            else:
                async with httpx.AsyncClient(
                    timeout=self.timeout,
                    transport=self._transport,
                    follow_redirects=True,
                ) as client:
                    written = await self._stream(client, source, destination, on_progress)
        except asyncio.CancelledError:
            self._remove_partial(destination)
            logger.info("fetch_cancelled", destination=str(destination))
            raise
        except httpx.HTTPStatusError as e:
            self._remove_partial(destination)
            raise TransferError(
                f"HTTP {e.response.status_code} fetching format {source.format_id}"
            ) from e
        except (httpx.HTTPError, OSError) as e:
            self._remove_partial(destination)
            raise TransferError(f"Failed to fetch format {source.format_id}: {e}") from e

        MetricsCollector.record_fetched_bytes(written)
        logger.info("fetch_completed", format_id=source.format_id, bytes=written)
        return written

    async def _stream(
        self,
        client: httpx.AsyncClient,
        source: StreamVariant,
        destination: Path,
        on_progress: Optional[ProgressCallback],
    ) -> int:
        async with client.stream("GET", source.url, headers=source.headers()) as response:
            response.raise_for_status()

            total = self._total_size(response, source)
            written = 0
            last_reported = 0.0

            with open(destination, "wb") as f:
                async for chunk in response.aiter_bytes(self.chunk_size):
                    f.write(chunk)
                    written += len(chunk)

                    if on_progress is not None and total:
                        fraction = min(written / total, 1.0)
                        if fraction - last_reported >= PROGRESS_STEP or fraction >= 1.0:
                            if fraction > last_reported:
                                on_progress(fraction)
                                last_reported = fraction

            if on_progress is not None and total and last_reported < 1.0:
                on_progress(1.0)

        return written

    def _total_size(self, response: httpx.Response, source: StreamVariant) -> Optional[int]:
        content_length = response.headers.get("Content-Length")
        if content_length and content_length.isdigit() and int(content_length) > 0:
            return int(content_length)
        return source.filesize or None

    def _remove_partial(self, destination: Path) -> None:
        with contextlib.suppress(FileNotFoundError):
            destination.unlink()
