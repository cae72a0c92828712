"""Artifact server: turns cache entries into HTTP responses."""

import re
from collections.abc import AsyncIterator
from dataclasses import dataclass

from fastapi import Response
from fastapi.responses import StreamingResponse
from starlette.status import HTTP_206_PARTIAL_CONTENT

from mediacache.core.logging import get_logger
from mediacache.media.errors import (
    BadRequest,
    MediaError,
    NotFound,
    RangeNotSatisfiable,
    RemoteError,
    RemoteUnavailable,
    TranscodeFailure,
)
from mediacache.media.listing import ListingFetcher
from mediacache.media.metrics import CACHE_LOOKUPS
from mediacache.media.models import MP4_MIME_TYPE, CacheEntry, MediaKind, RemoteEntry
from mediacache.media.pipeline import TranscodePipeline
from mediacache.media.retry import with_remote_retry
from mediacache.media.store import CacheStore

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 10**6  # 1MB

RANGE_PATTERN = re.compile(r"^\s*(\d*)\s*-\s*(\d*)\s*$")


@dataclass(frozen=True)
class ByteRange:
    """Inclusive byte span."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1


def parse_range(header: str, total_size: int, chunk_size: int) -> ByteRange:
    """Parse a ``Range: bytes=...`` header against a file of ``total_size``.

    Supports ``start-end``, open-ended ``start-`` (capped at ``chunk_size``)
    and suffix ``-length`` forms. Only the first range of a multi-range
    request is honoured. A ``total_size`` of 0 means the size is unknown and
    no clipping happens.

    Raises:
        BadRequest: The header is malformed
        RangeNotSatisfiable: The range starts beyond the end of the file
    """
    unit, _, ranges = header.partition("=")
    if unit.strip().lower() != "bytes" or not ranges:
        raise BadRequest(f"Unsupported range header: {header!r}")

    match = RANGE_PATTERN.match(ranges.split(",")[0])
    if match is None:
        raise BadRequest(f"Malformed range header: {header!r}")
    first, last = match.groups()

    if not first and not last:
        raise BadRequest(f"Malformed range header: {header!r}")

    if not first:
        # Suffix range: the last N bytes
        suffix = int(last)
        if total_size <= 0 or suffix == 0:
            raise RangeNotSatisfiable(f"Cannot satisfy {header!r}", total_size)
        return ByteRange(start=max(total_size - suffix, 0), end=total_size - 1)

    start = int(first)
    end = int(last) if last else start + chunk_size - 1
    if end < start:
        raise BadRequest(f"Malformed range header: {header!r}")

    if total_size > 0:
        if start >= total_size:
            raise RangeNotSatisfiable(f"Range starts past end: {header!r}", total_size)
        end = min(end, total_size - 1)

    return ByteRange(start=start, end=end)


def _request_error(entry: CacheEntry) -> MediaError:
    """Translate a failed cache entry into the error a request should raise."""
    if isinstance(entry.error, RemoteError):
        return RemoteUnavailable(f"Fetching {entry.id} failed")
    return TranscodeFailure(f"Processing {entry.id} failed")


class ArtifactServer:
    """Serves cached artifacts, falling back to on-demand fetches."""

    def __init__(
        self,
        listing: ListingFetcher,
        store: CacheStore,
        pipeline: TranscodePipeline,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.listing = listing
        self.store = store
        self.pipeline = pipeline
        self.provider = pipeline.provider
        self.chunk_size = chunk_size

    async def media_list(self, force_refresh: bool = False) -> list[RemoteEntry]:
        """All currently-listed remote entries."""
        result = await self.listing.list(force_refresh=force_refresh)
        return list(result.entries)

    async def _lookup(self, file_id: str, image: bool) -> RemoteEntry:
        entry = await self.listing.lookup(file_id)
        if entry is None:
            raise NotFound(f"Unknown file id {file_id}")
        if image and not entry.kind.is_image:
            raise NotFound(f"{file_id} is not an image")
        if not image and entry.kind is not MediaKind.VIDEO:
            raise NotFound(f"{file_id} is not a video")
        return entry

    async def _settled(self, entry: RemoteEntry) -> CacheEntry:
        """Cached entry for ``entry``, fetching and transcoding on a miss."""
        kind = entry.kind.value
        cached = self.store.get(entry.id)
        if cached is not None and cached.ready:
            CACHE_LOOKUPS.labels(kind=kind, result="hit").inc()
            return cached

        CACHE_LOOKUPS.labels(kind=kind, result="wait" if cached else "miss").inc()
        logger.info(
            "cache_miss_fetching",
            file_id=entry.id,
            name=entry.name,
            pending=cached is not None,
        )
        settled = await self.pipeline.fetch_one(entry)
        if not settled.ready:
            if self.listing.get(entry.id) is None:
                # Evicted while in flight
                raise NotFound(f"{entry.id} was removed remotely")
            raise _request_error(settled)
        return settled

    async def serve_image(self, file_id: str) -> Response:
        entry = await self._lookup(file_id, image=True)
        cached = await self._settled(entry)
        return Response(content=cached.data, media_type=cached.mime_type)

    async def serve_video(
        self, file_id: str, range_header: str | None = None
    ) -> Response:
        entry = await self._lookup(file_id, image=False)
        if not range_header:
            cached = await self._settled(entry)
            return Response(
                content=cached.data,
                media_type=cached.mime_type,
                headers={"Accept-Ranges": "bytes"},
            )
        return await self._serve_range(entry, range_header)

    async def _serve_range(self, entry: RemoteEntry, range_header: str) -> Response:
        total = entry.size
        span = parse_range(range_header, total, self.chunk_size)
        logger.info(
            "video_range_requested",
            file_id=entry.id,
            name=entry.name,
            start=span.start,
            end=span.end,
            total=total,
        )

        first_end = min(span.start + self.chunk_size - 1, span.end)
        first = await with_remote_retry(
            lambda: self.provider.get_range(entry.id, span.start, first_end),
            attempts=self.pipeline.retry_attempts,
            delay=self.pipeline.retry_delay,
            operation="ranged download",
        )

        if total <= 0:
            # Unknown size: report what the provider actually returned
            if not first:
                raise RangeNotSatisfiable(f"Empty range for {entry.id}", total)
            end = span.start + len(first) - 1
            return Response(
                content=first,
                status_code=HTTP_206_PARTIAL_CONTENT,
                media_type=MP4_MIME_TYPE,
                headers={
                    "Content-Range": f"bytes {span.start}-{end}/*",
                    "Accept-Ranges": "bytes",
                },
            )

        headers = {
            "Content-Range": f"bytes {span.start}-{span.end}/{total}",
            "Accept-Ranges": "bytes",
            "Content-Length": str(span.length),
        }
        return StreamingResponse(
            self._stream(entry.id, first[: span.length], span),
            status_code=HTTP_206_PARTIAL_CONTENT,
            media_type=MP4_MIME_TYPE,
            headers=headers,
        )

    async def _stream(
        self, file_id: str, first: bytes, span: ByteRange
    ) -> AsyncIterator[bytes]:
        """Yield exactly ``span.length`` bytes, starting with ``first``."""
        yield first
        sent = len(first)
        try:
            if sent < span.length:
                async for chunk in self.provider.iter_range(
                    file_id, span.start + sent, span.end, self.chunk_size
                ):
                    chunk = chunk[: span.length - sent]
                    sent += len(chunk)
                    yield chunk
            if sent < span.length:
                raise RemoteUnavailable(
                    f"Short read for {file_id}: {sent} of {span.length} bytes"
                )
        except RemoteError as e:
            # Headers are already sent; the client sees a short body
            logger.error(
                "video_stream_interrupted",
                file_id=file_id,
                sent=sent,
                expected=span.length,
                error=str(e),
            )
            raise
