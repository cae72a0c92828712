"""Bounded fetch-and-transcode pipeline."""

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from mediacache.core.logging import get_logger
from mediacache.media.diff import order_for_processing
from mediacache.media.errors import MediaError
from mediacache.media.metrics import TRANSCODE_TASKS, TRANSCODES_IN_FLIGHT
from mediacache.media.models import CacheEntry, MediaKind, RemoteEntry
from mediacache.media.providers.base import BaseRemoteProvider
from mediacache.media.retry import with_remote_retry
from mediacache.media.store import CacheStore
from mediacache.media.transcode import Transcoder
from mediacache.media.writeback import RemoteConverter

logger = get_logger(__name__)


@dataclass
class PipelineReport:
    """Counts for one pipeline run."""

    submitted: int = 0
    ready: int = 0
    failed: int = 0
    skipped: int = 0
    written_back: int = 0


class TranscodePipeline:
    """Fetches and transcodes files under a fixed concurrency limit.

    Every task claims its cache entry before queueing for a slot, so a second
    request for the same id waits on the first instead of duplicating work.
    """

    def __init__(
        self,
        provider: BaseRemoteProvider,
        store: CacheStore,
        transcoder: Transcoder,
        concurrency: int = 5,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        converter: RemoteConverter | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.provider = provider
        self.store = store
        self.transcoder = transcoder
        self.concurrency = concurrency
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.converter = converter
        self._semaphore = asyncio.Semaphore(concurrency)
        self.in_flight = 0
        self.max_in_flight = 0

    async def run(
        self, file_ids: Sequence[str], entries: Mapping[str, RemoteEntry]
    ) -> PipelineReport:
        """Process added ids; completion order is not guaranteed.

        Args:
            file_ids: Ids to fetch, as produced by the diff
            entries: Listing metadata by id

        Returns:
            Counts of ready, failed and skipped ids
        """
        report = PipelineReport()
        tasks: list[asyncio.Task[bool]] = []
        converted_before = self.converter.converted if self.converter else 0

        for file_id in order_for_processing(file_ids, entries):
            entry = entries.get(file_id)
            if entry is None or entry.kind is MediaKind.UNSUPPORTED:
                report.skipped += 1
                continue
            claimed = self.store.claim(entry.id, entry.mime_type)
            if claimed is None:
                # Already pending or ready
                report.skipped += 1
                continue
            report.submitted += 1
            tasks.append(asyncio.create_task(self._process(entry, claimed)))

        for ok in await asyncio.gather(*tasks):
            if ok:
                report.ready += 1
            else:
                report.failed += 1

        if self.converter is not None:
            report.written_back = self.converter.converted - converted_before

        return report

    async def fetch_one(self, entry: RemoteEntry) -> CacheEntry:
        """Return a settled cache entry for one file, doing the work if needed.

        Used by the request path: a ready entry is returned as-is, a pending
        entry is awaited, and an absent entry is claimed and processed.
        """
        existing = self.store.get(entry.id)
        if existing is not None:
            return await self.store.wait(existing)

        claimed = self.store.claim(entry.id, entry.mime_type)
        if claimed is None:
            # Unreachable without an await since the lookup above
            raise MediaError(f"Could not claim {entry.id}")
        await self._process(entry, claimed)
        return claimed

    async def _process(self, entry: RemoteEntry, claimed: CacheEntry) -> bool:
        kind = entry.kind.value
        try:
            async with self._semaphore:
                self._enter()
                try:
                    data = await with_remote_retry(
                        lambda: self.provider.get_bytes(entry.id),
                        attempts=self.retry_attempts,
                        delay=self.retry_delay,
                        operation="download",
                    )
                    result = await self.transcoder.transcode(entry, data)
                finally:
                    self._exit()
        except MediaError as e:
            logger.error(
                "transcode_task_failed",
                file_id=entry.id,
                name=entry.name,
                error_type=e.__class__.__name__,
                error=str(e),
            )
            TRANSCODE_TASKS.labels(kind=kind, status="failed").inc()
            self.store.fail(claimed, e)
            return False
        except Exception as e:
            logger.exception(
                "transcode_task_crashed", file_id=entry.id, name=entry.name
            )
            TRANSCODE_TASKS.labels(kind=kind, status="failed").inc()
            self.store.fail(claimed, e)
            return False
        else:
            self.store.complete(claimed, result.data, result.mime_type)
        finally:
            if not claimed.done.is_set():
                # Cancelled mid-flight
                self.store.fail(claimed, MediaError("cancelled"))

        TRANSCODE_TASKS.labels(kind=kind, status="ready").inc()
        logger.info(
            "transcode_task_ready",
            file_id=entry.id,
            name=entry.name,
            mime_type=result.mime_type,
            transcoded=result.transcoded,
            size=len(result.data),
        )

        if self.converter is not None and result.full_jpeg is not None:
            await self.converter.convert(entry, result.full_jpeg)
        return True

    def _enter(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        TRANSCODES_IN_FLIGHT.set(self.in_flight)

    def _exit(self) -> None:
        self.in_flight -= 1
        TRANSCODES_IN_FLIGHT.set(self.in_flight)
