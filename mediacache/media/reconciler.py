"""Reconciliation loop keeping the cache in step with the remote listing."""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum

from mediacache.core.logging import get_logger
from mediacache.media.diff import MediaDiff, diff
from mediacache.media.listing import ListingFetcher
from mediacache.media.metrics import EVICTIONS, RECONCILE_CYCLES
from mediacache.media.pipeline import PipelineReport, TranscodePipeline
from mediacache.media.store import CacheStore

logger = get_logger(__name__)


class ReconcilePhase(str, Enum):
    """States of the reconciliation loop."""

    IDLE = "idle"
    LISTING = "listing"
    DIFFING = "diffing"
    TRANSCODING = "transcoding"
    EVICTING = "evicting"


@dataclass
class CycleReport:
    """Summary of one reconciliation cycle."""

    listed: int = 0
    added: int = 0
    removed: int = 0
    listing_error: str | None = None
    pipeline: PipelineReport = field(default_factory=PipelineReport)
    duration: float = 0.0


class Reconciler:
    """Runs list -> diff -> transcode -> evict cycles.

    At most one cycle runs at a time; a trigger that arrives while a cycle is
    running is refused and logged.
    """

    def __init__(
        self,
        listing: ListingFetcher,
        store: CacheStore,
        pipeline: TranscodePipeline,
        interval_seconds: float = 5.0,
        force_refresh: bool = False,
    ) -> None:
        self.listing = listing
        self.store = store
        self.pipeline = pipeline
        self.interval_seconds = interval_seconds
        self.force_refresh = force_refresh
        self.phase = ReconcilePhase.IDLE
        self.cycles = 0
        self.last_report: CycleReport | None = None
        self._force_next = False
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self.phase is not ReconcilePhase.IDLE

    async def run_cycle(self) -> CycleReport | None:
        """Run one reconciliation cycle.

        Returns:
            The cycle report, or None when a cycle was already running
        """
        if self.running:
            RECONCILE_CYCLES.labels(status="skipped").inc()
            logger.info("reconcile_skipped", phase=self.phase.value)
            return None

        started = time.monotonic()
        report = CycleReport()
        try:
            self.phase = ReconcilePhase.LISTING
            force = self.force_refresh or self._force_next
            self._force_next = False
            result = await self.listing.list(force_refresh=force)
            if result.error is not None:
                report.listing_error = str(result.error)
            entries = {entry.id: entry for entry in result.entries}
            report.listed = len(entries)

            self.phase = ReconcilePhase.DIFFING
            changes: MediaDiff = diff(entries.keys(), self.store.ids())
            report.added = len(changes.added)
            report.removed = len(changes.removed)

            self.phase = ReconcilePhase.TRANSCODING
            if changes.added:
                report.pipeline = await self.pipeline.run(changes.added, entries)
                if report.pipeline.written_back:
                    # Pick up uploaded JPEGs on the next cycle
                    self._force_next = True

            self.phase = ReconcilePhase.EVICTING
            self.evict(changes.removed)
        except Exception:
            RECONCILE_CYCLES.labels(status="failed").inc()
            logger.exception("reconcile_failed", phase=self.phase.value)
            raise
        finally:
            self.phase = ReconcilePhase.IDLE

        report.duration = time.monotonic() - started
        self.cycles += 1
        self.last_report = report
        RECONCILE_CYCLES.labels(status="completed").inc()
        if report.added or report.removed or report.listing_error:
            logger.info(
                "reconcile_completed",
                listed=report.listed,
                added=report.added,
                removed=report.removed,
                ready=report.pipeline.ready,
                failed=report.pipeline.failed,
                listing_error=report.listing_error,
                duration=round(report.duration, 3),
            )
        return report

    def evict(self, file_ids: tuple[str, ...] | list[str]) -> int:
        """Drop cache entries and listing metadata for removed ids."""
        evicted = 0
        for file_id in file_ids:
            if self.store.remove(file_id) is not None:
                evicted += 1
                logger.info("cache_entry_evicted", file_id=file_id)
        self.listing.discard(file_ids)
        if evicted:
            EVICTIONS.inc(evicted)
        return evicted

    async def run_forever(self) -> None:
        """Run a cycle now and then every ``interval_seconds`` until cancelled."""
        logger.info("reconciler_started", interval_seconds=self.interval_seconds)
        while True:
            try:
                await self.run_cycle()
            except Exception:
                # Already logged by run_cycle; keep the loop alive
                logger.warning(
                    "reconcile_retry_scheduled", delay_seconds=self.interval_seconds
                )
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(
                self.run_forever(), name="media-reconciler"
            )
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("reconciler_stopped", cycles=self.cycles)
