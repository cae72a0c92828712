"""TTL-cached remote listing."""

import asyncio
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from mediacache.core.logging import get_logger
from mediacache.media.errors import RemoteError
from mediacache.media.metrics import LISTING_REFRESHES
from mediacache.media.models import MediaKind, RemoteEntry
from mediacache.media.providers.base import BaseRemoteProvider

logger = get_logger(__name__)


@dataclass(frozen=True)
class ListingResult:
    """Outcome of a listing read.

    ``error`` is set when a refresh was attempted and failed; ``entries`` then
    holds the previous snapshot.
    """

    entries: tuple[RemoteEntry, ...]
    from_cache: bool
    error: RemoteError | None = None


class ListingFetcher:
    """Wraps the provider's list call behind a time-to-live cache."""

    def __init__(
        self,
        provider: BaseRemoteProvider,
        ttl_seconds: float = 600.0,
        query: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.provider = provider
        self.ttl_seconds = ttl_seconds
        self.query = query
        self._clock = clock
        self._fetched_at: float | None = None
        self._entries: tuple[RemoteEntry, ...] = ()
        self._by_id: dict[str, RemoteEntry] = {}
        self._lock = asyncio.Lock()

    @property
    def entries(self) -> tuple[RemoteEntry, ...]:
        """The current snapshot, without contacting the provider."""
        return self._entries

    def is_fresh(self) -> bool:
        if self._fetched_at is None:
            return False
        return self._clock() - self._fetched_at < self.ttl_seconds

    def get(self, file_id: str) -> RemoteEntry | None:
        """Look up an id in the current snapshot."""
        return self._by_id.get(file_id)

    async def lookup(self, file_id: str) -> RemoteEntry | None:
        """Look up an id, refreshing first if the snapshot has expired."""
        await self.list()
        return self.get(file_id)

    async def list(self, force_refresh: bool = False) -> ListingResult:
        """Return the remote entries, refreshing when forced or stale.

        Args:
            force_refresh: Bypass the TTL and always query the provider

        Returns:
            The listing result; on provider failure the previous snapshot
            together with the error
        """
        if not force_refresh and self.is_fresh():
            return ListingResult(entries=self._entries, from_cache=True)

        async with self._lock:
            # Another caller may have refreshed while we waited
            if not force_refresh and self.is_fresh():
                return ListingResult(entries=self._entries, from_cache=True)

            try:
                remote = await self.provider.list_files(self.query)
            except RemoteError as e:
                LISTING_REFRESHES.labels(status="failed").inc()
                logger.error(
                    "listing_refresh_failed",
                    error=str(e),
                    transient=e.transient,
                    cached_entries=len(self._entries),
                )
                return ListingResult(entries=self._entries, from_cache=True, error=e)

            accepted = tuple(self._accepted(remote))
            self._entries = accepted
            self._by_id = {entry.id: entry for entry in accepted}
            self._fetched_at = self._clock()
            LISTING_REFRESHES.labels(status="success").inc()
            logger.info(
                "listing_refreshed",
                entries=len(accepted),
                excluded=len(remote) - len(accepted),
                forced=force_refresh,
            )
            return ListingResult(entries=accepted, from_cache=False)

    def invalidate(self) -> None:
        """Mark the snapshot stale so the next read queries the provider."""
        self._fetched_at = None

    def discard(self, file_ids: Iterable[str]) -> None:
        """Drop metadata for ids that are no longer present remotely."""
        drop = set(file_ids) & self._by_id.keys()
        if not drop:
            return
        self._entries = tuple(e for e in self._entries if e.id not in drop)
        self._by_id = {entry.id: entry for entry in self._entries}

    @staticmethod
    def _accepted(remote: Iterable[RemoteEntry]) -> Iterable[RemoteEntry]:
        for entry in remote:
            if entry.kind is MediaKind.UNSUPPORTED:
                logger.debug(
                    "listing_entry_unsupported",
                    file_id=entry.id,
                    name=entry.name,
                    mime_type=entry.mime_type,
                )
                continue
            yield entry
