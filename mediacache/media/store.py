"""In-memory cache store for transcoded media."""

from mediacache.core.logging import get_logger
from mediacache.media.errors import MediaError
from mediacache.media.metrics import CACHE_BYTES, CACHE_ENTRIES
from mediacache.media.models import CacheEntry, CacheState

logger = get_logger(__name__)


class CacheStore:
    """Mapping from file id to cache entry.

    Writers must go through ``claim`` before fetching so that at most one
    task works on an id at a time. Callers that find a pending entry wait on
    it instead of starting their own work.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, file_id: object) -> bool:
        return file_id in self._entries

    def get(self, file_id: str) -> CacheEntry | None:
        return self._entries.get(file_id)

    def put(self, file_id: str, entry: CacheEntry) -> None:
        """Insert or supersede an entry."""
        previous = self._entries.get(file_id)
        if entry.state is not CacheState.PENDING:
            entry.done.set()
        self._entries[file_id] = entry
        superseded = previous is not None and previous is not entry
        if superseded and not previous.done.is_set():
            # Release waiters on the superseded entry
            previous.state = CacheState.FAILED
            previous.error = MediaError("superseded")
            previous.done.set()
        self._update_gauges()

    def remove(self, file_id: str) -> CacheEntry | None:
        entry = self._entries.pop(file_id, None)
        if entry is not None:
            if not entry.done.is_set():
                entry.state = CacheState.FAILED
                entry.error = MediaError("evicted")
                entry.done.set()
            self._update_gauges()
        return entry

    def ids(self) -> set[str]:
        """Ids that are ready or being worked on."""
        return set(self._entries)

    def ready_ids(self) -> set[str]:
        return {fid for fid, entry in self._entries.items() if entry.ready}

    def claim(self, file_id: str, mime_type: str) -> CacheEntry | None:
        """Create a pending entry unless the id already has one.

        Returns:
            The new pending entry, or None when the id is already pending or
            ready
        """
        if file_id in self._entries:
            return None
        entry = CacheEntry(id=file_id, mime_type=mime_type)
        self._entries[file_id] = entry
        return entry

    def complete(self, entry: CacheEntry, data: bytes, mime_type: str) -> bool:
        """Mark a claimed entry ready.

        Returns:
            False when the entry was evicted or superseded while in flight;
            the result is then discarded
        """
        if self._entries.get(entry.id) is not entry:
            logger.info("cache_result_discarded", file_id=entry.id)
            return False
        entry.data = data
        entry.mime_type = mime_type
        entry.state = CacheState.READY
        entry.done.set()
        self._update_gauges()
        return True

    def fail(self, entry: CacheEntry, error: Exception) -> None:
        """Mark a claimed entry failed and drop it so it can be retried."""
        entry.state = CacheState.FAILED
        entry.error = error
        entry.data = None
        entry.done.set()
        if self._entries.get(entry.id) is entry:
            del self._entries[entry.id]

    async def wait(self, entry: CacheEntry) -> CacheEntry:
        """Wait for an in-flight entry to settle."""
        await entry.done.wait()
        return entry

    def _update_gauges(self) -> None:
        ready = [entry for entry in self._entries.values() if entry.ready]
        CACHE_ENTRIES.set(len(ready))
        CACHE_BYTES.set(sum(len(entry.data or b"") for entry in ready))
