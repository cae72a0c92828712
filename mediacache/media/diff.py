"""Diff between the remote listing and the cache."""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from mediacache.media.models import RemoteEntry

# Cheap formats first so quick wins show up before expensive conversions
EXTENSION_PRIORITY: dict[str, int] = {
    "jpg": 0,
    "jpeg": 0,
    "png": 1,
    "mp4": 2,
    "heic": 3,
    "heif": 3,
}
UNKNOWN_PRIORITY = 4


@dataclass(frozen=True)
class MediaDiff:
    """Ids to fetch and ids to evict."""

    added: tuple[str, ...]
    removed: tuple[str, ...]

    @property
    def empty(self) -> bool:
        return not self.added and not self.removed


def diff(remote_ids: Iterable[str], cached_ids: Iterable[str]) -> MediaDiff:
    """Compare remote and cached ids.

    ``added`` keeps the order of ``remote_ids``; ``removed`` is sorted so
    results are deterministic.
    """
    remote_order = list(dict.fromkeys(remote_ids))
    remote = set(remote_order)
    cached = set(cached_ids)
    added = tuple(fid for fid in remote_order if fid not in cached)
    removed = tuple(sorted(cached - remote))
    return MediaDiff(added=added, removed=removed)


def extension_priority(entry: RemoteEntry) -> int:
    return EXTENSION_PRIORITY.get(entry.extension, UNKNOWN_PRIORITY)


def order_for_processing(
    file_ids: Sequence[str], entries: Mapping[str, RemoteEntry]
) -> list[str]:
    """Stable sort by extension priority: jpg < png < mp4 < heic.

    Ids without listing metadata go last.
    """

    def key(file_id: str) -> int:
        entry = entries.get(file_id)
        if entry is None:
            return UNKNOWN_PRIORITY + 1
        return extension_priority(entry)

    return sorted(file_ids, key=key)
