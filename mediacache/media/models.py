"""Data models for the media cache."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field

JPEG_MIME_TYPE = "image/jpeg"
MP4_MIME_TYPE = "video/mp4"
HEIF_MIME_TYPES = frozenset({"image/heic", "image/heif"})


class MediaKind(str, Enum):
    """How a remote file is handled by the cache."""

    IMAGE = "image"
    HEIF = "heif"  # image that needs a JPEG conversion first
    VIDEO = "video"
    UNSUPPORTED = "unsupported"

    @property
    def is_image(self) -> bool:
        return self in (MediaKind.IMAGE, MediaKind.HEIF)


def classify(mime_type: str) -> MediaKind:
    """Map a mime type to the kind of processing it needs."""
    mime_type = (mime_type or "").lower()
    if mime_type in HEIF_MIME_TYPES:
        return MediaKind.HEIF
    if mime_type.startswith("image/"):
        return MediaKind.IMAGE
    if mime_type == MP4_MIME_TYPE:
        return MediaKind.VIDEO
    return MediaKind.UNSUPPORTED


class RemoteEntry(BaseModel):
    """A file as reported by the remote listing."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    mime_type: str = Field(alias="mimeType")
    size: int = 0

    @property
    def kind(self) -> MediaKind:
        return classify(self.mime_type)

    @property
    def extension(self) -> str:
        return PurePosixPath(self.name).suffix.lower().lstrip(".")


class CacheState(str, Enum):
    """Lifecycle of a cache entry."""

    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


@dataclass
class CacheEntry:
    """Represents an entry in the cache store."""

    id: str
    mime_type: str
    state: CacheState = CacheState.PENDING
    data: bytes | None = None
    error: Exception | None = None
    done: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def ready(self) -> bool:
        return self.state is CacheState.READY and self.data is not None


@dataclass(frozen=True)
class TranscodeResult:
    """Final bytes produced for one file.

    ``full_jpeg`` holds the full-quality conversion of a HEIF source, before
    any resize.
    """

    data: bytes
    mime_type: str
    transcoded: bool = True
    full_jpeg: bytes | None = None
