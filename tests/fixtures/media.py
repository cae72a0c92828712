"""Media cache test fixtures."""

import asyncio
import io
from collections import Counter
from collections.abc import Generator
from pathlib import Path

import pytest
from PIL import Image

from mediacache.core.config import Settings
from mediacache.core.events import MediaCache
from mediacache.media.models import RemoteEntry
from mediacache.media.providers.base import BaseRemoteProvider
from mediacache.media.store import CacheStore
from mediacache.media.transcode import Transcoder, TranscodeOptions


def make_image_bytes(
    fmt: str = "JPEG", size: tuple[int, int] = (64, 48), color: str = "red"
) -> bytes:
    """Encode a solid-colour image."""
    output = io.BytesIO()
    Image.new("RGB", size, color).save(output, format=fmt)
    return output.getvalue()


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(BaseRemoteProvider):
    """In-memory provider that records every call.

    ``failures`` maps an id to exceptions raised by successive downloads of
    that id before the real bytes are returned. Setting ``gate`` holds every
    download until the event is set.
    """

    def __init__(self) -> None:
        self.files: dict[str, tuple[RemoteEntry, bytes]] = {}
        self.list_calls = 0
        self.list_error: Exception | None = None
        self.get_calls: Counter[str] = Counter()
        self.get_order: list[str] = []
        self.range_calls: list[tuple[str, int, int]] = []
        self.failures: dict[str, list[Exception]] = {}
        self.gate: asyncio.Event | None = None
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self.uploaded: list[tuple[str, str, bytes]] = []
        self.trashed: list[str] = []

    def add(
        self,
        file_id: str,
        name: str,
        mime_type: str,
        data: bytes = b"",
        size: int | None = None,
    ) -> RemoteEntry:
        entry = RemoteEntry(
            id=file_id,
            name=name,
            mime_type=mime_type,
            size=len(data) if size is None else size,
        )
        self.files[file_id] = (entry, data)
        return entry

    def remove(self, file_id: str) -> None:
        self.files.pop(file_id, None)

    async def list_files(self, query: str | None = None) -> list[RemoteEntry]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return [entry for entry, _ in self.files.values()]

    async def get_bytes(self, file_id: str) -> bytes:
        self.get_calls[file_id] += 1
        self.get_order.append(file_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(self.delay)
            pending = self.failures.get(file_id)
            if pending:
                raise pending.pop(0)
            return self.files[file_id][1]
        finally:
            self.in_flight -= 1

    async def get_range(self, file_id: str, start: int, end: int) -> bytes:
        self.range_calls.append((file_id, start, end))
        return self.files[file_id][1][start : end + 1]

    async def move_to_trash(self, file_id: str) -> None:
        self.trashed.append(file_id)
        self.files.pop(file_id, None)

    async def upload(self, name: str, mime_type: str, data: bytes) -> str:
        new_id = f"uploaded-{len(self.uploaded) + 1}"
        self.uploaded.append((name, mime_type, data))
        self.add(new_id, name, mime_type, data)
        return new_id


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG")


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG", size=(80, 80), color="blue")


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def store() -> CacheStore:
    return CacheStore()


@pytest.fixture
def transcoder() -> Generator[Transcoder, None, None]:
    """Transcoder that stores images untouched."""
    instance = Transcoder(TranscodeOptions(image_box=None))
    yield instance
    instance.close()


@pytest.fixture
def media_settings(tmp_path: Path) -> Settings:
    """Settings suitable for tests: no background loop, no retry delay."""
    return Settings(
        RECONCILE_ENABLED=False,
        FETCH_RETRY_DELAY_SECONDS=0.0,
        IMAGE_RESIZE_WIDTH=None,
        IMAGE_RESIZE_HEIGHT=None,
        SETTINGS_FILE=str(tmp_path / "settings.json"),
        KEEPALIVE_URL=None,
        JSON_LOGS=False,
    )


@pytest.fixture
def media_cache(
    provider: FakeProvider, media_settings: Settings
) -> Generator[MediaCache, None, None]:
    cache = MediaCache.build(provider, media_settings)
    yield cache
    cache.transcoder.close()
