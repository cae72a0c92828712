"""Tests for the reconciliation loop."""

import asyncio

import pytest
from pytest_mock import MockerFixture

from mediacache.media.errors import RemoteUnavailable
from mediacache.media.listing import ListingFetcher
from mediacache.media.pipeline import TranscodePipeline
from mediacache.media.reconciler import Reconciler, ReconcilePhase
from mediacache.media.server import ArtifactServer
from mediacache.media.store import CacheStore
from mediacache.media.transcode import Transcoder
from mediacache.media.writeback import RemoteConverter
from tests.fixtures.media import FakeClock, FakeProvider


@pytest.fixture
def reconciler(
    provider: FakeProvider, store: CacheStore, transcoder: Transcoder
) -> Reconciler:
    # A zero TTL makes every cycle see the provider's current listing
    listing = ListingFetcher(provider, ttl_seconds=0)
    pipeline = TranscodePipeline(provider, store, transcoder, retry_delay=0)
    return Reconciler(listing, store, pipeline, interval_seconds=0.01)


async def test_cycle_converges_on_latest_listing(
    reconciler: Reconciler, provider: FakeProvider, store: CacheStore
) -> None:
    provider.add("a", "a.jpg", "image/jpeg", b"a")
    provider.add("b", "b.png", "image/png", b"b")
    first = await reconciler.run_cycle()

    assert first is not None
    assert first.added == 2
    assert store.ids() == {"a", "b"}

    provider.remove("a")
    provider.add("c", "c.mp4", "video/mp4", b"c")
    provider.add("x", "x.pdf", "application/pdf", b"x")
    second = await reconciler.run_cycle()

    assert second is not None
    assert second.added == 1
    assert second.removed == 1
    assert store.ids() == {"b", "c"}
    assert store.ready_ids() == {"b", "c"}


async def test_removed_file_loses_entry_and_metadata(
    reconciler: Reconciler, provider: FakeProvider, store: CacheStore
) -> None:
    provider.add("a", "a.jpg", "image/jpeg", b"a")
    await reconciler.run_cycle()
    assert reconciler.listing.get("a") is not None

    provider.remove("a")
    await reconciler.run_cycle()

    assert "a" not in store
    assert reconciler.listing.get("a") is None


async def test_failed_entry_is_retried_next_cycle(
    reconciler: Reconciler, provider: FakeProvider, store: CacheStore
) -> None:
    provider.add("a", "a.jpg", "image/jpeg", b"a")
    provider.failures["a"] = [RemoteUnavailable("503") for _ in range(3)]

    await reconciler.run_cycle()
    assert "a" not in store

    await reconciler.run_cycle()
    assert store.ready_ids() == {"a"}


async def test_trigger_while_running_is_refused(
    reconciler: Reconciler, provider: FakeProvider
) -> None:
    provider.add("a", "a.jpg", "image/jpeg", b"a")
    provider.gate = asyncio.Event()

    running = asyncio.create_task(reconciler.run_cycle())
    await asyncio.sleep(0.01)
    assert reconciler.phase is ReconcilePhase.TRANSCODING

    assert await reconciler.run_cycle() is None

    provider.gate.set()
    report = await running
    assert report is not None
    assert reconciler.phase is ReconcilePhase.IDLE
    assert reconciler.cycles == 1


async def test_listing_failure_keeps_cache(
    reconciler: Reconciler, provider: FakeProvider, store: CacheStore
) -> None:
    provider.add("a", "a.jpg", "image/jpeg", b"a")
    await reconciler.run_cycle()

    provider.list_error = RemoteUnavailable("drive down")
    report = await reconciler.run_cycle()

    assert report is not None
    assert report.listing_error == "drive down"
    assert store.ready_ids() == {"a"}


async def test_background_loop_runs_until_stopped(
    reconciler: Reconciler, provider: FakeProvider, store: CacheStore
) -> None:
    provider.add("a", "a.jpg", "image/jpeg", b"a")

    reconciler.start()
    for _ in range(100):
        if reconciler.cycles >= 2:
            break
        await asyncio.sleep(0.01)
    await reconciler.stop()

    assert reconciler.cycles >= 2
    assert store.ready_ids() == {"a"}


async def test_heic_write_back_forces_next_refresh(
    provider: FakeProvider,
    store: CacheStore,
    transcoder: Transcoder,
    jpeg_bytes: bytes,
    mocker: MockerFixture,
) -> None:
    mocker.patch.object(transcoder, "to_jpeg", return_value=jpeg_bytes)
    provider.add("h", "IMG_1.HEIC", "image/heic", b"heic")
    provider.add("a", "a.jpg", "image/jpeg", b"a")
    listing = ListingFetcher(provider, ttl_seconds=600, clock=FakeClock())
    pipeline = TranscodePipeline(
        provider,
        store,
        transcoder,
        retry_delay=0,
        converter=RemoteConverter(provider, retry_delay=0),
    )
    reconciler = Reconciler(listing, store, pipeline)

    first = await reconciler.run_cycle()

    assert first is not None
    assert first.pipeline.written_back == 1
    assert provider.uploaded == [("IMG_1.jpg", "image/jpeg", jpeg_bytes)]
    assert provider.trashed == ["h"]
    assert store.ready_ids() == {"h", "a"}
    assert provider.list_calls == 1

    # The listing is still fresh, but the upload forces a refresh
    second = await reconciler.run_cycle()

    assert second is not None
    assert provider.list_calls == 2
    assert store.ready_ids() == {"a", "uploaded-1"}
    assert store.get("uploaded-1").data == jpeg_bytes
    assert listing.get("h") is None

    await reconciler.run_cycle()
    assert provider.list_calls == 2


async def test_request_during_background_transcode_fetches_once(
    reconciler: Reconciler, provider: FakeProvider, store: CacheStore
) -> None:
    provider.add("a", "a.jpg", "image/jpeg", b"a")
    provider.gate = asyncio.Event()
    server = ArtifactServer(reconciler.listing, store, reconciler.pipeline)

    cycle = asyncio.create_task(reconciler.run_cycle())
    await asyncio.sleep(0.01)
    assert provider.get_calls["a"] == 1

    request = asyncio.create_task(server.serve_image("a"))
    await asyncio.sleep(0.01)
    provider.gate.set()
    response, report = await asyncio.gather(request, cycle)

    assert response.body == b"a"
    assert report is not None
    assert provider.get_calls["a"] == 1
