"""Tests for application startup and shutdown events."""

import asyncio
from types import SimpleNamespace

import pytest
from pytest_mock import MockerFixture

from mediacache.core.config import Settings
from mediacache.core.events import (
    MediaCache,
    ProviderInitError,
    create_lifespan,
    create_provider,
    create_start_app_handler,
    create_stop_app_handler,
)
from tests.fixtures.media import FakeProvider


def _app(media: MediaCache | None = None) -> SimpleNamespace:
    return SimpleNamespace(state=SimpleNamespace(media=media))


def test_build_wires_components(
    provider: FakeProvider, media_settings: Settings
) -> None:
    cache = MediaCache.build(provider, media_settings)
    try:
        assert cache.server.pipeline is cache.pipeline
        assert cache.reconciler.store is cache.store
        assert cache.pipeline.converter is None
        assert cache.listing.ttl_seconds == media_settings.LISTING_TTL_SECONDS
    finally:
        cache.transcoder.close()


def test_build_enables_remote_conversion(
    provider: FakeProvider, media_settings: Settings
) -> None:
    settings = media_settings.model_copy(update={"REMOTE_CONVERT_HEIC": True})
    cache = MediaCache.build(provider, settings)
    try:
        assert cache.pipeline.converter is not None
    finally:
        cache.transcoder.close()


def test_create_provider_requires_credentials(media_settings: Settings) -> None:
    with pytest.raises(ProviderInitError):
        create_provider(media_settings)


def test_create_provider_rejects_bad_json(media_settings: Settings) -> None:
    settings = media_settings.model_copy(
        update={"GOOGLE_SERVICE_ACCOUNT_JSON": "{not json"}
    )
    with pytest.raises(ProviderInitError):
        create_provider(settings)


async def test_start_and_stop_run_background_tasks(
    media_cache: MediaCache, media_settings: Settings, mocker: MockerFixture
) -> None:
    settings = media_settings.model_copy(
        update={
            "RECONCILE_ENABLED": True,
            "RECONCILE_INTERVAL_SECONDS": 0.01,
            "KEEPALIVE_URL": "http://keepalive.test/",
        }
    )
    calls: list[tuple[str, float]] = []

    async def idle_keepalive(url: str, interval: float) -> None:
        calls.append((url, interval))
        await asyncio.sleep(3600)

    mocker.patch("mediacache.core.events.keepalive_loop", new=idle_keepalive)
    app = _app(media_cache)

    await create_start_app_handler(app, settings)()
    await asyncio.sleep(0.05)

    assert media_cache.reconciler.cycles >= 1
    assert calls == [("http://keepalive.test/", settings.KEEPALIVE_INTERVAL_SECONDS)]
    keepalive_task = app.state.keepalive_task

    await create_stop_app_handler(app)()

    assert keepalive_task.cancelled()
    assert media_cache.reconciler._task is None


async def test_lifespan_builds_cache_from_provider(
    provider: FakeProvider, media_settings: Settings, mocker: MockerFixture
) -> None:
    mocker.patch("mediacache.core.events.create_provider", return_value=provider)
    app = _app()

    async with create_lifespan(media_settings)(app):
        assert isinstance(app.state.media, MediaCache)
        assert app.state.media.provider is provider
        assert app.state.keepalive_task is None
