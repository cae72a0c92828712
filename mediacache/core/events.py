"""Application startup and shutdown events."""

import asyncio
import contextlib
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from prometheus_client import Counter

from mediacache.core.config import Settings
from mediacache.core.keepalive import keepalive_loop
from mediacache.core.logging import get_logger
from mediacache.media.listing import ListingFetcher
from mediacache.media.pipeline import TranscodePipeline
from mediacache.media.providers.base import BaseRemoteProvider
from mediacache.media.providers.google_drive import GoogleDriveProvider
from mediacache.media.reconciler import Reconciler
from mediacache.media.server import ArtifactServer
from mediacache.media.store import CacheStore
from mediacache.media.transcode import Transcoder, TranscodeOptions
from mediacache.media.writeback import RemoteConverter

# Prometheus metrics
REQUESTS_TOTAL = Counter(
    "app_http_requests_total",
    "Total number of HTTP requests",
    labelnames=["method", "path"],
)

RESPONSES_TOTAL = Counter(
    "app_http_responses_total",
    "Total number of HTTP responses",
    labelnames=["status_code"],
)

logger = get_logger(__name__)


class ProviderInitError(Exception):
    """Raised when the remote provider cannot be created."""


class MediaCache:
    """Owns the cache components and wires them together."""

    def __init__(
        self,
        provider: BaseRemoteProvider,
        listing: ListingFetcher,
        store: CacheStore,
        transcoder: Transcoder,
        pipeline: TranscodePipeline,
        reconciler: Reconciler,
        server: ArtifactServer,
    ) -> None:
        self.provider = provider
        self.listing = listing
        self.store = store
        self.transcoder = transcoder
        self.pipeline = pipeline
        self.reconciler = reconciler
        self.server = server

    @classmethod
    def build(cls, provider: BaseRemoteProvider, settings: Settings) -> "MediaCache":
        """Create every component from settings.

        Args:
            provider: Remote file provider to read from
            settings: Application settings

        Returns:
            A wired media cache; the reconciler is not started
        """
        store = CacheStore()
        listing = ListingFetcher(
            provider,
            ttl_seconds=settings.LISTING_TTL_SECONDS,
            query=settings.DRIVE_QUERY,
        )
        transcoder = Transcoder(TranscodeOptions.from_settings(settings))
        converter = None
        if settings.REMOTE_CONVERT_HEIC:
            converter = RemoteConverter(
                provider,
                retry_attempts=settings.FETCH_RETRY_ATTEMPTS,
                retry_delay=settings.FETCH_RETRY_DELAY_SECONDS,
            )
        pipeline = TranscodePipeline(
            provider,
            store,
            transcoder,
            concurrency=settings.PIPELINE_CONCURRENCY,
            retry_attempts=settings.FETCH_RETRY_ATTEMPTS,
            retry_delay=settings.FETCH_RETRY_DELAY_SECONDS,
            converter=converter,
        )
        reconciler = Reconciler(
            listing,
            store,
            pipeline,
            interval_seconds=settings.RECONCILE_INTERVAL_SECONDS,
            force_refresh=settings.RECONCILE_FORCE_REFRESH,
        )
        server = ArtifactServer(
            listing, store, pipeline, chunk_size=settings.RANGE_CHUNK_SIZE
        )
        return cls(provider, listing, store, transcoder, pipeline, reconciler, server)

    def health_check(self) -> dict[str, Any]:
        """Report reconciler and cache state.

        Returns:
            Dict containing the health status of the cache
        """
        last = self.reconciler.last_report
        return {
            "status": "degraded" if last and last.listing_error else "healthy",
            "reconciler": {
                "phase": self.reconciler.phase.value,
                "cycles": self.reconciler.cycles,
                "last_listing_error": last.listing_error if last else None,
            },
            "cache": {
                "entries": len(self.store),
                "ready": len(self.store.ready_ids()),
                "in_flight": self.pipeline.in_flight,
            },
            "listing": {
                "entries": len(self.listing.entries),
                "fresh": self.listing.is_fresh(),
            },
        }

    async def close(self) -> None:
        await self.reconciler.stop()
        self.transcoder.close()
        await self.provider.close()


def create_provider(settings: Settings) -> BaseRemoteProvider:
    """Create the Google Drive provider from settings.

    Raises:
        ProviderInitError: If credentials are missing or invalid
    """
    raw = settings.GOOGLE_SERVICE_ACCOUNT_JSON
    if not raw:
        raise ProviderInitError("GOOGLE_SERVICE_ACCOUNT_JSON is required")
    try:
        return GoogleDriveProvider.from_json(
            raw,
            writable=settings.REMOTE_CONVERT_HEIC,
            upload_folder_id=settings.DRIVE_UPLOAD_FOLDER_ID,
        )
    except ValueError as e:
        raise ProviderInitError(str(e)) from e


def create_start_app_handler(
    app: Any, settings: Settings
) -> Callable[[], Awaitable[None]]:
    """Create startup event handler.

    Args:
        app: FastAPI application instance
        settings: Application settings

    Returns:
        Startup handler function
    """

    async def start_app() -> None:
        media: MediaCache | None = getattr(app.state, "media", None)
        if media is None:
            media = MediaCache.build(create_provider(settings), settings)
            app.state.media = media

        if settings.RECONCILE_ENABLED:
            media.reconciler.start()

        app.state.keepalive_task = None
        if settings.KEEPALIVE_URL:
            app.state.keepalive_task = asyncio.create_task(
                keepalive_loop(
                    settings.KEEPALIVE_URL, settings.KEEPALIVE_INTERVAL_SECONDS
                ),
                name="keepalive",
            )

        logger.info(
            "application_started",
            provider=repr(media.provider),
            reconcile_enabled=settings.RECONCILE_ENABLED,
            reconcile_interval=settings.RECONCILE_INTERVAL_SECONDS,
            concurrency=settings.PIPELINE_CONCURRENCY,
        )

    return start_app


def create_stop_app_handler(app: Any) -> Callable[[], Awaitable[None]]:
    """Create shutdown event handler with graceful shutdown logic.

    Args:
        app: FastAPI application instance

    Returns:
        Shutdown handler function
    """

    async def stop_app() -> None:
        try:
            task: asyncio.Task[None] | None = getattr(
                app.state, "keepalive_task", None
            )
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

            media: MediaCache | None = getattr(app.state, "media", None)
            if media is not None:
                logger.info("Stopping media cache...")
                await media.close()

            logger.info("application_stopped")
        except Exception as e:
            logger.error("shutdown_failed", error=str(e))
            raise

    return stop_app


def create_lifespan(
    settings: Settings,
) -> Callable[[Any], contextlib.AbstractAsyncContextManager[None]]:
    """Compose the startup and shutdown handlers into a FastAPI lifespan."""

    @contextlib.asynccontextmanager
    async def lifespan(app: Any) -> AsyncIterator[None]:
        await create_start_app_handler(app, settings)()
        try:
            yield
        finally:
            await create_stop_app_handler(app)()

    return lifespan
