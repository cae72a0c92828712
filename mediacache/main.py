"""Main FastAPI application module."""

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from mediacache.api.v1.router import router as v1_router
from mediacache.core.config import Settings, settings
from mediacache.core.events import MediaCache, create_lifespan
from mediacache.core.logging import configure_logging
from mediacache.core.settings_store import SettingsFile
from mediacache.middleware.compression import MediaAwareGZipMiddleware
from mediacache.middleware.correlation import CorrelationMiddleware
from mediacache.middleware.errors import ErrorHandlingMiddleware
from mediacache.middleware.metrics import MetricsMiddleware
from mediacache.middleware.security import SecurityHeadersMiddleware


def create_app(
    app_settings: Settings | None = None, media: MediaCache | None = None
) -> FastAPI:
    """Build the application.

    Args:
        app_settings: Settings to use instead of the environment-loaded ones
        media: Prebuilt media cache; when omitted one is built on startup
            from the Google Drive credentials in settings

    Returns:
        The configured FastAPI application
    """
    app_settings = app_settings or settings

    app = FastAPI(
        title=app_settings.app_name,
        description="Caching front for a Google Drive media folder",
        version=app_settings.version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=JSONResponse,
        lifespan=create_lifespan(app_settings),
    )
    app.state.settings = app_settings
    app.state.settings_file = SettingsFile(app_settings.SETTINGS_FILE)
    app.state.media = media

    # Added inside -> out:
    # 1. Error handling (innermost - handles all errors)
    # 2. Metrics (tracks all requests)
    # 3. Correlation (adds request ID)
    # 4. Security headers
    # 5. GZip (media routes excluded)
    # 6. CORS (outermost)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(CorrelationMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(MediaAwareGZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=app_settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*", "Content-Type", "Range", "X-Request-ID"],
        expose_headers=[
            "X-Request-ID",
            "Content-Range",
            "Accept-Ranges",
            "Content-Length",
        ],
        max_age=600,
    )

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose Prometheus metrics."""
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(v1_router)
    return app


configure_logging(level=settings.LOG_LEVEL, json_logs=settings.JSON_LOGS)

app = create_app()
