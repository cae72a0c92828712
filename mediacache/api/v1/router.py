"""API v1 router module."""

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from mediacache.api.v1.media import router as media_router
from mediacache.api.v1.settings import router as settings_router

router = APIRouter(default_response_class=JSONResponse)


@router.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    """
    Health check endpoint.

    Returns
    -------
        Dict containing health status, version and cache state
    """
    app_settings = request.app.state.settings
    body: dict[str, Any] = {
        "status": "starting",
        "version": app_settings.version,
        "correlation_id": getattr(request.state, "correlation_id", None),
    }
    media = getattr(request.app.state, "media", None)
    if media is not None:
        body.update(media.health_check())
    return body


router.include_router(media_router)
router.include_router(settings_router)
