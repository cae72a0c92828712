"""Request dependencies shared by the v1 routes."""

from fastapi import Request

from mediacache.core.events import MediaCache
from mediacache.core.settings_store import SettingsFile
from mediacache.media.errors import MediaError


def get_media(request: Request) -> MediaCache:
    media: MediaCache | None = getattr(request.app.state, "media", None)
    if media is None:
        raise MediaError("Media cache is not initialised")
    return media


def get_settings_file(request: Request) -> SettingsFile:
    return request.app.state.settings_file
