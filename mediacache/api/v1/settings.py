"""Front-end settings document endpoints."""

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from mediacache.api.v1.deps import get_settings_file
from mediacache.core.settings_store import SettingsFile

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("")
def read_settings(store: SettingsFile = Depends(get_settings_file)) -> JSONResponse:
    """Return the stored settings document unchanged."""
    return JSONResponse(content=store.read())


@router.post("")
def write_settings(
    payload: dict[str, Any] | list[Any] = Body(...),
    store: SettingsFile = Depends(get_settings_file),
) -> dict[str, bool]:
    """Replace the stored settings document."""
    store.write(payload)
    return {"success": True}
