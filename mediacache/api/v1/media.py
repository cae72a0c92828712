"""Media listing and delivery endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Header, Query, Response

from mediacache.api.v1.deps import get_media
from mediacache.core.events import MediaCache
from mediacache.media.errors import BadRequest

router = APIRouter(tags=["media"])


def _require_file_id(file_id: str | None) -> str:
    if not file_id or not file_id.strip():
        raise BadRequest("Missing fileId query parameter")
    return file_id.strip()


@router.get("/media-list")
async def media_list(
    refresh: bool = Query(False, description="Bypass the listing cache"),
    media: MediaCache = Depends(get_media),
) -> list[dict[str, Any]]:
    """
    List every image and mp4 video currently in the remote folder.

    Each item carries ``id``, ``name``, ``mimeType`` and ``size``.
    """
    entries = await media.server.media_list(force_refresh=refresh)
    return [entry.model_dump(by_alias=True) for entry in entries]


@router.get("/media/image")
async def get_image(
    file_id: str | None = Query(None, alias="fileId"),
    media: MediaCache = Depends(get_media),
) -> Response:
    """Serve the cached JPEG for an image, transcoding it on a miss."""
    return await media.server.serve_image(_require_file_id(file_id))


@router.get("/media/video")
async def get_video(
    file_id: str | None = Query(None, alias="fileId"),
    range_header: str | None = Header(None, alias="Range"),
    media: MediaCache = Depends(get_media),
) -> Response:
    """
    Serve an mp4 video.

    Without a ``Range`` header the whole cached buffer is returned; with
    one, the requested span is streamed from the remote provider as a 206.
    """
    return await media.server.serve_video(
        _require_file_id(file_id), range_header=range_header
    )
