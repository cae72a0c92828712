"""Google Drive implementation of the remote file provider.

Provides:
- Service-account authentication
- File listing with pagination
- Full and ranged media downloads
- Trash and upload for remote-side conversion
"""

import asyncio
import http.client
import io
import json
from typing import Any, Callable, TypeVar

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from mediacache.core.logging import get_logger
from mediacache.media.errors import RemoteRejected, RemoteUnavailable
from mediacache.media.models import RemoteEntry
from mediacache.media.providers.base import BaseRemoteProvider

T = TypeVar("T")

logger = get_logger(__name__)

READONLY_SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]
READWRITE_SCOPES = ["https://www.googleapis.com/auth/drive"]

LIST_FIELDS = "nextPageToken, files(id, name, mimeType, size)"
PAGE_SIZE = 1000

# Statuses worth retrying; anything else from the API is permanent
TRANSIENT_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


class GoogleDriveProvider(BaseRemoteProvider):
    """Remote provider backed by the Google Drive v3 API.

    The discovery client is not thread-safe, so every call runs in a worker
    thread with its own authorized HTTP transport.
    """

    def __init__(
        self,
        service_account_info: dict[str, Any],
        writable: bool = False,
        upload_folder_id: str | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            service_account_info: Parsed service-account key
            writable: Request a scope that allows trash and upload
            upload_folder_id: Optional parent folder for uploaded files
        """
        scopes = READWRITE_SCOPES if writable else READONLY_SCOPES
        self._credentials = service_account.Credentials.from_service_account_info(
            service_account_info, scopes=scopes
        )
        self._service = build(
            "drive", "v3", credentials=self._credentials, cache_discovery=False
        )
        self.upload_folder_id = upload_folder_id

    @classmethod
    def from_json(cls, raw: str, **kwargs: Any) -> "GoogleDriveProvider":
        """Create a provider from a service-account JSON string."""
        try:
            info = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid service account JSON: {e}") from e
        return cls(info, **kwargs)

    def _new_http(self) -> AuthorizedHttp:
        return AuthorizedHttp(self._credentials, http=httplib2.Http(timeout=60))

    async def _call(self, operation: str, func: Callable[[AuthorizedHttp], T]) -> T:
        """Run a blocking API call in a thread and normalise its errors."""

        def _run() -> T:
            return func(self._new_http())

        try:
            return await asyncio.to_thread(_run)
        except HttpError as e:
            status = e.resp.status
            if status in TRANSIENT_STATUSES:
                raise RemoteUnavailable(
                    f"Drive {operation} failed with status {status}"
                ) from e
            raise RemoteRejected(
                f"Drive {operation} failed with status {status}"
            ) from e
        except RefreshError as e:
            raise RemoteRejected(f"Drive {operation} failed: {e}") from e
        except (
            OSError,
            TimeoutError,
            TransportError,
            http.client.HTTPException,
            httplib2.HttpLib2Error,
        ) as e:
            raise RemoteUnavailable(f"Drive {operation} failed: {e}") from e

    async def list_files(self, query: str | None = None) -> list[RemoteEntry]:
        """List all non-trashed files matching the query, following pagination."""
        q = f"({query}) and trashed = false" if query else "trashed = false"
        entries: list[RemoteEntry] = []
        page_token: str | None = None

        while True:

            def _list(http: AuthorizedHttp, token: str | None = page_token) -> Any:
                return (
                    self._service.files()
                    .list(
                        q=q,
                        fields=LIST_FIELDS,
                        pageSize=PAGE_SIZE,
                        pageToken=token,
                        supportsAllDrives=True,
                        includeItemsFromAllDrives=True,
                    )
                    .execute(http=http)
                )

            result = await self._call("list", _list)
            for item in result.get("files", []):
                entries.append(
                    RemoteEntry(
                        id=item["id"],
                        name=item.get("name", ""),
                        mime_type=item.get("mimeType", ""),
                        size=int(item.get("size") or 0),
                    )
                )
            page_token = result.get("nextPageToken")
            if not page_token:
                break

        logger.debug("drive_files_listed", count=len(entries))
        return entries

    async def get_bytes(self, file_id: str) -> bytes:
        def _get(http: AuthorizedHttp) -> bytes:
            request = self._service.files().get_media(
                fileId=file_id, supportsAllDrives=True
            )
            return bytes(request.execute(http=http))

        return await self._call("download", _get)

    async def get_range(self, file_id: str, start: int, end: int) -> bytes:
        def _get(http: AuthorizedHttp) -> bytes:
            request = self._service.files().get_media(
                fileId=file_id, supportsAllDrives=True
            )
            request.headers["Range"] = f"bytes={start}-{end}"
            return bytes(request.execute(http=http))

        return await self._call("ranged download", _get)

    async def move_to_trash(self, file_id: str) -> None:
        def _trash(http: AuthorizedHttp) -> None:
            self._service.files().update(
                fileId=file_id, body={"trashed": True}, supportsAllDrives=True
            ).execute(http=http)

        await self._call("trash", _trash)
        logger.info("drive_file_trashed", file_id=file_id)

    async def upload(self, name: str, mime_type: str, data: bytes) -> str:
        body: dict[str, Any] = {"name": name, "mimeType": mime_type}
        if self.upload_folder_id:
            body["parents"] = [self.upload_folder_id]

        def _upload(http: AuthorizedHttp) -> str:
            media = MediaIoBaseUpload(io.BytesIO(data), mimetype=mime_type)
            created = (
                self._service.files()
                .create(
                    body=body,
                    media_body=media,
                    fields="id",
                    supportsAllDrives=True,
                )
                .execute(http=http)
            )
            return str(created["id"])

        file_id = await self._call("upload", _upload)
        logger.info("drive_file_uploaded", file_id=file_id, name=name)
        return file_id
