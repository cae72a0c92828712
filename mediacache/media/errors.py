"""Exceptions raised by the media cache."""

from http import HTTPStatus

from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)


class MediaError(Exception):
    """Base exception for media cache errors."""

    status_code: int = HTTP_500_INTERNAL_SERVER_ERROR
    public_message: str = "Internal Server Error"

    @property
    def headers(self) -> dict[str, str]:
        """Extra response headers for this error."""
        return {}


class RemoteError(MediaError):
    """Raised when a call to the remote file provider fails."""

    status_code = HTTP_502_BAD_GATEWAY
    public_message = "Bad Gateway"
    transient: bool = False


class RemoteUnavailable(RemoteError):
    """Transient provider failure; worth retrying."""

    transient = True


class RemoteRejected(RemoteError):
    """Permanent provider failure (missing file, access denied, bad request)."""

    transient = False


class UnsupportedFormat(MediaError):
    """Raised when a mime type is neither an image nor an mp4 video."""

    status_code = HTTP_404_NOT_FOUND
    public_message = "Not Found"


class TranscodeFailure(MediaError):
    """Raised when decoding or encoding a file fails."""


class NotFound(MediaError):
    """Raised when a requested id is absent from the current listing."""

    status_code = HTTP_404_NOT_FOUND
    public_message = "Not Found"


class BadRequest(MediaError):
    """Raised when a required query parameter is missing or malformed."""

    status_code = HTTP_400_BAD_REQUEST
    public_message = "Bad Request"


class RangeNotSatisfiable(MediaError):
    """Raised when a byte range lies outside the file."""

    status_code = HTTPStatus.REQUESTED_RANGE_NOT_SATISFIABLE.value
    public_message = "Range Not Satisfiable"

    def __init__(self, message: str, total_size: int) -> None:
        super().__init__(message)
        self.total_size = total_size

    @property
    def headers(self) -> dict[str, str]:
        if self.total_size > 0:
            return {"Content-Range": f"bytes */{self.total_size}"}
        return {}
