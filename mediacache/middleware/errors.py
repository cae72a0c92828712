"""Error handling middleware."""

from http import HTTPStatus

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR
from starlette.types import ASGIApp

from mediacache.core.logging import get_logger
from mediacache.core.settings_store import SettingsFileError
from mediacache.media.errors import MediaError

logger = get_logger()

# Map exception types to status codes
ErrorMapping = dict[type[Exception], int]


def _phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware to handle errors and provide consistent error responses.

    Bodies only ever carry the standard phrase for the status code; the
    underlying exception text goes to the log.
    """

    def __init__(self, app: ASGIApp) -> None:
        """
        Initialize middleware with error mappings.

        Args:
        ----
            app: The ASGI application
        """
        super().__init__(app)
        self.error_mapping: ErrorMapping = {
            SettingsFileError: HTTP_500_INTERNAL_SERVER_ERROR,
        }

    def _get_error_detail(
        self, exc: Exception
    ) -> tuple[str, str, int, dict[str, str]]:
        """Get error type, public message, status code and headers."""
        if isinstance(exc, MediaError):
            return (
                exc.__class__.__name__,
                exc.public_message,
                exc.status_code,
                exc.headers,
            )

        status_code = self.error_mapping.get(
            type(exc), HTTP_500_INTERNAL_SERVER_ERROR
        )
        return "InternalServerError", _phrase(status_code), status_code, {}

    def _create_error_response(
        self,
        error_type: str,
        message: str,
        status_code: int,
        correlation_id: str | None,
        headers: dict[str, str] | None = None,
    ) -> JSONResponse:
        """Create JSON error response with optional correlation ID."""
        response = JSONResponse(
            status_code=status_code,
            content={
                "error": error_type,
                "message": message,
                "status_code": status_code,
                "correlation_id": correlation_id if correlation_id else "unknown",
            },
            headers=headers,
            media_type="application/json",
        )
        if correlation_id:
            response.headers["X-Request-ID"] = correlation_id
        return response

    def _log_error(
        self,
        request: Request,
        error_type: str,
        detail: str,
        status_code: int,
        correlation_id: str | None,
    ) -> None:
        """Log error details."""
        server_error = status_code >= HTTP_500_INTERNAL_SERVER_ERROR
        log = logger.error if server_error else logger.warning
        log(
            "request_error",
            error_type=error_type,
            error_message=detail,
            status_code=status_code,
            path=request.url.path,
            method=request.method,
            correlation_id=correlation_id,
        )

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """
        Process the request/response cycle and handle errors.

        Args:
        ----
            request: The incoming request
            call_next: The next handler in the middleware chain

        Returns:
        -------
            The response from downstream handlers or error response
        """
        correlation_id = getattr(request.state, "correlation_id", None)
        try:
            response = await call_next(request)
        except Exception as exc:
            error_type, message, status_code, headers = self._get_error_detail(exc)
            self._log_error(request, error_type, str(exc), status_code, correlation_id)
            return self._create_error_response(
                error_type, message, status_code, correlation_id, headers
            )

        # Don't interfere with CORS preflight responses
        if request.method == "OPTIONS" or response.status_code < 400:
            return response

        # Framework-level errors (unknown route, validation) get the same envelope
        status_code = response.status_code
        self._log_error(
            request, "HTTPException", _phrase(status_code), status_code, correlation_id
        )
        return self._create_error_response(
            "HTTPException", _phrase(status_code), status_code, correlation_id
        )
