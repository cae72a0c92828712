"""Request metrics middleware for Prometheus monitoring."""

import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from mediacache.core.events import REQUESTS_TOTAL, RESPONSES_TOTAL
from mediacache.core.logging import get_logger

logger = get_logger()

# Only fixed routes become label values
KNOWN_PATHS = frozenset(
    {
        "/media-list",
        "/media/image",
        "/media/video",
        "/settings",
        "/health",
        "/metrics",
    }
)


def path_label(path: str) -> str:
    """Collapse unknown paths so probes can't blow up label cardinality."""
    path = path.rstrip("/") or "/"
    return path if path in KNOWN_PATHS else "other"


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect request/response metrics.

    Records:
    - Total requests by method and path
    - Total responses by status code
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """
        Process the request/response cycle and record metrics.

        Args:
        ----
            request: The incoming request
            call_next: The next handler in the middleware chain

        Returns:
        -------
            The response from downstream handlers
        """
        REQUESTS_TOTAL.labels(
            method=request.method,
            path=path_label(request.url.path),
        ).inc()

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
            )
            raise

        duration = time.perf_counter() - start_time
        RESPONSES_TOTAL.labels(status_code=str(response.status_code)).inc()
        logger.info(
            "request_processed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration=round(duration, 4),
        )
        return response
