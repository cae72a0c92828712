"""Response compression middleware."""

from fastapi.middleware.gzip import GZipMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

# Routes whose bodies are sent byte-exact
UNCOMPRESSED_PREFIXES = ("/media/",)


class MediaAwareGZipMiddleware:
    """GZip every HTTP response except those under the media routes."""

    def __init__(
        self,
        app: ASGIApp,
        minimum_size: int = 1000,
        excluded_prefixes: tuple[str, ...] = UNCOMPRESSED_PREFIXES,
    ) -> None:
        self.app = app
        self.gzip = GZipMiddleware(app, minimum_size=minimum_size)
        self.excluded_prefixes = excluded_prefixes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["path"].startswith(
            self.excluded_prefixes
        ):
            await self.app(scope, receive, send)
            return
        await self.gzip(scope, receive, send)
