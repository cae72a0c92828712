"""API test fixtures."""

from collections.abc import AsyncGenerator
from typing import cast

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient, Timeout
from starlette.types import ASGIApp

from mediacache.core.config import Settings
from mediacache.core.events import MediaCache
from mediacache.main import create_app

# Default timeout configuration
DEFAULT_TIMEOUT: Timeout = Timeout(
    timeout=5.0,  # Default total timeout
    connect=2.0,  # Connection timeout
    read=5.0,  # Read timeout
    write=5.0,  # Write timeout
    pool=2.0,  # Pool timeout
)


@pytest.fixture(scope="function")
def test_app(media_settings: Settings, media_cache: MediaCache) -> FastAPI:
    """Get FastAPI test application.

    The lifespan is not run by ``ASGITransport``, so the reconciler stays
    stopped and tests drive cycles explicitly.
    """
    return create_app(media_settings, media=media_cache)


@pytest_asyncio.fixture(scope="function")
async def test_app_async_client(
    test_app: FastAPI,
) -> AsyncGenerator[AsyncClient, None]:
    """Get FastAPI async test client.

    Args:
        test_app: FastAPI application for testing

    Yields:
        Test client for making asynchronous requests
    """
    transport = ASGITransport(app=cast(ASGIApp, test_app))
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=True,
        timeout=DEFAULT_TIMEOUT,
    ) as client:
        yield client
