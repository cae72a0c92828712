"""Tests for the keep-alive ping."""

import asyncio

import httpx
import pytest

from mediacache.core.keepalive import keepalive_loop, ping


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_ping_success() -> None:
    async with _client(lambda request: httpx.Response(200)) as client:
        assert await ping(client, "http://keepalive.test/")


async def test_ping_error_status() -> None:
    async with _client(lambda request: httpx.Response(503)) as client:
        assert not await ping(client, "http://keepalive.test/")


async def test_ping_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with _client(handler) as client:
        assert not await ping(client, "http://keepalive.test/")


async def test_loop_keeps_pinging_after_failures() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(500 if len(seen) == 1 else 200)

    async with _client(handler) as client:
        task = asyncio.create_task(
            keepalive_loop("http://keepalive.test/ping", 0.01, client=client)
        )
        for _ in range(100):
            if len(seen) >= 3:
                break
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(seen) >= 3
        assert not client.is_closed
