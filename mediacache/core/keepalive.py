"""Periodic keep-alive ping for hosts that idle out quiet services."""

import asyncio

import httpx

from mediacache.core.logging import get_logger

logger = get_logger(__name__)


async def ping(client: httpx.AsyncClient, url: str) -> bool:
    """Issue one keep-alive request.

    Returns:
        True when the target answered with a non-error status
    """
    try:
        response = await client.get(url)
    except httpx.HTTPError as e:
        logger.warning("keepalive_failed", url=url, error=str(e))
        return False
    if response.is_error:
        logger.warning("keepalive_failed", url=url, status_code=response.status_code)
        return False
    logger.debug("keepalive_sent", url=url, status_code=response.status_code)
    return True


async def keepalive_loop(
    url: str,
    interval_seconds: float = 45.0,
    client: httpx.AsyncClient | None = None,
) -> None:
    """Ping ``url`` every ``interval_seconds`` until cancelled."""
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=10.0)
    logger.info("keepalive_started", url=url, interval_seconds=interval_seconds)
    try:
        while True:
            await asyncio.sleep(interval_seconds)
            await ping(client, url)
    finally:
        if owns_client:
            await client.aclose()
