"""Retry helpers for remote provider calls."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from mediacache.core.logging import get_logger
from mediacache.media.errors import RemoteError

logger = get_logger(__name__)

T = TypeVar("T")


async def with_remote_retry(
    func: Callable[[], Awaitable[T]],
    attempts: int = 3,
    delay: float = 1.0,
    operation: str = "remote call",
) -> T:
    """Await ``func`` and retry transient remote failures with a fixed backoff.

    Args:
        func: Zero-argument coroutine factory to execute
        attempts: Total number of attempts, including the first
        delay: Seconds to wait between attempts
        operation: Description of the operation for logging

    Returns:
        Result of the call

    Raises:
        RemoteError: The last error once attempts are exhausted, or the first
            permanent error
    """
    for attempt in range(1, attempts + 1):
        try:
            return await func()
        except RemoteError as e:
            if not e.transient or attempt == attempts:
                raise
            logger.warning(
                "remote_retry",
                operation=operation,
                attempt=attempt,
                max_attempts=attempts,
                delay_seconds=delay,
                error=str(e),
            )
            await asyncio.sleep(delay)

    # attempts < 1 never enters the loop
    raise ValueError("attempts must be at least 1")
