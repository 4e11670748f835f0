"""Retry helper shared by every provider adapter."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from .errors import ProviderRateLimited

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential delay for the given 1-based attempt, capped at ``max_delay``."""

    if base_delay <= 0:
        return 0.0
    return min(base_delay * 2 ** (attempt - 1), max_delay) + (0.1 * attempt)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    is_retryable: Callable[[BaseException], bool],
    attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 8.0,
    label: str = "request",
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or the attempt budget is spent.

    Exceptions rejected by ``is_retryable`` propagate immediately. The last
    retryable exception is re-raised once ``attempts`` calls have failed.
    """

    attempts = max(1, attempts)
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as exc:
            if not is_retryable(exc) or attempt >= attempts:
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            if isinstance(exc, ProviderRateLimited) and exc.retry_after:
                delay = min(max(delay, exc.retry_after), max(max_delay, delay))
            logger.info(
                "Transient failure during %s (%s). Retrying attempt %s/%s in %.1fs",
                label,
                exc.__class__.__name__,
                attempt + 1,
                attempts,
                delay,
            )
            await sleep(delay)
