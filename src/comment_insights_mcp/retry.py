"""Exponential backoff retry for transient provider and platform errors."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .errors import InsightsError, categorize_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_retryable(exc: Exception) -> bool:
    """Check whether *exc* is a transient failure worth another attempt."""
    if isinstance(exc, InsightsError):
        return exc.retryable
    return InsightsError(categorize_error(exc), str(exc)).retryable


async def with_retry(
    coro_factory: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
) -> T:
    """Execute an async callable with exponential backoff on transient errors.

    Args:
        coro_factory: Zero-arg callable that returns a fresh awaitable each attempt.
        max_attempts: Total attempts including the first.
        base_delay: Delay before the first retry, doubled each attempt.
        max_delay: Upper bound on any single delay.

    Returns:
        The result of the first successful call.

    Raises:
        The last exception if all attempts are exhausted or non-retryable.
    """
    last_exc: Exception | None = None
    for attempt in range(max_attempts):
        try:
            return await coro_factory()
        except Exception as exc:
            last_exc = exc
            if not _is_retryable(exc) or attempt == max_attempts - 1:
                raise
            delay = min(base_delay * (2 ** attempt) + random.random(), max_delay)
            logger.warning(
                "Retry %d/%d after %.1fs: %s", attempt + 1, max_attempts, delay, exc,
            )
            await asyncio.sleep(delay)
    raise last_exc  # unreachable but satisfies type checker
