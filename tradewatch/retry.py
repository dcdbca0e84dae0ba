"""Bounded retry with exponential backoff for single upstream calls."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="retry")

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 1.0


def backoff_delay(attempt_index: int, base_delay: float = DEFAULT_BASE_DELAY_SECONDS) -> float:
    """Delay after the failed attempt `attempt_index` (0-based): base * 2**index."""
    return base_delay * (2 ** attempt_index)


async def fetch_with_retry(
    request: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    *,
    base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "upstream",
) -> T:
    """
    Await `request()` up to `max_attempts` times and return the first success.

    Any exception raised by `request` counts as a failed attempt. Between
    attempts the coroutine sleeps `base_delay * 2**attempt_index`; there is no
    sleep after the final attempt. When every attempt fails the last exception
    is re-raised unchanged.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_error: Optional[BaseException] = None
    for attempt in range(max_attempts):
        try:
            return await request()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            last_error = exc
            if attempt + 1 >= max_attempts:
                break
            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                "Attempt %d/%d for %s failed: %s; retrying in %.1fs",
                attempt + 1,
                max_attempts,
                label,
                exc,
                delay,
            )
            await sleep(delay)

    logger.error(
        "All %d attempts for %s failed",
        max_attempts,
        label,
        extra={"error": str(last_error)},
    )
    raise last_error  # type: ignore[misc]
