"""Exponential backoff for outbound provider calls.

Only notification transport retries; auth operations surface failures to the
caller unchanged.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 0.2  # seconds

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float = DEFAULT_BASE_DELAY) -> float:
    """Delay before retrying after zero-indexed ``attempt`` (base * 2^attempt)."""
    return base_delay * (2**attempt)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    attempts: int = DEFAULT_ATTEMPTS,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    base_delay: float = DEFAULT_BASE_DELAY,
    operation: str = "operation",
) -> T:
    """Execute an async callable, retrying the listed exceptions.

    Args:
        fn: Zero-argument async callable (typically a lambda)
        attempts: Maximum number of attempts, at least 1
        exceptions: Exception types that trigger a retry
        base_delay: Base delay in seconds for exponential backoff
        operation: Label used in retry log lines

    Returns:
        Result from the first successful call

    Raises:
        ValueError: If attempts is lower than 1
        The last exception once all attempts fail
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(attempts):
        try:
            return await fn()
        except exceptions as e:
            if attempt == attempts - 1:
                raise
            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                operation,
                attempt + 1,
                attempts,
                delay,
                e,
            )
            await asyncio.sleep(delay)

    raise AssertionError("unreachable")
