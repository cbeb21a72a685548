"""
Retry Backoff
=============
Bounded retry for SMS transport attempts.

With exponential_base=1.0 and jitter off the delay is fixed, which is how
the messaging gateway retries its primary transport.
"""

import asyncio
import random
from typing import TypeVar, Callable, Awaitable, Optional, Set, Type
import structlog

from .exceptions import RetryExhausted

logger = structlog.get_logger(__name__)

T = TypeVar('T')


def backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float,
    jitter: bool,
) -> float:
    """Delay before the attempt after ``attempt`` (1-based)."""
    delay = min(base_delay * exponential_base ** (attempt - 1), max_delay)
    if jitter:
        # Scale into [0.5, 1.5) of the nominal delay.
        delay *= 0.5 + random.random()
    return delay


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: Optional[Set[Type[Exception]]] = None,
    **kwargs,
) -> T:
    """
    Await ``func(*args, **kwargs)`` until it succeeds or attempts run out.

    Exceptions outside retryable_exceptions propagate immediately.

    Args:
        func: Async callable to run
        max_attempts: Total attempts, including the first
        base_delay: Delay after the first failure, in seconds
        max_delay: Upper bound on any single delay
        exponential_base: Growth factor per attempt (1.0 for a fixed delay)
        jitter: Randomize each delay
        retryable_exceptions: Exception types worth another attempt

    Returns:
        Whatever func returns

    Raises:
        RetryExhausted: When the last attempt fails; carries that failure
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    retry_on = tuple(retryable_exceptions or {Exception})
    operation = getattr(func, "__name__", repr(func))
    attempt = 0

    while True:
        attempt += 1
        try:
            return await func(*args, **kwargs)
        except retry_on as e:
            if attempt >= max_attempts:
                logger.error("Retries exhausted", operation=operation, attempts=attempt, error=str(e))
                raise RetryExhausted(
                    f"Failed after {max_attempts} attempts: {e}",
                    last_exception=e,
                ) from e

            delay = backoff_delay(attempt, base_delay, max_delay, exponential_base, jitter)
            logger.warning(
                "Attempt failed, retrying",
                operation=operation,
                attempt=attempt,
                delay=round(delay, 3),
                error=str(e),
            )
            await asyncio.sleep(delay)
