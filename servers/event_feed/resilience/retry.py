"""Retry with exponential backoff for transient HTTP failures."""

import asyncio
import random
from functools import wraps
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


def retry_with_backoff(
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: bool = True,
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator for async retry with exponential backoff.

    Only ``retryable_exceptions`` are retried; anything else propagates on
    the first attempt.

    Args:
        max_attempts: Maximum number of attempts
        base_delay: Delay before the second attempt in seconds
        max_delay: Upper bound for a single delay in seconds
        jitter: Randomize delays to spread out concurrent retries
        retryable_exceptions: Exception types to retry on
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:
                    if attempt == max_attempts:
                        logger.error(
                            "retry_exhausted",
                            function=func.__name__,
                            max_attempts=max_attempts,
                            error=str(e),
                        )
                        raise

                    delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
                    if jitter:
                        delay *= 0.5 + random.random()

                    logger.warning(
                        "retry_attempt",
                        function=func.__name__,
                        attempt=attempt,
                        max_attempts=max_attempts,
                        delay=round(delay, 2),
                        error=str(e),
                    )
                    await asyncio.sleep(delay)
            raise AssertionError("unreachable")

        return wrapper  # type: ignore

    return decorator
