"""Fallbacks used when a source cannot serve fresh data."""

from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


async def with_default(
    func: Callable[..., Awaitable[T]],
    default: T,
    *args: Any,
    source: Optional[str] = None,
    **kwargs: Any,
) -> T:
    """Await ``func`` and return ``default`` if it raises.

    Args:
        func: Async function to execute
        default: Value to return if the call fails
        *args: Positional arguments for func
        source: Source name for logging (defaults to the function name)
        **kwargs: Keyword arguments for func

    Returns:
        Function result or default value
    """
    try:
        return await func(*args, **kwargs)
    except Exception as e:
        logger.warning(
            "source_degraded_to_default",
            source=source or getattr(func, "__name__", repr(func)),
            error=str(e),
        )
        return default


async def cached_or_none(
    loader: Optional[Callable[..., Awaitable[T]]],
    *args: Any,
    **kwargs: Any,
) -> Optional[T]:
    """Load fallback data if a loader is wired, otherwise return None.

    ``None`` means "no fallback available", which callers must distinguish
    from an empty cache.
    """
    if loader is None:
        return None
    return await with_default(loader, None, *args, source="cache", **kwargs)
