"""
Retry decorator with exponential backoff.

Used around I/O against the workspace (reading and writing the build list,
deleting artifact directories).
"""

from __future__ import annotations

import functools
import time
from typing import Any, Callable, TypeVar

from loguru import logger

F = TypeVar("F", bound=Callable[..., Any])


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exceptions: tuple[type[BaseException], ...] = (OSError,),
    sleep: Callable[[float], None] = time.sleep,
) -> Callable[[F], F]:
    """
    Retry a function when it raises one of ``exceptions``.

    The delay doubles after each failed attempt: base_delay, 2x, 4x, ...
    capped at ``max_delay``. After ``max_retries`` retries the last
    exception propagates.

    Usage:
        @retry_with_backoff(max_retries=3, base_delay=1.0)
        def read_list(path):
            ...

    Args:
        max_retries: Retries after the first attempt
        base_delay: Seconds before the first retry
        max_delay: Upper bound for a single delay
        exceptions: Exception types that trigger a retry
        sleep: Sleep function (injectable for tests)

    Returns:
        Decorator
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_retries:
                        logger.error(
                            f"{func.__name__} failed after {attempt + 1} attempts: {e}"
                        )
                        raise
                    delay = min(base_delay * (2**attempt), max_delay)
                    attempt += 1
                    logger.warning(
                        f"{func.__name__} failed ({e}), retry {attempt}/{max_retries} "
                        f"in {delay:.1f}s"
                    )
                    sleep(delay)

        return wrapper  # type: ignore[return-value]

    return decorator
