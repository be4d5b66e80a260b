"""Retry decorator with exponential backoff for HTTP backends."""
from __future__ import annotations

import functools
import random
import time
from typing import Any, Callable, Tuple, Type

from listing_sync.log import get_logger

log = get_logger(__name__)


def retry(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
    label: str | None = None,
) -> Callable:
    """Decorator: retries the wrapped call on ``retryable`` errors.

    Anything not listed in ``retryable`` propagates on the first attempt, so
    permission failures are never retried. ``label`` prefixes the log lines
    (``[api GET] ...``), falling back to the function's qualified name. A string
    second positional argument, the URL for ``ApiClient`` methods, is appended.
    """

    def decorator(fn: Callable) -> Callable:
        prefix = label or fn.__qualname__

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            target = next((a for a in args[1:2] if isinstance(a, str)), "")
            where = f"[{prefix}] {target}".rstrip()
            for attempt in range(1, max_attempts + 1):
                try:
                    return fn(*args, **kwargs)
                except retryable as exc:
                    if attempt == max_attempts:
                        log.error("%s gave up after %d attempts: %s", where, max_attempts, exc)
                        raise
                    delay = min(base_delay * (backoff_factor ** (attempt - 1)), max_delay)
                    if jitter:
                        delay *= 0.5 + random.random()
                    log.warning(
                        "%s attempt %d/%d failed (%s), retrying in %.1fs",
                        where, attempt, max_attempts, exc, delay,
                    )
                    time.sleep(delay)
            raise RuntimeError(f"{where}: retry loop exited without a result")

        return wrapper

    return decorator
