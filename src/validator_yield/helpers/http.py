"""HTTP client utilities and helpers."""

from __future__ import annotations

from asyncio import sleep
from functools import wraps

from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

import httpx

from validator_yield.helpers.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_TIMEOUT,
    MAX_CONNECTIONS,
    MAX_CONNECT_ATTEMPTS,
    MAX_KEEPALIVE_CONNECTIONS,
    QUERIES_PER_FETCH,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
)
from validator_yield.helpers.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def backoff_delay(
    attempt: int,
    base_delay: float = RETRY_BASE_DELAY,
    max_delay: float = RETRY_MAX_DELAY,
) -> float:
    """Compute the exponential backoff delay after a failed attempt.

    Args:
        attempt: Number of the attempt that just failed, counted from 1
        base_delay: Base delay in seconds
        max_delay: Upper bound of the delay in seconds

    Returns:
        ``min(base_delay * 2**attempt, max_delay)``

    Example:
        >>> [backoff_delay(n) for n in range(1, 6)]
        [2.0, 4.0, 8.0, 16.0, 30.0]
    """
    if attempt < 1:
        msg = f"attempt must be >= 1, got {attempt}"
        raise ValueError(msg)
    return min(base_delay * (2**attempt), max_delay)


def retry_with_backoff(
    max_retries: int = MAX_CONNECT_ATTEMPTS,
    base_delay: float = RETRY_BASE_DELAY,
    max_delay: float = RETRY_MAX_DELAY,
    *,
    retry_if: Callable[[Exception], bool] | None = None,
    log_errors: bool = True,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator to retry async functions with exponential backoff.

    Args:
        max_retries: Maximum number of attempts, including the first one
        base_delay: Base delay in seconds, see ``backoff_delay``
        max_delay: Maximum delay between attempts
        retry_if: Predicate deciding whether an exception is worth another
            attempt. Exceptions it rejects are raised immediately.
        log_errors: Whether to log retry attempts

    Returns:
        Decorated function that retries on httpx.HTTPError and general exceptions

    Example:
        ```python
        from validator_yield.helpers.http import retry_with_backoff

        @retry_with_backoff(max_retries=3, base_delay=0.5)
        async def fetch_version(client: httpx.AsyncClient) -> dict:
            response = await client.get("/node/version")
            response.raise_for_status()
            return response.json()

        # Will retry up to 3 times with delays of 1s, 2s
        ```
    """
    if max_retries < 1:
        msg = f"max_retries must be >= 1, got {max_retries}"
        raise ValueError(msg)

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            last_exception: Exception | None = None

            for attempt in range(1, max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if retry_if is not None and not retry_if(e):
                        raise
                    last_exception = e
                    if log_errors and attempt < max_retries:
                        if isinstance(e, httpx.TimeoutException):
                            logger.warning(
                                "%s timeout (attempt %d/%d)",
                                func.__name__,
                                attempt,
                                max_retries,
                            )
                        else:
                            logger.warning(
                                "%s error (attempt %d/%d): %s",
                                func.__name__,
                                attempt,
                                max_retries,
                                e,
                            )

                # Don't sleep after the last attempt
                if attempt < max_retries:
                    await sleep(backoff_delay(attempt, base_delay, max_delay))

            # All retries exhausted, raise the last exception
            if last_exception:
                if log_errors:
                    logger.error(
                        "%s failed after %d attempts", func.__name__, max_retries
                    )
                raise last_exception

            # This should never happen, but satisfy type checker
            msg = f"{func.__name__} failed without exception"
            raise RuntimeError(msg)

        return wrapper

    return decorator


def connection_limits(batch_size: int = DEFAULT_BATCH_SIZE) -> httpx.Limits:
    """Size the connection pool for one batch of concurrent fetches.

    Each fetch can have QUERIES_PER_FETCH storage queries in flight, so a
    smaller pool would queue requests against the pool timeout.

    Args:
        batch_size: Validators fetched concurrently

    Returns:
        Limits with room for every query of a batch, at least MAX_CONNECTIONS

    Example:
        >>> connection_limits(100).max_connections
        400
    """
    return httpx.Limits(
        max_connections=max(MAX_CONNECTIONS, batch_size * QUERIES_PER_FETCH),
        max_keepalive_connections=MAX_KEEPALIVE_CONNECTIONS,
    )


def create_http_client(
    base_url: str = "",
    timeout: float = DEFAULT_TIMEOUT,
    **kwargs: Any,
) -> httpx.AsyncClient:
    """Create a configured httpx AsyncClient.

    Unless ``limits`` is given, the connection pool is sized for a batch of
    DEFAULT_BATCH_SIZE fetches (see ``connection_limits``).

    Args:
        base_url: Base URL prepended to relative request paths
        timeout: Default timeout in seconds (default: DEFAULT_TIMEOUT)
        **kwargs: Additional httpx.AsyncClient kwargs

    Returns:
        Configured AsyncClient instance

    Example:
        ```python
        from validator_yield.helpers.http import create_http_client

        async with create_http_client("https://sidecar.example", timeout=60.0) as client:
            response = await client.get("/node/version")
        ```
    """
    kwargs.setdefault("limits", connection_limits())
    return httpx.AsyncClient(base_url=base_url, timeout=timeout, **kwargs)


__all__ = [
    "backoff_delay",
    "connection_limits",
    "create_http_client",
    "retry_with_backoff",
]
