"""
Retry utility with exponential backoff for transient HTTP failures.
Used by the remote rule source and the remote reporting sink, where a
rate limit (429), a 5xx answer or a dropped connection is worth
another attempt but a 4xx answer is not.
"""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, TypeVar

from cookieguard.utils import logger

log = logger.create_logger("Retry")

T = TypeVar("T")

_RETRYABLE_CLASS_NAMES = frozenset({
    "ConnectionError",
    "ConnectionResetError",
    "TimeoutError",
    "ClientConnectionError",
    "ClientConnectorError",
    "ServerDisconnectedError",
    "ServerTimeoutError",
})


def _status_of(error: BaseException) -> int | None:
    """Return the HTTP status carried by *error*, if any."""
    for attr in ("status", "status_code"):
        status = getattr(error, attr, None)
        if isinstance(status, int):
            return status
    return None


def _is_rate_limit_error(error: BaseException) -> bool:
    """Check if the error is a rate limit (429) error."""
    if _status_of(error) == 429:
        return True
    return "rate limit" in str(error).lower()


def _is_retryable_error(error: BaseException) -> bool:
    """Check if the error is retryable (rate limit, server error, connection)."""
    if _is_rate_limit_error(error):
        return True
    status = _status_of(error)
    if status is not None and 500 <= status < 600:
        return True
    return any(cls.__name__ in _RETRYABLE_CLASS_NAMES for cls in type(error).__mro__)


def _get_retry_after_ms(error: BaseException) -> int | None:
    """Try to extract retry-after information from the error."""
    headers = getattr(error, "headers", None)
    if not headers:
        return None
    try:
        retry_after = headers.get("retry-after") or headers.get("Retry-After")
    except AttributeError:
        return None
    if retry_after:
        try:
            return int(retry_after) * 1000
        except (ValueError, TypeError):
            return None
    return None


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 2,
    initial_delay_ms: int = 250,
    max_delay_ms: int = 5000,
    backoff_multiplier: float = 2.0,
    context: str | None = None,
) -> T:
    """
    Execute an async function with automatic retry on transient failures.
    Uses exponential backoff with jitter; non-retryable errors propagate
    immediately.
    """
    delay = initial_delay_ms
    attempt = 0

    while True:
        try:
            return await fn()
        except Exception as error:
            if not _is_retryable_error(error):
                raise

            if attempt >= max_retries:
                log.warn(
                    "All retry attempts exhausted",
                    {
                        "context": context,
                        "attempts": attempt + 1,
                        "error": str(error)[:100],
                    },
                )
                raise

            retry_after_ms = _get_retry_after_ms(error)
            actual_delay = retry_after_ms if retry_after_ms is not None else delay

            jitter = actual_delay * 0.2 * (random.random() * 2 - 1)
            delay_with_jitter = max(0, min(round(actual_delay + jitter), max_delay_ms))

            log.warn(
                "Retrying after transient error",
                {
                    "context": context,
                    "attempt": attempt + 1,
                    "maxRetries": max_retries,
                    "delayMs": delay_with_jitter,
                    "isRateLimit": _is_rate_limit_error(error),
                    "error": str(error)[:100],
                },
            )

            await asyncio.sleep(delay_with_jitter / 1000)
            delay = min(int(delay * backoff_multiplier), max_delay_ms)
            attempt += 1
