"""Retry logic with exponential backoff for blob fetches.

This module provides:
- retry_with_backoff: Simple exponential backoff retry
- is_transient: Decide whether a fetch failure is worth retrying
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import httpx

from texsync.client.api import APIError, AuthenticationError, NotFoundError, RateLimitError

logger = logging.getLogger(__name__)

# Default retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_BACKOFF = 1.0  # seconds
DEFAULT_MAX_BACKOFF = 30.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0

# Exceptions that indicate connectivity issues
NETWORK_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
)


def is_transient(error: BaseException) -> bool:
    """Check if an error may go away on retry.

    Network failures and 5xx responses are transient. Authentication,
    rate limit and not-found errors are not.
    """
    if isinstance(error, (AuthenticationError, RateLimitError, NotFoundError)):
        return False
    if isinstance(error, NETWORK_EXCEPTIONS):
        return True
    if isinstance(error, APIError):
        return error.status_code is not None and error.status_code >= 500
    return False


def retry_with_backoff(
    func: Callable[[], Any],
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
    max_backoff: float = DEFAULT_MAX_BACKOFF,
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    should_retry: Callable[[BaseException], bool] = is_transient,
) -> Any:
    """Execute a function with exponential backoff retry.

    Args:
        func: Function to execute.
        max_retries: Maximum number of retry attempts.
        initial_backoff: Initial backoff time in seconds.
        max_backoff: Maximum backoff time in seconds.
        backoff_multiplier: Multiplier for each retry.
        should_retry: Predicate deciding if an exception is retryable.

    Returns:
        Result of the function.

    Raises:
        The last exception if all retries fail, or the first
        non-retryable one.
    """
    backoff = initial_backoff

    for attempt in range(max_retries + 1):
        try:
            return func()
        except Exception as e:
            if not should_retry(e):
                raise
            if attempt == max_retries:
                logger.error(f"All {max_retries} retries failed: {e}")
                raise

            logger.warning(
                f"Attempt {attempt + 1}/{max_retries + 1} failed: {e}. "
                f"Retrying in {backoff:.1f}s..."
            )
            time.sleep(backoff)
            backoff = min(backoff * backoff_multiplier, max_backoff)

    raise RuntimeError("Unexpected retry loop exit")
