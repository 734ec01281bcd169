"""Retry utilities for idempotent API reads with exponential backoff.

Only reads are retried. A mutation (log a set, begin a workout) that timed out
may still have been applied on the server, so retrying it could log twice.
"""
import logging
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..config import settings
from ..errors import NetworkError, ServerError


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default retry configuration
DEFAULT_MIN_WAIT_SECONDS = 0.5
DEFAULT_MAX_WAIT_SECONDS = 8


def is_retryable_error(exception: BaseException) -> bool:
    """
    Determine if a failed read is worth retrying.

    Retryable errors include:
    - Network errors (timeouts, DNS, refused connections)
    - Server errors (5xx)

    Non-retryable errors include:
    - Authentication errors (401)
    - Conflicts and envelope-level ``ok: false`` failures
    - Client-side validation errors
    """
    if isinstance(exception, NetworkError):
        return True
    if isinstance(exception, ServerError):
        return exception.status_code is not None and 500 <= exception.status_code < 600
    return False


async def retry_read(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_attempts: int | None = None,
    min_wait_seconds: float = DEFAULT_MIN_WAIT_SECONDS,
    max_wait_seconds: float = DEFAULT_MAX_WAIT_SECONDS,
    **kwargs: Any,
) -> T:
    """
    Execute an async read with retry logic.

    Args:
        func: Async function to execute
        *args: Positional arguments for the function
        max_attempts: Maximum number of attempts (defaults to settings)
        min_wait_seconds: Minimum wait time between retries
        max_wait_seconds: Maximum wait time between retries
        **kwargs: Keyword arguments for the function

    Returns:
        Result of the function call

    Raises:
        The last error if every attempt fails, or the first non-retryable one
    """
    attempts = max_attempts or settings.FETCH_RETRY_ATTEMPTS
    retrying = AsyncRetrying(
        retry=retry_if_exception(is_retryable_error),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(
            multiplier=min_wait_seconds,
            min=min_wait_seconds,
            max=max_wait_seconds,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await func(*args, **kwargs)
    raise RuntimeError("Unexpected state: no result and no exception")
