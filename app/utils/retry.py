"""
Retry utility with exponential backoff for transient errors.
Used for media host uploads only; nothing else in the service retries.
"""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar
from google.api_core import exceptions as google_exceptions
import requests

logger = logging.getLogger(__name__)

T = TypeVar('T')


def is_transient_error(error: Exception) -> bool:
    """
    Determine if an error is transient and should be retried.

    Transient errors include:
    - Network timeouts
    - HTTP 5xx server errors and 429
    - Connection errors
    - Google API transient errors
    """
    if isinstance(error, (
        google_exceptions.ServiceUnavailable,
        google_exceptions.DeadlineExceeded,
        google_exceptions.InternalServerError,
        google_exceptions.BadGateway,
        google_exceptions.TooManyRequests,
    )):
        return True

    if isinstance(error, (
        requests.exceptions.Timeout,
        requests.exceptions.ConnectionError,
        asyncio.TimeoutError,
        TimeoutError,
        ConnectionError,
    )):
        return True

    return False


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_retries: int = 2,
    base_delay: float = 1.0,
    operation_name: str = "operation",
) -> T:
    """
    Retry an async callable with exponential backoff.

    Args:
        func: Zero-argument coroutine function to retry
        max_retries: Maximum number of retry attempts after the first try
        base_delay: Base delay in seconds (exponentially increased)
        operation_name: Name of operation for logging

    Returns:
        Result from successful function call

    Raises:
        Exception: The last exception if all retries fail, or the first
            non-transient one

    Retry delays: base_delay * (2 ** attempt)
    - Attempt 0 (first try): no delay
    - Attempt 1 (first retry): base_delay
    - Attempt 2 (second retry): base_delay * 2
    """
    for attempt in range(max_retries + 1):
        try:
            result = await func()
            if attempt > 0:
                logger.info(
                    f"{operation_name} succeeded on attempt {attempt + 1}/{max_retries + 1}"
                )
            return result

        except Exception as e:
            if attempt >= max_retries:
                logger.error(
                    f"{operation_name} failed after {max_retries + 1} attempts: {type(e).__name__}: {e}"
                )
                raise

            if not is_transient_error(e):
                logger.error(
                    f"{operation_name} failed with non-transient error: {type(e).__name__}: {e}"
                )
                raise

            delay = base_delay * (2 ** attempt)
            logger.warning(
                f"{operation_name} attempt {attempt + 1}/{max_retries + 1} failed: "
                f"{type(e).__name__}: {e}. Retrying in {delay}s..."
            )
            await asyncio.sleep(delay)

    raise RuntimeError(f"{operation_name}: retry loop exited without a result")
