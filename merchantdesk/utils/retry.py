"""
Retry utilities with exponential backoff for API calls.

Provides a decorator for handling transient failures on blocking HTTP calls
plus the helpers the connectors use for their own retry loops.
"""
import functools
import random
import time
from typing import Callable, Optional, Tuple, Type
from merchantdesk.utils.logger import log


# Default retryable exceptions (network/API errors)
DEFAULT_RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    ConnectionError,
    TimeoutError,
)

RETRYABLE_STATUS_CODES: Tuple[int, ...] = (429, 500, 502, 503, 504)


def http_status(error: Exception) -> Optional[int]:
    """
    Pull an HTTP status code out of an API exception, if it carries one.

    Handles googleapiclient's HttpError (``resp.status`` / ``status_code``),
    requests' HTTPError (``response.status_code``) and plain ``code`` attributes.
    """
    for attr in ("status_code", "code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    for holder in ("resp", "response"):
        obj = getattr(error, holder, None)
        if obj is None:
            continue
        for attr in ("status", "status_code"):
            value = getattr(obj, attr, None)
            if isinstance(value, int):
                return value
            if isinstance(value, str) and value.isdigit():
                return int(value)
    return None


def calculate_backoff(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True
) -> float:
    """
    Calculate delay for exponential backoff.

    Args:
        attempt: Current attempt number (1-indexed)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap
        exponential_base: Base for exponential calculation
        jitter: Add randomness to prevent thundering herd

    Returns:
        Delay in seconds
    """
    delay = base_delay * (exponential_base ** (attempt - 1))
    delay = min(delay, max_delay)

    # Add jitter (0-25% of delay)
    if jitter:
        delay += delay * random.uniform(0, 0.25)

    return delay


def is_retryable_error(
    error: Exception,
    retryable_exceptions: Tuple[Type[Exception], ...] = DEFAULT_RETRYABLE_EXCEPTIONS,
    retryable_status_codes: Tuple[int, ...] = RETRYABLE_STATUS_CODES
) -> bool:
    """
    Check if an error is retryable.

    A structured status code wins over message sniffing: a 401/403/404 from
    Google is never retried even if its message happens to mention "500".
    """
    status = http_status(error)
    if status is not None:
        return status in retryable_status_codes

    if isinstance(error, retryable_exceptions):
        return True

    error_str = str(error).lower()

    if "rate limit" in error_str or "too many requests" in error_str:
        return True

    if "timeout" in error_str or "timed out" in error_str:
        return True

    if "connection" in error_str and ("refused" in error_str or "reset" in error_str or "failed" in error_str):
        return True

    return False


def retry_sync(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = DEFAULT_RETRYABLE_EXCEPTIONS,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None
):
    """
    Decorator for retrying blocking operations with exponential backoff.

    Usage:
        @retry_sync(max_attempts=3)
        def exchange_code(code):
            ...
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            last_error = None

            for attempt in range(1, max_attempts + 1):
                try:
                    result = func(*args, **kwargs)
                    if attempt > 1:
                        log.info(f"{func.__name__} succeeded on attempt {attempt}")
                    return result

                except Exception as e:
                    last_error = e

                    if attempt >= max_attempts or not is_retryable_error(e, retryable_exceptions):
                        log.error(f"{func.__name__} failed after {attempt} attempts: {e}")
                        raise

                    delay = calculate_backoff(
                        attempt,
                        base_delay=base_delay,
                        max_delay=max_delay,
                        exponential_base=exponential_base
                    )

                    log.warning(
                        f"{func.__name__} attempt {attempt} failed: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )

                    if on_retry:
                        on_retry(attempt, e, delay)

                    time.sleep(delay)

            raise last_error if last_error else RuntimeError("Retry exhausted")

        return wrapper

    return decorator
