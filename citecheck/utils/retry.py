import asyncio
import logging
from typing import Callable, Optional, Any
from functools import wraps

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class RetryConfig:
    MAX_ATTEMPTS = 3
    BASE_DELAY = 1.0
    MAX_DELAY = 10.0
    EXPONENTIAL_BASE = 2


def is_transient_http_error(exc: BaseException) -> bool:
    """Transport failures and overloaded-server responses are worth another attempt."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, httpx.TransportError)


def async_retry(
    max_attempts: int = RetryConfig.MAX_ATTEMPTS,
    base_delay: float = RetryConfig.BASE_DELAY,
    max_delay: float = RetryConfig.MAX_DELAY,
    exponential_base: float = RetryConfig.EXPONENTIAL_BASE,
    exceptions: tuple = (httpx.HTTPError,),
    should_retry: Optional[Callable[[BaseException], bool]] = None,
):
    """Retry a coroutine with exponential delay.

    Only exceptions matching `exceptions` (and `should_retry`, when given) are
    retried. Cancellation is never caught, so an outer deadline still abandons
    the call between attempts.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            attempt = 0
            while True:
                attempt += 1
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if should_retry is not None and not should_retry(e):
                        raise
                    if attempt >= max_attempts:
                        logger.error(
                            "%s failed after %d attempts: %s", func.__name__, max_attempts, e
                        )
                        raise

                    delay = min(base_delay * (exponential_base ** (attempt - 1)), max_delay)
                    logger.warning(
                        "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                        func.__name__, attempt, max_attempts, delay, e,
                    )
                    await asyncio.sleep(delay)

        return wrapper
    return decorator
