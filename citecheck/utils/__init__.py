from .parsing import extract_json_block, collapse_whitespace, truncate, excerpt, normalize_url
from .rate_limiter import BackoffRateLimiter, get_rate_limiter, parse_retry_after
from .retry import async_retry, is_transient_http_error

__all__ = [
    "extract_json_block",
    "collapse_whitespace",
    "truncate",
    "excerpt",
    "normalize_url",
    "BackoffRateLimiter",
    "get_rate_limiter",
    "parse_retry_after",
    "async_retry",
    "is_transient_http_error",
]
