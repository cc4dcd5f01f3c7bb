import asyncio
import math
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Awaitable, Callable, Dict, Optional

from citecheck.config import RATE_LIMIT_CONFIG, logger


def parse_retry_after(value: Optional[str], now: Optional[float] = None) -> Optional[float]:
    """Parse a Retry-After header (delta-seconds or HTTP-date) into seconds."""
    if not value:
        return None
    value = value.strip()

    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return max(0.0, seconds) if math.isfinite(seconds) else None

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    current = now if now is not None else datetime.now(timezone.utc).timestamp()
    return max(0.0, when.timestamp() - current)


class BackoffRateLimiter:
    """Adaptive backoff for a quota-limited API.

    `backoff` is the current penalty in seconds; `next_allowed_at` is the
    clock reading before which callers of `wait()` are held back. 429s grow the
    penalty, successes halve it.
    """

    def __init__(
        self,
        base_delay: float = RATE_LIMIT_CONFIG.BASE_DELAY,
        max_delay: float = RATE_LIMIT_CONFIG.MAX_DELAY,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        name: str = "unnamed",
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self.backoff = 0.0
        self.next_allowed_at = 0.0

    @property
    def backoff_ms(self) -> int:
        return int(self.backoff * 1000)

    async def wait(self) -> None:
        delay = self.next_allowed_at - self._clock()
        if delay > 0:
            logger.info("Rate limiter %s: waiting %.2fs", self.name, delay)
            await self._sleep(delay)

    def on_429(self, retry_after_header: Optional[str] = None) -> None:
        retry_after = parse_retry_after(retry_after_header)

        if retry_after is not None and retry_after > 0:
            self.backoff = min(self.max_delay, max(self.backoff, retry_after))
        elif self.backoff > 0:
            self.backoff = min(self.max_delay, self.backoff * 2)
        else:
            self.backoff = self.base_delay

        self.next_allowed_at = self._clock() + self.backoff
        logger.warning(
            "Rate limiter %s: 429 received, backing off %.2fs",
            self.name,
            self.backoff,
            extra={"rate_limiter": self.name, "backoff_ms": self.backoff_ms},
        )

    def on_success(self) -> None:
        if self.backoff <= 0:
            return
        self.backoff = self.backoff / 2
        if self.backoff < 0.001:
            self.backoff = 0.0
        self.next_allowed_at = self._clock() + self.backoff


_rate_limiters: Dict[str, BackoffRateLimiter] = {}


def get_rate_limiter(api_name: str) -> BackoffRateLimiter:
    """Process-wide limiter for `api_name`, shared across every document in this process."""
    if api_name not in _rate_limiters:
        _rate_limiters[api_name] = BackoffRateLimiter(name=api_name)
    return _rate_limiters[api_name]
