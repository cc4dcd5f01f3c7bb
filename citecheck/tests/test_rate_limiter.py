from email.utils import formatdate

import pytest

from citecheck.utils.rate_limiter import BackoffRateLimiter, get_rate_limiter, parse_retry_after


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return BackoffRateLimiter(base_delay=2.0, max_delay=30.0, clock=clock, sleep=clock.sleep, name="test")


class TestParseRetryAfter:
    def test_seconds(self):
        assert parse_retry_after("5") == 5.0

    def test_fractional_seconds(self):
        assert parse_retry_after("1.5") == 1.5

    def test_http_date(self):
        now = 1_700_000_000.0
        header = formatdate(now + 10, usegmt=True)
        assert parse_retry_after(header, now=now) == pytest.approx(10.0, abs=1.0)

    def test_past_date_is_zero(self):
        now = 1_700_000_000.0
        assert parse_retry_after(formatdate(now - 60, usegmt=True), now=now) == 0.0

    @pytest.mark.parametrize("value", [None, "", "soon", "inf", "nan"])
    def test_unparseable(self, value):
        assert parse_retry_after(value) is None


@pytest.mark.asyncio
class TestBackoffRateLimiter:
    async def test_no_wait_without_backoff(self, limiter, clock):
        await limiter.wait()
        assert clock.sleeps == []

    async def test_429_without_header_starts_at_base_and_doubles(self, limiter):
        limiter.on_429(None)
        assert limiter.backoff == 2.0
        limiter.on_429(None)
        assert limiter.backoff == 4.0
        for _ in range(10):
            limiter.on_429(None)
        assert limiter.backoff == 30.0

    async def test_retry_after_holds_the_next_call(self, limiter, clock):
        limiter.on_429("5")

        await limiter.wait()

        assert limiter.backoff == 5.0
        assert clock.sleeps == [pytest.approx(5.0)]

    async def test_fractional_retry_after_is_honoured(self, limiter, clock):
        limiter.on_429("1.5")

        await limiter.wait()

        assert limiter.backoff == 1.5
        assert clock.sleeps == [pytest.approx(1.5)]

    async def test_retry_after_never_shrinks_existing_backoff(self, limiter):
        for _ in range(3):
            limiter.on_429(None)
        limiter.on_429("1")
        assert limiter.backoff == 8.0

    async def test_success_halves_then_clears(self, limiter):
        limiter.on_429(None)
        limiter.on_success()
        assert limiter.backoff == 1.0
        for _ in range(20):
            limiter.on_success()
        assert limiter.backoff == 0.0
        assert limiter.backoff_ms == 0

    async def test_success_without_backoff_is_noop(self, limiter):
        limiter.on_success()
        assert limiter.backoff == 0.0
        assert limiter.next_allowed_at == 0.0


class TestSharedLimiters:
    def test_same_instance_per_api(self):
        assert get_rate_limiter("web_search") is get_rate_limiter("web_search")
        assert get_rate_limiter("web_search") is not get_rate_limiter("other_api")
