"""
Unit tests for the sliding window rate limiter
"""
import pytest

from arpozan.core.errors import RateLimitError
from arpozan.core.rate_limit import RateLimiter


class FakeClock:
    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TestRateLimiter:

    def test_limit_then_next_window(self):
        """N requests pass, the N+1th is denied, a full window later it passes again"""
        # Arrange
        clock = FakeClock()
        limiter = RateLimiter(max_requests=3, window_seconds=60, clock=clock)

        # Act / Assert
        assert [limiter.can_make_request("jwt:a") for _ in range(3)] == [True, True, True]
        assert limiter.can_make_request("jwt:a") is False

        clock.advance(61)
        assert limiter.can_make_request("jwt:a") is True

    def test_window_slides(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=2, window_seconds=10, clock=clock)

        limiter.can_make_request("ip:1")
        clock.advance(6)
        limiter.can_make_request("ip:1")
        clock.advance(5)

        # the first request left the window, the second did not
        assert limiter.can_make_request("ip:1") is True
        assert limiter.can_make_request("ip:1") is False

    def test_identities_are_independent(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        assert limiter.can_make_request("ip:1")
        assert limiter.can_make_request("ip:2")
        assert not limiter.can_make_request("ip:1")

    def test_enforce_reports_remaining_and_retry_after(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=2, window_seconds=30, clock=clock)

        assert limiter.enforce("jwt:a") == 1
        assert limiter.enforce("jwt:a") == 0
        clock.advance(10)
        with pytest.raises(RateLimitError) as raised:
            limiter.enforce("jwt:a")

        assert raised.value.kind == "rate_limit"
        assert raised.value.retry_after == 21

    def test_reset_forgets_everything(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        limiter.can_make_request("ip:1")
        limiter.reset()
        assert limiter.can_make_request("ip:1")
