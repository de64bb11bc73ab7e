"""Tests for the token bucket rate limiter."""

import threading

import pytest
from pydantic import ValidationError

from reaper.resilience.rate_limiter import RateLimiter, RateLimiterConfig


@pytest.fixture
def limiter(fake_clock):
    return RateLimiter(
        RateLimiterConfig(max_tokens=5, refill_rate=10.0),
        clock=fake_clock,
        sleep=fake_clock.sleep,
    )


class TestRateLimiter:
    """Test token bucket behaviour"""

    def test_starts_full(self, limiter):
        assert limiter.available_tokens() == 5.0

    def test_burst_then_exhausted(self, limiter):
        assert all(limiter.try_acquire() for _ in range(5))
        assert limiter.try_acquire() is False

    def test_refills_over_time(self, limiter, fake_clock):
        for _ in range(5):
            limiter.try_acquire()
        assert not limiter.try_acquire()

        fake_clock.advance(0.1)
        assert limiter.try_acquire()
        assert not limiter.try_acquire()

    def test_partial_refill_not_enough(self, limiter, fake_clock):
        for _ in range(5):
            limiter.try_acquire()
        fake_clock.advance(0.05)
        assert not limiter.try_acquire()
        assert limiter.available_tokens() == pytest.approx(0.5)

    def test_token_after_full_interval_in_small_steps(self, limiter, fake_clock):
        for _ in range(5):
            limiter.try_acquire()

        for _ in range(9):
            fake_clock.advance(0.01)
            assert not limiter.try_acquire()
        fake_clock.advance(0.01)

        assert limiter.try_acquire()
        assert limiter.available_tokens() >= 0.0

    def test_refill_capped_at_capacity(self, limiter, fake_clock):
        limiter.try_acquire()
        fake_clock.advance(3600)
        assert limiter.available_tokens() == 5.0

    def test_failed_attempt_does_not_consume(self, limiter, fake_clock):
        for _ in range(5):
            limiter.try_acquire()
        fake_clock.advance(0.05)
        limiter.try_acquire()
        fake_clock.advance(0.05)
        assert limiter.try_acquire()

    def test_acquire_waits_for_token(self, limiter, fake_clock):
        for _ in range(5):
            limiter.acquire()
        assert fake_clock.sleeps == []

        limiter.acquire()
        assert fake_clock.sleeps == [pytest.approx(0.1)]
        assert limiter.available_tokens() == pytest.approx(0.0)

    def test_refill_rate_must_be_positive(self):
        with pytest.raises(ValidationError):
            RateLimiterConfig(refill_rate=0)

    def test_defaults(self):
        config = RateLimiterConfig()
        assert config.max_tokens == 60
        assert config.refill_rate == 1.0
        assert config.max_retries == 3
        assert config.base_delay_ms == 1000
        assert config.max_delay_ms == 60000


class TestRateLimiterConcurrency:
    """Test the bucket under concurrent callers"""

    def test_grants_never_exceed_capacity(self, fake_clock):
        limiter = RateLimiter(RateLimiterConfig(max_tokens=50, refill_rate=1.0), clock=fake_clock)
        granted = []
        lock = threading.Lock()

        def worker():
            for _ in range(20):
                if limiter.try_acquire():
                    with lock:
                        granted.append(1)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(granted) == 50
        assert limiter.available_tokens() == pytest.approx(0.0)

    def test_real_clock_refill(self):
        limiter = RateLimiter(RateLimiterConfig(max_tokens=5, refill_rate=10.0))
        for _ in range(5):
            assert limiter.try_acquire()
        assert not limiter.try_acquire()

        limiter.acquire()
        assert limiter.available_tokens() < 1.0
