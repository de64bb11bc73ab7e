"""Token bucket rate limiting and exponential backoff retries.

The bucket admits requests at ``refill_rate`` per second up to a burst of
``max_tokens``. Refill is computed lazily on each acquisition attempt, there
is no background timer.
"""

import logging
import random
import threading
import time
from collections.abc import Callable
from typing import TypeVar

from pydantic import BaseModel, Field
from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt

from reaper.providers.base import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Refill accumulates float error; a bucket this close to a whole token has one.
TOKEN_EPSILON = 1e-9


class RateLimiterConfig(BaseModel):
    """Rate limiter and retry configuration."""

    max_tokens: int = Field(default=60, ge=1, description="Bucket capacity (burst size)")
    refill_rate: float = Field(default=1.0, gt=0, description="Tokens added per second")
    max_retries: int = Field(default=3, ge=0)
    base_delay_ms: int = Field(default=1000, ge=0)
    max_delay_ms: int = Field(default=60000, ge=0)


class RateLimiter:
    """Blocking token bucket, one per logical caller or account."""

    def __init__(
        self,
        config: RateLimiterConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or RateLimiterConfig()
        self._clock = clock
        self._sleep = sleep
        self.tokens = float(self.config.max_tokens)
        self.last_refill = clock()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self.last_refill
        if elapsed > 0:
            self.tokens = min(
                float(self.config.max_tokens), self.tokens + elapsed * self.config.refill_rate
            )
            self.last_refill = now

    def acquire(self) -> None:
        """Take one token, sleeping until one is available."""
        while True:
            with self._lock:
                self._refill()
                if self.tokens >= 1.0 - TOKEN_EPSILON:
                    self.tokens = max(self.tokens - 1.0, 0.0)
                    return
                wait_seconds = (1.0 - self.tokens) / self.config.refill_rate

            logger.debug(f"Rate limiter empty, waiting {wait_seconds:.3f}s for a token")
            self._sleep(wait_seconds)

    def try_acquire(self) -> bool:
        """Take one token if available, without blocking."""
        with self._lock:
            self._refill()
            if self.tokens >= 1.0 - TOKEN_EPSILON:
                self.tokens = max(self.tokens - 1.0, 0.0)
                return True
            return False

    def available_tokens(self) -> float:
        with self._lock:
            self._refill()
            return self.tokens


class RetryContext:
    """Exponential backoff state for a single logical operation."""

    def __init__(
        self,
        config: RateLimiterConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or RateLimiterConfig()
        self.attempt = 0
        self._sleep = sleep

    def should_retry(self) -> bool:
        return self.attempt < self.config.max_retries

    def next_delay_ms(self) -> int:
        """Delay for the current attempt: ``base * 2**attempt`` capped, jittered by 25%."""
        delay_ms = min(self.config.base_delay_ms * (2**self.attempt), self.config.max_delay_ms)
        jitter_range = delay_ms // 4
        jitter = random.randint(0, jitter_range * 2) - jitter_range
        return max(delay_ms + jitter, 0)

    def advance(self) -> float:
        """Consume one retry and return its delay in seconds, without sleeping."""
        delay_seconds = self.next_delay_ms() / 1000.0
        self.attempt += 1
        return delay_seconds

    def backoff(self) -> None:
        """Sleep for the next backoff interval and count the attempt."""
        if not self.should_retry():
            return
        self._sleep(self.advance())

    def reset(self) -> None:
        self.attempt = 0


def with_retry(
    operation: Callable[[], T],
    config: RateLimiterConfig | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation``, retrying rate-limit, server and network errors with backoff.

    Any other error, or running out of retries, re-raises the original
    exception.
    """
    context = RetryContext(config, sleep=sleep)

    def _wait(retry_state: RetryCallState) -> float:
        return context.advance()

    def _log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Retrying after {type(error).__name__}: {error} "
            f"(retry {context.attempt}/{context.config.max_retries}, "
            f"sleeping {retry_state.upcoming_sleep:.2f}s)"
        )

    retrying = Retrying(
        stop=stop_after_attempt(context.config.max_retries + 1),
        wait=_wait,
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    return retrying(operation)
