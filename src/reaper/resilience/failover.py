"""Provider selection and failover across providers."""

import logging
import random
import threading
import time
from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from reaper.providers.base import NoProviderAvailableError, ProviderError
from reaper.providers.descriptors import Capability, ProviderKind

from .health import HealthMonitor

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FailoverStrategy(str, Enum):
    """Provider selection strategies."""

    PRIORITY = "priority"
    ROUND_ROBIN = "round_robin"
    RANDOM = "random"
    # Not yet implemented: selects exactly like PRIORITY.
    WEIGHTED = "weighted"


class FailoverConfig(BaseModel):
    """Failover configuration."""

    strategy: FailoverStrategy = FailoverStrategy.PRIORITY
    max_attempts: int = Field(default=3, ge=1, description="Providers to try before giving up")
    # Declared for configuration compatibility; selection does not filter on it.
    required_capability: Capability | None = None


class ProviderPriority(BaseModel):
    """Provider with priority, lower number is tried first."""

    model_config = ConfigDict(frozen=True)

    kind: ProviderKind
    priority: int


class FailoverManager:
    """Chooses a provider per call and fails over to the next on error."""

    def __init__(self, config: FailoverConfig | None = None, health_monitor: HealthMonitor | None = None):
        self.config = config or FailoverConfig()
        self.health_monitor = health_monitor or HealthMonitor()
        self.priorities: list[ProviderPriority] = []
        self._round_robin_index = 0
        self._weighted_warned = False
        self._lock = threading.Lock()

        # Performance tracking
        self.total_requests = 0
        self.successful_requests = 0
        self.failed_requests = 0
        self.failover_count = 0

        logger.info(f"Failover manager initialized using {self.config.strategy.value} strategy")

    def set_priorities(self, priorities: Iterable[ProviderPriority]) -> None:
        ordered = sorted(priorities, key=lambda p: p.priority)
        with self._lock:
            self.priorities = ordered
            self._round_robin_index = 0

    def select_provider(self) -> ProviderKind | None:
        """Next provider to try according to the configured strategy."""
        with self._lock:
            strategy = self.config.strategy
            if strategy == FailoverStrategy.PRIORITY:
                return self._select_by_priority()
            elif strategy == FailoverStrategy.ROUND_ROBIN:
                return self._select_round_robin()
            elif strategy == FailoverStrategy.RANDOM:
                return self._select_random()
            elif strategy == FailoverStrategy.WEIGHTED:
                return self._select_weighted()
            raise ValueError(f"Unknown failover strategy: {strategy}")

    def _select_by_priority(self) -> ProviderKind | None:
        for entry in self.priorities:
            if self.health_monitor.is_available(entry.kind):
                return entry.kind
        return None

    def _select_round_robin(self) -> ProviderKind | None:
        count = len(self.priorities)
        if count == 0:
            return None

        start = self._round_robin_index
        for offset in range(count):
            index = (start + offset) % count
            entry = self.priorities[index]
            if self.health_monitor.is_available(entry.kind):
                self._round_robin_index = (index + 1) % count
                return entry.kind
        return None

    def _select_random(self) -> ProviderKind | None:
        available = [p.kind for p in self.priorities if self.health_monitor.is_available(p.kind)]
        if not available:
            return None
        return random.choice(available)

    def _select_weighted(self) -> ProviderKind | None:
        # TODO: weight by recorded response_time_ms once a weighting scheme is agreed.
        if not self._weighted_warned:
            logger.warning("Weighted failover strategy is not implemented, using priority order")
            self._weighted_warned = True
        return self._select_by_priority()

    def execute_with_failover(
        self,
        operation: Callable[[ProviderKind], T],
        latency_of: Callable[[T], int | None] | None = None,
    ) -> T:
        """Run ``operation`` against selected providers until one succeeds.

        Every failure is recorded in the health monitor before the next
        attempt. Raises the last provider error when attempts run out, or
        ``NoProviderAvailableError`` when nothing could be selected.

        The latency recorded on success is the wall time of ``operation``
        unless ``latency_of`` extracts a measured one from the result. Pass it
        when ``operation`` does more than one provider call, e.g. retries
        with backoff.
        """
        with self._lock:
            self.total_requests += 1
        last_error: ProviderError | None = None

        for attempt in range(self.config.max_attempts):
            kind = self.select_provider()
            if kind is None:
                logger.error("No available providers for request")
                break

            logger.debug(f"Attempting request with provider {kind.value} (attempt {attempt + 1})")
            start = time.monotonic()

            try:
                result = operation(kind)
            except ProviderError as e:
                last_error = e
            except Exception as e:
                logger.error(f"Unexpected error from provider {kind.value}: {e}")
                last_error = ProviderError(
                    f"Unexpected provider error: {e}",
                    provider=kind,
                    error_code="unexpected_error",
                )
                last_error.__cause__ = e
            else:
                elapsed_ms = int((time.monotonic() - start) * 1000)
                measured = latency_of(result) if latency_of is not None else None
                if measured is not None:
                    elapsed_ms = measured
                self.health_monitor.record_success(kind, elapsed_ms)
                with self._lock:
                    self.successful_requests += 1
                    if attempt > 0:
                        self.failover_count += 1
                if attempt > 0:
                    logger.info(f"Request succeeded after {attempt} failovers using {kind.value}")
                return result

            self.health_monitor.record_failure(kind, f"{type(last_error).__name__}: {last_error.message}")
            logger.warning(f"Provider {kind.value} failed: {last_error.message}")

        with self._lock:
            self.failed_requests += 1

        if last_error is not None:
            raise last_error
        raise NoProviderAvailableError("No available providers for request")

    def stats(self) -> dict[str, Any]:
        with self._lock:
            success_rate = self.successful_requests / max(self.total_requests, 1)
            return {
                "strategy": self.config.strategy.value,
                "max_attempts": self.config.max_attempts,
                "total_requests": self.total_requests,
                "successful_requests": self.successful_requests,
                "failed_requests": self.failed_requests,
                "success_rate": round(success_rate, 3),
                "failover_count": self.failover_count,
                "providers": [p.kind.value for p in self.priorities],
            }
