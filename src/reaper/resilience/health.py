"""Provider health tracking derived from observed request outcomes."""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum

from pydantic import BaseModel, Field

from reaper.providers.descriptors import ProviderKind

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    """Health classification of a provider."""

    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class HealthCheck:
    """Latest health observation for one provider."""

    status: HealthStatus
    last_check: float
    consecutive_failures: int = 0
    response_time_ms: int | None = None
    error_message: str | None = None


class HealthCheckConfig(BaseModel):
    """Health monitor configuration."""

    check_interval_s: int = Field(default=60, ge=1)
    failure_threshold: int = Field(default=3, ge=1)
    # Carried for configuration compatibility; no transition reads it.
    recovery_threshold: int = Field(default=2, ge=1)
    timeout_ms: int = Field(default=5000, ge=1)
    degraded_threshold_ms: int = Field(default=2000, ge=0)


class HealthMonitor:
    """Per-provider health state machine.

    ``unknown`` until the first observation. A success moves the provider to
    ``healthy`` (or ``degraded`` when slower than ``degraded_threshold_ms``)
    and clears the failure streak. A failure moves it to ``degraded`` until the
    streak reaches ``failure_threshold``, then ``unhealthy``. Only
    ``unhealthy`` providers are withheld from selection, and a single success
    brings them back.
    """

    def __init__(
        self,
        config: HealthCheckConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or HealthCheckConfig()
        self._clock = clock
        self._checks: dict[ProviderKind, HealthCheck] = {}
        self._lock = threading.Lock()

    def _get_or_create(self, kind: ProviderKind) -> HealthCheck:
        check = self._checks.get(kind)
        if check is None:
            check = HealthCheck(status=HealthStatus.UNKNOWN, last_check=self._clock())
            self._checks[kind] = check
        return check

    def record_success(self, kind: ProviderKind, response_time_ms: int) -> None:
        with self._lock:
            check = self._get_or_create(kind)
            previous = check.status

            check.last_check = self._clock()
            check.consecutive_failures = 0
            check.response_time_ms = response_time_ms

            if response_time_ms > self.config.degraded_threshold_ms:
                check.status = HealthStatus.DEGRADED
            else:
                check.status = HealthStatus.HEALTHY
            current = check.status

        if previous != current:
            logger.info(
                f"Provider {kind.value} health {previous.value} -> {current.value}",
                extra={"provider": kind.value, "response_time_ms": response_time_ms},
            )

    def record_failure(self, kind: ProviderKind, error_message: str) -> None:
        with self._lock:
            check = self._get_or_create(kind)
            previous = check.status

            check.last_check = self._clock()
            check.consecutive_failures += 1
            check.error_message = str(error_message)

            if check.consecutive_failures >= self.config.failure_threshold:
                check.status = HealthStatus.UNHEALTHY
            else:
                check.status = HealthStatus.DEGRADED
            failures = check.consecutive_failures
            current = check.status

        if previous != current:
            logger.warning(
                f"Provider {kind.value} health {previous.value} -> {current.value}",
                extra={
                    "provider": kind.value,
                    "consecutive_failures": failures,
                    "error_message": error_message,
                },
            )

    def get_status(self, kind: ProviderKind) -> HealthStatus:
        with self._lock:
            check = self._checks.get(kind)
            return check.status if check else HealthStatus.UNKNOWN

    def is_available(self, kind: ProviderKind) -> bool:
        """Whether the provider may be chosen as a failover candidate."""
        return self.get_status(kind) != HealthStatus.UNHEALTHY

    def get_healthy_providers(self) -> list[ProviderKind]:
        with self._lock:
            return [
                kind
                for kind, check in self._checks.items()
                if check.status == HealthStatus.HEALTHY
            ]

    def get_check(self, kind: ProviderKind) -> HealthCheck | None:
        """Copy of the stored observation, or None if never observed."""
        with self._lock:
            check = self._checks.get(kind)
            return replace(check) if check else None

    def snapshot(self) -> dict[ProviderKind, HealthCheck]:
        with self._lock:
            return {kind: replace(check) for kind, check in self._checks.items()}
