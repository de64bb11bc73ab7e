"""Tests for the provider health monitor."""

import threading

import pytest

from reaper.providers.descriptors import ProviderKind
from reaper.resilience.health import HealthCheckConfig, HealthMonitor, HealthStatus

OPENAI = ProviderKind.OPENAI
ANTHROPIC = ProviderKind.ANTHROPIC


@pytest.fixture
def monitor(fake_clock):
    return HealthMonitor(HealthCheckConfig(failure_threshold=3, degraded_threshold_ms=2000), clock=fake_clock)


class TestHealthTransitions:
    """Test status derivation"""

    def test_unobserved_provider_is_unknown_and_available(self, monitor):
        assert monitor.get_status(OPENAI) == HealthStatus.UNKNOWN
        assert monitor.is_available(OPENAI)
        assert monitor.get_check(OPENAI) is None

    def test_fast_success_is_healthy(self, monitor):
        monitor.record_success(OPENAI, 150)
        assert monitor.get_status(OPENAI) == HealthStatus.HEALTHY

    def test_slow_success_is_degraded(self, monitor):
        monitor.record_success(OPENAI, 2500)
        assert monitor.get_status(OPENAI) == HealthStatus.DEGRADED
        assert monitor.is_available(OPENAI)

    def test_success_at_threshold_is_healthy(self, monitor):
        monitor.record_success(OPENAI, 2000)
        assert monitor.get_status(OPENAI) == HealthStatus.HEALTHY

    def test_failures_below_threshold_degrade(self, monitor):
        monitor.record_failure(OPENAI, "timeout")
        monitor.record_failure(OPENAI, "timeout")
        assert monitor.get_status(OPENAI) == HealthStatus.DEGRADED
        assert monitor.is_available(OPENAI)

    def test_failures_at_threshold_mark_unhealthy(self, monitor):
        for _ in range(3):
            monitor.record_failure(OPENAI, "server error")
        assert monitor.get_status(OPENAI) == HealthStatus.UNHEALTHY
        assert not monitor.is_available(OPENAI)

    def test_further_failures_stay_unhealthy(self, monitor):
        for _ in range(5):
            monitor.record_failure(OPENAI, "server error")
        check = monitor.get_check(OPENAI)
        assert check.status == HealthStatus.UNHEALTHY
        assert check.consecutive_failures == 5

    def test_single_success_recovers_unhealthy_provider(self, monitor):
        for _ in range(4):
            monitor.record_failure(OPENAI, "down")
        monitor.record_success(OPENAI, 100)

        check = monitor.get_check(OPENAI)
        assert check.status == HealthStatus.HEALTHY
        assert check.consecutive_failures == 0

    def test_error_message_replaced_on_each_failure(self, monitor):
        monitor.record_failure(OPENAI, "first")
        monitor.record_failure(OPENAI, "second")
        assert monitor.get_check(OPENAI).error_message == "second"

    def test_success_keeps_last_error_message(self, monitor):
        monitor.record_failure(OPENAI, "boom")
        monitor.record_success(OPENAI, 50)
        check = monitor.get_check(OPENAI)
        assert check.error_message == "boom"
        assert check.response_time_ms == 50

    def test_last_check_uses_clock(self, monitor, fake_clock):
        monitor.record_success(OPENAI, 10)
        fake_clock.advance(30)
        monitor.record_failure(OPENAI, "late")
        assert monitor.get_check(OPENAI).last_check == fake_clock.now


class TestHealthQueries:
    """Test read accessors"""

    def test_get_check_returns_copy(self, monitor):
        monitor.record_success(OPENAI, 10)
        check = monitor.get_check(OPENAI)
        check.consecutive_failures = 99
        assert monitor.get_check(OPENAI).consecutive_failures == 0

    def test_healthy_providers_excludes_degraded(self, monitor):
        monitor.record_success(OPENAI, 10)
        monitor.record_success(ANTHROPIC, 10)
        monitor.record_failure(ANTHROPIC, "oops")
        assert monitor.get_healthy_providers() == [OPENAI]

    def test_snapshot(self, monitor):
        monitor.record_success(OPENAI, 10)
        monitor.record_failure(ANTHROPIC, "oops")
        snapshot = monitor.snapshot()
        assert set(snapshot) == {OPENAI, ANTHROPIC}
        assert snapshot[ANTHROPIC].status == HealthStatus.DEGRADED

    def test_concurrent_failures_are_all_counted(self):
        monitor = HealthMonitor(HealthCheckConfig(failure_threshold=1000))

        def fail_many():
            for _ in range(100):
                monitor.record_failure(OPENAI, "x")

        threads = [threading.Thread(target=fail_many) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert monitor.get_check(OPENAI).consecutive_failures == 800
