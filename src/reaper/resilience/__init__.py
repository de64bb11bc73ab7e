from .failover import FailoverConfig, FailoverManager, FailoverStrategy, ProviderPriority
from .health import HealthCheck, HealthCheckConfig, HealthMonitor, HealthStatus
from .rate_limiter import RateLimiter, RateLimiterConfig, RetryContext, with_retry

__all__ = [
    "FailoverConfig",
    "FailoverManager",
    "FailoverStrategy",
    "ProviderPriority",
    "HealthCheck",
    "HealthCheckConfig",
    "HealthMonitor",
    "HealthStatus",
    "RateLimiter",
    "RateLimiterConfig",
    "RetryContext",
    "with_retry",
]
