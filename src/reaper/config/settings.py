"""Settings configuration"""
import json
from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from reaper.providers.descriptors import ProviderKind, parse_kind
from reaper.resilience.failover import FailoverConfig, FailoverStrategy, ProviderPriority
from reaper.resilience.health import HealthCheckConfig
from reaper.resilience.rate_limiter import RateLimiterConfig

DEFAULT_PRIORITIES = "anthropic:1,openai:2,xai:3,azure-openai:4,github-copilot:5,ollama:6"


def parse_priorities(value: str) -> List[ProviderPriority]:
    """Parse ``"anthropic:1,openai:2"`` or a JSON list of ``{kind, priority}`` objects.

    Entries without an explicit priority are numbered by position.
    """
    value = value.strip()
    if not value:
        return []

    if value.startswith("["):
        return [
            ProviderPriority(kind=parse_kind(str(item["kind"])), priority=int(item["priority"]))
            for item in json.loads(value)
        ]

    priorities = []
    for position, entry in enumerate(value.split(","), start=1):
        entry = entry.strip()
        if not entry:
            continue
        name, _, rank = entry.partition(":")
        priorities.append(
            ProviderPriority(kind=parse_kind(name), priority=int(rank) if rank else position)
        )
    return priorities


class Settings(BaseSettings):
    """Router settings loaded from the environment and ``.env``"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
        validate_assignment=True,
    )

    # Application
    app_name: str = Field(default="reaper", validation_alias="REAPER_APP_NAME")
    environment: str = Field(default="development", validation_alias="REAPER_ENVIRONMENT")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="REAPER_LOG_LEVEL")
    log_format: str = Field(default="console", validation_alias="REAPER_LOG_FORMAT")

    # Timeouts
    request_timeout: float = Field(default=30.0, validation_alias="REAPER_REQUEST_TIMEOUT", gt=0)

    # Health monitor
    health_check_interval_s: int = Field(default=60, validation_alias="REAPER_HEALTH_CHECK_INTERVAL_S", ge=1)
    health_failure_threshold: int = Field(default=3, validation_alias="REAPER_HEALTH_FAILURE_THRESHOLD", ge=1)
    health_recovery_threshold: int = Field(default=2, validation_alias="REAPER_HEALTH_RECOVERY_THRESHOLD", ge=1)
    health_timeout_ms: int = Field(default=5000, validation_alias="REAPER_HEALTH_TIMEOUT_MS", ge=1)
    health_degraded_threshold_ms: int = Field(
        default=2000, validation_alias="REAPER_HEALTH_DEGRADED_THRESHOLD_MS", ge=0
    )

    # Rate Limiting
    rate_limit_max_tokens: int = Field(default=60, validation_alias="REAPER_RATE_LIMIT_MAX_TOKENS", ge=1)
    rate_limit_refill_rate: float = Field(default=1.0, validation_alias="REAPER_RATE_LIMIT_REFILL_RATE", gt=0)

    # Retry
    retry_max_retries: int = Field(default=3, validation_alias="REAPER_RETRY_MAX_RETRIES", ge=0)
    retry_base_delay_ms: int = Field(default=1000, validation_alias="REAPER_RETRY_BASE_DELAY_MS", ge=0)
    retry_max_delay_ms: int = Field(default=60000, validation_alias="REAPER_RETRY_MAX_DELAY_MS", ge=0)

    # Failover
    failover_strategy: FailoverStrategy = Field(
        default=FailoverStrategy.PRIORITY, validation_alias="REAPER_FAILOVER_STRATEGY"
    )
    failover_max_attempts: int = Field(default=3, validation_alias="REAPER_FAILOVER_MAX_ATTEMPTS", ge=1)
    provider_priorities: str = Field(default=DEFAULT_PRIORITIES, validation_alias="REAPER_PROVIDER_PRIORITIES")

    # Credentials
    vault_namespace: str = Field(default="reaper", validation_alias="REAPER_VAULT_NAMESPACE")
    default_account: str = Field(default="default", validation_alias="REAPER_DEFAULT_ACCOUNT")
    openai_api_key: Optional[SecretStr] = Field(default=None, validation_alias="OPENAI_API_KEY")
    anthropic_api_key: Optional[SecretStr] = Field(default=None, validation_alias="ANTHROPIC_API_KEY")
    xai_api_key: Optional[SecretStr] = Field(default=None, validation_alias="XAI_API_KEY")
    azure_openai_api_key: Optional[SecretStr] = Field(default=None, validation_alias="AZURE_OPENAI_API_KEY")
    github_copilot_token: Optional[SecretStr] = Field(default=None, validation_alias="GITHUB_COPILOT_TOKEN")

    # Provider endpoints
    azure_openai_endpoint: Optional[str] = Field(default=None, validation_alias="AZURE_OPENAI_ENDPOINT")
    azure_openai_deployment: Optional[str] = Field(default=None, validation_alias="AZURE_OPENAI_DEPLOYMENT")
    azure_openai_api_version: str = Field(
        default="2024-02-15-preview", validation_alias="AZURE_OPENAI_API_VERSION"
    )
    ollama_enabled: bool = Field(default=False, validation_alias="REAPER_OLLAMA_ENABLED")
    ollama_base_url: str = Field(default="http://localhost:11434/v1", validation_alias="OLLAMA_BASE_URL")

    @field_validator("provider_priorities")
    @classmethod
    def validate_priorities(cls, v: str) -> str:
        try:
            parse_priorities(v)
        except (ValueError, KeyError, TypeError) as e:
            raise ValueError(f"Invalid provider priorities '{v}': {e}") from e
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return v

    # Properties
    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def has_azure_deployment(self) -> bool:
        return bool(self.azure_openai_endpoint and self.azure_openai_deployment)

    def provider_api_keys(self) -> Dict[ProviderKind, SecretStr]:
        """Configured credentials, keyed by provider."""
        keys = {
            ProviderKind.OPENAI: self.openai_api_key,
            ProviderKind.ANTHROPIC: self.anthropic_api_key,
            ProviderKind.XAI: self.xai_api_key,
            ProviderKind.AZURE_OPENAI: self.azure_openai_api_key,
            ProviderKind.GITHUB_COPILOT: self.github_copilot_token,
        }
        return {kind: secret for kind, secret in keys.items() if secret and secret.get_secret_value()}

    def priorities(self) -> List[ProviderPriority]:
        return parse_priorities(self.provider_priorities)

    def health_config(self) -> HealthCheckConfig:
        return HealthCheckConfig(
            check_interval_s=self.health_check_interval_s,
            failure_threshold=self.health_failure_threshold,
            recovery_threshold=self.health_recovery_threshold,
            timeout_ms=self.health_timeout_ms,
            degraded_threshold_ms=self.health_degraded_threshold_ms,
        )

    def rate_limiter_config(self) -> RateLimiterConfig:
        return RateLimiterConfig(
            max_tokens=self.rate_limit_max_tokens,
            refill_rate=self.rate_limit_refill_rate,
            max_retries=self.retry_max_retries,
            base_delay_ms=self.retry_base_delay_ms,
            max_delay_ms=self.retry_max_delay_ms,
        )

    def failover_config(self) -> FailoverConfig:
        return FailoverConfig(
            strategy=self.failover_strategy,
            max_attempts=self.failover_max_attempts,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
