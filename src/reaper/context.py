"""Application context.

Owns every stateful component of the router and is passed explicitly to
whatever needs it. Nothing here is module-global.
"""

import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from reaper.auth.vault import Vault, vault_from_settings
from reaper.config import Settings
from reaper.exceptions import ConfigurationError
from reaper.providers.base import AuthenticationError, ChatMessage, CompletionResponse
from reaper.providers.descriptors import ProviderKind, get_descriptor, slug
from reaper.providers.registry import ProviderRegistry
from reaper.resilience.failover import FailoverManager, ProviderPriority
from reaper.resilience.health import HealthMonitor
from reaper.resilience.rate_limiter import RateLimiter, with_retry
from reaper.telemetry.logger import RequestContext, get_logger

logger = get_logger(__name__)


@dataclass
class ReaperContext:
    settings: Settings
    vault: Vault
    registry: ProviderRegistry
    health_monitor: HealthMonitor
    failover: FailoverManager
    rate_limiter: RateLimiter
    sleep: Callable[[float], None] = field(default=time.sleep)

    def chat(
        self,
        messages: Sequence[ChatMessage],
        models: Mapping[ProviderKind, str] | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> CompletionResponse:
        """Route one chat completion through rate limiting, retries and failover.

        ``models`` overrides the model per provider; providers without an
        entry use their descriptor's default model.
        """
        models = dict(models or {})
        messages = list(messages)

        with RequestContext(account=self.settings.default_account) as request:
            self.rate_limiter.acquire()
            logger.info("chat_request", request_id=request.request_id, messages=len(messages))

            def timed_chat(kind: ProviderKind, model: str) -> CompletionResponse:
                start = time.monotonic()
                response = self.registry.chat(
                    kind, messages, model, max_tokens=max_tokens, temperature=temperature
                )
                elapsed_ms = int((time.monotonic() - start) * 1000)
                return response.model_copy(update={"latency_ms": elapsed_ms})

            def call_provider(kind: ProviderKind) -> CompletionResponse:
                model = models.get(kind) or get_descriptor(kind).default_model
                return with_retry(
                    lambda: timed_chat(kind, model),
                    self.rate_limiter.config,
                    sleep=self.sleep,
                )

            try:
                response = self.failover.execute_with_failover(
                    call_provider, latency_of=lambda r: r.latency_ms
                )
            except Exception as e:
                logger.error("chat_failed", error_type=type(e).__name__, error=str(e))
                raise

            logger.info(
                "chat_completed",
                provider=response.provider.value if response.provider else None,
                model=response.model,
                latency_ms=response.latency_ms,
            )
            return response

    def health_report(self) -> list[dict[str, Any]]:
        """One row per registered provider, in failover priority order."""
        ordered = [p.kind for p in self.failover.priorities]
        ordered += [kind for kind in self.registry.registered() if kind not in ordered]

        rows = []
        for kind in ordered:
            check = self.health_monitor.get_check(kind)
            rows.append(
                {
                    "provider": slug(kind),
                    "status": self.health_monitor.get_status(kind).value,
                    "consecutive_failures": check.consecutive_failures if check else 0,
                    "response_time_ms": check.response_time_ms if check else None,
                    "error": check.error_message if check else None,
                }
            )
        return rows

    def close(self) -> None:
        self.registry.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def _register_from_settings(registry: ProviderRegistry, settings: Settings) -> None:
    account = settings.default_account
    keys = settings.provider_api_keys()

    if ProviderKind.AZURE_OPENAI in keys and not settings.has_azure_deployment:
        raise ConfigurationError(
            "AZURE_OPENAI_API_KEY is set but AZURE_OPENAI_ENDPOINT or AZURE_OPENAI_DEPLOYMENT is missing",
            field="azure_openai_endpoint",
        )

    registrations: dict[ProviderKind, Callable[[], Any]] = {
        ProviderKind.OPENAI: lambda: registry.register_openai(account),
        ProviderKind.ANTHROPIC: lambda: registry.register_anthropic(account),
        ProviderKind.XAI: lambda: registry.register_xai(account),
        ProviderKind.GITHUB_COPILOT: lambda: registry.register_github_copilot(account),
    }
    if settings.has_azure_deployment:
        registrations[ProviderKind.AZURE_OPENAI] = lambda: registry.register_azure_openai(
            account,
            endpoint=settings.azure_openai_endpoint,
            deployment=settings.azure_openai_deployment,
            api_version=settings.azure_openai_api_version,
        )

    for kind, register in registrations.items():
        try:
            register()
        except AuthenticationError:
            logger.debug("provider_skipped", provider=slug(kind), reason="no credentials")

    if settings.ollama_enabled:
        registry.register_ollama(settings.ollama_base_url)


def _routing_priorities(settings: Settings, registry: ProviderRegistry) -> list[ProviderPriority]:
    """Configured priorities for registered providers; unranked ones go last."""
    priorities = [p for p in settings.priorities() if registry.has(p.kind)]
    ranked = {p.kind for p in priorities}
    next_rank = max((p.priority for p in priorities), default=0) + 1
    for kind in registry.registered():
        if kind not in ranked:
            priorities.append(ProviderPriority(kind=kind, priority=next_rank))
            next_rank += 1
    return priorities


def build_context(settings: Settings, vault: Vault | None = None) -> ReaperContext:
    """Wire a context from settings, registering every provider with credentials."""
    vault = vault if vault is not None else vault_from_settings(settings)

    registry = ProviderRegistry(vault, timeout=settings.request_timeout)
    _register_from_settings(registry, settings)

    health_monitor = HealthMonitor(settings.health_config())
    failover = FailoverManager(settings.failover_config(), health_monitor)
    failover.set_priorities(_routing_priorities(settings, registry))

    context = ReaperContext(
        settings=settings,
        vault=vault,
        registry=registry,
        health_monitor=health_monitor,
        failover=failover,
        rate_limiter=RateLimiter(settings.rate_limiter_config()),
    )
    logger.info("context_ready", providers=[slug(k) for k in registry.registered()])
    return context
