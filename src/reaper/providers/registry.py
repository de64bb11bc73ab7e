"""Provider registry: one authenticated adapter per provider kind."""

import logging
from typing import TYPE_CHECKING, Dict, List, Optional

from .anthropic_provider import AnthropicProvider
from .base import BaseProvider, ChatMessage, CompletionResponse, ProviderNotRegisteredError
from .descriptors import ProviderKind
from .openai_compatible import (
    AzureOpenAIProvider,
    GitHubCopilotProvider,
    OllamaProvider,
    OpenAIProvider,
    XAIProvider,
)

if TYPE_CHECKING:
    from reaper.auth.vault import Vault

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Keyed lookup plus pass-through dispatch.

    Holds no health or retry state; the failover manager layers that on top.
    """

    def __init__(self, vault: "Vault", timeout: float = 30.0):
        self.vault = vault
        self.timeout = timeout
        self.providers: Dict[ProviderKind, BaseProvider] = {}

    def register(self, provider: BaseProvider) -> BaseProvider:
        """Authenticate the adapter once and make it the handler for its kind."""
        provider.authenticate(self.vault)

        previous = self.providers.get(provider.kind)
        if previous is not None and previous is not provider:
            previous.close()

        self.providers[provider.kind] = provider
        logger.info(f"Registered provider {provider.name}")
        return provider

    def register_openai(self, account: str = "default") -> BaseProvider:
        return self.register(OpenAIProvider(account=account, timeout=self.timeout))

    def register_anthropic(self, account: str = "default") -> BaseProvider:
        return self.register(AnthropicProvider(account=account, timeout=self.timeout))

    def register_xai(self, account: str = "default") -> BaseProvider:
        return self.register(XAIProvider(account=account, timeout=self.timeout))

    def register_azure_openai(
        self,
        account: str,
        endpoint: str,
        deployment: str,
        api_version: str = AzureOpenAIProvider.DEFAULT_API_VERSION,
    ) -> BaseProvider:
        return self.register(
            AzureOpenAIProvider(
                endpoint=endpoint,
                deployment=deployment,
                account=account,
                api_version=api_version,
                timeout=self.timeout,
            )
        )

    def register_github_copilot(self, account: str = "default") -> BaseProvider:
        return self.register(GitHubCopilotProvider(account=account, timeout=self.timeout))

    def register_ollama(self, base_url: Optional[str] = None) -> BaseProvider:
        return self.register(OllamaProvider(base_url=base_url, timeout=self.timeout))

    def get(self, kind: ProviderKind) -> Optional[BaseProvider]:
        return self.providers.get(kind)

    def has(self, kind: ProviderKind) -> bool:
        return kind in self.providers

    def registered(self) -> List[ProviderKind]:
        return list(self.providers)

    def chat(
        self,
        kind: ProviderKind,
        messages: List[ChatMessage],
        model: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> CompletionResponse:
        provider = self.get(kind)
        if provider is None:
            raise ProviderNotRegisteredError(f"Provider {kind.value} is not registered", provider=kind)
        return provider.chat(messages, model, max_tokens=max_tokens, temperature=temperature)

    def close(self) -> None:
        for provider in self.providers.values():
            provider.close()
        self.providers.clear()
