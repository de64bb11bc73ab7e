"""
OpenAI-compatible providers: OpenAI, xAI, Azure OpenAI, GitHub Copilot and Ollama.

All of them speak the chat completions API, so they share one sync client
wrapper and one error mapping. Retries are disabled in the SDK; retrying
and failover are handled by the resilience layer.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx
from openai import APIConnectionError, APIStatusError, AzureOpenAI, OpenAI, OpenAIError

from reaper.auth.vault import Scope, SecretNotFoundError, Vault, provider_secret_ref

from .base import (
    AuthenticationError,
    BaseProvider,
    ChatMessage,
    CompletionResponse,
    InvalidResponseError,
    NetworkError,
    TokenUsage,
    map_http_error,
)
from .descriptors import ProviderKind

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(BaseProvider):
    """Shared implementation for chat-completions style APIs."""

    kind = ProviderKind.OPENAI
    base_url: Optional[str] = None
    secret_scope = Scope.API_KEY
    requires_credentials = True

    def __init__(
        self,
        account: str = "default",
        timeout: float = 30.0,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        super().__init__(account=account, timeout=timeout)
        if base_url:
            self.base_url = base_url
        self.vault_ref = provider_secret_ref(self.kind, account, self.secret_scope)
        self.http_client = http_client
        self.client: Optional[OpenAI] = None

    def authenticate(self, vault: Vault) -> None:
        api_key = self._load_secret(vault)
        self.client = self._build_client(api_key)
        logger.info(f"Authenticated provider {self.name} (account: {self.account})")

    def _load_secret(self, vault: Vault) -> str:
        try:
            return vault.fetch(self.vault_ref).decode("utf-8")
        except SecretNotFoundError as e:
            raise AuthenticationError(
                f"No credentials for {self.name} (account: {self.account})", provider=self.kind
            ) from e

    def _build_client(self, api_key: str) -> OpenAI:
        return OpenAI(
            api_key=api_key,
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=0,
            default_headers=self._default_headers(),
            http_client=self.http_client,
        )

    def _default_headers(self) -> Optional[Dict[str, str]]:
        return None

    def _resolve_model(self, model: str) -> str:
        return model

    def chat(
        self,
        messages: List[ChatMessage],
        model: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> CompletionResponse:
        if self.client is None:
            raise AuthenticationError(f"Provider {self.name} is not authenticated", provider=self.kind)

        self._log_request(model, messages, temperature=temperature, max_tokens=max_tokens)

        # Build kwargs to avoid passing None values
        create_kwargs: Dict[str, Any] = {
            "model": self._resolve_model(model),
            "messages": [{"role": m.role, "content": m.content} for m in messages],
        }
        if max_tokens is not None:
            create_kwargs["max_tokens"] = max_tokens
        if temperature is not None:
            create_kwargs["temperature"] = temperature

        start_time = time.time()
        try:
            completion = self.client.chat.completions.create(**create_kwargs)
        except APIStatusError as e:
            error = map_http_error(e.status_code, f"{self.name}: {e.message}", provider=self.kind)
            self._log_error(error, model)
            raise error from e
        except APIConnectionError as e:
            error = NetworkError(f"Failed to reach {self.name}: {e}", provider=self.kind)
            self._log_error(error, model)
            raise error from e
        except OpenAIError as e:
            error = InvalidResponseError(f"{self.name} returned an unreadable response: {e}", provider=self.kind)
            self._log_error(error, model)
            raise error from e

        response = self._parse_completion(completion)
        self._log_response(response, time.time() - start_time)
        return response

    def _parse_completion(self, completion: Any) -> CompletionResponse:
        try:
            choice = completion.choices[0]
            content = choice.message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise InvalidResponseError(f"{self.name} response had no choices", provider=self.kind) from e

        if content is None:
            raise InvalidResponseError(f"{self.name} response had no content", provider=self.kind)

        usage = None
        if getattr(completion, "usage", None):
            usage = TokenUsage(
                prompt_tokens=completion.usage.prompt_tokens or 0,
                completion_tokens=completion.usage.completion_tokens or 0,
                total_tokens=completion.usage.total_tokens or 0,
            )

        return CompletionResponse(
            id=completion.id or "",
            model=completion.model or "",
            content=content,
            finish_reason=choice.finish_reason,
            usage=usage,
            provider=self.kind,
        )

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None


class OpenAIProvider(OpenAICompatibleProvider):
    """OpenAI platform API."""

    kind = ProviderKind.OPENAI


class XAIProvider(OpenAICompatibleProvider):
    """xAI Grok API."""

    kind = ProviderKind.XAI
    base_url = "https://api.x.ai/v1"


class OllamaProvider(OpenAICompatibleProvider):
    """Local Ollama server. No authentication required."""

    kind = ProviderKind.OLLAMA
    base_url = "http://localhost:11434/v1"
    requires_credentials = False

    def authenticate(self, vault: Vault) -> None:
        # The SDK insists on a key; Ollama ignores it.
        self.client = self._build_client("ollama")
        logger.info(f"Registered local provider {self.name} at {self.base_url}")


class GitHubCopilotProvider(OpenAICompatibleProvider):
    """GitHub Copilot chat API, authenticated with a device-flow access token."""

    kind = ProviderKind.GITHUB_COPILOT
    base_url = "https://api.githubcopilot.com"
    secret_scope = Scope.ACCESS_TOKEN

    EDITOR_VERSION = "vscode/1.95.0"
    INTEGRATION_ID = "vscode-chat"

    def _default_headers(self) -> Optional[Dict[str, str]]:
        return {
            "Editor-Version": self.EDITOR_VERSION,
            "Copilot-Integration-Id": self.INTEGRATION_ID,
        }

    def _resolve_model(self, model: str) -> str:
        # Variant names are accepted on the CLI; the API wants the bare model.
        prefix = "copilot-"
        return model[len(prefix):] if model.startswith(prefix) else model


class AzureOpenAIProvider(OpenAICompatibleProvider):
    """Azure OpenAI. The deployment, not the model argument, picks the model."""

    kind = ProviderKind.AZURE_OPENAI
    DEFAULT_API_VERSION = "2024-02-15-preview"

    def __init__(
        self,
        endpoint: str,
        deployment: str,
        account: str = "default",
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        super().__init__(account=account, timeout=timeout, http_client=http_client)
        self.endpoint = endpoint
        self.deployment = deployment
        self.api_version = api_version

    def _build_client(self, api_key: str) -> OpenAI:
        return AzureOpenAI(
            api_key=api_key,
            azure_endpoint=self.endpoint,
            azure_deployment=self.deployment,
            api_version=self.api_version,
            timeout=self.timeout,
            max_retries=0,
            http_client=self.http_client,
        )

    def _resolve_model(self, model: str) -> str:
        return self.deployment


__all__ = [
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "XAIProvider",
    "OllamaProvider",
    "GitHubCopilotProvider",
    "AzureOpenAIProvider",
]
