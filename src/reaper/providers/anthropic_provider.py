"""
Anthropic Messages API provider.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx
from anthropic import Anthropic, AnthropicError, APIConnectionError, APIStatusError

from reaper.auth.vault import SecretNotFoundError, Vault, provider_secret_ref

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


class AnthropicProvider(BaseProvider):
    """Anthropic provider implementation."""

    kind = ProviderKind.ANTHROPIC
    DEFAULT_MAX_TOKENS = 1024

    def __init__(
        self,
        account: str = "default",
        timeout: float = 30.0,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize Anthropic provider.

        Args:
            account: Vault account holding the API key
            timeout: Request timeout in seconds
            base_url: Override for the API endpoint
            http_client: Preconfigured HTTP client, mainly for tests
        """
        super().__init__(account=account, timeout=timeout)
        self.base_url = base_url
        self.http_client = http_client
        self.vault_ref = provider_secret_ref(self.kind, account)
        self.client: Optional[Anthropic] = None

    def authenticate(self, vault: Vault) -> None:
        try:
            api_key = vault.fetch(self.vault_ref).decode("utf-8")
        except SecretNotFoundError as e:
            raise AuthenticationError(
                f"No credentials for {self.name} (account: {self.account})", provider=self.kind
            ) from e

        self.client = Anthropic(
            api_key=api_key,
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=0,  # We handle retries ourselves
            http_client=self.http_client,
        )
        logger.info(f"Authenticated provider {self.name} (account: {self.account})")

    def chat(
        self,
        messages: List[ChatMessage],
        model: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> CompletionResponse:
        """
        Generate a chat completion using Anthropic.

        System messages are joined into the top-level ``system`` prompt, the
        Messages API does not accept them inline.
        """
        if self.client is None:
            raise AuthenticationError(f"Provider {self.name} is not authenticated", provider=self.kind)

        system_parts = [m.content for m in messages if m.role == "system"]
        conversation = [
            {"role": m.role, "content": m.content} for m in messages if m.role != "system"
        ]

        self._log_request(model, messages, temperature=temperature, max_tokens=max_tokens)

        create_kwargs: Dict[str, Any] = {
            "model": model,
            "messages": conversation,
            "max_tokens": max_tokens or self.DEFAULT_MAX_TOKENS,
        }
        if system_parts:
            create_kwargs["system"] = "\n\n".join(system_parts)
        if temperature is not None:
            create_kwargs["temperature"] = temperature

        start_time = time.time()
        try:
            message = self.client.messages.create(**create_kwargs)
        except APIStatusError as e:
            error = map_http_error(e.status_code, f"{self.name}: {e.message}", provider=self.kind)
            self._log_error(error, model)
            raise error from e
        except APIConnectionError as e:
            error = NetworkError(f"Failed to reach {self.name}: {e}", provider=self.kind)
            self._log_error(error, model)
            raise error from e
        except AnthropicError as e:
            error = InvalidResponseError(f"{self.name} returned an unreadable response: {e}", provider=self.kind)
            self._log_error(error, model)
            raise error from e

        text_blocks = [block.text for block in (message.content or []) if getattr(block, "type", None) == "text"]
        if not text_blocks:
            raise InvalidResponseError(f"{self.name} response had no text content", provider=self.kind)

        usage = None
        if message.usage:
            usage = TokenUsage(
                prompt_tokens=message.usage.input_tokens,
                completion_tokens=message.usage.output_tokens,
                total_tokens=message.usage.input_tokens + message.usage.output_tokens,
            )

        response = CompletionResponse(
            id=message.id,
            model=message.model,
            content="".join(text_blocks),
            finish_reason=message.stop_reason,
            usage=usage,
            provider=self.kind,
        )
        self._log_response(response, time.time() - start_time)
        return response

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None
