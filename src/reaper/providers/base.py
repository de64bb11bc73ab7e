"""
Base provider abstract class and common models for AI providers.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .descriptors import ProviderKind, get_descriptor

if TYPE_CHECKING:
    from reaper.auth.vault import Vault

logger = logging.getLogger(__name__)


class ChatMessage(BaseModel):
    """Represents a single chat message."""

    role: str = Field(..., description="Message role (system, user, assistant)")
    content: str = Field(..., description="Message content")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "role": "user",
                "content": "Hello, how can you help me today?",
            }
        },
    )


class TokenUsage(BaseModel):
    """Token usage statistics."""

    prompt_tokens: int = Field(default=0, description="Number of tokens in the prompt")
    completion_tokens: int = Field(default=0, description="Number of tokens in the completion")
    total_tokens: int = Field(default=0, description="Total number of tokens")


class CompletionResponse(BaseModel):
    """Uniform completion result returned by every adapter."""

    id: str = Field(..., description="Provider-assigned response ID")
    model: str = Field(..., description="Model used for generation")
    content: str = Field(..., description="Response content")
    finish_reason: Optional[str] = Field(default=None, description="Reason for completion")
    usage: Optional[TokenUsage] = Field(default=None, description="Token usage statistics")
    provider: Optional[ProviderKind] = Field(default=None, description="Provider that answered")
    latency_ms: Optional[int] = Field(default=None, description="Duration of the successful provider call")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "chatcmpl-123",
                "model": "gpt-4o",
                "content": "I can help you with various tasks...",
                "finish_reason": "stop",
                "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
                "provider": "openai",
            }
        }
    )


class ProviderError(Exception):
    """Base exception for provider-related errors."""

    default_error_code = "provider_error"
    default_retryable = False

    def __init__(
        self,
        message: str,
        provider: Optional[ProviderKind] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict] = None,
        error_code: Optional[str] = None,
        retryable: Optional[bool] = None,
    ):
        """
        Initialize provider error.

        Args:
            message: Error message
            provider: Provider kind
            status_code: HTTP status code if applicable
            details: Additional error details
            error_code: Error code for categorization
            retryable: Whether the error is retryable; defaults per error class
        """
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code
        self.details = details or {}
        self.error_code = error_code or self.default_error_code
        self.retryable = self.default_retryable if retryable is None else retryable
        self.timestamp = datetime.now(timezone.utc)


class AuthenticationError(ProviderError):
    """Credentials missing or rejected by the provider."""

    default_error_code = "authentication_failed"


class RateLimitError(ProviderError):
    """Rate limit exceeded error."""

    default_error_code = "rate_limited"
    default_retryable = True

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class InvalidRequestError(ProviderError):
    """The provider rejected the request itself (4xx other than auth/rate limit)."""

    default_error_code = "invalid_request"


class ServerError(ProviderError):
    """Provider-side failure (5xx)."""

    default_error_code = "server_error"
    default_retryable = True


class NetworkError(ProviderError):
    """Transport failure: connection refused, timeout, unexpected status."""

    default_error_code = "network_error"
    default_retryable = True


class InvalidResponseError(ProviderError):
    """The provider answered with a payload that could not be parsed."""

    default_error_code = "invalid_response"


class NoProviderAvailableError(ProviderError):
    """No provider could be selected for the request."""

    default_error_code = "no_provider_available"


class ProviderNotRegisteredError(ProviderError):
    """Dispatch was requested for a provider kind with no registered adapter."""

    default_error_code = "provider_not_registered"


RETRYABLE_ERRORS = (RateLimitError, ServerError, NetworkError)


def is_retryable(error: BaseException) -> bool:
    """Whether ``with_retry`` should try the same provider again."""
    return isinstance(error, RETRYABLE_ERRORS)


def map_http_error(
    status_code: int, message: str, provider: Optional[ProviderKind] = None
) -> ProviderError:
    """Map an HTTP status code onto the provider error taxonomy."""
    if status_code in (401, 403):
        error_cls = AuthenticationError
    elif status_code == 429:
        error_cls = RateLimitError
    elif 400 <= status_code < 500:
        error_cls = InvalidRequestError
    elif 500 <= status_code < 600:
        error_cls = ServerError
    else:
        error_cls = NetworkError
    return error_cls(message, provider=provider, status_code=status_code)


class BaseProvider(ABC):
    """Abstract base class for AI providers."""

    kind: ProviderKind

    def __init__(self, account: str = "default", timeout: float = 30.0):
        """
        Initialize the provider.

        Args:
            account: Vault account the credentials are stored under
            timeout: Request timeout in seconds
        """
        self.account = account
        self.timeout = timeout
        self.descriptor = get_descriptor(self.kind)
        self.name = self.descriptor.slug

    @abstractmethod
    def authenticate(self, vault: "Vault") -> None:
        """
        Load credentials from the vault. Called once at registration.

        Raises:
            AuthenticationError: If the credentials cannot be loaded
        """

    @abstractmethod
    def chat(
        self,
        messages: List[ChatMessage],
        model: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> CompletionResponse:
        """
        Generate a chat completion.

        Args:
            messages: List of chat messages
            model: Model identifier
            max_tokens: Maximum tokens in response
            temperature: Temperature for sampling

        Returns:
            CompletionResponse: The completion response

        Raises:
            ProviderError: If an error occurs during generation
        """

    def close(self) -> None:
        """Release any held HTTP resources."""

    def _log_request(self, model: str, messages: List[ChatMessage], **kwargs: Any) -> None:
        logger.debug(
            f"Provider {self.name} request",
            extra={
                "provider": self.name,
                "model": model,
                "message_count": len(messages),
                "temperature": kwargs.get("temperature"),
                "max_tokens": kwargs.get("max_tokens"),
            },
        )

    def _log_response(self, response: CompletionResponse, duration: Optional[float] = None) -> None:
        logger.debug(
            f"Provider {self.name} response",
            extra={
                "provider": self.name,
                "model": response.model,
                "response_id": response.id,
                "duration": duration,
                "finish_reason": response.finish_reason,
            },
        )

    def _log_error(self, error: Exception, model: Optional[str] = None) -> None:
        logger.warning(
            f"Provider {self.name} error",
            extra={
                "provider": self.name,
                "model": model,
                "error_type": type(error).__name__,
                "error_message": str(error),
            },
        )
