from .base import (
    AuthenticationError,
    BaseProvider,
    ChatMessage,
    CompletionResponse,
    InvalidRequestError,
    InvalidResponseError,
    NetworkError,
    NoProviderAvailableError,
    ProviderError,
    ProviderNotRegisteredError,
    RateLimitError,
    ServerError,
    TokenUsage,
)
from .descriptors import Capability, ProviderDescriptor, ProviderKind, descriptors, get_descriptor

__all__ = [
    "AuthenticationError",
    "BaseProvider",
    "ChatMessage",
    "CompletionResponse",
    "InvalidRequestError",
    "InvalidResponseError",
    "NetworkError",
    "NoProviderAvailableError",
    "ProviderError",
    "ProviderNotRegisteredError",
    "RateLimitError",
    "ServerError",
    "TokenUsage",
    "Capability",
    "ProviderDescriptor",
    "ProviderKind",
    "descriptors",
    "get_descriptor",
]
