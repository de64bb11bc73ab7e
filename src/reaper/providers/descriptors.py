"""Static provider descriptor table."""

from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class ProviderKind(str, Enum):
    """Supported backend providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    XAI = "xai"
    AZURE_OPENAI = "azure_openai"
    GITHUB_COPILOT = "github_copilot"
    OLLAMA = "ollama"


class Capability(str, Enum):
    """What a provider can be used for."""

    COMPLETION = "completion"
    CHAT = "chat"
    AGENT = "agent"


class ProviderDescriptor(BaseModel):
    """Display metadata, capabilities and default models for one provider."""

    model_config = ConfigDict(frozen=True)

    kind: ProviderKind
    slug: str = Field(..., description="CLI/vault identifier, dash separated")
    display_name: str
    config_key: str = Field(..., description="Settings key, underscore separated")
    capabilities: Tuple[Capability, ...] = (Capability.COMPLETION, Capability.CHAT)
    default_models: Tuple[str, ...] = ()
    variants: Tuple[str, ...] = ()

    @property
    def default_model(self) -> Optional[str]:
        return self.default_models[0] if self.default_models else None

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities


_DESCRIPTORS: Tuple[ProviderDescriptor, ...] = (
    ProviderDescriptor(
        kind=ProviderKind.OPENAI,
        slug="openai",
        display_name="OpenAI",
        config_key="openai",
        default_models=("gpt-4o", "gpt-4-turbo", "gpt-3.5-turbo"),
    ),
    ProviderDescriptor(
        kind=ProviderKind.ANTHROPIC,
        slug="anthropic",
        display_name="Anthropic Claude",
        config_key="anthropic",
        default_models=("claude-3-5-sonnet-20241022", "claude-3-opus-20240229"),
    ),
    ProviderDescriptor(
        kind=ProviderKind.XAI,
        slug="xai",
        display_name="xAI Grok",
        config_key="xai",
        default_models=("grok-2",),
    ),
    ProviderDescriptor(
        kind=ProviderKind.AZURE_OPENAI,
        slug="azure-openai",
        display_name="Azure OpenAI",
        config_key="azure_openai",
        default_models=("gpt-4o",),
    ),
    ProviderDescriptor(
        kind=ProviderKind.GITHUB_COPILOT,
        slug="github-copilot",
        display_name="GitHub Copilot",
        config_key="github_copilot",
        capabilities=(Capability.COMPLETION, Capability.CHAT, Capability.AGENT),
        default_models=("gpt-4.1",),
        variants=("copilot-gpt-4.1",),
    ),
    ProviderDescriptor(
        kind=ProviderKind.OLLAMA,
        slug="ollama",
        display_name="Ollama (local)",
        config_key="ollama",
        default_models=("llama3:latest",),
    ),
)

_BY_KIND: Dict[ProviderKind, ProviderDescriptor] = {d.kind: d for d in _DESCRIPTORS}
_BY_SLUG: Dict[str, ProviderDescriptor] = {d.slug: d for d in _DESCRIPTORS}


def descriptors() -> Tuple[ProviderDescriptor, ...]:
    """All descriptors, in declaration order."""
    return _DESCRIPTORS


def get_descriptor(kind: ProviderKind) -> ProviderDescriptor:
    return _BY_KIND[ProviderKind(kind)]


def slug(kind: ProviderKind) -> str:
    return get_descriptor(kind).slug


def find_by_slug(value: str) -> Optional[ProviderDescriptor]:
    """Look up a descriptor by slug, config key or enum value."""
    value = value.strip().lower()
    if value in _BY_SLUG:
        return _BY_SLUG[value]
    for descriptor in _DESCRIPTORS:
        if value in (descriptor.config_key, descriptor.kind.value):
            return descriptor
    return None


def parse_kind(value: str) -> ProviderKind:
    """Parse a user-supplied provider name, raising ``ValueError`` if unknown."""
    descriptor = find_by_slug(value)
    if descriptor is None:
        known = ", ".join(d.slug for d in _DESCRIPTORS)
        raise ValueError(f"Unknown provider '{value}'. Available providers: {known}")
    return descriptor.kind
