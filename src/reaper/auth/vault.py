"""Credential vault contract and in-memory backend."""

import logging
import threading
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional, Protocol

from pydantic import BaseModel, ConfigDict

from reaper.providers.descriptors import ProviderKind, slug

if TYPE_CHECKING:
    from reaper.config.settings import Settings

logger = logging.getLogger(__name__)


class VaultError(Exception):
    """Base exception for vault errors."""


class SecretNotFoundError(VaultError):
    """No secret stored under the requested reference."""


class Scope(str, Enum):
    """Kind of secret stored for a provider account."""

    API_KEY = "api_key"
    CLIENT_SECRET = "client_secret"
    ACCESS_TOKEN = "access_token"
    REFRESH_TOKEN = "refresh_token"


class SecretRef(BaseModel):
    """Address of one stored secret."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderKind
    account: str = "default"
    scope: Scope = Scope.API_KEY
    variant: Optional[str] = None

    def format_key(self, namespace: str) -> str:
        parts = [namespace, slug(self.provider), self.account]
        if self.variant:
            parts.append(self.variant)
        parts.append(self.scope.value)
        return "/".join(parts)


def provider_secret_ref(
    kind: ProviderKind,
    account: str = "default",
    scope: Scope = Scope.API_KEY,
    variant: Optional[str] = None,
) -> SecretRef:
    return SecretRef(provider=kind, account=account, scope=scope, variant=variant)


class Vault(Protocol):
    """What adapters need from a credential store."""

    def fetch(self, ref: SecretRef) -> bytes:
        """Return the secret, raising ``SecretNotFoundError`` if absent."""
        ...


class MemoryVault:
    """Process-local vault backend, used for tests and env-provided keys."""

    def __init__(self, namespace: str = "reaper"):
        self.namespace = namespace
        self._secrets: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def store(self, ref: SecretRef, value: bytes | str) -> None:
        if isinstance(value, str):
            value = value.encode("utf-8")
        with self._lock:
            self._secrets[ref.format_key(self.namespace)] = bytes(value)

    def fetch(self, ref: SecretRef) -> bytes:
        key = ref.format_key(self.namespace)
        with self._lock:
            try:
                return self._secrets[key]
            except KeyError:
                raise SecretNotFoundError(f"No secret stored at {key}") from None

    def delete(self, ref: SecretRef) -> None:
        with self._lock:
            self._secrets.pop(ref.format_key(self.namespace), None)

    def exists(self, ref: SecretRef) -> bool:
        with self._lock:
            return ref.format_key(self.namespace) in self._secrets


def vault_from_settings(settings: "Settings") -> MemoryVault:
    """Seed a memory vault with the provider keys found in settings."""
    vault = MemoryVault(namespace=settings.vault_namespace)
    account = settings.default_account

    for kind, secret in settings.provider_api_keys().items():
        scope = Scope.ACCESS_TOKEN if kind == ProviderKind.GITHUB_COPILOT else Scope.API_KEY
        vault.store(provider_secret_ref(kind, account, scope), secret.get_secret_value())
        logger.debug(f"Loaded credentials for {slug(kind)} from settings")

    return vault
