from .vault import (
    MemoryVault,
    Scope,
    SecretNotFoundError,
    SecretRef,
    Vault,
    VaultError,
    provider_secret_ref,
    vault_from_settings,
)

__all__ = [
    "MemoryVault",
    "Scope",
    "SecretNotFoundError",
    "SecretRef",
    "Vault",
    "VaultError",
    "provider_secret_ref",
    "vault_from_settings",
]
