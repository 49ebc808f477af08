"""Pydantic models for vault reference resolution.

All models inherit from :class:`VaultRefBaseModel`, which makes instances
immutable and rejects unknown fields:

- ``SecretReference``: a parsed HashiCorp Vault reference, produced per resolution call
- ``KeyVaultReference``: a parsed Azure Key Vault reference
- ``ResolverOptions``: resolver settings, read-only during resolution

Example:
    >>> options = ResolverOptions(vault_address="https://vault.example.com", timeout=10)
    >>> options.mount_path
    'secret'
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .auth import (
    KUBERNETES_TOKEN_PATH,
    VAULT_ADDR_ENV,
    AuthMethod,
    EnvironmentProbe,
)
from .errors import ConfigurationError

DEFAULT_MOUNT_PATH = "secret"
DEFAULT_KV_VERSION = 2
DEFAULT_TIMEOUT_SECONDS = 30.0


class VaultRefBaseModel(BaseModel):
    """Base model for all vaultref Pydantic models.

    - extra="forbid": Rejects any fields not defined in the model
    - frozen=True: Makes instances immutable so they can be shared across threads
    """

    model_config = ConfigDict(extra="forbid", frozen=True)


class SecretReference(VaultRefBaseModel):
    """A parsed vault reference.

    Attributes:
        store_address: Address of the Vault server (e.g. https://vault.example.com)
        secret_path: Full secret path, mount included (e.g. secret/data/myapp)
        secret_key: Key inside the secret payload
        version: Optional KV v2 secret version
    """

    store_address: str
    secret_path: str
    secret_key: str
    version: int | None = None


class KeyVaultReference(VaultRefBaseModel):
    """A parsed Azure Key Vault reference.

    Attributes:
        vault_uri: Vault endpoint (e.g. https://myvault.vault.azure.net)
        secret_name: Name of the secret in the vault
        version: Optional secret version; None means the latest
    """

    vault_uri: str
    secret_name: str
    version: str | None = None

    @property
    def secret_uri(self) -> str:
        uri = f"{self.vault_uri}/secrets/{self.secret_name}"
        return f"{uri}/{self.version}" if self.version else uri


class ResolverOptions(VaultRefBaseModel):
    """Settings for :class:`~vaultref.resolver.SecretResolver` and the orchestrator.

    Attributes:
        vault_address: Fallback Vault address. If None, ``VAULT_ADDR`` is used.
        auth_method: Explicit auth method. If None, auto-detected from the environment.
        kubernetes_role: Role name that enables Kubernetes auth auto-detection.
        kubernetes_token_path: Service account token file used for Kubernetes auth.
        mount_path: Mount used when the secret path does not name one.
        kv_version: KV engine version (1 or 2). None means auto, which defaults to 2.
        throw_on_resolve_failure: Abort the whole pass on the first failure (True)
            or skip the failing key with a warning (False).
        timeout: Deadline in seconds for a single secret fetch.
        enable_caching: Keep resolved values in memory for the resolver's lifetime.
        namespace: Vault Enterprise namespace.
        azure_credential: Azure ``TokenCredential`` for Key Vault references.
            If None, a ``DefaultAzureCredential`` is created on first use.
        address_precedence: ``"reference"`` uses the address embedded in the
            reference and falls back to the configured one; ``"options"`` makes
            the configured address win.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    vault_address: str | None = None
    auth_method: AuthMethod | None = None
    kubernetes_role: str | None = None
    kubernetes_token_path: str = KUBERNETES_TOKEN_PATH
    mount_path: str = DEFAULT_MOUNT_PATH
    kv_version: Literal[1, 2] | None = None
    throw_on_resolve_failure: bool = True
    timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    enable_caching: bool = True
    namespace: str | None = None
    address_precedence: Literal["reference", "options"] = "reference"
    azure_credential: Any = None

    @field_validator("kv_version", mode="before")
    @classmethod
    def _normalize_kv_version(cls, value: Any) -> Any:
        if isinstance(value, str):
            if value.strip().lower() == "auto":
                return None
            if value.strip().isdigit():
                return int(value)
        return value

    @field_validator("vault_address", "namespace", "kubernetes_role", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def effective_kv_version(self) -> int:
        return self.kv_version or DEFAULT_KV_VERSION

    def configured_vault_address(self, environment: EnvironmentProbe | None = None) -> str | None:
        """Return the configured address, falling back to ``VAULT_ADDR``."""
        if self.vault_address:
            return self.vault_address
        environment = environment or EnvironmentProbe()
        return environment.get(VAULT_ADDR_ENV)

    def effective_vault_address(self, environment: EnvironmentProbe | None = None) -> str:
        """Return the configured address or raise if none can be determined.

        Raises:
            ConfigurationError: If neither ``vault_address`` nor ``VAULT_ADDR`` is set
        """
        address = self.configured_vault_address(environment)
        if not address:
            raise ConfigurationError(
                "Vault address not configured. Set the vault_address option "
                f"or the {VAULT_ADDR_ENV} environment variable."
            )
        return address
