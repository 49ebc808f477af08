"""
Authentication methods for HashiCorp Vault and Azure Key Vault.

HashiCorp Vault supports three strategies, and the set is closed:

- ``TokenAuthMethod``: a Vault token
- ``AppRoleAuthMethod``: an AppRole role-id / secret-id pair
- ``KubernetesAuthMethod``: a Kubernetes role name plus the pod's service account token

Azure Key Vault uses ``AzureCredentialAuthMethod``, an azure-identity credential.

Auto-detection reads an :class:`EnvironmentProbe` rather than ``os.environ``
directly, so callers (and tests) can hand in any environment they like.

Environment slots:

- ``VAULT_ADDR``: Vault server address
- ``VAULT_TOKEN``: token for token auth
- ``VAULT_ROLE_ID`` / ``VAULT_SECRET_ID``: AppRole credentials
- ``/var/run/secrets/kubernetes.io/serviceaccount/token``: Kubernetes service account token
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from azure.identity import DefaultAzureCredential

from .errors import ArgumentError, ConfigurationError

if TYPE_CHECKING:
    from .models import ResolverOptions

logger = logging.getLogger(__name__)

VAULT_ADDR_ENV = "VAULT_ADDR"
VAULT_TOKEN_ENV = "VAULT_TOKEN"
VAULT_ROLE_ID_ENV = "VAULT_ROLE_ID"
VAULT_SECRET_ID_ENV = "VAULT_SECRET_ID"
KUBERNETES_TOKEN_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/token"

DEFAULT_APPROLE_MOUNT = "approle"
DEFAULT_KUBERNETES_MOUNT = "kubernetes"


class EnvironmentProbe:
    """Read-only view of the process environment and local files.

    Args:
        environ: Mapping to read variables from. Defaults to ``os.environ``.

    Example:
        >>> probe = EnvironmentProbe({"VAULT_TOKEN": "s.abc"})
        >>> probe.get("VAULT_TOKEN")
        's.abc'
    """

    def __init__(self, environ: Mapping[str, str] | None = None):
        self._environ = environ if environ is not None else os.environ

    def get(self, name: str) -> str | None:
        """Return the variable's value, or None when it is unset or blank."""
        value = self._environ.get(name)
        if value is None or not value.strip():
            return None
        return value

    def read_file(self, path: str | Path) -> str | None:
        """Return the stripped file content, or None when it cannot be read."""
        try:
            return Path(path).read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Could not read {path}: {e}")
            return None


def _require(value: str | None, what: str) -> str:
    if value is None or not value.strip():
        raise ArgumentError(f"{what} cannot be null or empty.")
    return value


@dataclass(frozen=True)
class AuthDescriptor:
    """Credential handle consumed by a store client constructor.

    ``credentials`` is kept out of the repr so descriptors can be logged.
    """

    method: str
    mount_point: str | None = None
    credentials: Mapping[str, Any] = field(default_factory=dict, repr=False)


class AuthMethod(ABC):
    """Base class for Vault authentication strategies."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier of the strategy."""

    @abstractmethod
    def auth_descriptor(self) -> AuthDescriptor:
        """Return the descriptor a store client authenticates with."""


@dataclass(frozen=True)
class TokenAuthMethod(AuthMethod):
    token: str = field(repr=False)

    def __post_init__(self) -> None:
        _require(self.token, "Token")

    @property
    def name(self) -> str:
        return "token"

    @classmethod
    def from_environment(cls, environment: EnvironmentProbe | None = None) -> TokenAuthMethod:
        """Build from ``VAULT_TOKEN``.

        Raises:
            ConfigurationError: If ``VAULT_TOKEN`` is not set
        """
        method = cls.try_from_environment(environment)
        if method is None:
            raise ConfigurationError(f"{VAULT_TOKEN_ENV} environment variable is not set.")
        return method

    @classmethod
    def try_from_environment(
        cls, environment: EnvironmentProbe | None = None
    ) -> TokenAuthMethod | None:
        environment = environment or EnvironmentProbe()
        token = environment.get(VAULT_TOKEN_ENV)
        return cls(token) if token else None

    def auth_descriptor(self) -> AuthDescriptor:
        return AuthDescriptor(method=self.name, credentials={"token": self.token})


@dataclass(frozen=True)
class AppRoleAuthMethod(AuthMethod):
    role_id: str
    secret_id: str = field(repr=False)
    mount_point: str = DEFAULT_APPROLE_MOUNT

    def __post_init__(self) -> None:
        _require(self.role_id, "Role ID")
        _require(self.secret_id, "Secret ID")

    @property
    def name(self) -> str:
        return "approle"

    @classmethod
    def from_environment(
        cls,
        environment: EnvironmentProbe | None = None,
        mount_point: str = DEFAULT_APPROLE_MOUNT,
    ) -> AppRoleAuthMethod:
        """Build from ``VAULT_ROLE_ID`` and ``VAULT_SECRET_ID``.

        Raises:
            ConfigurationError: If either variable is not set
        """
        environment = environment or EnvironmentProbe()
        if not environment.get(VAULT_ROLE_ID_ENV):
            raise ConfigurationError(f"{VAULT_ROLE_ID_ENV} environment variable is not set.")
        if not environment.get(VAULT_SECRET_ID_ENV):
            raise ConfigurationError(f"{VAULT_SECRET_ID_ENV} environment variable is not set.")
        return cls(
            environment.get(VAULT_ROLE_ID_ENV),  # type: ignore[arg-type]
            environment.get(VAULT_SECRET_ID_ENV),  # type: ignore[arg-type]
            mount_point,
        )

    @classmethod
    def try_from_environment(
        cls,
        environment: EnvironmentProbe | None = None,
        mount_point: str = DEFAULT_APPROLE_MOUNT,
    ) -> AppRoleAuthMethod | None:
        environment = environment or EnvironmentProbe()
        role_id = environment.get(VAULT_ROLE_ID_ENV)
        secret_id = environment.get(VAULT_SECRET_ID_ENV)
        if not role_id or not secret_id:
            return None
        return cls(role_id, secret_id, mount_point)

    def auth_descriptor(self) -> AuthDescriptor:
        return AuthDescriptor(
            method=self.name,
            mount_point=self.mount_point,
            credentials={"role_id": self.role_id, "secret_id": self.secret_id},
        )


@dataclass(frozen=True)
class KubernetesAuthMethod(AuthMethod):
    role_name: str
    jwt: str = field(repr=False)
    mount_point: str = DEFAULT_KUBERNETES_MOUNT

    def __post_init__(self) -> None:
        _require(self.role_name, "Role name")
        _require(self.jwt, "JWT")

    @property
    def name(self) -> str:
        return "kubernetes"

    @classmethod
    def from_file(
        cls,
        role_name: str,
        token_path: str | Path = KUBERNETES_TOKEN_PATH,
        mount_point: str = DEFAULT_KUBERNETES_MOUNT,
    ) -> KubernetesAuthMethod:
        """Build by reading the JWT from ``token_path``.

        Raises:
            FileNotFoundError: If the token file does not exist
        """
        path = Path(token_path)
        if not path.is_file():
            raise FileNotFoundError(f"Kubernetes service account token not found at: {path}")
        return cls(role_name, path.read_text(encoding="utf-8").strip(), mount_point)

    @classmethod
    def try_from_file(
        cls,
        role_name: str | None,
        token_path: str | Path = KUBERNETES_TOKEN_PATH,
        mount_point: str = DEFAULT_KUBERNETES_MOUNT,
        environment: EnvironmentProbe | None = None,
    ) -> KubernetesAuthMethod | None:
        if not role_name or not role_name.strip():
            return None
        environment = environment or EnvironmentProbe()
        jwt = environment.read_file(token_path)
        if not jwt:
            return None
        return cls(role_name, jwt, mount_point)

    @staticmethod
    def is_running_in_kubernetes(token_path: str | Path = KUBERNETES_TOKEN_PATH) -> bool:
        return Path(token_path).is_file()

    def auth_descriptor(self) -> AuthDescriptor:
        return AuthDescriptor(
            method=self.name,
            mount_point=self.mount_point,
            credentials={"role": self.role_name, "jwt": self.jwt},
        )


@dataclass(frozen=True)
class AzureCredentialAuthMethod(AuthMethod):
    """Azure AD credential used for Key Vault references.

    Wraps any azure-identity ``TokenCredential``. Without one, a
    ``DefaultAzureCredential`` is built, which tries environment variables,
    workload identity, managed identity and developer logins in turn.
    """

    credential: Any = field(default=None, repr=False)

    @property
    def name(self) -> str:
        return "azure"

    @classmethod
    def default(cls) -> AzureCredentialAuthMethod:
        return cls(DefaultAzureCredential())

    def auth_descriptor(self) -> AuthDescriptor:
        credential = self.credential if self.credential is not None else DefaultAzureCredential()
        return AuthDescriptor(method=self.name, credentials={"credential": credential})


def select_auth_method(
    options: ResolverOptions, environment: EnvironmentProbe | None = None
) -> AuthMethod:
    """Pick the authentication method for a new store client.

    Priority order, first match wins:
    1. ``options.auth_method``
    2. ``VAULT_TOKEN``
    3. ``VAULT_ROLE_ID`` + ``VAULT_SECRET_ID``
    4. ``options.kubernetes_role`` + a readable service account token file

    Raises:
        ConfigurationError: If no method can be determined
    """
    if options.auth_method is not None:
        return options.auth_method

    environment = environment or EnvironmentProbe()

    token_auth = TokenAuthMethod.try_from_environment(environment)
    if token_auth is not None:
        logger.debug("Using token auth from environment")
        return token_auth

    approle_auth = AppRoleAuthMethod.try_from_environment(environment)
    if approle_auth is not None:
        logger.debug("Using AppRole auth from environment")
        return approle_auth

    k8s_auth = KubernetesAuthMethod.try_from_file(
        options.kubernetes_role,
        options.kubernetes_token_path,
        environment=environment,
    )
    if k8s_auth is not None:
        logger.debug(f"Using Kubernetes auth with role '{options.kubernetes_role}'")
        return k8s_auth

    raise ConfigurationError(
        f"No authentication method configured. Set the auth_method option, {VAULT_TOKEN_ENV}, "
        f"{VAULT_ROLE_ID_ENV} + {VAULT_SECRET_ID_ENV}, "
        "or kubernetes_role when running in Kubernetes."
    )
