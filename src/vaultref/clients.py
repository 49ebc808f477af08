"""
Store clients and the per-address client cache.

``StoreClient`` is the capability the resolver needs from HashiCorp Vault:
read a KV secret payload at a mount and path. ``HvacStoreClient`` implements
it on top of the hvac library.

``KeyVaultClient`` is the Azure Key Vault counterpart: read one secret by
name and version. ``AzureKeyVaultStoreClient`` implements it on top of
``azure.keyvault.secrets.SecretClient``.

``StoreClientCache`` keeps one long-lived client per normalized address.
"""

import logging
import threading
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

import hvac
from azure.core.exceptions import ResourceNotFoundError
from azure.keyvault.secrets import SecretClient
from hvac.exceptions import InvalidPath

from .auth import AuthDescriptor, AuthMethod
from .models import DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


@runtime_checkable
class StoreClient(Protocol):
    """A connection to one Vault server."""

    def read_secret(
        self,
        mount_point: str,
        path: str,
        kv_version: int,
        version: int | None = None,
    ) -> dict[str, Any] | None:
        """Return the secret's key/value payload, or None if it does not exist."""
        ...

    def close(self) -> None: ...


@runtime_checkable
class KeyVaultClient(Protocol):
    """A connection to one Azure Key Vault."""

    def get_secret(self, name: str, version: str | None = None) -> str | None:
        """Return the secret value, or None if the secret does not exist."""
        ...

    def close(self) -> None: ...


StoreClientFactory = Callable[[str, AuthDescriptor, str | None], StoreClient]
KeyVaultClientFactory = Callable[[str, AuthDescriptor, str | None], KeyVaultClient]


class HvacStoreClient:
    """Store client backed by ``hvac.Client``.

    Token auth is applied when the client is built. AppRole and Kubernetes
    auth log in once, on the first read, so constructing a client never
    touches the network.
    """

    def __init__(
        self,
        address: str,
        auth: AuthDescriptor,
        namespace: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.address = address
        self._auth = auth
        self._client = hvac.Client(
            url=address,
            token=auth.credentials.get("token") if auth.method == "token" else None,
            namespace=namespace,
            timeout=timeout,
        )
        self._authenticated = auth.method == "token"
        self._login_lock = threading.Lock()

    def _ensure_authenticated(self) -> None:
        if self._authenticated:
            return
        with self._login_lock:
            if self._authenticated:
                return
            credentials = self._auth.credentials
            if self._auth.method == "approle":
                self._client.auth.approle.login(
                    role_id=credentials["role_id"],
                    secret_id=credentials["secret_id"],
                    mount_point=self._auth.mount_point,
                )
            elif self._auth.method == "kubernetes":
                self._client.auth.kubernetes.login(
                    role=credentials["role"],
                    jwt=credentials["jwt"],
                    mount_point=self._auth.mount_point,
                )
            else:
                raise ValueError(f"Unsupported auth method: {self._auth.method}")
            logger.debug(f"Authenticated to {self.address} using {self._auth.method} auth")
            self._authenticated = True

    def read_secret(
        self,
        mount_point: str,
        path: str,
        kv_version: int,
        version: int | None = None,
    ) -> dict[str, Any] | None:
        self._ensure_authenticated()

        try:
            if kv_version == 2:
                response = self._client.secrets.kv.v2.read_secret_version(
                    path=path,
                    version=version,
                    mount_point=mount_point,
                    raise_on_deleted_version=True,
                )
                data = (response or {}).get("data", {}).get("data")
            else:
                response = self._client.secrets.kv.v1.read_secret(
                    path=path,
                    mount_point=mount_point,
                )
                data = (response or {}).get("data")
        except InvalidPath:
            return None

        if data is None:
            return None
        return dict(data)

    def close(self) -> None:
        self._client.adapter.close()


class AzureKeyVaultStoreClient:
    """Key Vault client backed by ``SecretClient``.

    ``namespace`` is accepted for factory compatibility and ignored; Key
    Vault has no namespaces. ``timeout`` bounds connect and read of each
    HTTP request.
    """

    def __init__(
        self,
        address: str,
        auth: AuthDescriptor,
        namespace: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        if auth.method != "azure":
            raise ValueError(f"Unsupported auth method for Key Vault: {auth.method}")
        self.address = address
        self._client = SecretClient(
            vault_url=address,
            credential=auth.credentials["credential"],
            connection_timeout=timeout,
            read_timeout=timeout,
        )

    def get_secret(self, name: str, version: str | None = None) -> str | None:
        try:
            secret = self._client.get_secret(name, version)
        except ResourceNotFoundError:
            return None
        return "" if secret.value is None else secret.value

    def close(self) -> None:
        self._client.close()


def normalize_address(address: str) -> str:
    """Lower-case an address and strip one trailing slash.

    Example:
        >>> normalize_address("https://Vault.Example.com/")
        'https://vault.example.com'
    """
    address = address.strip().lower()
    if address.endswith("/"):
        address = address[:-1]
    return address


class StoreClientCache:
    """One lazily created client per normalized Vault address.

    Clients are built at most once per address, even when several callers
    ask for the same address concurrently, and are kept until :meth:`close`.

    Args:
        factory: Builds a client from ``(address, auth_descriptor, namespace)``.
    """

    def __init__(self, factory: StoreClientFactory | KeyVaultClientFactory = HvacStoreClient):
        self._factory = factory
        self._clients: dict[str, Any] = {}
        self._lock = threading.Lock()

    def get_or_create(
        self,
        address: str,
        auth_method: AuthMethod | Callable[[], AuthMethod],
        namespace: str | None = None,
    ) -> Any:
        """Return the client for ``address``, building it on first use.

        ``auth_method`` may be a zero-argument callable; it is only invoked
        when a new client has to be built.
        """
        key = normalize_address(address)

        client = self._clients.get(key)
        if client is not None:
            return client

        with self._lock:
            client = self._clients.get(key)
            if client is None:
                method = auth_method if isinstance(auth_method, AuthMethod) else auth_method()
                logger.debug(f"Creating Vault client for {key} using {method.name} auth")
                client = self._factory(key, method.auth_descriptor(), namespace)
                self._clients[key] = client
            return client

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and normalize_address(address) in self._clients

    def __len__(self) -> int:
        return len(self._clients)

    def close(self) -> None:
        """Close every cached client and forget them."""
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()

        for client in clients:
            try:
                client.close()
            except Exception as e:
                logger.warning(f"Error closing Vault client: {e}")
