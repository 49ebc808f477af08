"""
Secret resolution against HashiCorp Vault and Azure Key Vault.

``SecretResolver`` turns a raw reference into a secret value:

1. Reject blank input
2. Return the cached value, when caching is enabled and the reference was seen before
3. Parse the reference, which also picks the family
4. Pick the store address (see ``ResolverOptions.address_precedence``; Key
   Vault references always name their vault)
5. Get or create the store client for that address, selecting auth on creation
6. Fetch within ``options.timeout``
7. Cache and return the value

Fetches run on a small thread pool owned by the resolver. A fetch that
overruns its deadline is abandoned on that pool, so neither ``resolve_async``
nor ``resolve`` waits for it.

There is a single attempt per call; retries are up to the caller.

Example:
    >>> resolver = SecretResolver(ResolverOptions(timeout=5))
    >>> resolver.resolve("hashicorp://vault.example.com/secret/data/app#password")
    's3cr3t'
"""

import asyncio
import concurrent.futures
import functools
import logging
import threading
from collections.abc import Callable
from typing import Any, Protocol, TypeVar, runtime_checkable

from .auth import AzureCredentialAuthMethod, EnvironmentProbe, select_auth_method
from .cache import SecretValueCache
from .clients import (
    AzureKeyVaultStoreClient,
    HvacStoreClient,
    KeyVaultClient,
    KeyVaultClientFactory,
    StoreClient,
    StoreClientCache,
    StoreClientFactory,
)
from .errors import (
    ArgumentError,
    KeyNotFoundError,
    SecretTimeoutError,
    StoreClientError,
    VaultRefError,
)
from .models import KeyVaultReference, ResolverOptions, SecretReference
from .references import mask_path, mask_reference, mask_secret_uri, parse_reference

logger = logging.getLogger(__name__)

T = TypeVar("T")

FETCH_THREAD_PREFIX = "vaultref-fetch"


@runtime_checkable
class SecretResolverProtocol(Protocol):
    """Anything that can turn a raw reference into a secret value."""

    async def resolve_async(self, raw_reference: str) -> str: ...

    def resolve(self, raw_reference: str) -> str: ...


def split_secret_path(secret_path: str) -> tuple[str, str]:
    """Split a secret path into ``(mount_point, path)``.

    - ``secret/data/myapp`` -> ``("secret", "myapp")`` (KV v2 convention)
    - ``kv/data/a/b`` -> ``("kv", "a/b")``
    - ``secret/myapp`` -> ``("secret", "myapp")``
    - ``simple`` -> ``("", "simple")``; the caller substitutes its default mount
    """
    parts = [part for part in secret_path.split("/") if part]
    if len(parts) < 2:
        return "", "/".join(parts)

    if len(parts) >= 3 and parts[1].lower() == "data":
        return parts[0], "/".join(parts[2:])

    return parts[0], "/".join(parts[1:])


class SecretResolver:
    """Resolves vault references, caching clients and values.

    The resolver owns its client caches, its value cache and the thread pool
    fetches run on. It is safe to share between threads and between
    concurrent tasks; locking is confined to the caches' insert paths.

    Args:
        options: Resolver settings. Defaults to ``ResolverOptions()``.
        environment: Environment used for address and auth auto-detection.
        client_factory: Builds HashiCorp Vault clients. Defaults to
            ``HvacStoreClient`` using ``options.timeout`` as the HTTP timeout.
        keyvault_client_factory: Builds Azure Key Vault clients. Defaults to
            ``AzureKeyVaultStoreClient`` using ``options.timeout``.
    """

    def __init__(
        self,
        options: ResolverOptions | None = None,
        environment: EnvironmentProbe | None = None,
        client_factory: StoreClientFactory | None = None,
        keyvault_client_factory: KeyVaultClientFactory | None = None,
    ):
        self.options = options or ResolverOptions()
        self._environment = environment or EnvironmentProbe()

        factory = client_factory or functools.partial(HvacStoreClient, timeout=self.options.timeout)
        keyvault_factory = keyvault_client_factory or functools.partial(
            AzureKeyVaultStoreClient, timeout=self.options.timeout
        )
        self._clients = StoreClientCache(factory)
        self._keyvault_clients = StoreClientCache(keyvault_factory)
        self._azure_auth: AzureCredentialAuthMethod | None = None
        self._values = SecretValueCache()

        self._executor: concurrent.futures.ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    @property
    def cached_secret_count(self) -> int:
        return len(self._values)

    async def resolve_async(self, raw_reference: str) -> str:
        """Resolve a reference to its secret value.

        Raises:
            ArgumentError: If the reference is blank
            InvalidReferenceError: If it matches no reference syntax
            ConfigurationError: If no address or auth method can be determined
            KeyNotFoundError: If the secret or the key does not exist
            SecretTimeoutError: If the fetch exceeds ``options.timeout``
            StoreClientError: If the store client fails
        """
        if raw_reference is None or not raw_reference.strip():
            raise ArgumentError("Secret reference cannot be null or empty.")

        masked = mask_reference(raw_reference)

        if self.options.enable_caching:
            cached = self._values.get(raw_reference)
            if cached is not None:
                logger.debug(f"Returning cached secret for: {masked}")
                return cached

        reference = parse_reference(raw_reference)
        if isinstance(reference, KeyVaultReference):
            value = await self._resolve_keyvault(reference, masked)
        else:
            value = await self._resolve_vault(reference, masked)

        if self.options.enable_caching:
            value = self._values.set_if_absent(raw_reference, value)

        return value

    def resolve(self, raw_reference: str) -> str:
        """Synchronous form of :meth:`resolve_async`.

        Safe to call from code that already runs inside an event loop: the
        coroutine is then run on a fresh loop in a worker thread.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.resolve_async(raw_reference))

        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(asyncio.run, self.resolve_async(raw_reference))
            return future.result()

    async def _resolve_vault(self, reference: SecretReference, masked: str) -> str:
        address = self._effective_address(reference)
        client: StoreClient = self._clients.get_or_create(
            address,
            lambda: select_auth_method(self.options, self._environment),
            self.options.namespace,
        )

        mount_point, path = split_secret_path(reference.secret_path)
        if not mount_point:
            mount_point = self.options.mount_path

        logger.debug(f"Resolving secret from path {mask_path(reference.secret_path)} at {address}")
        payload = await self._fetch(
            masked,
            client.read_secret,
            mount_point,
            path,
            self.options.effective_kv_version,
            reference.version,
        )
        value = self._extract_key(payload, reference)

        logger.info(f"Successfully resolved secret from {mask_path(reference.secret_path)}")
        return value

    async def _resolve_keyvault(self, reference: KeyVaultReference, masked: str) -> str:
        masked_uri = mask_secret_uri(reference.secret_uri)
        client: KeyVaultClient = self._keyvault_clients.get_or_create(
            reference.vault_uri, self._select_azure_auth
        )

        logger.debug(f"Resolving secret from {masked_uri}")
        value = await self._fetch(
            masked, client.get_secret, reference.secret_name, reference.version
        )
        if value is None:
            raise KeyNotFoundError(f"Secret not found at {masked_uri}")

        logger.info(f"Successfully resolved secret from {masked_uri}")
        return value

    def _select_azure_auth(self) -> AzureCredentialAuthMethod:
        # Called under the Key Vault client cache lock, so one credential is
        # shared by every vault this resolver talks to.
        if self._azure_auth is None:
            if self.options.azure_credential is not None:
                self._azure_auth = AzureCredentialAuthMethod(self.options.azure_credential)
            else:
                self._azure_auth = AzureCredentialAuthMethod.default()
        return self._azure_auth

    def _effective_address(self, reference: SecretReference) -> str:
        if self.options.address_precedence == "options":
            configured = self.options.configured_vault_address(self._environment)
            if configured:
                return configured

        if reference.store_address and reference.store_address.strip():
            return reference.store_address

        return self.options.effective_vault_address(self._environment)

    def _get_executor(self) -> concurrent.futures.ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = concurrent.futures.ThreadPoolExecutor(
                    thread_name_prefix=FETCH_THREAD_PREFIX
                )
            return self._executor

    async def _fetch(self, masked: str, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking client call on the fetch pool within ``options.timeout``."""
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(self._get_executor(), functools.partial(func, *args)),
                timeout=self.options.timeout,
            )
        except asyncio.TimeoutError:
            raise SecretTimeoutError(
                f"Timeout resolving secret from {masked} after {self.options.timeout} seconds"
            ) from None
        except VaultRefError:
            raise
        except Exception as e:
            raise StoreClientError(f"Failed to read secret from {masked}: {e}", masked) from e

    @staticmethod
    def _extract_key(payload: dict[str, Any] | None, reference: SecretReference) -> str:
        if payload is None or reference.secret_key not in payload:
            raise KeyNotFoundError(
                f"Secret key not found at path '{mask_path(reference.secret_path)}'"
            )
        value = payload[reference.secret_key]
        return "" if value is None else str(value)

    def cleanup(self) -> None:
        """Close all cached store clients and release the fetch pool.

        Cached values are kept. Fetches still running are abandoned rather
        than waited for.
        """
        self._clients.close()
        self._keyvault_clients.close()

        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "SecretResolver":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.cleanup()
