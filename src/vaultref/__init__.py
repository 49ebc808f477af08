"""vaultref - HashiCorp Vault and Azure Key Vault references in layered configuration.

Configuration values written as

- ``@HashiCorp.Vault(VaultAddress=https://vault.example.com;SecretPath=secret/data/myapp;SecretKey=password)``
- ``hashicorp://vault.example.com/secret/data/myapp#password``
- ``@Microsoft.KeyVault(SecretUri=https://myvault.vault.azure.net/secrets/mysecret)``
- ``@Microsoft.KeyVault(VaultName=myvault;SecretName=mysecret)``

are resolved to the secret they name and overlaid back onto the configuration.

## Quick Example

```python
from vaultref import LayeredConfig, ResolverOptions, apply_vault_references

config = LayeredConfig.from_yaml("appsettings.yaml")
apply_vault_references(config, options=ResolverOptions(throw_on_resolve_failure=False))
password = config["database:password"]
```
"""

from .auth import (
    AppRoleAuthMethod,
    AuthDescriptor,
    AuthMethod,
    AzureCredentialAuthMethod,
    EnvironmentProbe,
    KubernetesAuthMethod,
    TokenAuthMethod,
    select_auth_method,
)
from .cache import SecretValueCache
from .clients import (
    AzureKeyVaultStoreClient,
    HvacStoreClient,
    KeyVaultClient,
    StoreClient,
    StoreClientCache,
    normalize_address,
)
from .errors import (
    ArgumentError,
    ConfigurationError,
    InvalidReferenceError,
    KeyNotFoundError,
    ResolutionFailedError,
    SecretTimeoutError,
    StoreClientError,
    VaultRefError,
)
from .layers import LayeredConfig, flatten_config
from .loader import load_resolver_options
from .mock import MockSecretResolver
from .models import KeyVaultReference, ResolverOptions, SecretReference
from .orchestrator import (
    ResolutionOrchestrator,
    ResolvedReference,
    apply_vault_references,
    find_references,
    resolve_all,
)
from .references import (
    extract_secret_uri,
    is_reference,
    mask_path,
    mask_reference,
    mask_secret_uri,
    parse_reference,
    parse_secret_uri,
    scrub_references,
    try_parse,
)
from .resolver import SecretResolver, SecretResolverProtocol, split_secret_path

__version__ = "0.1.0"

__all__ = [
    # References
    "is_reference",
    "try_parse",
    "parse_reference",
    "mask_reference",
    "mask_path",
    "parse_secret_uri",
    "extract_secret_uri",
    "mask_secret_uri",
    "scrub_references",
    # Models
    "SecretReference",
    "KeyVaultReference",
    "ResolverOptions",
    "load_resolver_options",
    # Auth
    "AuthMethod",
    "AuthDescriptor",
    "TokenAuthMethod",
    "AppRoleAuthMethod",
    "KubernetesAuthMethod",
    "AzureCredentialAuthMethod",
    "EnvironmentProbe",
    "select_auth_method",
    # Clients and caches
    "StoreClient",
    "HvacStoreClient",
    "KeyVaultClient",
    "AzureKeyVaultStoreClient",
    "StoreClientCache",
    "normalize_address",
    "SecretValueCache",
    # Resolution
    "SecretResolver",
    "SecretResolverProtocol",
    "split_secret_path",
    "MockSecretResolver",
    "ResolutionOrchestrator",
    "ResolvedReference",
    "find_references",
    "resolve_all",
    "apply_vault_references",
    "LayeredConfig",
    "flatten_config",
    # Errors
    "VaultRefError",
    "ArgumentError",
    "InvalidReferenceError",
    "ConfigurationError",
    "KeyNotFoundError",
    "SecretTimeoutError",
    "StoreClientError",
    "ResolutionFailedError",
]
