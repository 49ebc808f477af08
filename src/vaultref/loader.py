"""Loading of resolver options from a YAML file.

```yaml
config:
  vault:
    address: "https://vault.example.com"
    mount_path: "secret"
    kv_version: 2
    timeout: 30
    enable_caching: true
    throw_on_resolve_failure: true
    namespace: "team-a"
    kubernetes_role: "my-app"
```

Credentials are never read from this file; they come from the environment
(see :mod:`vaultref.auth`).
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .errors import ConfigurationError
from .models import ResolverOptions

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "VAULTREF_CONFIG"

# YAML keys that differ from the option field names
_FIELD_ALIASES = {"address": "vault_address"}


def load_resolver_options(config_path: Path | None = None) -> ResolverOptions:
    """Load resolver options from a config.yaml file.

    Args:
        config_path: Optional path to the config.yaml file.
                    If not provided, looks for:
                    1. VAULTREF_CONFIG environment variable
                    2. ~/.vaultref/config.yaml
                    3. ./config.yaml

    Returns:
        ResolverOptions built from the ``config.vault`` section

    Raises:
        FileNotFoundError: If an explicitly requested config file doesn't exist
        ConfigurationError: If the file is not valid YAML or holds invalid options
    """
    if config_path is None:
        env_path = os.environ.get(CONFIG_PATH_ENV)
        if env_path:
            config_path = Path(env_path)
        else:
            candidates = [Path.home() / ".vaultref" / "config.yaml", Path.cwd() / "config.yaml"]
            for candidate in candidates:
                if candidate.exists():
                    config_path = candidate
                    break

            if config_path is None:
                logger.info("No resolver config file found, using default options")
                return ResolverOptions()

    if not config_path.exists():
        raise FileNotFoundError(f"Resolver config file not found at {config_path}")

    logger.debug(f"Loading resolver config from: {config_path}")

    try:
        with open(config_path) as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML config file {config_path}: {e}") from e

    if not raw_config:
        logger.info("Empty resolver config file, using default options")
        return ResolverOptions()

    if not isinstance(raw_config, dict):
        raise ConfigurationError(f"Resolver config file {config_path} must contain a mapping")

    vault_section = (raw_config.get("config") or {}).get("vault") or {}
    return build_resolver_options(vault_section)


def build_resolver_options(vault_section: dict[str, Any]) -> ResolverOptions:
    """Build ResolverOptions from the ``config.vault`` mapping.

    Raises:
        ConfigurationError: If the section holds unknown keys or invalid values
    """
    fields = {_FIELD_ALIASES.get(key, key): value for key, value in vault_section.items()}
    try:
        return ResolverOptions.model_validate(fields)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid resolver config: {e}") from e
