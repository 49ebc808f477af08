"""In-memory resolver for tests and local development."""

from collections.abc import Mapping

from .errors import KeyNotFoundError
from .references import mask_reference


class MockSecretResolver:
    """Resolves references from a fixed ``raw reference -> value`` map.

    Args:
        secrets: Initial secrets keyed by raw reference text.
        throw_on_missing: Raise ``KeyNotFoundError`` for unknown references
            (default) instead of returning an empty string.

    Example:
        >>> resolver = MockSecretResolver().add_secret("hashicorp://v/secret/app#pw", "s3cr3t")
        >>> resolver.resolve("hashicorp://v/secret/app#pw")
        's3cr3t'
    """

    def __init__(self, secrets: Mapping[str, str] | None = None, throw_on_missing: bool = True):
        self._secrets: dict[str, str] = dict(secrets or {})
        self._throw_on_missing = throw_on_missing

    def add_secret(self, raw_reference: str, value: str) -> "MockSecretResolver":
        self._secrets[raw_reference] = value
        return self

    def add_secrets(self, secrets: Mapping[str, str]) -> "MockSecretResolver":
        self._secrets.update(secrets)
        return self

    def resolve(self, raw_reference: str) -> str:
        if raw_reference in self._secrets:
            return self._secrets[raw_reference]
        if self._throw_on_missing:
            raise KeyNotFoundError(f"Secret not found: {mask_reference(raw_reference)}")
        return ""

    async def resolve_async(self, raw_reference: str) -> str:
        return self.resolve(raw_reference)

    def clear(self) -> None:
        self._secrets.clear()

    @property
    def count(self) -> int:
        return len(self._secrets)

    def contains_secret(self, raw_reference: str) -> bool:
        return raw_reference in self._secrets
