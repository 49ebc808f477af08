"""Exception hierarchy for vault reference resolution.

Every error raised by the resolver derives from :class:`VaultRefError`, so
callers can catch the whole family at once. The more specific classes also
derive from the closest builtin (``ValueError``, ``LookupError``,
``TimeoutError``) so generic handlers keep working.

Example:
    >>> try:
    ...     resolver.resolve("hashicorp://vault.example.com/secret/app#pw")
    ... except KeyNotFoundError as e:
    ...     print(f"Secret missing: {e}")
"""


class VaultRefError(Exception):
    """Base class for all vault reference errors."""


class ArgumentError(VaultRefError, ValueError):
    """Raised for blank or missing local input. Always a caller bug."""


class InvalidReferenceError(VaultRefError, ValueError):
    """Raised when a value matches neither reference syntax."""


class ConfigurationError(VaultRefError):
    """Raised when no usable store address or auth method can be determined."""


class KeyNotFoundError(VaultRefError, LookupError):
    """Raised when the store answered but the secret or the key is absent."""


class SecretTimeoutError(VaultRefError, TimeoutError):
    """Raised when a secret fetch exceeds the configured deadline.

    Distinct from ``asyncio.CancelledError``, which is what a caller-initiated
    cancellation surfaces as.
    """


class StoreClientError(VaultRefError):
    """Wraps a failure reported by the store client (network, auth, server).

    Attributes:
        masked_reference: The reference being resolved, with path and key redacted.
    """

    def __init__(self, message: str, masked_reference: str):
        super().__init__(message)
        self.masked_reference = masked_reference


class ResolutionFailedError(VaultRefError):
    """Raised by the orchestrator when a reference cannot be resolved and the
    failure policy says to abort.

    Attributes:
        config_key: The configuration key holding the reference.
        reference: The raw, unresolved reference text.
    """

    def __init__(self, message: str, config_key: str, reference: str):
        super().__init__(message)
        self.config_key = config_key
        self.reference = reference

    @property
    def masked_reference(self) -> str:
        # Imported here: references depends on errors.
        from .references import mask_reference

        return mask_reference(self.reference)
