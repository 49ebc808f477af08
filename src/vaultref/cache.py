"""In-memory cache of resolved secret values.

Entries are keyed by the raw reference text and are never expired or
invalidated: a secret is assumed to be stable for the lifetime of the
resolver that cached it. A rotated secret is only observed after the
resolver (usually the process) is recreated.
"""

import threading


class SecretValueCache:
    """Thread-safe mapping from raw reference to resolved secret value."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, raw_reference: str) -> str | None:
        return self._values.get(raw_reference)

    def set_if_absent(self, raw_reference: str, value: str) -> str:
        """Store ``value`` unless an entry already exists; return the stored value.

        Concurrent first resolutions of the same reference all end up
        returning the single value that won the insert.
        """
        with self._lock:
            return self._values.setdefault(raw_reference, value)

    def __contains__(self, raw_reference: object) -> bool:
        return raw_reference in self._values

    def __len__(self) -> int:
        return len(self._values)
