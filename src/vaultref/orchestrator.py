"""
Resolution of every vault reference in a configuration.

``ResolutionOrchestrator`` walks a flattened configuration snapshot, resolves
each value that is a vault reference and collects the results into an
overlay. The overlay is applied to a :class:`~vaultref.layers.LayeredConfig`
as one final layer, and only once the whole pass has finished.

Failures follow ``ResolverOptions.throw_on_resolve_failure``:

- True: the pass stops at the first failure and raises
  :class:`~vaultref.errors.ResolutionFailedError`; nothing is applied
- False: the failing key is skipped with a warning and keeps its raw reference
"""

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .errors import ResolutionFailedError
from .layers import LayeredConfig
from .models import ResolverOptions
from .references import is_reference, mask_reference
from .resolver import SecretResolver, SecretResolverProtocol

logger = logging.getLogger(__name__)


@dataclass
class ResolvedReference:
    """
    Tracking record for one reference seen during a resolution pass.

    The secret value itself is never stored here.

    Attributes:
        key: Configuration key holding the reference (e.g. ``database:password``).
        masked_reference: The reference with path and key redacted.
        resolved: Whether resolution succeeded.
        resolved_at: Unix timestamp of the attempt.
        error: Error message if resolution failed, None if successful.
    """

    key: str
    masked_reference: str
    resolved: bool
    resolved_at: float
    error: str | None = None


def find_references(snapshot: Mapping[str, str | None]) -> list[tuple[str, str]]:
    """Return ``(key, raw_reference)`` for every non-empty reference value in the snapshot."""
    return [(key, value) for key, value in snapshot.items() if value and is_reference(value)]


class ResolutionOrchestrator:
    """
    Resolves all vault references of a configuration snapshot.

    ## Usage

    ```python
    config = LayeredConfig.from_yaml("appsettings.yaml")

    with ResolutionOrchestrator(options=ResolverOptions(throw_on_resolve_failure=False)) as orch:
        orch.apply(config)

    print(config["database:password"])  # resolved value
    summary = orch.get_reference_summary()
    ```

    Args:
        resolver: Resolver to use. If None, a ``SecretResolver`` is created
            from ``options`` and cleaned up with the orchestrator.
        options: Options controlling the failure policy. Defaults to the
            resolver's own options when it has any.
    """

    def __init__(
        self,
        resolver: SecretResolverProtocol | None = None,
        options: ResolverOptions | None = None,
    ):
        if options is None:
            options = getattr(resolver, "options", None) or ResolverOptions()
        self.options = options
        self._owns_resolver = resolver is None
        self.resolver: SecretResolverProtocol = resolver or SecretResolver(options)
        self._resolved_references: list[ResolvedReference] = []

    def resolve_all(self, snapshot: Mapping[str, str | None]) -> dict[str, str]:
        """Resolve every reference in ``snapshot`` and return the overlay.

        Raises:
            ResolutionFailedError: On the first failure, if the policy says to abort
        """
        self._resolved_references.clear()
        overlay: dict[str, str] = {}

        for key, raw_reference in find_references(snapshot):
            try:
                value = self.resolver.resolve(raw_reference)
            except Exception as e:
                self._handle_failure(key, raw_reference, e)
                continue
            self._record_success(key, raw_reference)
            overlay[key] = value

        return overlay

    async def resolve_all_async(self, snapshot: Mapping[str, str | None]) -> dict[str, str]:
        """Async form of :meth:`resolve_all`. Keys are still resolved one at a time."""
        self._resolved_references.clear()
        overlay: dict[str, str] = {}

        for key, raw_reference in find_references(snapshot):
            try:
                value = await self.resolver.resolve_async(raw_reference)
            except Exception as e:
                self._handle_failure(key, raw_reference, e)
                continue
            self._record_success(key, raw_reference)
            overlay[key] = value

        return overlay

    def apply(self, config: LayeredConfig) -> LayeredConfig:
        """Resolve ``config`` and append the overlay as its final layer."""
        overlay = self.resolve_all(config.snapshot())
        return self._apply_overlay(config, overlay)

    async def apply_async(self, config: LayeredConfig) -> LayeredConfig:
        overlay = await self.resolve_all_async(config.snapshot())
        return self._apply_overlay(config, overlay)

    def _apply_overlay(self, config: LayeredConfig, overlay: dict[str, str]) -> LayeredConfig:
        if overlay:
            config.add_layer(overlay)
            logger.info(f"Resolved {len(overlay)} vault reference(s)")
        return config

    def _record_success(self, key: str, raw_reference: str) -> None:
        logger.info(f"Resolved vault reference: {key}")
        self._resolved_references.append(
            ResolvedReference(
                key=key,
                masked_reference=mask_reference(raw_reference),
                resolved=True,
                resolved_at=time.time(),
            )
        )

    def _handle_failure(self, key: str, raw_reference: str, error: Exception) -> None:
        masked = mask_reference(raw_reference)
        self._resolved_references.append(
            ResolvedReference(
                key=key,
                masked_reference=masked,
                resolved=False,
                resolved_at=time.time(),
                error=str(error),
            )
        )
        logger.warning(f"Failed to resolve vault reference for '{key}' ({masked}): {error}")

        if self.options.throw_on_resolve_failure:
            raise ResolutionFailedError(
                f"Failed to resolve vault reference {masked} "
                f"for configuration key '{key}': {error}",
                key,
                raw_reference,
            ) from error

    def get_resolved_references(self) -> list[ResolvedReference]:
        """Return tracking records from the last pass."""
        return self._resolved_references.copy()

    def get_failed_references(self) -> list[ResolvedReference]:
        return [ref for ref in self._resolved_references if not ref.resolved]

    def get_reference_summary(self) -> dict[str, Any]:
        """Return counts and per-key status of the last pass."""
        total = len(self._resolved_references)
        failed = len(self.get_failed_references())
        return {
            "total_references": total,
            "successful_references": total - failed,
            "failed_references": failed,
            "references": {
                ref.key: {
                    "reference": ref.masked_reference,
                    "resolved": ref.resolved,
                    "error": ref.error,
                }
                for ref in self._resolved_references
            },
        }

    def cleanup(self) -> None:
        """Clean up the resolver if this orchestrator created it."""
        if self._owns_resolver and isinstance(self.resolver, SecretResolver):
            self.resolver.cleanup()

    def __enter__(self) -> "ResolutionOrchestrator":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.cleanup()


def resolve_all(
    snapshot: Mapping[str, str | None],
    resolver: SecretResolverProtocol,
    options: ResolverOptions | None = None,
) -> dict[str, str]:
    """Resolve every reference in ``snapshot`` with ``resolver`` and return the overlay."""
    return ResolutionOrchestrator(resolver, options).resolve_all(snapshot)


def apply_vault_references(
    config: LayeredConfig,
    resolver: SecretResolverProtocol | None = None,
    options: ResolverOptions | None = None,
) -> LayeredConfig:
    """Resolve the references of ``config`` and append the overlay as its final layer.

    A resolver created here is cleaned up before returning; a resolver passed
    in is left open for the caller to reuse.
    """
    with ResolutionOrchestrator(resolver, options) as orchestrator:
        return orchestrator.apply(config)
