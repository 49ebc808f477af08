"""
Layered, flattened configuration.

A ``LayeredConfig`` is an ordered stack of ``key -> value`` layers where later
layers override earlier ones. Keys are flattened with ``:`` as the section
separator (``database:password``), so nested YAML documents and
environment-style settings share one key space.
"""

from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

KEY_SEPARATOR = ":"


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def flatten_config(config: Any, separator: str = KEY_SEPARATOR) -> dict[str, str | None]:
    """Flatten nested dicts and lists into a single-level mapping.

    Example:
        >>> flatten_config({"db": {"hosts": ["a", "b"], "port": 5432}})
        {'db:hosts:0': 'a', 'db:hosts:1': 'b', 'db:port': '5432'}
    """
    flat: dict[str, str | None] = {}

    def _walk(node: Any, path: list[str]) -> None:
        if isinstance(node, Mapping):
            for key, value in node.items():
                _walk(value, path + [str(key)])
        elif isinstance(node, list):
            for i, item in enumerate(node):
                _walk(item, path + [str(i)])
        elif path:
            flat[separator.join(path)] = _to_text(node)

    _walk(config, [])
    return flat


class LayeredConfig(Mapping[str, str | None]):
    """Read-only view over a stack of configuration layers.

    Later layers win. :meth:`add_layer` appends a copy of the given mapping
    and never modifies the layers already present.

    Example:
        >>> config = LayeredConfig({"a": "1", "b": "2"})
        >>> config.add_layer({"b": "3"})["b"]
        '3'
    """

    def __init__(self, *layers: Mapping[str, str | None]):
        self._layers: list[Mapping[str, str | None]] = []
        for layer in layers:
            self.add_layer(layer)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "LayeredConfig":
        """Load a YAML file as a single flattened layer.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not valid YAML
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e

        return cls(flatten_config(data or {}))

    def add_layer(self, layer: Mapping[str, str | None]) -> "LayeredConfig":
        """Append ``layer`` as the highest-priority layer. Returns self for chaining."""
        self._layers.append(MappingProxyType(dict(layer)))
        return self

    @property
    def layers(self) -> tuple[Mapping[str, str | None], ...]:
        return tuple(self._layers)

    def snapshot(self) -> dict[str, str | None]:
        """Return the merged view, keys in order of first appearance."""
        merged: dict[str, str | None] = {}
        for layer in self._layers:
            merged.update(layer)
        return merged

    def __getitem__(self, key: str) -> str | None:
        for layer in reversed(self._layers):
            if key in layer:
                return layer[key]
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self.snapshot())

    def __repr__(self) -> str:
        return f"LayeredConfig(layers={len(self._layers)}, keys={len(self)})"
