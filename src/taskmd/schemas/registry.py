"""Schema registry backed by the ``taskmd_schemas`` package data.

Schemas are read through ``importlib.resources`` so validation behaves the same
from an editable checkout and from an installed wheel.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from importlib.resources import files
from typing import Any

SCHEMA_PACKAGE = "taskmd_schemas"
SCHEMA_SUFFIX = ".schema.json"


@dataclass(frozen=True)
class SchemaRegistry:
    """Registry of schemas shipped as package data.

    Attributes:
        available: Sorted tuple of canonical schema names (without suffix)
    """

    available: tuple[str, ...] = ()

    def __init__(self) -> None:
        object.__setattr__(self, "available", tuple(sorted(self._discover_schemas())))

    def _discover_schemas(self) -> list[str]:
        try:
            schema_files = files(SCHEMA_PACKAGE)
        except ModuleNotFoundError:
            return []
        return [
            item.name[: -len(SCHEMA_SUFFIX)]
            for item in schema_files.iterdir()
            if item.name.endswith(SCHEMA_SUFFIX)
        ]

    @staticmethod
    def _normalize_name(name: str) -> str:
        if name.endswith(SCHEMA_SUFFIX):
            return name[: -len(SCHEMA_SUFFIX)]
        return name

    def get_text(self, name: str) -> str:
        """Load schema text by name.

        Raises:
            KeyError: If the schema is not shipped (message lists what is)
        """
        canonical_name = self._normalize_name(name)
        if canonical_name not in self.available:
            raise KeyError(
                f"Schema '{canonical_name}' not found in taskmd package data. "
                f"Available schemas: {', '.join(self.available) or '(none)'}"
            )
        schema_file = files(SCHEMA_PACKAGE) / f"{canonical_name}{SCHEMA_SUFFIX}"
        return schema_file.read_text(encoding="utf-8")

    def get_json(self, name: str) -> dict[str, Any]:
        """Load schema as a parsed dictionary.

        Raises:
            KeyError: If schema not found
            ValueError: If the shipped schema is not valid JSON
        """
        canonical_name = self._normalize_name(name)
        text = self.get_text(canonical_name)
        try:
            res: dict[str, Any] = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(
                f"Schema '{canonical_name}' contains invalid JSON: {e}. "
                "This may indicate a broken installation."
            ) from e
        return res


@lru_cache(maxsize=1)
def get_registry() -> SchemaRegistry:
    """Return the shared, read-only schema registry."""
    return SchemaRegistry()
