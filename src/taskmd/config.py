"""Project configuration for taskmd.

Configuration lives in an optional ``taskmd.yaml`` at the project root. Values
missing from the file fall back to the defaults below; ``TASKMD_STORAGE_DIR``
overrides the storage directory for the current process.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from taskmd.errors import (
    CONFIG_REASON_PARSE_ERROR,
    CONFIG_REASON_SCHEMA_INVALID,
    ConfigError,
)
from taskmd.schemas.validator import validate_data

CONFIG_FILENAME = "taskmd.yaml"
TASKMD_STORAGE_DIR_ENV = "TASKMD_STORAGE_DIR"

DEFAULT_CONFIG: dict[str, Any] = {
    "project_name": None,
    "storage": {
        "dir": ".taskmd",
        "work_items_dir": "work-items",
        "agents_dir": "agents",
        "project_file": "project.md",
        "index_filename": "tasks.json",
    },
}


@dataclass(frozen=True)
class TaskmdConfig:
    """Resolved configuration for one project root."""

    project_root: Path
    project_name: str
    storage_dir: str = ".taskmd"
    work_items_dir: str = "work-items"
    agents_dir: str = "agents"
    project_file: str = "project.md"
    index_filename: str = "tasks.json"

    @property
    def storage_path(self) -> Path:
        return self.project_root / self.storage_dir

    @property
    def work_items_path(self) -> Path:
        return self.storage_path / self.work_items_dir

    @property
    def agents_path(self) -> Path:
        return self.storage_path / self.agents_dir

    @property
    def project_file_path(self) -> Path:
        return self.storage_path / self.project_file

    @property
    def index_path(self) -> Path:
        return self.storage_path / self.index_filename

    @classmethod
    def from_dict(cls, project_root: Path, data: dict[str, Any]) -> TaskmdConfig:
        """Build a config from an already-validated mapping."""
        storage = data.get("storage", {})
        return cls(
            project_root=project_root,
            project_name=data.get("project_name") or project_root.name,
            storage_dir=storage["dir"],
            work_items_dir=storage["work_items_dir"],
            agents_dir=storage["agents_dir"],
            project_file=storage["project_file"],
            index_filename=storage["index_filename"],
        )


def _merge(defaults: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(defaults)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(project_root: Path, *, storage_dir: str | None = None) -> TaskmdConfig:
    """Load and validate the configuration for ``project_root``.

    Precedence (highest first): ``storage_dir`` argument, the
    ``TASKMD_STORAGE_DIR`` environment variable, ``taskmd.yaml``, defaults.

    Raises:
        ConfigError: If the config file is unparsable or fails schema validation
    """
    root = project_root.expanduser().resolve()
    config_path = root / CONFIG_FILENAME

    user_config: dict[str, Any] = {}
    if config_path.exists():
        try:
            loaded = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError(
                f"Malformed YAML config at {config_path}: {exc}",
                CONFIG_REASON_PARSE_ERROR,
            ) from exc
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError(
                f"Config at {config_path} must be a mapping",
                CONFIG_REASON_SCHEMA_INVALID,
            )
        user_config = loaded or {}

    ok, errors = validate_data(user_config, "config", strict=False)
    if not ok:
        raise ConfigError(
            f"Invalid config structure in {config_path}: " + "; ".join(errors),
            CONFIG_REASON_SCHEMA_INVALID,
        )

    merged = _merge(DEFAULT_CONFIG, user_config)

    env_storage = os.getenv(TASKMD_STORAGE_DIR_ENV, "").strip()
    if env_storage:
        merged["storage"]["dir"] = env_storage
    if storage_dir:
        merged["storage"]["dir"] = storage_dir

    return TaskmdConfig.from_dict(root, merged)
