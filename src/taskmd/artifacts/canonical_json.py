"""Canonical JSON helpers for deterministic taskmd files."""

from __future__ import annotations

import json
import os
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path


def canonical_dumps(obj: Any, *, indent: int | None = None) -> str:
    """Serialize a JSON-compatible object with stable canonical formatting."""
    if indent is None:
        return json.dumps(
            obj,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        )
    return json.dumps(obj, sort_keys=True, indent=indent, ensure_ascii=False) + "\n"


def atomic_write_text(path: Path, content: str) -> None:
    """Write text through a sibling temp file and ``os.replace``.

    Readers either see the previous file or the complete new one.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.taskmd.tmp")
    try:
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)
    finally:
        if tmp.exists():
            tmp.unlink()


def write_json(path: Path, obj: Any, *, indent: int | None = 2) -> None:
    """Atomically write canonical JSON as UTF-8."""
    atomic_write_text(path, canonical_dumps(obj, indent=indent))


def read_json(path: Path) -> Any:
    """Read a UTF-8 JSON document."""
    return json.loads(path.read_text(encoding="utf-8"))
