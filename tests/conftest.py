"""Pytest configuration and fixtures for taskmd tests."""
from __future__ import annotations

import os
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from taskmd.records.codec import render_record
from taskmd.records.types import TaskRecord


def pytest_sessionfinish(session, exitstatus):
    """Check that coverage data was collected if --cov was requested.

    This prevents silent "no data collected" scenarios that produce 0% coverage
    without failing the test run.
    """
    cov_enabled = any("--cov" in str(arg) for arg in session.config.args)
    if not cov_enabled:
        return

    coverage_files = list(Path.cwd().glob(".coverage*"))
    if not coverage_files:
        pytest.exit(
            "Coverage was enabled but no data was collected. "
            "Check that tests import from 'taskmd' (the package) not 'src/taskmd' (filesystem path).",
            returncode=1,
        )


def set_mtime(path: Path, offset_seconds: float) -> None:
    """Move a file's mtime relative to now."""
    stamp = time.time() + offset_seconds
    os.utime(path, (stamp, stamp))


@pytest.fixture
def storage_path(tmp_path: Path) -> Path:
    """An empty storage directory with its work-items subdirectory."""
    path = tmp_path / ".taskmd"
    (path / "work-items").mkdir(parents=True)
    return path


@pytest.fixture
def work_items(storage_path: Path) -> Path:
    return storage_path / "work-items"


@pytest.fixture
def write_item(work_items: Path) -> Callable[..., Path]:
    """Write a rendered record file; its mtime is pushed a minute into the past."""

    def _write(
        task_id: str,
        title: str | None = None,
        *,
        filename: str | None = None,
        body: str | None = None,
        **fields,
    ) -> Path:
        record = TaskRecord(
            id=task_id,
            title=title or f"Task {task_id}",
            body=body if body is not None else f"\n# {title or task_id}\n\n## Description\nDetails.\n",
            **fields,
        )
        path = work_items / (filename or f"{task_id}.md")
        path.write_text(render_record(record), encoding="utf-8")
        set_mtime(path, -60)
        return path

    return _write


@pytest.fixture
def touch() -> Callable[[Path, float], None]:
    return set_mtime
