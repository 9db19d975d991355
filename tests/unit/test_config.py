"""Tests for taskmd.yaml loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from taskmd.config import TASKMD_STORAGE_DIR_ENV, load_config
from taskmd.errors import ConfigError


@pytest.fixture(autouse=True)
def _clear_storage_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(TASKMD_STORAGE_DIR_ENV, raising=False)


def test_defaults_without_config_file(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert config.project_root == tmp_path.resolve()
    assert config.project_name == tmp_path.resolve().name
    assert config.storage_path == tmp_path.resolve() / ".taskmd"
    assert config.work_items_path == config.storage_path / "work-items"
    assert config.index_path == config.storage_path / "tasks.json"
    assert config.project_file_path == config.storage_path / "project.md"


def test_file_values_merge_over_defaults(tmp_path: Path) -> None:
    (tmp_path / "taskmd.yaml").write_text(
        "project_name: Apollo\nstorage:\n  dir: planning\n  index_filename: cache.json\n",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.project_name == "Apollo"
    assert config.storage_dir == "planning"
    assert config.index_filename == "cache.json"
    assert config.work_items_dir == "work-items"


def test_empty_file_means_defaults(tmp_path: Path) -> None:
    (tmp_path / "taskmd.yaml").write_text("", encoding="utf-8")
    assert load_config(tmp_path).storage_dir == ".taskmd"


def test_env_then_argument_override_storage_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "taskmd.yaml").write_text("storage:\n  dir: from-file\n", encoding="utf-8")
    monkeypatch.setenv(TASKMD_STORAGE_DIR_ENV, "from-env")

    assert load_config(tmp_path).storage_dir == "from-env"
    assert load_config(tmp_path, storage_dir="from-arg").storage_dir == "from-arg"


@pytest.mark.parametrize(
    ("text", "reason"),
    [
        ("storage: [unclosed\n", "PARSE_ERROR"),
        ("- a\n- b\n", "SCHEMA_INVALID"),
        ("colour: blue\n", "SCHEMA_INVALID"),
        ("storage:\n  dir: 3\n", "SCHEMA_INVALID"),
    ],
)
def test_bad_config_raises(tmp_path: Path, text: str, reason: str) -> None:
    (tmp_path / "taskmd.yaml").write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as excinfo:
        load_config(tmp_path)
    assert excinfo.value.reason_code == reason
