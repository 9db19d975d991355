"""Tests for the taskmd CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from taskmd import __version__
from taskmd.cli import app
from taskmd.config import TASKMD_STORAGE_DIR_ENV

runner = CliRunner()


@pytest.fixture(autouse=True)
def _clear_storage_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(TASKMD_STORAGE_DIR_ENV, raising=False)


def invoke(root: Path, *args: str):
    return runner.invoke(app, ["--root", str(root), *args])


def invoke_json(root: Path, *args: str):
    result = invoke(root, *args, "--json")
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.stdout.strip() == __version__


def test_init_creates_layout_and_index(tmp_path: Path) -> None:
    result = invoke(tmp_path, "init", "--name", "Apollo")

    assert result.exit_code == 0, result.output
    assert "taskmd init complete" in result.stdout
    storage = tmp_path / ".taskmd"
    assert (storage / "work-items").is_dir()
    assert (storage / "agents").is_dir()
    assert (storage / "project.md").exists()
    assert (storage / "tasks.json").exists()


def test_task_lifecycle(tmp_path: Path) -> None:
    invoke(tmp_path, "init")

    parent = invoke_json(tmp_path, "task", "create", "Epic", "--priority", "high", "--tag", "core")
    child = invoke_json(tmp_path, "task", "create", "Step", "--parent", parent["id"])

    assert parent["priority"] == "HIGH"
    assert parent["tags"] == ["core"]
    assert child["parentId"] == parent["id"]
    assert child["depth"] == 1
    assert child["type"] == "SUBTASK"

    updated = invoke_json(tmp_path, "task", "update", child["id"], "--status", "done")
    assert updated["status"] == "DONE"

    listed = invoke_json(tmp_path, "task", "list", "--status", "done")
    assert [entry["id"] for entry in listed] == [child["id"]]

    tree = invoke_json(tmp_path, "task", "tree")
    assert tree[0]["id"] == parent["id"]
    assert tree[0]["children"][0]["id"] == child["id"]

    refused = invoke(tmp_path, "task", "delete", parent["id"])
    assert refused.exit_code == 1
    assert "cascade" in refused.output

    deleted = invoke(tmp_path, "task", "delete", parent["id"], "--cascade")
    assert deleted.exit_code == 0, deleted.output
    assert invoke_json(tmp_path, "task", "list") == []


def test_show_unknown_task_fails(tmp_path: Path) -> None:
    result = invoke(tmp_path, "task", "show", "missing")
    assert result.exit_code == 1
    assert "Work item not found: missing" in result.output


def test_update_without_changes_fails(tmp_path: Path) -> None:
    result = invoke(tmp_path, "task", "update", "anything")
    assert result.exit_code == 1
    assert "Nothing to update" in result.output


def test_index_status_rebuild_and_show(tmp_path: Path) -> None:
    assert invoke_json(tmp_path, "index", "status")["state"] == "missing"

    rebuilt = invoke_json(tmp_path, "index", "rebuild")
    assert rebuilt["totalTasks"] == 0

    assert invoke_json(tmp_path, "index", "status")["state"] == "fresh"

    invoke_json(tmp_path, "task", "create", "Indexed")
    shown = invoke_json(tmp_path, "index", "show")
    assert shown["version"] == "1.0"
    assert shown["totalTasks"] == 1


def test_index_validate_reports_dangling_parent(tmp_path: Path) -> None:
    work_items = tmp_path / ".taskmd" / "work-items"
    work_items.mkdir(parents=True)
    (work_items / "lost.md").write_text(
        "---\nid: lost\ntitle: Lost\nparentId: ghost\ndepth: 1\n---\n", encoding="utf-8"
    )

    result = invoke(tmp_path, "index", "validate", "--json")

    assert result.exit_code == 2
    report = json.loads(result.stdout)
    assert report["ok"] is False
    assert report["issues"][0]["kind"] == "DANGLING_PARENT"


def test_index_validate_ok(tmp_path: Path) -> None:
    invoke(tmp_path, "init")
    result = invoke(tmp_path, "index", "validate")
    assert result.exit_code == 0
    assert "Hierarchy OK" in result.stdout


def test_snippets_json(tmp_path: Path) -> None:
    doc = tmp_path / "doc.md"
    doc.write_text('Plan ::task[Ship it]{priority="high"}\n', encoding="utf-8")

    result = runner.invoke(app, ["snippets", str(doc), "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert [s["text"] for s in data["snippets"]] == ["Ship it"]
    assert data["snippets"][0]["id"] in data["renderedText"]


def test_snippets_missing_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ["snippets", str(tmp_path / "nope.md")])
    assert result.exit_code == 1


def test_import_and_export_through_store(tmp_path: Path) -> None:
    invoke(tmp_path, "init", "--name", "Apollo")
    invoke_json(tmp_path, "task", "create", "Exported task")
    store = tmp_path / "store.json"

    summary = invoke_json(tmp_path, "import", "--store", str(store))
    assert summary["success"] is True
    assert summary["projectName"] == "Apollo"
    assert summary["workItemsProcessed"] == 1
    assert store.exists()

    out = tmp_path / "exported"
    result = invoke(
        tmp_path,
        "export",
        "--store",
        str(store),
        "--project-id",
        summary["projectId"],
        "--out",
        str(out),
    )
    assert result.exit_code == 0, result.output
    assert len(list((out / "work-items").glob("*.md"))) == 1
    assert (out / "project.md").exists()


def test_export_unknown_project_fails(tmp_path: Path) -> None:
    store = tmp_path / "store.json"
    result = invoke(tmp_path, "export", "--store", str(store), "--project-id", "nope")
    assert result.exit_code == 1
    assert "Project not in store" in result.output


def test_storage_dir_option(tmp_path: Path) -> None:
    invoke(tmp_path, "--storage-dir", "plans", "init")
    assert (tmp_path / "plans" / "work-items").is_dir()


def test_human_readable_output(tmp_path: Path) -> None:
    invoke(tmp_path, "init", "--name", "Apollo")
    parent = invoke_json(tmp_path, "task", "create", "Plan [launch]")
    invoke_json(tmp_path, "task", "create", "Book venue", "--parent", parent["id"])

    listed = invoke(tmp_path, "task", "list")
    assert listed.exit_code == 0, listed.output

    tree = invoke(tmp_path, "task", "tree")
    assert tree.exit_code == 0, tree.output
    assert "Book venue" in tree.stdout
    assert "Plan [launch]" in tree.stdout

    shown = invoke(tmp_path, "task", "show", parent["id"], "--body")
    assert shown.exit_code == 0, shown.output
    assert "PLANNED" in shown.stdout
    assert "## Description" in shown.stdout

    status = invoke(tmp_path, "index", "status")
    assert "fresh" in status.stdout


def test_snippets_table_and_html(tmp_path: Path) -> None:
    doc = tmp_path / "doc.md"
    doc.write_text("::agent[Reviewer]{role=qa}\n", encoding="utf-8")

    table = runner.invoke(app, ["snippets", str(doc)])
    assert table.exit_code == 0, table.output
    assert "add-agent" in table.stdout

    html = runner.invoke(app, ["snippets", str(doc), "--html"])
    assert "data-snippet-id=" in html.stdout
