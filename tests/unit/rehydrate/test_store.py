"""Tests for the document stores and storage directory scaffolding."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from taskmd.errors import DocumentStoreError
from taskmd.rehydrate.engine import RehydrationEngine
from taskmd.rehydrate.layout import init_project_structure
from taskmd.rehydrate.store import InMemoryDocumentStore, JsonDocumentStore
from taskmd.rehydrate.types import ProjectDocument, WorkItemDocument


def sample_documents() -> tuple[ProjectDocument, list[WorkItemDocument]]:
    project = ProjectDocument(id="p1", name="Demo", description="A project")
    items = [
        WorkItemDocument(id="w2", project_id="p1", source_id="b", title="B", order_index=1),
        WorkItemDocument(id="w1", project_id="p1", source_id="a", title="A", order_index=1),
        WorkItemDocument(id="w0", project_id="p1", source_id="z", title="Z", order_index=0),
        WorkItemDocument(id="x", project_id="other", source_id="x", title="X"),
    ]
    return project, items


def test_memory_store_lists_by_order_then_source_id() -> None:
    store = InMemoryDocumentStore()
    project, items = sample_documents()
    store.create_project(project)
    for item in items:
        store.create_work_item(item)

    assert store.get_project("p1") is project
    assert store.get_project("missing") is None
    assert [item.source_id for item in store.list_work_items("p1")] == ["z", "a", "b"]


def test_creates_overwrite_by_id() -> None:
    store = InMemoryDocumentStore()
    store.create_work_item(WorkItemDocument(id="w", project_id="p", source_id="s", title="Old"))
    store.create_work_item(WorkItemDocument(id="w", project_id="p", source_id="s", title="New"))
    assert [item.title for item in store.list_work_items("p")] == ["New"]


def test_json_store_persists_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    store = JsonDocumentStore(path)
    project, items = sample_documents()
    store.create_project(project)
    for item in items:
        store.create_work_item(item)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["version"] == "1.0"
    assert data["projects"]["p1"]["name"] == "Demo"
    assert data["workItems"]["w1"]["sourceId"] == "a"

    reloaded = JsonDocumentStore(path)
    assert reloaded.get_project("p1") == project
    assert reloaded.list_work_items("p1") == store.list_work_items("p1")


def test_json_store_rejects_garbage(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    path.write_text("{oops", encoding="utf-8")
    with pytest.raises(DocumentStoreError) as excinfo:
        JsonDocumentStore(path)
    assert excinfo.value.reason_code == "PARSE_ERROR"


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"version": "1.0"},
        {"version": "1.0", "projects": {}, "workItems": {"w": {"id": "w"}}},
    ],
    ids=["not-object", "missing-maps", "incomplete-item"],
)
def test_json_store_rejects_invalid_shape(tmp_path: Path, payload: object) -> None:
    path = tmp_path / "store.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(DocumentStoreError) as excinfo:
        JsonDocumentStore(path)
    assert excinfo.value.reason_code == "SCHEMA_INVALID"


def test_import_into_json_store_then_sync(tmp_path: Path) -> None:
    source = tmp_path / "source"
    init_project_structure(source, "Demo")
    store_path = tmp_path / "store.json"

    result = RehydrationEngine(JsonDocumentStore(store_path)).import_project(source)
    assert result.success is True

    engine = RehydrationEngine(JsonDocumentStore(store_path))
    engine.sync_to_filesystem(result.bundle.project.id, tmp_path / "synced")
    assert (tmp_path / "synced" / "project.md").read_text(encoding="utf-8") == (
        source / "project.md"
    ).read_text(encoding="utf-8")


class CountingStore(JsonDocumentStore):
    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self.saves = 0

    def save(self) -> None:
        self.saves += 1
        super().save()


def test_batch_saves_once_when_outermost_batch_exits(tmp_path: Path) -> None:
    store = CountingStore(tmp_path / "store.json")
    project, items = sample_documents()

    with store.batch():
        store.create_project(project)
        with store.batch():
            for item in items:
                store.create_work_item(item)
        assert store.saves == 0
        assert not store.path.exists()

    assert store.saves == 1
    assert len(JsonDocumentStore(store.path).list_work_items("p1")) == 3


def test_failed_batch_leaves_the_file_alone(tmp_path: Path) -> None:
    store = CountingStore(tmp_path / "store.json")
    project, _ = sample_documents()

    with pytest.raises(RuntimeError):
        with store.batch():
            store.create_project(project)
            raise RuntimeError("interrupted")

    assert store.saves == 0
    assert not store.path.exists()


def test_import_writes_the_json_store_once(tmp_path: Path) -> None:
    source = tmp_path / "source"
    init_project_structure(source, "Demo")
    for name in ("one", "two", "three"):
        (source / "work-items" / f"{name}.md").write_text(
            f"---\nid: {name}\ntitle: {name}\n---\n", encoding="utf-8"
        )
    store = CountingStore(tmp_path / "store.json")

    result = RehydrationEngine(store).import_project(source)

    assert result.work_items_processed >= 3
    assert store.saves == 1


def test_init_creates_layout_once(tmp_path: Path) -> None:
    root = tmp_path / ".taskmd"

    created = init_project_structure(root, "Acme")

    assert {p.relative_to(tmp_path).as_posix() for p in created} == {
        ".taskmd",
        ".taskmd/work-items",
        ".taskmd/agents",
        ".taskmd/project.md",
    }
    text = (root / "project.md").read_text(encoding="utf-8")
    assert text.startswith('---\nname: "Acme"\n---\n# Acme\n')
    assert '`::task[Task Name]{priority="high"}`' in text

    (root / "project.md").write_text("# Customized\n", encoding="utf-8")
    assert init_project_structure(root, "Acme") == []
    assert (root / "project.md").read_text(encoding="utf-8") == "# Customized\n"


def test_starter_project_imports_without_snippets(tmp_path: Path) -> None:
    init_project_structure(tmp_path / "p", "Acme")

    result = RehydrationEngine().import_project(tmp_path / "p")

    project = result.bundle.project
    assert project.name == "Acme"
    assert project.description.startswith("Work items for Acme")
    assert result.bundle.work_items == []
