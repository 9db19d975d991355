"""Tests for work-item CRUD through TaskService."""

from __future__ import annotations

from pathlib import Path

import pytest

from taskmd.errors import HierarchyError, TaskNotFoundError
from taskmd.index.cache import is_stale, load_index
from taskmd.index.hierarchy import validate_hierarchy
from taskmd.records.codec import read_record
from taskmd.records.types import TaskPriority, TaskStatus, TaskType
from taskmd.tasks.service import TaskService


@pytest.fixture
def service(storage_path: Path) -> TaskService:
    return TaskService("demo", storage_path)


def test_create_root_task_writes_file_and_index(service: TaskService, work_items: Path) -> None:
    task = service.create_task("Write docs", description="All of them.", priority="high", tags=["docs"])

    path = work_items / f"{task.id}.md"
    assert path.exists()
    on_disk = read_record(path)
    assert on_disk.title == "Write docs"
    assert on_disk.priority is TaskPriority.HIGH
    assert on_disk.type is TaskType.TASK
    assert on_disk.depth == 0
    assert on_disk.project_name == "demo"
    assert on_disk.tags == ["docs"]
    assert on_disk.has_description is True
    assert on_disk.created_at == on_disk.updated_at

    index = load_index("demo", service.storage_path)
    assert index is not None
    assert index.task_by_id[task.id].title == "Write docs"
    assert is_stale(index, service.storage_path) is False


def test_children_get_depth_order_and_subtask_type(service: TaskService) -> None:
    parent = service.create_task("Epic")
    first = service.create_task("Step one", parent_id=parent.id)
    second = service.create_task("Step two", parent_id=parent.id)
    grandchild = service.create_task("Detail", parent_id=first.id, type="bug")

    assert (first.depth, first.order_index, first.type) == (1, 0, TaskType.SUBTASK)
    assert (second.depth, second.order_index) == (1, 1)
    assert (grandchild.depth, grandchild.type) == (2, TaskType.BUG)

    index = service.index()
    assert index.tasks_by_parent[parent.id] == [first.id, second.id]
    assert index.task_by_id[parent.id].subtask_count == 2
    assert validate_hierarchy(index) == []


def test_create_under_unknown_parent_fails(service: TaskService) -> None:
    with pytest.raises(TaskNotFoundError):
        service.create_task("Lost", parent_id="nope")


def test_create_rejects_unknown_enum(service: TaskService) -> None:
    with pytest.raises(ValueError, match="TaskStatus"):
        service.create_task("Bad", status="shipped")


def test_get_task_reads_the_file(service: TaskService) -> None:
    task = service.create_task("Read me")
    assert service.get_task(task.id).title == "Read me"
    with pytest.raises(TaskNotFoundError):
        service.get_task("missing")


def test_list_filters_and_orders(service: TaskService) -> None:
    a = service.create_task("A")
    b = service.create_task("B", status="done")
    child = service.create_task("A1", parent_id=a.id, status="done")

    assert [e.id for e in service.list_tasks()] == [a.id, b.id, child.id]
    assert [e.id for e in service.list_tasks(status=TaskStatus.DONE)] == [b.id, child.id]
    assert [e.id for e in service.list_tasks(type="subtask")] == [child.id]


def test_list_tree(service: TaskService) -> None:
    parent = service.create_task("Parent")
    child = service.create_task("Child", parent_id=parent.id)

    tree = service.list_tree()

    assert [node.entry.id for node in tree] == [parent.id]
    assert [node.entry.id for node in tree[0].children] == [child.id]


def test_update_task_changes_fields(service: TaskService) -> None:
    task = service.create_task("Draft")

    updated = service.update_task(task.id, title="Final", status="in progress", tags=["x"])

    assert updated.title == "Final"
    assert updated.status is TaskStatus.IN_PROGRESS
    assert updated.tags == ["x"]
    assert updated.created_at == task.created_at
    assert service.index().task_by_id[task.id].status == "IN_PROGRESS"


def test_update_rejects_hierarchy_and_unknown_fields(service: TaskService) -> None:
    task = service.create_task("Fixed")
    with pytest.raises(ValueError, match="parent_id"):
        service.update_task(task.id, parent_id="other")
    with pytest.raises(TaskNotFoundError):
        service.update_task("missing", title="x")


def test_move_shifts_subtree_depths(service: TaskService) -> None:
    a = service.create_task("A")
    b = service.create_task("B")
    b1 = service.create_task("B1", parent_id=b.id)

    moved = service.move_task(b.id, a.id)

    assert (moved.parent_id, moved.depth, moved.order_index) == (a.id, 1, 0)
    index = service.index()
    assert index.task_by_id[b1.id].depth == 2
    assert index.tasks_by_parent[a.id] == [b.id]
    assert validate_hierarchy(index) == []

    back = service.move_task(b.id, None, order_index=5)
    assert (back.parent_id, back.depth, back.order_index) == (None, 0, 5)
    assert service.index().task_by_id[b1.id].depth == 1


def test_move_under_own_descendant_is_refused(service: TaskService) -> None:
    a = service.create_task("A")
    a1 = service.create_task("A1", parent_id=a.id)

    with pytest.raises(HierarchyError) as excinfo:
        service.move_task(a.id, a1.id)
    assert excinfo.value.reason_code == "CYCLE"
    with pytest.raises(HierarchyError):
        service.move_task(a.id, a.id)


def test_delete_leaf(service: TaskService, work_items: Path) -> None:
    task = service.create_task("Short lived")

    assert service.delete_task(task.id) == [task.id]

    assert not (work_items / f"{task.id}.md").exists()
    index = service.index()
    assert index.total_tasks == 0
    assert is_stale(index, service.storage_path) is False


def test_delete_with_children_needs_cascade(service: TaskService) -> None:
    parent = service.create_task("Parent")
    child = service.create_task("Child", parent_id=parent.id)
    grandchild = service.create_task("Grandchild", parent_id=child.id)

    with pytest.raises(HierarchyError) as excinfo:
        service.delete_task(parent.id)
    assert excinfo.value.reason_code == "HAS_SUBTASKS"
    assert service.index().total_tasks == 3

    deleted = service.delete_task(parent.id, cascade=True)

    assert deleted == [grandchild.id, child.id, parent.id]
    assert service.index().total_tasks == 0


def test_service_sees_files_edited_outside(service: TaskService, write_item) -> None:
    service.create_task("Mine")
    write_item("external", "Hand written")

    assert "external" in service.index().task_by_id
