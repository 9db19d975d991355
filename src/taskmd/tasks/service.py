"""Work-item CRUD over record files.

Every write goes through the record codec and then folds the changed file
into the cache index with ``upsert_one``/``remove_one``, so the index never
needs a full rescan after edits made here.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from taskmd.artifacts.canonical_json import atomic_write_text
from taskmd.errors import HierarchyError, TaskNotFoundError
from taskmd.index.cache import DEFAULT_INDEX_FILENAME, DEFAULT_WORK_ITEMS_DIR, TaskCache
from taskmd.index.hierarchy import build_tree, children_of, descendants_of, roots
from taskmd.records.codec import default_body, read_record, render_record
from taskmd.records.types import (
    FunctionalArea,
    TaskPriority,
    TaskRecord,
    TaskStatus,
    TaskType,
    normalize_enum_token,
)

if TYPE_CHECKING:
    from taskmd.config import TaskmdConfig
    from taskmd.index.hierarchy import TreeNode
    from taskmd.index.types import CacheIndex, TaskCacheEntry

logger = logging.getLogger(__name__)

_ENUM_FIELDS: dict[str, type[Enum]] = {
    "type": TaskType,
    "status": TaskStatus,
    "priority": TaskPriority,
    "functional_area": FunctionalArea,
}
UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "type",
        "status",
        "priority",
        "functional_area",
        "estimated_effort",
        "assigned_to",
        "due_date",
        "tags",
        "body",
    }
)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _as_enum(enum_cls: type[Enum], value: Any) -> Enum:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(normalize_enum_token(str(value)))
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"Invalid {enum_cls.__name__} {value!r}; expected one of {allowed}") from exc


class TaskService:
    """Create, read, update, move and delete work items for one project."""

    def __init__(
        self,
        project_name: str,
        storage_path: Path,
        *,
        work_items_dir: str = DEFAULT_WORK_ITEMS_DIR,
        index_filename: str = DEFAULT_INDEX_FILENAME,
        cache: TaskCache | None = None,
    ) -> None:
        self.project_name = project_name
        self.storage_path = Path(storage_path)
        self.cache = cache or TaskCache(
            project_name,
            self.storage_path,
            work_items_dir=work_items_dir,
            index_filename=index_filename,
        )

    @classmethod
    def from_config(cls, config: TaskmdConfig) -> TaskService:
        return cls(config.project_name, config.storage_path, cache=TaskCache.from_config(config))

    @property
    def work_items_path(self) -> Path:
        return self.cache.work_items_path

    def index(self) -> CacheIndex:
        return self.cache.get_fresh()

    def _entry(self, index: CacheIndex, task_id: str) -> TaskCacheEntry:
        entry = index.get(task_id)
        if entry is None:
            raise TaskNotFoundError(task_id)
        return entry

    def _write(self, index: CacheIndex, record: TaskRecord) -> TaskRecord:
        existing = index.get(record.id)
        filename = (existing.filename if existing else None) or record.filename or record.default_filename
        path = self.work_items_path / filename
        atomic_write_text(path, render_record(record))
        record.filename = filename
        record.file_path = str(path)
        self.cache.upsert_one(index, record)
        return read_record(path)

    def create_task(
        self,
        title: str,
        *,
        parent_id: str | None = None,
        description: str | None = None,
        type: TaskType | str | None = None,
        status: TaskStatus | str = TaskStatus.PLANNED,
        priority: TaskPriority | str = TaskPriority.MEDIUM,
        functional_area: FunctionalArea | str = FunctionalArea.SOFTWARE,
        estimated_effort: str | None = None,
        assigned_to: str | None = None,
        due_date: str | None = None,
        tags: list[str] | None = None,
    ) -> TaskRecord:
        """Create a work item under ``parent_id`` (or at the root).

        Depth is the parent's depth plus one; the order index is the number of
        existing siblings, so new items sort last.

        Raises:
            TaskNotFoundError: If ``parent_id`` names no existing work item
        """
        index = self.index()
        depth = 0
        if parent_id:
            parent = self._entry(index, parent_id)
            depth = parent.depth + 1
            order_index = len(index.tasks_by_parent.get(parent_id, []))
        else:
            order_index = len(roots(index))

        if type is None:
            type = TaskType.SUBTASK if depth > 0 else TaskType.TASK

        timestamp = _now()
        record = TaskRecord(
            id=str(uuid.uuid4()),
            title=title.strip() or "Untitled",
            type=_as_enum(TaskType, type),
            status=_as_enum(TaskStatus, status),
            priority=_as_enum(TaskPriority, priority),
            functional_area=_as_enum(FunctionalArea, functional_area),
            parent_id=parent_id or None,
            depth=depth,
            order_index=order_index,
            estimated_effort=estimated_effort,
            assigned_to=assigned_to,
            due_date=due_date,
            created_at=timestamp,
            updated_at=timestamp,
            project_name=self.project_name,
            tags=list(tags or []),
        )
        record.body = default_body(record, description)
        created = self._write(index, record)
        logger.info("Created work item %s (%s)", created.id, created.title)
        return created

    def get_task(self, task_id: str) -> TaskRecord:
        """Read one work item from its file.

        Raises:
            TaskNotFoundError: If the id is unknown or its file has gone
        """
        entry = self._entry(self.index(), task_id)
        try:
            return read_record(self.work_items_path / entry.filename)
        except FileNotFoundError as exc:
            raise TaskNotFoundError(task_id) from exc

    def list_tasks(
        self,
        *,
        status: TaskStatus | str | None = None,
        type: TaskType | str | None = None,
    ) -> list[TaskCacheEntry]:
        index = self.index()
        entries = list(index.tasks)
        if status is not None:
            wanted = _as_enum(TaskStatus, status).value
            entries = [e for e in entries if e.status == wanted]
        if type is not None:
            wanted = _as_enum(TaskType, type).value
            entries = [e for e in entries if e.type == wanted]
        return sorted(entries, key=lambda e: (e.depth, e.sort_key))

    def list_tree(self) -> list[TreeNode]:
        return build_tree(self.index())

    def update_task(self, task_id: str, **changes: Any) -> TaskRecord:
        """Apply field changes and refresh ``updated_at``.

        Hierarchy fields change through ``move_task`` only.

        Raises:
            TaskNotFoundError: If the id is unknown
            ValueError: On an unknown field or enum value
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        index = self.index()
        entry = self._entry(index, task_id)
        record = read_record(self.work_items_path / entry.filename)
        for key, value in changes.items():
            if key in _ENUM_FIELDS:
                value = _as_enum(_ENUM_FIELDS[key], value)
            elif key == "tags":
                value = list(value or [])
            setattr(record, key, value)
        record.updated_at = _now()
        return self._write(index, record)

    def move_task(
        self,
        task_id: str,
        new_parent_id: str | None,
        *,
        order_index: int | None = None,
    ) -> TaskRecord:
        """Re-parent a work item and shift the depth of its whole subtree.

        Raises:
            TaskNotFoundError: If either id is unknown
            HierarchyError: If the move would put the item under itself
        """
        index = self.index()
        entry = self._entry(index, task_id)
        subtree = descendants_of(index, task_id)

        new_depth = 0
        if new_parent_id:
            parent = self._entry(index, new_parent_id)
            if new_parent_id == task_id or new_parent_id in {d.id for d in subtree}:
                raise HierarchyError(
                    f"Cannot move {task_id} under {new_parent_id}: it would create a cycle",
                    "CYCLE",
                )
            new_depth = parent.depth + 1
            siblings = [c for c in children_of(index, new_parent_id) if c.id != task_id]
        else:
            siblings = [r for r in roots(index) if r.id != task_id]

        record = read_record(self.work_items_path / entry.filename)
        shift = new_depth - record.depth
        record.parent_id = new_parent_id or None
        record.depth = new_depth
        record.order_index = order_index if order_index is not None else len(siblings)
        record.updated_at = _now()
        moved = self._write(index, record)

        if shift:
            for descendant in subtree:
                child = read_record(self.work_items_path / descendant.filename)
                child.depth += shift
                self._write(index, child)

        logger.info(
            "Moved work item %s under %s (%d descendants)",
            task_id,
            new_parent_id or "root",
            len(subtree),
        )
        return moved

    def delete_task(self, task_id: str, *, cascade: bool = False) -> list[str]:
        """Delete a work item, and with ``cascade`` everything below it.

        Returns:
            Deleted ids, children before their parents

        Raises:
            TaskNotFoundError: If the id is unknown
            HierarchyError: If the item has subtasks and ``cascade`` is false
        """
        index = self.index()
        entry = self._entry(index, task_id)
        subtree = descendants_of(index, task_id)
        if subtree and not cascade:
            raise HierarchyError(
                f"Work item {task_id} has {len(subtree)} descendant(s); delete with cascade",
                "HAS_SUBTASKS",
            )

        # Reversed pre-order puts every child before its parent.
        doomed = [*reversed(subtree), entry]
        deleted: list[str] = []
        for item in doomed:
            (self.work_items_path / item.filename).unlink(missing_ok=True)
            self.cache.remove_one(index, item.id)
            deleted.append(item.id)
        logger.info("Deleted %d work item(s) starting at %s", len(deleted), task_id)
        return deleted
