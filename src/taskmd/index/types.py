"""Cache index types and their JSON shape.

The JSON keys are camelCase because UI-side query code reads ``tasks.json``
directly; keep the shape stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from taskmd.records.types import TaskRecord

INDEX_VERSION = "1.0"


@dataclass
class TaskCacheEntry:
    """Index projection of a record: front matter plus file metadata, no body."""

    id: str
    title: str
    type: str
    status: str
    priority: str
    functional_area: str
    parent_id: str | None
    depth: int
    order_index: int
    estimated_effort: str | None
    created_at: str | None
    updated_at: str | None
    filename: str
    file_path: str
    file_modified: str
    file_size: int
    has_description: bool
    content_hash: str
    has_subtasks: bool = False
    subtask_count: int = 0

    @classmethod
    def from_record(cls, record: TaskRecord) -> TaskCacheEntry:
        return cls(
            id=record.id,
            title=record.title,
            type=record.type.value,
            status=record.status.value,
            priority=record.priority.value,
            functional_area=record.functional_area.value,
            parent_id=record.parent_id,
            depth=record.depth,
            order_index=record.order_index,
            estimated_effort=record.estimated_effort,
            created_at=record.created_at,
            updated_at=record.updated_at,
            filename=record.filename or record.default_filename,
            file_path=record.file_path or "",
            file_modified=record.file_modified or "",
            file_size=record.file_size,
            has_description=record.has_description,
            content_hash=record.content_hash,
        )

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.order_index, self.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "status": self.status,
            "priority": self.priority,
            "functionalArea": self.functional_area,
            "parentId": self.parent_id,
            "depth": self.depth,
            "orderIndex": self.order_index,
            "estimatedEffort": self.estimated_effort,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "filename": self.filename,
            "filePath": self.file_path,
            "fileModified": self.file_modified,
            "fileSize": self.file_size,
            "hasDescription": self.has_description,
            "hasSubtasks": self.has_subtasks,
            "subtaskCount": self.subtask_count,
            "contentHash": self.content_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaskCacheEntry:
        return cls(
            id=data["id"],
            title=data["title"],
            type=data["type"],
            status=data["status"],
            priority=data["priority"],
            functional_area=data["functionalArea"],
            parent_id=data.get("parentId"),
            depth=data["depth"],
            order_index=data["orderIndex"],
            estimated_effort=data.get("estimatedEffort"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            filename=data["filename"],
            file_path=data["filePath"],
            file_modified=data["fileModified"],
            file_size=data["fileSize"],
            has_description=data["hasDescription"],
            content_hash=data["contentHash"],
            has_subtasks=data["hasSubtasks"],
            subtask_count=data["subtaskCount"],
        )


@dataclass
class CacheIndex:
    """Derived, disposable summary of every record in one project."""

    project_name: str
    generated_at: str
    last_scan_path: str
    tasks: list[TaskCacheEntry] = field(default_factory=list)
    files_scanned: list[str] = field(default_factory=list)
    orphaned_files: list[str] = field(default_factory=list)
    version: str = INDEX_VERSION
    task_by_id: dict[str, TaskCacheEntry] = field(default_factory=dict)
    tasks_by_parent: dict[str, list[str]] = field(default_factory=dict)
    tasks_by_status: dict[str, list[str]] = field(default_factory=dict)
    tasks_by_type: dict[str, list[str]] = field(default_factory=dict)

    @property
    def total_tasks(self) -> int:
        return len(self.tasks)

    @property
    def generated_at_dt(self) -> datetime:
        return datetime.fromisoformat(self.generated_at)

    @property
    def known_files(self) -> set[str]:
        """Every file name seen by the last scan, parsed or not."""
        return set(self.files_scanned) | set(self.orphaned_files)

    def get(self, task_id: str) -> TaskCacheEntry | None:
        return self.task_by_id.get(task_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "projectName": self.project_name,
            "generatedAt": self.generated_at,
            "totalTasks": self.total_tasks,
            "tasks": [entry.to_dict() for entry in self.tasks],
            "taskById": {task_id: entry.to_dict() for task_id, entry in self.task_by_id.items()},
            "tasksByParent": {k: list(v) for k, v in self.tasks_by_parent.items()},
            "tasksByStatus": {k: list(v) for k, v in self.tasks_by_status.items()},
            "tasksByType": {k: list(v) for k, v in self.tasks_by_type.items()},
            "lastScanPath": self.last_scan_path,
            "filesScanned": list(self.files_scanned),
            "orphanedFiles": list(self.orphaned_files),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheIndex:
        """Rehydrate from the JSON shape; lookup maps are recomputed by the caller."""
        return cls(
            version=data["version"],
            project_name=data["projectName"],
            generated_at=data["generatedAt"],
            last_scan_path=data["lastScanPath"],
            tasks=[TaskCacheEntry.from_dict(item) for item in data["tasks"]],
            files_scanned=list(data["filesScanned"]),
            orphaned_files=list(data["orphanedFiles"]),
        )
