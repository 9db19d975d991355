"""Structured documents exchanged with an external store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Agents share the work-item shape; an order index at or above this sorts them
# after every ordinary work item.
AGENT_ORDER_BASE = 9999


@dataclass
class ProjectDocument:
    id: str
    name: str
    description: str = ""
    source_id: str | None = None
    markdown_content: str | None = None
    has_front_matter: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "sourceId": self.source_id,
            "markdownContent": self.markdown_content,
            "hasFrontMatter": self.has_front_matter,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectDocument:
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            source_id=data.get("sourceId"),
            markdown_content=data.get("markdownContent"),
            has_front_matter=data.get("hasFrontMatter", False),
        )


@dataclass
class WorkItemDocument:
    """One work item (or agent) as the structured store keeps it.

    ``id``/``parent_id`` are store UUIDs; ``source_id`` is the record id the
    file used. For documents imported with front matter ``markdown_content``
    holds the body only; otherwise it holds the whole file.
    """

    id: str
    project_id: str
    source_id: str
    title: str
    description: str | None = None
    type: str = "TASK"
    status: str = "PLANNED"
    priority: str = "MEDIUM"
    functional_area: str = "SOFTWARE"
    parent_id: str | None = None
    depth: int = 0
    order_index: int = 0
    estimated_effort: str | None = None
    assigned_to: str | None = None
    due_date: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    tags: list[str] = field(default_factory=list)
    markdown_content: str | None = None
    has_front_matter: bool = False
    smart_snippets: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_agent(self) -> bool:
        return self.order_index >= AGENT_ORDER_BASE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "sourceId": self.source_id,
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "status": self.status,
            "priority": self.priority,
            "functionalArea": self.functional_area,
            "parentId": self.parent_id,
            "depth": self.depth,
            "orderIndex": self.order_index,
            "estimatedEffort": self.estimated_effort,
            "assignedTo": self.assigned_to,
            "dueDate": self.due_date,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "tags": list(self.tags),
            "markdownContent": self.markdown_content,
            "hasFrontMatter": self.has_front_matter,
            "smartSnippets": [dict(s) for s in self.smart_snippets],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkItemDocument:
        return cls(
            id=data["id"],
            project_id=data["projectId"],
            source_id=data.get("sourceId") or data["id"],
            title=data["title"],
            description=data.get("description"),
            type=data.get("type", "TASK"),
            status=data.get("status", "PLANNED"),
            priority=data.get("priority", "MEDIUM"),
            functional_area=data.get("functionalArea", "SOFTWARE"),
            parent_id=data.get("parentId"),
            depth=data.get("depth", 0),
            order_index=data["orderIndex"],
            estimated_effort=data.get("estimatedEffort"),
            assigned_to=data.get("assignedTo"),
            due_date=data.get("dueDate"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            tags=list(data.get("tags") or []),
            markdown_content=data.get("markdownContent"),
            has_front_matter=data.get("hasFrontMatter", False),
            smart_snippets=[dict(s) for s in data.get("smartSnippets") or []],
        )


@dataclass
class ProjectBundle:
    project: ProjectDocument
    work_items: list[WorkItemDocument] = field(default_factory=list)
    agents: list[WorkItemDocument] = field(default_factory=list)


@dataclass
class RehydrationResult:
    bundle: ProjectBundle
    success: bool = True
    projects_processed: int = 0
    work_items_processed: int = 0
    agents_processed: int = 0
    skipped_files: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def summary(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "projectId": self.bundle.project.id,
            "projectName": self.bundle.project.name,
            "projectsProcessed": self.projects_processed,
            "workItemsProcessed": self.work_items_processed,
            "agentsProcessed": self.agents_processed,
            "skippedFiles": list(self.skipped_files),
            "errors": list(self.errors),
        }
