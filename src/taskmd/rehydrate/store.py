"""Structured document stores the rehydration engine reads and writes."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import Any, Protocol

from taskmd.artifacts.canonical_json import read_json, write_json
from taskmd.errors import (
    STORE_REASON_PARSE_ERROR,
    STORE_REASON_SCHEMA_INVALID,
    DocumentStoreError,
)
from taskmd.rehydrate.types import ProjectDocument, WorkItemDocument
from taskmd.schemas.validator import validate_data

logger = logging.getLogger(__name__)

STORE_VERSION = "1.0"


class DocumentStore(Protocol):
    """Create/read boundary of the external store. Creates overwrite by id."""

    def create_project(self, project: ProjectDocument) -> None: ...

    def create_work_item(self, item: WorkItemDocument) -> None: ...

    def get_project(self, project_id: str) -> ProjectDocument | None: ...

    def list_work_items(self, project_id: str) -> list[WorkItemDocument]: ...

    def batch(self) -> AbstractContextManager[None]:
        """Group several creates so the store can flush them together."""
        ...


def _sorted_items(items: list[WorkItemDocument]) -> list[WorkItemDocument]:
    return sorted(items, key=lambda item: (item.order_index, item.source_id))


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self.projects: dict[str, ProjectDocument] = {}
        self.work_items: dict[str, WorkItemDocument] = {}

    def create_project(self, project: ProjectDocument) -> None:
        self.projects[project.id] = project

    def create_work_item(self, item: WorkItemDocument) -> None:
        self.work_items[item.id] = item

    def get_project(self, project_id: str) -> ProjectDocument | None:
        return self.projects.get(project_id)

    def list_work_items(self, project_id: str) -> list[WorkItemDocument]:
        return _sorted_items(
            [item for item in self.work_items.values() if item.project_id == project_id]
        )

    @contextmanager
    def batch(self) -> Iterator[None]:
        yield


class JsonDocumentStore(InMemoryDocumentStore):
    """Single canonical JSON file, rewritten atomically.

    Each create saves immediately unless it runs inside ``batch()``, which
    saves once when the outermost batch exits cleanly.
    """

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = Path(path)
        self._batch_depth = 0
        if self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            data = read_json(self.path)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DocumentStoreError(
                f"Document store {self.path} is not valid JSON: {exc}", STORE_REASON_PARSE_ERROR
            ) from exc
        if not isinstance(data, dict):
            raise DocumentStoreError(
                f"Document store {self.path} is not a JSON object", STORE_REASON_SCHEMA_INVALID
            )
        ok, errors = validate_data(data, "document_store", strict=False)
        if not ok:
            raise DocumentStoreError(
                f"Document store {self.path} failed validation: " + "; ".join(errors[:5]),
                STORE_REASON_SCHEMA_INVALID,
            )
        self.projects = {
            key: ProjectDocument.from_dict(value) for key, value in data["projects"].items()
        }
        self.work_items = {
            key: WorkItemDocument.from_dict(value) for key, value in data["workItems"].items()
        }
        logger.debug(
            "Loaded %d projects, %d work items from %s",
            len(self.projects),
            len(self.work_items),
            self.path,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": STORE_VERSION,
            "projects": {key: doc.to_dict() for key, doc in self.projects.items()},
            "workItems": {key: doc.to_dict() for key, doc in self.work_items.items()},
        }

    def save(self) -> None:
        write_json(self.path, self.to_dict())

    @contextmanager
    def batch(self) -> Iterator[None]:
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
        self._changed()

    def _changed(self) -> None:
        if not self._batch_depth:
            self.save()

    def create_project(self, project: ProjectDocument) -> None:
        super().create_project(project)
        self._changed()

    def create_work_item(self, item: WorkItemDocument) -> None:
        super().create_work_item(item)
        self._changed()
