"""Work-item record types."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

logger = logging.getLogger(__name__)


class TaskType(str, Enum):
    EPIC = "EPIC"
    FEATURE = "FEATURE"
    STORY = "STORY"
    TASK = "TASK"
    SUBTASK = "SUBTASK"
    BUG = "BUG"


class TaskStatus(str, Enum):
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    TESTING = "TESTING"
    DONE = "DONE"
    CANCELLED = "CANCELLED"
    BLOCKED = "BLOCKED"
    DEFERRED = "DEFERRED"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"
    CRITICAL = "CRITICAL"


class FunctionalArea(str, Enum):
    SOFTWARE = "SOFTWARE"
    LEGAL = "LEGAL"
    OPERATIONS = "OPERATIONS"
    MARKETING = "MARKETING"
    BUSINESS = "BUSINESS"


_E = TypeVar("_E", bound=Enum)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def normalize_enum_token(raw: str) -> str:
    """Normalize ``InProgress`` / ``in-progress`` / ``in progress`` to ``IN_PROGRESS``."""
    token = _CAMEL_BOUNDARY.sub("_", raw.strip())
    token = re.sub(r"[\s\-]+", "_", token)
    return token.upper()


def coerce_enum(enum_cls: type[_E], raw: str | None, default: _E) -> _E:
    """Map a front-matter value onto ``enum_cls``, falling back to ``default``."""
    if raw is None or not raw.strip():
        return default
    try:
        return enum_cls(normalize_enum_token(raw))
    except ValueError:
        logger.warning(
            "Unknown %s value %r; using %s", enum_cls.__name__, raw, default.value
        )
        return default


@dataclass
class TaskRecord:
    """One work item, parsed from (or rendered to) a markdown file.

    The scan-time fields (``filename`` through ``content_hash``) are filled in
    by the codec from the file being read; they are never written back.
    """

    id: str
    title: str = "Untitled"
    type: TaskType = TaskType.TASK
    status: TaskStatus = TaskStatus.PLANNED
    priority: TaskPriority = TaskPriority.MEDIUM
    functional_area: FunctionalArea = FunctionalArea.SOFTWARE
    parent_id: str | None = None
    depth: int = 0
    order_index: int = 0
    estimated_effort: str | None = None
    assigned_to: str | None = None
    due_date: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    project_name: str | None = None
    tags: list[str] = field(default_factory=list)
    body: str = ""

    # Scan-time derived
    has_description: bool = field(default=False, compare=False)
    filename: str | None = field(default=None, compare=False)
    file_path: str | None = field(default=None, compare=False)
    file_modified: str | None = field(default=None, compare=False)
    file_size: int = field(default=0, compare=False)
    content_hash: str = field(default="", compare=False)

    @property
    def default_filename(self) -> str:
        return f"{self.id}.md"
