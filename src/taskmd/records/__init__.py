"""Work-item records and their markdown file codec."""

from taskmd.records.codec import (
    content_hash,
    default_body,
    has_front_matter,
    parse_record,
    read_record,
    render_record,
)
from taskmd.records.types import (
    FunctionalArea,
    TaskPriority,
    TaskRecord,
    TaskStatus,
    TaskType,
)

__all__ = [
    "FunctionalArea",
    "TaskPriority",
    "TaskRecord",
    "TaskStatus",
    "TaskType",
    "content_hash",
    "default_body",
    "has_front_matter",
    "parse_record",
    "read_record",
    "render_record",
]
