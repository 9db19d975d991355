"""Record codec: one markdown file <-> one TaskRecord.

File layout::

    ---
    id: 3f0c...
    title: "Patch auth check"
    type: TASK
    ...
    ---
    <markdown body>

Front matter is a flat ``key: value`` list, not general YAML. Values may be
wrapped in one pair of quotes; the bare token ``null`` and a bare empty value
both mean unset, while ``""`` is the empty string. Values are single-line;
rendering refuses anything else.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from taskmd.errors import (
    RECORD_REASON_MISSING_DELIMITERS,
    RECORD_REASON_MISSING_ID,
    RECORD_REASON_MULTILINE_VALUE,
    RECORD_REASON_UNQUOTABLE_TAG,
    RecordParseError,
    RecordRenderError,
)
from taskmd.records.sections import NO_DESCRIPTION_PLACEHOLDER, has_description
from taskmd.records.types import (
    FunctionalArea,
    TaskPriority,
    TaskRecord,
    TaskStatus,
    TaskType,
    coerce_enum,
)

if TYPE_CHECKING:
    import os
    from pathlib import Path


FRONT_MATTER_DELIMITER = "---"
NULL_TOKEN = "null"
INT_FIELDS = frozenset({"depth", "orderIndex"})

# Written in this order; anything else in a file is ignored on read.
FRONT_MATTER_KEYS: tuple[str, ...] = (
    "id",
    "title",
    "type",
    "status",
    "priority",
    "functionalArea",
    "parentId",
    "depth",
    "orderIndex",
    "estimatedEffort",
    "assignedTo",
    "dueDate",
    "createdAt",
    "updatedAt",
    "projectName",
    "tags",
)
_ALWAYS_QUOTED = frozenset({"title", "estimatedEffort", "assignedTo"})

_QUOTE_EDGES = re.compile(r"^[\"']|[\"']$")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
# Quoted items may hold commas; bare items run to the next comma.
_TAG_ITEM = re.compile(r"\"([^\"]*)\"|'([^']*)'|([^,\"'\s][^,]*)")


def content_hash(text: str) -> str:
    """Fast 32-bit rolling hash (``h * 31 + c``) rendered in base 36.

    Only a change-detection hint; collisions are acceptable.
    """
    value = 0
    for char in text:
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    if value & 0x80000000:
        value -= 0x100000000
    return _to_base36(value)


def _to_base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    out: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        out.append(digits[rem])
    return sign + "".join(reversed(out))


def _coerce_int(raw: str) -> int:
    match = _LEADING_INT.match(raw)
    return int(match.group(1)) if match else 0


def _parse_tags(raw: str) -> list[str]:
    inner = raw.strip()
    if inner.startswith("[") and inner.endswith("]"):
        inner = inner[1:-1]
    tags: list[str] = []
    for match in _TAG_ITEM.finditer(inner):
        double, single, bare = match.groups()
        if bare is not None:
            if bare.strip():
                tags.append(bare.strip())
        else:
            tags.append(double if double is not None else single)
    return tags


def find_front_matter(lines: list[str]) -> tuple[int, int] | None:
    """Return (open, close) line indices of the first ``---`` pair."""
    start = next(
        (idx for idx, line in enumerate(lines) if line.strip() == FRONT_MATTER_DELIMITER),
        -1,
    )
    if start == -1:
        return None
    end = next(
        (
            idx
            for idx in range(start + 1, len(lines))
            if lines[idx].strip() == FRONT_MATTER_DELIMITER
        ),
        -1,
    )
    if end == -1:
        return None
    return start, end


def parse_front_matter(lines: list[str]) -> dict[str, str | int | list[str] | None]:
    """Parse flat ``key: value`` lines. Indented (nested) lines are skipped."""
    values: dict[str, str | int | list[str] | None] = {}
    for raw_line in lines:
        if not raw_line.strip() or raw_line[:1] in (" ", "\t"):
            continue
        line = raw_line.strip()
        if ":" not in line:
            continue
        key, raw_value = line.split(":", 1)
        key = key.strip()
        value = raw_value.strip()

        if value == NULL_TOKEN or not value:
            values[key] = None
        elif key in INT_FIELDS:
            values[key] = _coerce_int(_QUOTE_EDGES.sub("", value))
        elif key == "tags":
            values[key] = _parse_tags(value)
        else:
            values[key] = _QUOTE_EDGES.sub("", value)
    return values


def has_front_matter(raw_text: str) -> bool:
    return find_front_matter(raw_text.split("\n")) is not None


def parse_record(
    raw_text: str,
    filename: str,
    file_stat: os.stat_result | None = None,
    file_path: str | None = None,
) -> TaskRecord:
    """Parse one work-item file.

    Raises:
        RecordParseError: ``MISSING_DELIMITERS`` without a ``---`` pair,
            ``MISSING_ID`` when the front matter declares no id
    """
    lines = raw_text.split("\n")
    bounds = find_front_matter(lines)
    if bounds is None:
        raise RecordParseError(
            f"{filename}: no '---' delimited front matter",
            RECORD_REASON_MISSING_DELIMITERS,
            filename=filename,
        )
    start, end = bounds
    fm = parse_front_matter(lines[start + 1 : end])

    record_id = fm.get("id")
    if not isinstance(record_id, str) or not record_id.strip():
        raise RecordParseError(
            f"{filename}: front matter has no id",
            RECORD_REASON_MISSING_ID,
            filename=filename,
        )

    body = "\n".join(lines[end + 1 :])

    def text(key: str) -> str | None:
        value = fm.get(key)
        return value if isinstance(value, str) else None

    def number(key: str) -> int:
        value = fm.get(key)
        return value if isinstance(value, int) else 0

    title = text("title")
    tags = fm.get("tags")
    record = TaskRecord(
        id=record_id.strip(),
        title="Untitled" if title is None else title,
        type=coerce_enum(TaskType, text("type"), TaskType.TASK),
        status=coerce_enum(TaskStatus, text("status"), TaskStatus.PLANNED),
        priority=coerce_enum(TaskPriority, text("priority"), TaskPriority.MEDIUM),
        functional_area=coerce_enum(
            FunctionalArea, text("functionalArea"), FunctionalArea.SOFTWARE
        ),
        parent_id=text("parentId") or None,
        depth=number("depth"),
        order_index=number("orderIndex"),
        estimated_effort=text("estimatedEffort"),
        assigned_to=text("assignedTo"),
        due_date=text("dueDate"),
        created_at=text("createdAt"),
        updated_at=text("updatedAt"),
        project_name=text("projectName"),
        tags=list(tags) if isinstance(tags, list) else [],
        body=body,
    )

    record.has_description = has_description(body)
    record.filename = filename
    record.file_path = file_path
    record.content_hash = content_hash(raw_text)
    if file_stat is not None:
        record.file_modified = datetime.fromtimestamp(file_stat.st_mtime, tz=UTC).isoformat()
        record.file_size = file_stat.st_size
    return record


def read_record(path: Path) -> TaskRecord:
    """Stat, read and parse one file.

    Raises:
        OSError: If the file cannot be read
        RecordParseError: If the content is not a valid record
    """
    stat = path.stat()
    raw_text = path.read_text(encoding="utf-8")
    return parse_record(raw_text, path.name, stat, str(path))


def _format_value(key: str, value: str | int | list[str] | None) -> str:
    if value is None:
        return NULL_TOKEN
    if isinstance(value, int):
        return str(value)
    if isinstance(value, list):
        return "[" + ", ".join(_format_tag(tag) for tag in value) + "]"
    _require_single_line(key, value)
    needs_quotes = (
        key in _ALWAYS_QUOTED
        or not value
        or value != value.strip()
        or value[:1] in ("'", '"')
        or value[-1:] in ("'", '"')
        or value == NULL_TOKEN
    )
    return f'"{value}"' if needs_quotes else value


def _format_tag(tag: str) -> str:
    _require_single_line("tags", tag)
    if '"' not in tag:
        return f'"{tag}"'
    if "'" not in tag:
        return f"'{tag}'"
    raise RecordRenderError(
        f"Tag {tag!r} holds both quote characters", RECORD_REASON_UNQUOTABLE_TAG
    )


def _require_single_line(key: str, value: str) -> None:
    if "\n" in value or "\r" in value:
        raise RecordRenderError(
            f"{key} must be a single line: {value!r}", RECORD_REASON_MULTILINE_VALUE
        )


def front_matter_values(record: TaskRecord) -> dict[str, str | int | list[str] | None]:
    return {
        "id": record.id,
        "title": record.title,
        "type": record.type.value,
        "status": record.status.value,
        "priority": record.priority.value,
        "functionalArea": record.functional_area.value,
        "parentId": record.parent_id or None,
        "depth": record.depth,
        "orderIndex": record.order_index,
        "estimatedEffort": record.estimated_effort,
        "assignedTo": record.assigned_to,
        "dueDate": record.due_date,
        "createdAt": record.created_at,
        "updatedAt": record.updated_at,
        "projectName": record.project_name,
        "tags": list(record.tags),
    }


def render_record(record: TaskRecord) -> str:
    """Serialize a record to file text; ``parse_record`` reverses it."""
    values = front_matter_values(record)
    lines = [FRONT_MATTER_DELIMITER]
    lines.extend(f"{key}: {_format_value(key, values[key])}" for key in FRONT_MATTER_KEYS)
    lines.append(FRONT_MATTER_DELIMITER)
    return "\n".join(lines) + "\n" + record.body


def default_body(record: TaskRecord, description: str | None = None) -> str:
    """Standard body for a newly created work item."""
    parts = [
        "",
        f"# {record.title}",
        "",
        "## Description",
        (description or "").strip() or NO_DESCRIPTION_PLACEHOLDER,
        "",
    ]
    if record.depth > 0:
        parts += ["## Parent Task", f"This is a subtask (depth: {record.depth})", ""]
    parts += [
        "## Classification",
        f"- **Type:** {record.type.value}",
        f"- **Priority:** {record.priority.value}",
        f"- **Functional Area:** {record.functional_area.value}",
        f"- **Estimated Effort:** {record.estimated_effort or 'Not specified'}",
        "",
        "## Notes & Updates",
        "_Add notes and updates here_",
        "",
    ]
    return "\n".join(parts)
