"""Error taxonomy for taskmd.

Every error carries a ``reason_code`` so callers (and the CLI) can branch on a
stable token instead of message text.
"""

from __future__ import annotations

RECORD_REASON_MISSING_DELIMITERS = "MISSING_DELIMITERS"
RECORD_REASON_MISSING_ID = "MISSING_ID"
RECORD_REASON_MULTILINE_VALUE = "MULTILINE_VALUE"
RECORD_REASON_UNQUOTABLE_TAG = "UNQUOTABLE_TAG"

INDEX_REASON_PARSE_ERROR = "PARSE_ERROR"
INDEX_REASON_SCHEMA_INVALID = "SCHEMA_INVALID"
INDEX_REASON_VERSION_MISMATCH = "VERSION_MISMATCH"
INDEX_REASON_PROJECT_MISMATCH = "PROJECT_MISMATCH"

CONFIG_REASON_PARSE_ERROR = "PARSE_ERROR"
CONFIG_REASON_SCHEMA_INVALID = "SCHEMA_INVALID"

STORE_REASON_PARSE_ERROR = "PARSE_ERROR"
STORE_REASON_SCHEMA_INVALID = "SCHEMA_INVALID"
STORE_REASON_NOT_FOUND = "NOT_FOUND"


class TaskmdError(Exception):
    """Base class for taskmd errors."""

    reason_code: str

    def __init__(self, message: str, reason_code: str = "ERROR") -> None:
        super().__init__(message)
        self.reason_code = reason_code


class RecordParseError(TaskmdError, ValueError):
    """A work-item file could not be turned into a record."""

    def __init__(self, message: str, reason_code: str, filename: str | None = None) -> None:
        super().__init__(message, reason_code)
        self.filename = filename


class RecordRenderError(TaskmdError, ValueError):
    """A record holds a value the flat front matter cannot represent."""


class IndexCorruptError(TaskmdError):
    """The persisted cache index is unusable and must be rebuilt."""


class ConfigError(TaskmdError, ValueError):
    """Project configuration is malformed."""


class TaskNotFoundError(TaskmdError, KeyError):
    """No work item with the requested id exists."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Work item not found: {task_id}", "NOT_FOUND")
        self.task_id = task_id

    def __str__(self) -> str:
        return str(self.args[0])


class HierarchyError(TaskmdError, ValueError):
    """A requested change would break the work-item tree."""


class DocumentStoreError(TaskmdError):
    """The structured document store is unreadable or missing a document."""
