"""Work-item service."""

from taskmd.tasks.service import UPDATABLE_FIELDS, TaskService

__all__ = ["UPDATABLE_FIELDS", "TaskService"]
