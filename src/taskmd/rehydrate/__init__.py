"""Rehydration between a storage directory and a structured document store."""

from taskmd.rehydrate.engine import RehydrationEngine, document_uuid, generated_body
from taskmd.rehydrate.layout import init_project_structure
from taskmd.rehydrate.store import DocumentStore, InMemoryDocumentStore, JsonDocumentStore
from taskmd.rehydrate.types import (
    AGENT_ORDER_BASE,
    ProjectBundle,
    ProjectDocument,
    RehydrationResult,
    WorkItemDocument,
)

__all__ = [
    "AGENT_ORDER_BASE",
    "DocumentStore",
    "InMemoryDocumentStore",
    "JsonDocumentStore",
    "ProjectBundle",
    "ProjectDocument",
    "RehydrationEngine",
    "RehydrationResult",
    "WorkItemDocument",
    "document_uuid",
    "generated_body",
    "init_project_structure",
]
