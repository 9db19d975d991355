"""Rehydration: project directory tree <-> structured documents.

Import walks ``project.md``, ``work-items/*.md`` and ``agents/*.md`` under a
storage directory and produces a ``ProjectBundle`` (optionally written to a
``DocumentStore``). Export writes a bundle back out as files. Export followed
by import followed by export reproduces the same bytes.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Any

from taskmd.artifacts.canonical_json import atomic_write_text
from taskmd.errors import (
    RECORD_REASON_MISSING_DELIMITERS,
    STORE_REASON_NOT_FOUND,
    DocumentStoreError,
    RecordParseError,
    TaskmdError,
)
from taskmd.markup.directives import agent_directive, task_directive
from taskmd.markup.parser import MarkupParser
from taskmd.markup.types import SnippetType
from taskmd.records.codec import (
    FRONT_MATTER_DELIMITER,
    find_front_matter,
    parse_front_matter,
    parse_record,
    render_record,
)
from taskmd.records.sections import (
    NO_DESCRIPTION_PLACEHOLDER,
    description_section,
    extract_first_paragraph,
    extract_title,
)
from taskmd.records.types import (
    FunctionalArea,
    TaskPriority,
    TaskRecord,
    TaskStatus,
    TaskType,
    coerce_enum,
)
from taskmd.rehydrate.types import (
    AGENT_ORDER_BASE,
    ProjectBundle,
    ProjectDocument,
    RehydrationResult,
    WorkItemDocument,
)

if TYPE_CHECKING:
    from taskmd.config import TaskmdConfig
    from taskmd.markup.types import Snippet
    from taskmd.rehydrate.store import DocumentStore

logger = logging.getLogger(__name__)

DOCUMENT_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_DNS, "taskmd.documents")
KIND_PROJECT = "project"
KIND_WORK_ITEM = "work-item"
KIND_AGENT = "agent"


def document_uuid(project_key: str, kind: str, source_id: str) -> str:
    """Stable store id for a file-level id.

    Ids that already parse as UUIDs are kept verbatim; anything else is
    hashed with ``uuid5`` so re-imports land on the same document.
    """
    try:
        uuid.UUID(source_id)
    except ValueError:
        return str(uuid.uuid5(DOCUMENT_NAMESPACE, f"{project_key}/{kind}/{source_id}"))
    return source_id


def _snippet_summary(snippet: Snippet) -> dict[str, Any]:
    # Snippet ids are per-parse; storing them would make every import differ.
    return {
        "type": snippet.type,
        "text": snippet.text,
        "attributes": dict(snippet.attributes),
        "action": snippet.action,
    }


def _default_project_name(root: Path) -> str:
    resolved = root.expanduser().resolve()
    if resolved.name.startswith(".") and resolved.parent.name:
        return resolved.parent.name
    return resolved.name


def _safe_stem(item: WorkItemDocument) -> str:
    stem = item.source_id
    if not stem or stem in (".", "..") or "/" in stem or "\\" in stem:
        return item.id
    return stem


class RehydrationEngine:
    """Convert between a storage directory and structured documents."""

    def __init__(
        self,
        store: DocumentStore | None = None,
        *,
        work_items_dir: str = "work-items",
        agents_dir: str = "agents",
        project_file: str = "project.md",
    ) -> None:
        self.store = store
        self.work_items_dir = work_items_dir
        self.agents_dir = agents_dir
        self.project_file = project_file
        self._parser = MarkupParser()

    @classmethod
    def from_config(
        cls, config: TaskmdConfig, store: DocumentStore | None = None
    ) -> RehydrationEngine:
        return cls(
            store,
            work_items_dir=config.work_items_dir,
            agents_dir=config.agents_dir,
            project_file=config.project_file,
        )

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_project(
        self, directory_path: Path, project_name: str | None = None
    ) -> RehydrationResult:
        """Read a storage directory into a bundle; persist it when a store is set.

        Single bad files are logged and listed in ``skipped_files``; they never
        abort the import. A missing directory imports as an empty project.
        """
        root = Path(directory_path)
        project = self._read_project(root, project_name)
        result = RehydrationResult(bundle=ProjectBundle(project), projects_processed=1)
        logger.info("Importing project %s from %s", project.name, root)

        if root.is_dir():
            self._import_work_items(root / self.work_items_dir, result)
            self._import_agents(root / self.agents_dir, result)
        else:
            logger.info("No directory at %s; importing an empty project", root)

        result.work_items_processed = len(result.bundle.work_items)
        result.agents_processed = len(result.bundle.agents)

        if self.store is not None:
            try:
                self._persist(self.store, result.bundle)
            except (TaskmdError, OSError) as exc:
                logger.error("Could not write project %s to the store: %s", project.name, exc)
                result.success = False
                result.errors.append(str(exc))

        logger.info(
            "Imported %s: %d work items, %d agents, %d skipped",
            project.name,
            result.work_items_processed,
            result.agents_processed,
            len(result.skipped_files),
        )
        return result

    @staticmethod
    def _persist(store: DocumentStore, bundle: ProjectBundle) -> None:
        with store.batch():
            store.create_project(bundle.project)
            for item in [*bundle.work_items, *bundle.agents]:
                store.create_work_item(item)

    def _read_project(self, root: Path, project_name: str | None) -> ProjectDocument:
        path = root / self.project_file
        raw: str | None = None
        if path.is_file():
            try:
                raw = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Could not read %s: %s", path, exc)

        if raw is None:
            name = project_name or _default_project_name(root)
            return ProjectDocument(
                id=document_uuid(name, KIND_PROJECT, name),
                name=name,
            )

        lines = raw.split("\n")
        bounds = find_front_matter(lines)
        fm: dict[str, Any] = {}
        body = raw
        if bounds is not None:
            start, end = bounds
            fm = parse_front_matter(lines[start + 1 : end])
            body = "\n".join(lines[end + 1 :])

        source_id = fm.get("id") if isinstance(fm.get("id"), str) and fm.get("id") else None
        fm_name = fm.get("name") if isinstance(fm.get("name"), str) else None
        name = project_name or fm_name or _default_project_name(root)
        return ProjectDocument(
            id=document_uuid(name, KIND_PROJECT, source_id or name),
            name=name,
            description=extract_first_paragraph(body) or "",
            source_id=source_id,
            markdown_content=body,
            has_front_matter=bounds is not None,
        )

    @staticmethod
    def _markdown_files(directory: Path) -> list[Path]:
        if not directory.is_dir():
            return []
        return sorted(p for p in directory.iterdir() if p.suffix == ".md" and p.is_file())

    @staticmethod
    def _skip(result: RehydrationResult, path: Path, reason: object) -> None:
        logger.warning("Skipping %s: %s", path.name, reason)
        result.skipped_files.append(str(path))
        result.errors.append(f"{path.name}: {reason}")

    def _import_work_items(self, directory: Path, result: RehydrationResult) -> None:
        project = result.bundle.project
        for path in self._markdown_files(directory):
            try:
                raw = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                self._skip(result, path, exc)
                continue

            try:
                record = parse_record(raw, path.name)
            except RecordParseError as exc:
                if exc.reason_code != RECORD_REASON_MISSING_DELIMITERS:
                    self._skip(result, path, exc)
                    continue
                item = self._body_only_item(
                    raw, path.stem, project, order_index=len(result.bundle.work_items)
                )
            else:
                item = self._item_from_record(record, project)
            result.bundle.work_items.append(item)

    def _item_from_record(self, record: TaskRecord, project: ProjectDocument) -> WorkItemDocument:
        section = description_section(record.body)
        description = None
        if section and section != NO_DESCRIPTION_PLACEHOLDER:
            description = extract_first_paragraph(section)
        parent_id = (
            document_uuid(project.name, KIND_WORK_ITEM, record.parent_id)
            if record.parent_id
            else None
        )
        return WorkItemDocument(
            id=document_uuid(project.name, KIND_WORK_ITEM, record.id),
            project_id=project.id,
            source_id=record.id,
            title=record.title,
            description=description or None,
            type=record.type.value,
            status=record.status.value,
            priority=record.priority.value,
            functional_area=record.functional_area.value,
            parent_id=parent_id,
            depth=record.depth,
            order_index=record.order_index,
            estimated_effort=record.estimated_effort,
            assigned_to=record.assigned_to,
            due_date=record.due_date,
            created_at=record.created_at,
            updated_at=record.updated_at,
            tags=list(record.tags),
            markdown_content=record.body,
            has_front_matter=True,
            smart_snippets=[_snippet_summary(s) for s in self._parser.extract_snippets(record.body)],
        )

    def _body_only_item(
        self, raw: str, stem: str, project: ProjectDocument, *, order_index: int
    ) -> WorkItemDocument:
        """Legacy files with no front matter: defaults come from the first task directive."""
        snippets = self._parser.extract_snippets(raw)
        task_snippets = [s for s in snippets if s.type == SnippetType.TASK.value]
        attrs = task_snippets[0].attributes if task_snippets else {}
        return WorkItemDocument(
            id=document_uuid(project.name, KIND_WORK_ITEM, stem),
            project_id=project.id,
            source_id=stem,
            title=extract_title(raw) or stem,
            description=extract_first_paragraph(raw),
            type=coerce_enum(TaskType, attrs.get("type"), TaskType.TASK).value,
            status=coerce_enum(TaskStatus, attrs.get("status"), TaskStatus.PLANNED).value,
            priority=coerce_enum(TaskPriority, attrs.get("priority"), TaskPriority.MEDIUM).value,
            order_index=order_index,
            markdown_content=raw,
            has_front_matter=False,
            smart_snippets=[_snippet_summary(s) for s in snippets],
        )

    def _import_agents(self, directory: Path, result: RehydrationResult) -> None:
        project = result.bundle.project
        for path in self._markdown_files(directory):
            try:
                raw = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                self._skip(result, path, exc)
                continue

            record: TaskRecord | None
            try:
                record = parse_record(raw, path.name)
            except RecordParseError as exc:
                if exc.reason_code != RECORD_REASON_MISSING_DELIMITERS:
                    self._skip(result, path, exc)
                    continue
                record = None

            source_id = record.id if record else path.stem
            body = record.body if record else raw
            result.bundle.agents.append(
                WorkItemDocument(
                    id=document_uuid(project.name, KIND_AGENT, source_id),
                    project_id=project.id,
                    source_id=source_id,
                    title=record.title if record else (extract_title(raw) or path.stem),
                    description=extract_first_paragraph(body),
                    type=TaskType.TASK.value,
                    status=TaskStatus.DONE.value,
                    priority=TaskPriority.HIGH.value,
                    functional_area=FunctionalArea.BUSINESS.value,
                    order_index=AGENT_ORDER_BASE + len(result.bundle.agents),
                    created_at=record.created_at if record else None,
                    updated_at=record.updated_at if record else None,
                    markdown_content=raw,
                    has_front_matter=record is not None,
                    smart_snippets=[_snippet_summary(s) for s in self._parser.extract_snippets(body)],
                )
            )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_project(self, bundle: ProjectBundle, directory_path: Path) -> list[Path]:
        """Write every document in ``bundle`` under ``directory_path``.

        Returns:
            Paths written, project file first
        """
        root = Path(directory_path)
        written: list[Path] = []

        project_path = root / self.project_file
        atomic_write_text(project_path, self.render_project(bundle.project))
        written.append(project_path)

        source_ids = {item.id: item.source_id for item in bundle.work_items}
        for item in bundle.work_items:
            path = root / self.work_items_dir / f"{_safe_stem(item)}.md"
            atomic_write_text(path, self.render_work_item(item, bundle.project, source_ids))
            written.append(path)

        for agent in bundle.agents:
            path = root / self.agents_dir / f"{_safe_stem(agent)}.md"
            atomic_write_text(path, self.render_agent(agent))
            written.append(path)

        logger.info("Exported %s to %s (%d files)", bundle.project.name, root, len(written))
        return written

    def sync_to_filesystem(self, project_id: str, directory_path: Path) -> list[Path]:
        """Export a project read back from the store.

        Raises:
            DocumentStoreError: If no store is configured or the project is unknown
        """
        if self.store is None:
            raise DocumentStoreError("No document store configured", STORE_REASON_NOT_FOUND)
        project = self.store.get_project(project_id)
        if project is None:
            raise DocumentStoreError(f"Project not in store: {project_id}", STORE_REASON_NOT_FOUND)

        items = self.store.list_work_items(project_id)
        bundle = ProjectBundle(
            project=project,
            work_items=[item for item in items if not item.is_agent],
            agents=[item for item in items if item.is_agent],
        )
        return self.export_project(bundle, directory_path)

    @staticmethod
    def render_project(project: ProjectDocument) -> str:
        if project.markdown_content is None:
            text = f"# {project.name}\n"
            if project.description:
                text += f"\n{project.description}\n"
            return text
        if not project.has_front_matter:
            return project.markdown_content
        lines = [FRONT_MATTER_DELIMITER]
        if project.source_id:
            lines.append(f"id: {project.source_id}")
        lines.append(f'name: "{project.name}"')
        lines.append(FRONT_MATTER_DELIMITER)
        return "\n".join(lines) + "\n" + project.markdown_content

    def render_work_item(
        self,
        item: WorkItemDocument,
        project: ProjectDocument,
        source_ids: dict[str, str] | None = None,
    ) -> str:
        """File text for one work item.

        Body-only documents are written back verbatim. Everything else gets
        front matter from the document fields.
        """
        if not item.has_front_matter and item.markdown_content is not None:
            return item.markdown_content
        body = item.markdown_content if item.has_front_matter else None
        if body is None:
            body = generated_body(item)
        return render_record(self._record_from_item(item, project, source_ids or {}, body))

    @staticmethod
    def _record_from_item(
        item: WorkItemDocument,
        project: ProjectDocument,
        source_ids: dict[str, str],
        body: str,
    ) -> TaskRecord:
        # A parent missing from the bundle keeps its store id.
        parent_id = source_ids.get(item.parent_id, item.parent_id) if item.parent_id else None
        return TaskRecord(
            id=item.source_id,
            title=item.title,
            type=coerce_enum(TaskType, item.type, TaskType.TASK),
            status=coerce_enum(TaskStatus, item.status, TaskStatus.PLANNED),
            priority=coerce_enum(TaskPriority, item.priority, TaskPriority.MEDIUM),
            functional_area=coerce_enum(
                FunctionalArea, item.functional_area, FunctionalArea.SOFTWARE
            ),
            parent_id=parent_id,
            depth=item.depth,
            order_index=item.order_index,
            estimated_effort=item.estimated_effort,
            assigned_to=item.assigned_to,
            due_date=item.due_date,
            created_at=item.created_at,
            updated_at=item.updated_at,
            project_name=project.name,
            tags=list(item.tags),
            body=body,
        )

    @staticmethod
    def render_agent(agent: WorkItemDocument) -> str:
        if agent.markdown_content is not None:
            return agent.markdown_content
        text = f"# {agent.title}\n\n{agent_directive(agent.title)}\n"
        if agent.description:
            text += f"\n{agent.description}\n"
        return text


def generated_body(item: WorkItemDocument) -> str:
    """Body for a document that arrived without markdown content."""
    directive = task_directive(
        item.title,
        priority=item.priority.lower(),
        status=item.status.lower(),
        type=item.type.lower(),
    )
    parts = ["", f"# {item.title}", ""]
    if item.description:
        parts += ["## Description", item.description, ""]
    parts += [
        directive,
        "",
        "## Classification",
        f"- **Status:** {item.status}",
        f"- **Priority:** {item.priority}",
        f"- **Type:** {item.type}",
        f"- **Functional Area:** {item.functional_area}",
    ]
    if item.estimated_effort:
        parts.append(f"- **Estimated Effort:** {item.estimated_effort}")
    parts.append("")
    return "\n".join(parts)
