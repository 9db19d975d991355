"""taskmd CLI - markdown work items, cache index and rehydration."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, NoReturn

import typer

from taskmd import __version__
from taskmd.artifacts.canonical_json import canonical_dumps
from taskmd.config import TaskmdConfig, load_config
from taskmd.errors import TaskmdError
from taskmd.index.cache import TaskCache
from taskmd.index.hierarchy import build_tree, validate_hierarchy
from taskmd.markup.parser import MarkupParser
from taskmd.records.codec import front_matter_values
from taskmd.records.types import FunctionalArea, TaskPriority, TaskRecord, TaskStatus, TaskType
from taskmd.rehydrate.engine import RehydrationEngine
from taskmd.rehydrate.layout import init_project_structure
from taskmd.rehydrate.store import JsonDocumentStore
from taskmd.tasks.service import TaskService
from taskmd.ui import (
    configure_logging,
    console,
    err_console,
    issues_table,
    record_table,
    snippet_table,
    task_table,
    task_tree,
)

app = typer.Typer(
    name="taskmd",
    help="taskmd - markdown work items with a derived JSON index",
    no_args_is_help=True,
)
index_app = typer.Typer(help="Build, inspect and check the cache index.", no_args_is_help=True)
task_app = typer.Typer(help="Create, edit and browse work items.", no_args_is_help=True)
app.add_typer(index_app, name="index")
app.add_typer(task_app, name="task")


@dataclass
class _Options:
    root: Path
    storage_dir: str | None


def _version_option_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def _cli_callback(
    ctx: typer.Context,
    root: Path = typer.Option(
        Path("."),
        "--root",
        "-C",
        help="Project root (where taskmd.yaml lives).",
    ),
    storage_dir: str | None = typer.Option(
        None,
        "--storage-dir",
        help="Storage directory relative to the root (overrides config and TASKMD_STORAGE_DIR).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show taskmd version and exit.",
        is_eager=True,
        callback=_version_option_callback,
    ),
) -> None:
    """Work with a project's markdown work items."""
    configure_logging(verbose)
    ctx.obj = _Options(root=root, storage_dir=storage_dir)


def _fail(exc: Exception, code: int = 1) -> NoReturn:
    err_console.print(f"[bold red]Error:[/bold red] {exc}")
    raise typer.Exit(code) from exc


def _config(ctx: typer.Context) -> TaskmdConfig:
    options: _Options = ctx.obj
    try:
        return load_config(options.root, storage_dir=options.storage_dir)
    except TaskmdError as exc:
        _fail(exc)


def _echo_json(data: Any) -> None:
    typer.echo(canonical_dumps(data, indent=2), nl=False)


def _record_dict(record: TaskRecord) -> dict[str, Any]:
    data: dict[str, Any] = dict(front_matter_values(record))
    data["filename"] = record.filename
    data["hasDescription"] = record.has_description
    data["contentHash"] = record.content_hash
    return data


# ----------------------------------------------------------------------------
# Project
# ----------------------------------------------------------------------------


@app.command(name="init")
def init_cmd(
    ctx: typer.Context,
    name: str | None = typer.Option(None, "--name", help="Project name (defaults to config)."),
) -> None:
    """Create the storage layout and an empty index."""
    config = _config(ctx)
    project_name = name or config.project_name
    try:
        created = init_project_structure(
            config.storage_path,
            project_name,
            work_items_dir=config.work_items_dir,
            agents_dir=config.agents_dir,
            project_file=config.project_file,
        )
        index = TaskCache.from_config(config).rebuild()
    except (TaskmdError, OSError) as exc:
        _fail(exc)

    for path in created:
        console.print(f"[green]Created {path}[/green]")
    console.print(
        f"[bold green]taskmd init complete[/bold green] ({project_name}, {index.total_tasks} tasks)"
    )


@app.command(name="snippets")
def snippets_cmd(
    path: Path = typer.Argument(..., help="Markdown file to parse."),
    html: bool = typer.Option(False, "--html", help="Print the rendered HTML."),
    json: bool = typer.Option(False, "--json", help="Emit {renderedText, snippets} as JSON."),
) -> None:
    """Parse smart snippet directives in a markdown file."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        _fail(exc)

    parsed = MarkupParser().parse(text)
    if json:
        _echo_json(
            {
                "renderedText": parsed.rendered_text,
                "snippets": [snippet.to_dict() for snippet in parsed.snippets],
            }
        )
        return
    if html:
        typer.echo(parsed.rendered_text, nl=False)
        return
    if not parsed.snippets:
        console.print("[dim]No smart snippets found.[/dim]")
        return
    console.print(snippet_table(parsed.snippets))


@app.command(name="import")
def import_cmd(
    ctx: typer.Context,
    store: Path | None = typer.Option(
        None, "--store", help="JSON document store to write into (omit for a dry run)."
    ),
    name: str | None = typer.Option(None, "--name", help="Project name override."),
    json: bool = typer.Option(False, "--json"),
) -> None:
    """Rehydrate the storage directory into structured documents."""
    config = _config(ctx)
    try:
        document_store = JsonDocumentStore(store) if store else None
        engine = RehydrationEngine.from_config(config, document_store)
        result = engine.import_project(config.storage_path, name)
    except (TaskmdError, OSError) as exc:
        _fail(exc)

    if json:
        _echo_json(result.summary())
    else:
        console.print(
            f"[bold]{result.bundle.project.name}[/bold] ({result.bundle.project.id}): "
            f"{result.work_items_processed} work items, {result.agents_processed} agents"
        )
        for skipped in result.skipped_files:
            console.print(f"[yellow]Skipped {skipped}[/yellow]")
    if not result.success:
        raise typer.Exit(1)


@app.command(name="export")
def export_cmd(
    ctx: typer.Context,
    store: Path = typer.Option(..., "--store", help="JSON document store to read from."),
    project_id: str = typer.Option(..., "--project-id", help="Store id of the project."),
    out: Path | None = typer.Option(
        None, "--out", help="Target directory (defaults to the storage directory)."
    ),
) -> None:
    """Write a stored project back out as markdown files."""
    config = _config(ctx)
    try:
        engine = RehydrationEngine.from_config(config, JsonDocumentStore(store))
        written = engine.sync_to_filesystem(project_id, out or config.storage_path)
    except (TaskmdError, OSError) as exc:
        _fail(exc)
    console.print(f"[green]Wrote {len(written)} files[/green]")


# ----------------------------------------------------------------------------
# Index
# ----------------------------------------------------------------------------


@index_app.command(name="rebuild")
def index_rebuild(ctx: typer.Context, json: bool = typer.Option(False, "--json")) -> None:
    """Rescan every work-item file."""
    config = _config(ctx)
    cache = TaskCache.from_config(config)
    index = cache.rebuild(cache.load())
    if json:
        _echo_json(
            {
                "totalTasks": index.total_tasks,
                "orphanedFiles": index.orphaned_files,
                "generatedAt": index.generated_at,
            }
        )
        return
    console.print(f"[green]Indexed {index.total_tasks} tasks[/green] -> {cache.index_path}")
    for name in index.orphaned_files:
        console.print(f"[yellow]Orphaned: {name}[/yellow]")


@index_app.command(name="status")
def index_status(ctx: typer.Context, json: bool = typer.Option(False, "--json")) -> None:
    """Report whether the persisted index is missing, stale or fresh."""
    config = _config(ctx)
    cache = TaskCache.from_config(config)
    index = cache.load()
    if index is None:
        state = "missing"
    elif cache.is_stale(index):
        state = "stale"
    else:
        state = "fresh"

    if json:
        _echo_json(
            {
                "state": state,
                "indexPath": str(cache.index_path),
                "generatedAt": index.generated_at if index else None,
                "totalTasks": index.total_tasks if index else 0,
            }
        )
        return
    style = {"fresh": "green", "stale": "yellow", "missing": "red"}[state]
    console.print(f"[{style}]{state}[/{style}] {cache.index_path}")


@index_app.command(name="show")
def index_show(
    ctx: typer.Context,
    status: TaskStatus | None = typer.Option(None, "--status", case_sensitive=False),
    type: TaskType | None = typer.Option(None, "--type", case_sensitive=False),
    json: bool = typer.Option(False, "--json", help="Dump the whole index document."),
) -> None:
    """Show the (fresh) index."""
    config = _config(ctx)
    index = TaskCache.from_config(config).get_fresh()
    if json:
        _echo_json(index.to_dict())
        return
    entries = index.tasks
    if status is not None:
        entries = [e for e in entries if e.status == status.value]
    if type is not None:
        entries = [e for e in entries if e.type == type.value]
    console.print(task_table(entries, title=f"{index.project_name} ({len(entries)} tasks)"))


@index_app.command(name="validate")
def index_validate(ctx: typer.Context, json: bool = typer.Option(False, "--json")) -> None:
    """Check parent links and depths. Exits 2 when problems are found."""
    config = _config(ctx)
    index = TaskCache.from_config(config).get_fresh()
    issues = validate_hierarchy(index)
    if json:
        _echo_json(
            {
                "ok": not issues,
                "issues": [issue.to_dict() for issue in issues],
                "orphanedFiles": index.orphaned_files,
            }
        )
    elif issues:
        console.print(issues_table(issues))
    else:
        console.print("[green]Hierarchy OK[/green]")
    if issues:
        raise typer.Exit(2)


# ----------------------------------------------------------------------------
# Tasks
# ----------------------------------------------------------------------------


def _service(ctx: typer.Context) -> TaskService:
    return TaskService.from_config(_config(ctx))


def _print_record(record: TaskRecord, json: bool) -> None:
    if json:
        _echo_json(_record_dict(record))
    else:
        console.print(record_table(record))


@task_app.command(name="create")
def task_create(
    ctx: typer.Context,
    title: str = typer.Argument(...),
    parent: str | None = typer.Option(None, "--parent", help="Parent work item id."),
    description: str | None = typer.Option(None, "--description", "-d"),
    type: TaskType | None = typer.Option(None, "--type", case_sensitive=False),
    status: TaskStatus = typer.Option(TaskStatus.PLANNED, "--status", case_sensitive=False),
    priority: TaskPriority = typer.Option(TaskPriority.MEDIUM, "--priority", case_sensitive=False),
    area: FunctionalArea = typer.Option(FunctionalArea.SOFTWARE, "--area", case_sensitive=False),
    effort: str | None = typer.Option(None, "--effort"),
    assignee: str | None = typer.Option(None, "--assignee"),
    due: str | None = typer.Option(None, "--due"),
    tag: list[str] | None = typer.Option(None, "--tag", help="Repeatable."),
    json: bool = typer.Option(False, "--json"),
) -> None:
    """Create a work item."""
    service = _service(ctx)
    try:
        record = service.create_task(
            title,
            parent_id=parent,
            description=description,
            type=type,
            status=status,
            priority=priority,
            functional_area=area,
            estimated_effort=effort,
            assigned_to=assignee,
            due_date=due,
            tags=tag,
        )
    except TaskmdError as exc:
        _fail(exc)
    _print_record(record, json)


@task_app.command(name="show")
def task_show(
    ctx: typer.Context,
    task_id: str = typer.Argument(...),
    body: bool = typer.Option(False, "--body", help="Also print the markdown body."),
    json: bool = typer.Option(False, "--json"),
) -> None:
    """Show one work item."""
    try:
        record = _service(ctx).get_task(task_id)
    except TaskmdError as exc:
        _fail(exc)
    _print_record(record, json)
    if body and not json:
        typer.echo(record.body)


@task_app.command(name="update")
def task_update(
    ctx: typer.Context,
    task_id: str = typer.Argument(...),
    title: str | None = typer.Option(None, "--title"),
    type: TaskType | None = typer.Option(None, "--type", case_sensitive=False),
    status: TaskStatus | None = typer.Option(None, "--status", case_sensitive=False),
    priority: TaskPriority | None = typer.Option(None, "--priority", case_sensitive=False),
    area: FunctionalArea | None = typer.Option(None, "--area", case_sensitive=False),
    effort: str | None = typer.Option(None, "--effort"),
    assignee: str | None = typer.Option(None, "--assignee"),
    due: str | None = typer.Option(None, "--due"),
    tag: list[str] | None = typer.Option(None, "--tag", help="Replaces all tags. Repeatable."),
    json: bool = typer.Option(False, "--json"),
) -> None:
    """Change fields of a work item."""
    changes = {
        key: value
        for key, value in {
            "title": title,
            "type": type,
            "status": status,
            "priority": priority,
            "functional_area": area,
            "estimated_effort": effort,
            "assigned_to": assignee,
            "due_date": due,
            "tags": tag,
        }.items()
        if value is not None
    }
    if not changes:
        err_console.print("[bold red]Error:[/bold red] Nothing to update.")
        raise typer.Exit(1)
    try:
        record = _service(ctx).update_task(task_id, **changes)
    except (TaskmdError, ValueError) as exc:
        _fail(exc)
    _print_record(record, json)


@task_app.command(name="move")
def task_move(
    ctx: typer.Context,
    task_id: str = typer.Argument(...),
    parent: str | None = typer.Option(None, "--parent", help="New parent id; omit to move to the root."),
    order: int | None = typer.Option(None, "--order", help="Order index among the new siblings."),
    json: bool = typer.Option(False, "--json"),
) -> None:
    """Re-parent a work item together with its subtree."""
    try:
        record = _service(ctx).move_task(task_id, parent, order_index=order)
    except TaskmdError as exc:
        _fail(exc)
    _print_record(record, json)


@task_app.command(name="delete")
def task_delete(
    ctx: typer.Context,
    task_id: str = typer.Argument(...),
    cascade: bool = typer.Option(False, "--cascade", help="Also delete every descendant."),
) -> None:
    """Delete a work item file."""
    try:
        deleted = _service(ctx).delete_task(task_id, cascade=cascade)
    except TaskmdError as exc:
        _fail(exc)
    for deleted_id in deleted:
        console.print(f"[green]Deleted {deleted_id}[/green]")


@task_app.command(name="list")
def task_list(
    ctx: typer.Context,
    status: TaskStatus | None = typer.Option(None, "--status", case_sensitive=False),
    type: TaskType | None = typer.Option(None, "--type", case_sensitive=False),
    json: bool = typer.Option(False, "--json"),
) -> None:
    """List work items, shallowest first."""
    entries = _service(ctx).list_tasks(status=status, type=type)
    if json:
        _echo_json([entry.to_dict() for entry in entries])
        return
    console.print(task_table(entries))


@task_app.command(name="tree")
def task_tree_cmd(ctx: typer.Context, json: bool = typer.Option(False, "--json")) -> None:
    """Print the work-item hierarchy."""
    service = _service(ctx)
    index = service.index()
    nodes = build_tree(index)
    if json:
        _echo_json([node.to_dict() for node in nodes])
        return
    console.print(task_tree(nodes, index.project_name))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
