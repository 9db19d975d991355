from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

if TYPE_CHECKING:
    from taskmd.index.hierarchy import HierarchyIssue, TreeNode
    from taskmd.index.types import TaskCacheEntry
    from taskmd.markup.types import Snippet
    from taskmd.records.types import TaskRecord

console = Console()
err_console = Console(stderr=True)

STATUS_STYLES: dict[str, str] = {
    "PLANNED": "white",
    "IN_PROGRESS": "bright_cyan",
    "IN_REVIEW": "bright_blue",
    "TESTING": "magenta",
    "DONE": "green",
    "CANCELLED": "dim",
    "BLOCKED": "bold red",
    "DEFERRED": "yellow",
}


def configure_logging(verbose: bool = False) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=verbose, markup=False)],
        force=True,
    )


def status_text(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def task_table(entries: list[TaskCacheEntry], title: str | None = None) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Title")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Subtasks", justify="right")
    for entry in entries:
        table.add_row(
            escape(entry.id),
            escape(entry.title),
            entry.type,
            status_text(entry.status),
            entry.priority,
            str(entry.subtask_count) if entry.has_subtasks else "",
        )
    return table


def task_tree(nodes: list[TreeNode], label: str) -> Tree:
    tree = Tree(f"[bold]{label}[/bold]")

    def add(branch: Tree, node: TreeNode) -> None:
        child = branch.add(f"{status_text(node.entry.status)} {escape(node.entry.title)} [dim]{escape(node.entry.id)}[/dim]")
        for sub in node.children:
            add(child, sub)

    for node in nodes:
        add(tree, node)
    return tree


def record_table(record: TaskRecord) -> Table:
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    rows = [
        ("id", escape(record.id)),
        ("title", escape(record.title)),
        ("type", record.type.value),
        ("status", status_text(record.status.value)),
        ("priority", record.priority.value),
        ("functional area", record.functional_area.value),
        ("parent", record.parent_id or "-"),
        ("depth", str(record.depth)),
        ("order", str(record.order_index)),
        ("effort", record.estimated_effort or "-"),
        ("assigned to", record.assigned_to or "-"),
        ("tags", escape(", ".join(record.tags)) or "-"),
        ("file", record.filename or "-"),
    ]
    for key, value in rows:
        table.add_row(key, value)
    return table


def snippet_table(snippets: list[Snippet]) -> Table:
    table = Table(title="Smart snippets")
    table.add_column("Type")
    table.add_column("Label")
    table.add_column("Action")
    table.add_column("Attributes")
    for snippet in snippets:
        attrs = ", ".join(f"{k}={v}" for k, v in snippet.attributes.items())
        table.add_row(
            snippet.type,
            escape(snippet.text),
            snippet.action or "[yellow]unknown[/yellow]",
            escape(attrs),
        )
    return table


def issues_table(issues: list[HierarchyIssue]) -> Table:
    table = Table(title="Hierarchy issues")
    table.add_column("Kind", style="bold red")
    table.add_column("Task", style="dim")
    table.add_column("Detail")
    for issue in issues:
        table.add_row(issue.kind, escape(issue.task_id), escape(issue.detail))
    return table
