"""Hierarchy queries and checks over a CacheIndex."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from taskmd.index.types import CacheIndex, TaskCacheEntry

ISSUE_DANGLING_PARENT = "DANGLING_PARENT"
ISSUE_CYCLE = "CYCLE"
ISSUE_DEPTH_MISMATCH = "DEPTH_MISMATCH"


@dataclass(frozen=True)
class HierarchyIssue:
    kind: str
    task_id: str
    detail: str

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "taskId": self.task_id, "detail": self.detail}


@dataclass
class TreeNode:
    entry: TaskCacheEntry
    children: list[TreeNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.entry.id,
            "title": self.entry.title,
            "status": self.entry.status,
            "children": [child.to_dict() for child in self.children],
        }


def children_of(index: CacheIndex, task_id: str) -> list[TaskCacheEntry]:
    """Direct children ordered by ``(order_index, id)``."""
    return [index.task_by_id[child_id] for child_id in index.tasks_by_parent.get(task_id, [])]


def roots(index: CacheIndex) -> list[TaskCacheEntry]:
    """Entries with no parent, or whose parent is not in the project."""
    found = [
        entry
        for entry in index.tasks
        if not entry.parent_id or entry.parent_id not in index.task_by_id
    ]
    return sorted(found, key=lambda e: e.sort_key)


def descendants_of(index: CacheIndex, task_id: str) -> list[TaskCacheEntry]:
    """Every entry below ``task_id`` in depth-first order. Cycle-safe."""
    out: list[TaskCacheEntry] = []
    visited = {task_id}
    stack = list(reversed(children_of(index, task_id)))
    while stack:
        entry = stack.pop()
        if entry.id in visited:
            continue
        visited.add(entry.id)
        out.append(entry)
        stack.extend(reversed(children_of(index, entry.id)))
    return out


def _ancestor_chain(index: CacheIndex, entry: TaskCacheEntry) -> tuple[list[str], bool]:
    """Walk parents upward. Returns (chain of ids, True if the walk looped)."""
    chain: list[str] = []
    seen = {entry.id}
    current = entry
    while current.parent_id and current.parent_id in index.task_by_id:
        if current.parent_id in seen:
            return chain, True
        seen.add(current.parent_id)
        chain.append(current.parent_id)
        current = index.task_by_id[current.parent_id]
    return chain, False


def validate_hierarchy(index: CacheIndex) -> list[HierarchyIssue]:
    """Report dangling parents, cycles and depth mismatches, ordered by task id."""
    issues: list[HierarchyIssue] = []
    for entry in sorted(index.tasks, key=lambda e: e.id):
        if entry.parent_id and entry.parent_id not in index.task_by_id:
            issues.append(
                HierarchyIssue(
                    ISSUE_DANGLING_PARENT,
                    entry.id,
                    f"parent {entry.parent_id} does not exist",
                )
            )
            continue

        chain, looped = _ancestor_chain(index, entry)
        if looped:
            issues.append(
                HierarchyIssue(ISSUE_CYCLE, entry.id, "parent chain loops back on itself")
            )
            continue

        if entry.parent_id:
            expected = index.task_by_id[entry.parent_id].depth + 1
        else:
            expected = 0
        if entry.depth != expected:
            issues.append(
                HierarchyIssue(
                    ISSUE_DEPTH_MISMATCH,
                    entry.id,
                    f"depth {entry.depth}, expected {expected}",
                )
            )
    return issues


def build_tree(index: CacheIndex) -> list[TreeNode]:
    """Nested nodes from the roots down.

    Entries that no root reaches (members of a parent cycle) are appended as
    extra roots so nothing is silently dropped.
    """
    placed: set[str] = set()

    def build(entry: TaskCacheEntry) -> TreeNode:
        placed.add(entry.id)
        node = TreeNode(entry)
        for child in children_of(index, entry.id):
            if child.id not in placed:
                node.children.append(build(child))
        return node

    tree = [build(entry) for entry in roots(index)]
    for entry in sorted(index.tasks, key=lambda e: e.sort_key):
        if entry.id not in placed:
            tree.append(build(entry))
    return tree
