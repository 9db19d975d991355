"""Cache index over work-item files."""

from taskmd.index.cache import (
    TaskCache,
    get_fresh,
    is_stale,
    load_index,
    rebuild_index,
    remove_one,
    upsert_one,
)
from taskmd.index.hierarchy import (
    HierarchyIssue,
    TreeNode,
    build_tree,
    children_of,
    descendants_of,
    roots,
    validate_hierarchy,
)
from taskmd.index.types import INDEX_VERSION, CacheIndex, TaskCacheEntry

__all__ = [
    "INDEX_VERSION",
    "CacheIndex",
    "HierarchyIssue",
    "TaskCache",
    "TaskCacheEntry",
    "TreeNode",
    "build_tree",
    "children_of",
    "descendants_of",
    "get_fresh",
    "is_stale",
    "load_index",
    "rebuild_index",
    "remove_one",
    "roots",
    "upsert_one",
    "validate_hierarchy",
]
