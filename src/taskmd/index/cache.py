"""Cache index over a project's work-item files.

The markdown files are the source of truth. ``tasks.json`` is a derived
summary that can always be regenerated; every failure here degrades to
"treat as missing and rebuild" rather than an exception for the caller.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from taskmd.artifacts.canonical_json import read_json, write_json
from taskmd.errors import (
    INDEX_REASON_PARSE_ERROR,
    INDEX_REASON_PROJECT_MISMATCH,
    INDEX_REASON_SCHEMA_INVALID,
    INDEX_REASON_VERSION_MISMATCH,
    IndexCorruptError,
    RecordParseError,
)
from taskmd.index.types import INDEX_VERSION, CacheIndex, TaskCacheEntry
from taskmd.records.codec import read_record
from taskmd.schemas.validator import validate_data

if TYPE_CHECKING:
    from taskmd.config import TaskmdConfig
    from taskmd.records.types import TaskRecord

logger = logging.getLogger(__name__)

DEFAULT_WORK_ITEMS_DIR = "work-items"
DEFAULT_INDEX_FILENAME = "tasks.json"
RECORD_SUFFIX = ".md"


def list_record_files(work_items_path: Path) -> list[str]:
    """Sorted ``*.md`` file names in the work-items directory.

    Raises:
        OSError: If the directory cannot be listed
    """
    return sorted(
        entry.name
        for entry in work_items_path.iterdir()
        if entry.name.endswith(RECORD_SUFFIX) and entry.is_file()
    )


def _next_generated_at(previous: str | None) -> str:
    """Current UTC time, nudged past ``previous`` so the stamp never goes backwards."""
    now = datetime.now(UTC)
    if previous:
        try:
            prev = datetime.fromisoformat(previous)
        except ValueError:
            prev = None
        if prev is not None and prev.tzinfo is not None and now <= prev:
            now = prev + timedelta(microseconds=1)
    return now.isoformat()


def compute_subtask_counts(entries: list[TaskCacheEntry]) -> None:
    """Set ``has_subtasks``/``subtask_count`` from ``parent_id`` links, in place."""
    counts: dict[str, int] = {}
    for entry in entries:
        if entry.parent_id:
            counts[entry.parent_id] = counts.get(entry.parent_id, 0) + 1
    for entry in entries:
        count = counts.get(entry.id, 0)
        entry.has_subtasks = count > 0
        entry.subtask_count = count


def build_lookup_maps(index: CacheIndex) -> None:
    """Rebuild the four lookup maps from ``index.tasks``.

    Children under ``tasks_by_parent`` are ordered by ``(order_index, id)``;
    directory order is never relied on.
    """
    index.task_by_id = {}
    index.tasks_by_parent = {}
    index.tasks_by_status = {}
    index.tasks_by_type = {}

    for entry in index.tasks:
        index.task_by_id[entry.id] = entry
        index.tasks_by_status.setdefault(entry.status, []).append(entry.id)
        index.tasks_by_type.setdefault(entry.type, []).append(entry.id)

    for entry in sorted(index.tasks, key=lambda e: e.sort_key):
        if entry.parent_id:
            index.tasks_by_parent.setdefault(entry.parent_id, []).append(entry.id)


def _refresh_derived(index: CacheIndex) -> None:
    compute_subtask_counts(index.tasks)
    build_lookup_maps(index)


def dangling_parent_ids(index: CacheIndex) -> dict[str, str]:
    """Map of task id -> parent id for parents missing from the project."""
    return {
        entry.id: entry.parent_id
        for entry in index.tasks
        if entry.parent_id and entry.parent_id not in index.task_by_id
    }


def save_index(index: CacheIndex, index_path: Path) -> None:
    """Persist atomically (temp file + rename)."""
    write_json(index_path, index.to_dict())


def _persist(index: CacheIndex, index_path: Path) -> None:
    try:
        save_index(index, index_path)
    except OSError as exc:
        logger.warning("Could not write cache index %s: %s", index_path, exc)


def read_index_file(index_path: Path, project_name: str | None = None) -> CacheIndex:
    """Read and validate a persisted index.

    Raises:
        FileNotFoundError: If no index file exists
        IndexCorruptError: If the file is unusable (reason code says why)
    """
    try:
        data = read_json(index_path)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise IndexCorruptError(
            f"Cache index {index_path} is not valid JSON: {exc}", INDEX_REASON_PARSE_ERROR
        ) from exc

    if not isinstance(data, dict):
        raise IndexCorruptError(
            f"Cache index {index_path} is not a JSON object", INDEX_REASON_SCHEMA_INVALID
        )
    if data.get("version") != INDEX_VERSION:
        raise IndexCorruptError(
            f"Cache index {index_path} has version {data.get('version')!r}, "
            f"expected {INDEX_VERSION!r}",
            INDEX_REASON_VERSION_MISMATCH,
        )

    ok, errors = validate_data(data, "cache_index", strict=False)
    if not ok:
        raise IndexCorruptError(
            f"Cache index {index_path} failed validation: " + "; ".join(errors[:5]),
            INDEX_REASON_SCHEMA_INVALID,
        )

    if project_name is not None and data["projectName"] != project_name:
        raise IndexCorruptError(
            f"Cache index {index_path} belongs to project {data['projectName']!r}",
            INDEX_REASON_PROJECT_MISMATCH,
        )

    try:
        datetime.fromisoformat(data["generatedAt"])
    except ValueError as exc:
        raise IndexCorruptError(
            f"Cache index {index_path} has unreadable generatedAt", INDEX_REASON_PARSE_ERROR
        ) from exc

    index = CacheIndex.from_dict(data)
    _refresh_derived(index)
    return index


def load_index(
    project_name: str,
    storage_path: Path,
    *,
    index_filename: str = DEFAULT_INDEX_FILENAME,
) -> CacheIndex | None:
    """Load the persisted index, or None when it is missing or unusable. Never raises."""
    index_path = storage_path / index_filename
    try:
        return read_index_file(index_path, project_name)
    except FileNotFoundError:
        return None
    except IndexCorruptError as exc:
        logger.warning("Discarding cache index (%s): %s", exc.reason_code, exc)
        return None
    except OSError as exc:
        logger.warning("Could not read cache index %s: %s", index_path, exc)
        return None


def scan_records(work_items_path: Path) -> tuple[list[TaskRecord], list[str], list[str]]:
    """Parse every record file.

    Returns:
        (records, files_scanned, orphaned_files), all in sorted filename order
    """
    records: list[TaskRecord] = []
    scanned: list[str] = []
    orphaned: list[str] = []
    seen_ids: dict[str, str] = {}

    try:
        filenames = list_record_files(work_items_path)
    except OSError as exc:
        logger.warning("Could not list work items in %s: %s", work_items_path, exc)
        return records, scanned, orphaned

    for filename in filenames:
        try:
            record = read_record(work_items_path / filename)
        except RecordParseError as exc:
            logger.warning("Orphaned work item %s (%s)", filename, exc.reason_code)
            orphaned.append(filename)
            continue
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read work item %s: %s", filename, exc)
            orphaned.append(filename)
            continue

        if record.id in seen_ids:
            logger.warning(
                "Orphaned work item %s: id %s already declared by %s",
                filename,
                record.id,
                seen_ids[record.id],
            )
            orphaned.append(filename)
            continue

        seen_ids[record.id] = filename
        records.append(record)
        scanned.append(filename)

    return records, scanned, orphaned


def rebuild_index(
    project_name: str,
    storage_path: Path,
    *,
    work_items_dir: str = DEFAULT_WORK_ITEMS_DIR,
    index_filename: str = DEFAULT_INDEX_FILENAME,
    previous: CacheIndex | None = None,
) -> CacheIndex:
    """Full rescan of the work-items directory, then persist."""
    work_items_path = storage_path / work_items_dir
    logger.info("Rebuilding task cache for %s", project_name)

    # Stamp before scanning: edits that land mid-scan still read as stale.
    generated_at = _next_generated_at(previous.generated_at if previous else None)
    try:
        work_items_path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning("Could not create %s: %s", work_items_path, exc)

    records, scanned, orphaned = scan_records(work_items_path)
    index = CacheIndex(
        project_name=project_name,
        generated_at=generated_at,
        last_scan_path=str(work_items_path),
        tasks=[TaskCacheEntry.from_record(record) for record in records],
        files_scanned=scanned,
        orphaned_files=orphaned,
    )
    _refresh_derived(index)

    for task_id, parent_id in dangling_parent_ids(index).items():
        logger.warning("Work item %s references missing parent %s", task_id, parent_id)

    _persist(index, storage_path / index_filename)
    logger.info(
        "Cache rebuilt: %d tasks indexed, %d orphaned files", index.total_tasks, len(orphaned)
    )
    return index


def is_stale(
    index: CacheIndex,
    storage_path: Path,
    *,
    work_items_dir: str = DEFAULT_WORK_ITEMS_DIR,
) -> bool:
    """True when the files on disk may differ from what the index describes.

    Stale if a file appeared or disappeared since the scan, or any file's
    mtime is strictly newer than ``generated_at``. Content is not hashed, so
    a rewrite that keeps an older mtime goes unnoticed.
    """
    work_items_path = storage_path / work_items_dir
    try:
        filenames = list_record_files(work_items_path)
    except OSError:
        return True

    if set(filenames) != index.known_files:
        return True

    try:
        baseline = index.generated_at_dt.timestamp()
    except ValueError:
        return True

    for filename in filenames:
        try:
            mtime = (work_items_path / filename).stat().st_mtime
        except OSError:
            return True
        if mtime > baseline:
            return True
    return False


def get_fresh(
    project_name: str,
    storage_path: Path,
    *,
    work_items_dir: str = DEFAULT_WORK_ITEMS_DIR,
    index_filename: str = DEFAULT_INDEX_FILENAME,
) -> CacheIndex:
    """Load the index, rebuilding when it is absent or stale."""
    index = load_index(project_name, storage_path, index_filename=index_filename)
    if index is not None and not is_stale(index, storage_path, work_items_dir=work_items_dir):
        return index
    return rebuild_index(
        project_name,
        storage_path,
        work_items_dir=work_items_dir,
        index_filename=index_filename,
        previous=index,
    )


def _drop_file(index: CacheIndex, filename: str) -> None:
    index.tasks = [entry for entry in index.tasks if entry.filename != filename]
    index.files_scanned = [name for name in index.files_scanned if name != filename]


def _mark_orphaned(index: CacheIndex, filename: str) -> None:
    _drop_file(index, filename)
    if filename not in index.orphaned_files:
        index.orphaned_files = sorted([*index.orphaned_files, filename])


def upsert_one(
    index: CacheIndex,
    record: TaskRecord,
    storage_path: Path,
    *,
    work_items_dir: str = DEFAULT_WORK_ITEMS_DIR,
    index_filename: str = DEFAULT_INDEX_FILENAME,
) -> CacheIndex:
    """Re-read one record's file and fold it into ``index`` (updated in place).

    The file is the one the index already knows for ``record.id``, else
    ``record.filename``, else ``<id>.md``. A missing file removes the entry;
    an unparsable one moves to ``orphaned_files``.
    """
    existing = index.task_by_id.get(record.id)
    filename = (existing.filename if existing else None) or record.filename or record.default_filename
    file_path = storage_path / work_items_dir / filename

    try:
        fresh = read_record(file_path)
    except FileNotFoundError:
        return remove_one(
            index, record.id, storage_path, index_filename=index_filename
        )
    except RecordParseError as exc:
        logger.warning("Orphaned work item %s (%s)", filename, exc.reason_code)
        _mark_orphaned(index, filename)
        fresh = None
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read work item %s: %s", filename, exc)
        _mark_orphaned(index, filename)
        fresh = None

    if fresh is not None:
        holder = index.task_by_id.get(fresh.id)
        if holder is not None and holder.filename != filename:
            logger.warning(
                "Orphaned work item %s: id %s already declared by %s",
                filename,
                fresh.id,
                holder.filename,
            )
            _mark_orphaned(index, filename)
        else:
            entry = TaskCacheEntry.from_record(fresh)
            tasks: list[TaskCacheEntry] = []
            replaced = False
            for current in index.tasks:
                if current.filename != filename:
                    tasks.append(current)
                elif not replaced:
                    tasks.append(entry)
                    replaced = True
            if not replaced:
                tasks.append(entry)
            index.tasks = tasks
            if filename not in index.files_scanned:
                index.files_scanned = sorted([*index.files_scanned, filename])
            index.orphaned_files = [name for name in index.orphaned_files if name != filename]

    index.generated_at = _next_generated_at(index.generated_at)
    _refresh_derived(index)
    _persist(index, storage_path / index_filename)
    return index


def remove_one(
    index: CacheIndex,
    task_id: str,
    storage_path: Path,
    *,
    index_filename: str = DEFAULT_INDEX_FILENAME,
) -> CacheIndex:
    """Drop one record from ``index`` (updated in place) and persist."""
    entry = index.task_by_id.get(task_id)
    if entry is not None:
        _drop_file(index, entry.filename)
    index.generated_at = _next_generated_at(index.generated_at)
    _refresh_derived(index)
    _persist(index, storage_path / index_filename)
    return index


class TaskCache:
    """Cache index component for one project.

    Construct one per project and share it; operations on the same instance
    are serialized by its lock, different projects never contend.
    """

    def __init__(
        self,
        project_name: str,
        storage_path: Path,
        *,
        work_items_dir: str = DEFAULT_WORK_ITEMS_DIR,
        index_filename: str = DEFAULT_INDEX_FILENAME,
    ) -> None:
        self.project_name = project_name
        self.storage_path = Path(storage_path)
        self.work_items_dir = work_items_dir
        self.index_filename = index_filename
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config: TaskmdConfig) -> TaskCache:
        return cls(
            config.project_name,
            config.storage_path,
            work_items_dir=config.work_items_dir,
            index_filename=config.index_filename,
        )

    @property
    def index_path(self) -> Path:
        return self.storage_path / self.index_filename

    @property
    def work_items_path(self) -> Path:
        return self.storage_path / self.work_items_dir

    def load(self) -> CacheIndex | None:
        with self._lock:
            return load_index(self.project_name, self.storage_path, index_filename=self.index_filename)

    def rebuild(self, previous: CacheIndex | None = None) -> CacheIndex:
        with self._lock:
            return rebuild_index(
                self.project_name,
                self.storage_path,
                work_items_dir=self.work_items_dir,
                index_filename=self.index_filename,
                previous=previous,
            )

    def is_stale(self, index: CacheIndex) -> bool:
        return is_stale(index, self.storage_path, work_items_dir=self.work_items_dir)

    def get_fresh(self) -> CacheIndex:
        with self._lock:
            return get_fresh(
                self.project_name,
                self.storage_path,
                work_items_dir=self.work_items_dir,
                index_filename=self.index_filename,
            )

    def upsert_one(self, index: CacheIndex, record: TaskRecord) -> CacheIndex:
        with self._lock:
            return upsert_one(
                index,
                record,
                self.storage_path,
                work_items_dir=self.work_items_dir,
                index_filename=self.index_filename,
            )

    def remove_one(self, index: CacheIndex, task_id: str) -> CacheIndex:
        with self._lock:
            return remove_one(
                index, task_id, self.storage_path, index_filename=self.index_filename
            )
