"""Storage directory scaffolding."""

from __future__ import annotations

import logging
from pathlib import Path

from taskmd.artifacts.canonical_json import atomic_write_text

logger = logging.getLogger(__name__)

STARTER_PROJECT_TEMPLATE = """---
name: "{name}"
---
# {name}

Work items for {name} are tracked as markdown files in this directory.

## Layout
- `{work_items_dir}/` holds one file per work item
- `{agents_dir}/` holds agent descriptions

## Smart Snippets
Directives turn into interactive elements when rendered:
- `::task[Task Name]{{priority="high"}}`
- `::agent[Agent Name]{{type="developer"}}`
- `::smart-section[Section Name]`
"""


def init_project_structure(
    directory_path: Path,
    project_name: str,
    *,
    work_items_dir: str = "work-items",
    agents_dir: str = "agents",
    project_file: str = "project.md",
) -> list[Path]:
    """Create the storage layout. Existing files are left untouched.

    Returns:
        Paths that were created
    """
    root = Path(directory_path)
    created: list[Path] = []
    for directory in (root, root / work_items_dir, root / agents_dir):
        if not directory.exists():
            directory.mkdir(parents=True)
            created.append(directory)

    project_path = root / project_file
    if not project_path.exists():
        atomic_write_text(
            project_path,
            STARTER_PROJECT_TEMPLATE.format(
                name=project_name, work_items_dir=work_items_dir, agents_dir=agents_dir
            ),
        )
        created.append(project_path)

    if created:
        logger.info("Initialized %s (%d paths created)", root, len(created))
    return created
