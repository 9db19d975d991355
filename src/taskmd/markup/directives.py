"""Write smart snippet directives back out as ``::type[label]{attrs}`` text."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping

from taskmd.markup.types import Snippet, SnippetType

logger = logging.getLogger(__name__)

_ATTR_KEY = re.compile(r"\w+")


def _clean_label(label: str) -> str:
    # Labels end at the first "]", so it cannot appear inside one.
    return " ".join(label.replace("]", "").split())


def _clean_value(value: object) -> str:
    return str(value).replace('"', "'").replace("\r", " ").replace("\n", " ")


def format_directive(
    snippet_type: SnippetType | str,
    label: str,
    attributes: Mapping[str, object] | None = None,
) -> str:
    """Render one directive. Every attribute value is written quoted."""
    type_name = snippet_type.value if isinstance(snippet_type, SnippetType) else snippet_type
    pairs: list[str] = []
    for key, value in (attributes or {}).items():
        if value is None:
            continue
        if not _ATTR_KEY.fullmatch(key):
            logger.warning("Dropping attribute %r: keys must be word characters", key)
            continue
        pairs.append(f'{key}="{_clean_value(value)}"')
    attrs = "{" + ", ".join(pairs) + "}" if pairs else ""
    return f"::{type_name}[{_clean_label(label)}]{attrs}"


def directive_for_snippet(snippet: Snippet) -> str:
    return format_directive(snippet.type, snippet.text, snippet.attributes)


def task_directive(title: str, **options: object) -> str:
    return format_directive(SnippetType.TASK, title, options)


def agent_directive(name: str, **options: object) -> str:
    return format_directive(SnippetType.AGENT, name, options)


def smart_section_directive(title: str, prompt: str, body: str) -> str:
    return format_directive(SnippetType.SMART_SECTION, title, {"prompt": prompt, "body": body})
