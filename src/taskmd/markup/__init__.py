"""Smart snippet markup: parse ``::type[label]{attrs}`` directives and write them back."""

from taskmd.markup.directives import (
    agent_directive,
    directive_for_snippet,
    format_directive,
    smart_section_directive,
    task_directive,
)
from taskmd.markup.parser import (
    MarkupParser,
    extract_placeholder_snippets,
    parse_markup,
    render_placeholder,
)
from taskmd.markup.types import (
    SNIPPET_ACTIONS,
    ParsedMarkup,
    Snippet,
    SnippetType,
    action_for_type,
)

__all__ = [
    "SNIPPET_ACTIONS",
    "MarkupParser",
    "ParsedMarkup",
    "Snippet",
    "SnippetType",
    "action_for_type",
    "agent_directive",
    "directive_for_snippet",
    "extract_placeholder_snippets",
    "format_directive",
    "parse_markup",
    "render_placeholder",
    "smart_section_directive",
    "task_directive",
]
