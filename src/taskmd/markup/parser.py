"""Smart snippet parser.

Directives look like ``::task[Patch auth check]{priority="high", owner=ana}``.
They are matched against the raw source of each inline run of a CommonMark
AST (markdown-it-py), so emphasis or links inside a label do not split them.
Code blocks, and code spans that open before a directive, are left alone.
Each directive is replaced in the rendered HTML by an empty placeholder
element carrying the snippet id; a UI swaps the placeholder for an
interactive widget.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable

from markdown_it import MarkdownIt
from markdown_it.token import Token

from taskmd.markup.types import (
    ParsedMarkup,
    Snippet,
    SnippetType,
    action_for_type,
)

logger = logging.getLogger(__name__)

DIRECTIVE_PATTERN = re.compile(
    r"::(?P<type>[\w-]+)"
    r"\[(?P<label>[^\]]*)\]"
    r'(?:\{(?P<attrs>(?:[^}"]|"[^"]*")*)\})?'
)
ATTRIBUTE_PATTERN = re.compile(r'(\w+)=(?:"([^"]*)"|([^,}\s"]+))')

PLACEHOLDER_TEMPLATE = '<div class="taskmd-snippet" data-snippet-id="{id}"></div>'
# Opening tag only: markdown-it splits inline HTML into open/close tokens.
PLACEHOLDER_PATTERN = re.compile(r'<div class="[\w-]*snippet" data-snippet-id="([^"]+)"[^>]*>')

# Best-effort inference for placeholders that arrive without directive text.
_ID_ACTION_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("task", "create"), "create-task"),
    (("agent",), "add-agent"),
    (("team", "invite"), "invite-member"),
    (("plan",), "plan-feature"),
)
DEFAULT_INFERRED_ACTION = "create-task"
ACTION_LABELS: dict[str, str] = {
    "create-task": "Create Task",
    "add-agent": "Add Agent",
    "invite-member": "Invite Member",
    "plan-feature": "Plan Feature",
}


def new_snippet_id() -> str:
    return f"snippet-{uuid.uuid4().hex[:12]}"


def render_placeholder(snippet_id: str) -> str:
    return PLACEHOLDER_TEMPLATE.format(id=snippet_id)


def parse_attributes(attr_text: str) -> dict[str, str]:
    """Parse ``key=value`` / ``key="quoted value"`` pairs, keeping order."""
    attributes: dict[str, str] = {}
    for match in ATTRIBUTE_PATTERN.finditer(attr_text):
        key, quoted, unquoted = match.groups()
        attributes[key] = quoted if quoted is not None else unquoted
    return attributes


def infer_action_from_id(snippet_id: str) -> str:
    """Guess an action from words embedded in a snippet id."""
    lowered = snippet_id.lower()
    for needles, action in _ID_ACTION_HINTS:
        if any(needle in lowered for needle in needles):
            return action
    return DEFAULT_INFERRED_ACTION


def inferred_snippet(snippet_id: str) -> Snippet:
    action = infer_action_from_id(snippet_id)
    return Snippet(
        id=snippet_id,
        type=SnippetType.TASK.value,
        text=ACTION_LABELS.get(action, "Take Action"),
        attributes={},
        action=action,
        inferred=True,
    )


def extract_placeholder_snippets(text: str) -> list[Snippet]:
    """Recover snippets from placeholder markers alone.

    Degraded fallback for content produced elsewhere whose directive source
    was lost: only the id survives, so type is always ``task`` and the action
    is guessed from the id. Use ``MarkupParser.parse`` whenever directives
    are available.
    """
    snippets: list[Snippet] = []
    seen: set[str] = set()
    for match in PLACEHOLDER_PATTERN.finditer(text):
        snippet_id = match.group(1)
        if snippet_id in seen:
            continue
        seen.add(snippet_id)
        snippets.append(inferred_snippet(snippet_id))
    return snippets


_BACKTICK_RUN = re.compile(r"`+")


def _is_escaped(source: str, index: int) -> bool:
    slashes = 0
    while index - slashes > 0 and source[index - slashes - 1] == "\\":
        slashes += 1
    return slashes % 2 == 1


def next_code_span(source: str, pos: int = 0) -> tuple[int, int] | None:
    """Return ``(start, end)`` of the first code span at or after ``pos``.

    A backtick run opens a span that closes at the next run of the same
    length; a run with no partner is plain text.
    """
    search = pos
    while True:
        opener = _BACKTICK_RUN.search(source, search)
        if opener is None:
            return None
        start = opener.start() + 1 if _is_escaped(source, opener.start()) else opener.start()
        width = opener.end() - start
        if width:
            for closer in _BACKTICK_RUN.finditer(source, opener.end()):
                if len(closer.group()) == width:
                    return start, closer.end()
        search = opener.end()


def find_directives(source: str) -> list[re.Match[str]]:
    """Directive matches in raw inline source, skipping code spans.

    A code span that opens before a directive hides it; backticks that
    appear after a directive has started belong to the directive.
    """
    matches: list[re.Match[str]] = []
    pos = 0
    while True:
        match = DIRECTIVE_PATTERN.search(source, pos)
        if match is None:
            return matches
        span = next_code_span(source, pos)
        if span is not None and span[0] <= match.start():
            pos = span[1]
            continue
        matches.append(match)
        pos = match.end()


class _Markers:
    """Opaque word tokens standing in for directives during inline parsing."""

    def __init__(self, matches: list[re.Match[str]]) -> None:
        self.matches = matches
        prefix = f"taskmd{uuid.uuid4().hex}n"
        self._prefix = prefix
        self.pattern = re.compile(re.escape(prefix) + r"(\d+)x")

    def substitute(self, source: str) -> str:
        pieces: list[str] = []
        pos = 0
        for number, match in enumerate(self.matches):
            pieces.append(source[pos : match.start()])
            pieces.append(f"{self._prefix}{number}x")
            pos = match.end()
        pieces.append(source[pos:])
        return "".join(pieces)

    def _original(self, found: re.Match[str]) -> str:
        return self.matches[int(found.group(1))].group(0)

    def restore(self, token: Token) -> None:
        """Put directive source back wherever a marker did not become a placeholder."""
        token.content = self.pattern.sub(self._original, token.content)
        for key, value in token.attrs.items():
            if isinstance(value, str):
                token.attrs[key] = self.pattern.sub(self._original, value)
        for child in token.children or []:
            self.restore(child)


class MarkupParser:
    """Parse markdown with smart snippet directives.

    Instances are cheap and hold no per-document state; construct one where
    needed.
    """

    def __init__(self, id_factory: Callable[[], str] = new_snippet_id) -> None:
        self._md = MarkdownIt("commonmark")
        self._id_factory = id_factory

    def parse(self, text: str) -> ParsedMarkup:
        env: dict = {}
        tokens = self._md.parse(text, env)
        snippets: list[Snippet] = []
        seen_ids: set[str] = set()

        for token in tokens:
            if token.type == "html_block":
                self._collect_placeholders(token.content, snippets, seen_ids)
            elif token.type == "inline":
                self._expand_inline(token, env, snippets, seen_ids)

        rendered = self._md.renderer.render(tokens, self._md.options, env)
        return ParsedMarkup(rendered_text=rendered, snippets=snippets, raw_content=text)

    def extract_snippets(self, text: str) -> list[Snippet]:
        """Parse and return only the snippet list."""
        return self.parse(text).snippets

    def _expand_inline(
        self,
        token: Token,
        env: dict,
        snippets: list[Snippet],
        seen_ids: set[str],
    ) -> None:
        """Swap the directives of one inline run for placeholder tokens.

        Directives are matched on the raw inline source, so markdown inside a
        label or a quoted value cannot split them. The run is then parsed
        again with an opaque marker standing in for each directive.
        """
        matches = find_directives(token.content)
        if not matches:
            for child in token.children or []:
                if child.type == "html_inline":
                    self._collect_placeholders(child.content, snippets, seen_ids)
            return

        markers = _Markers(matches)
        reparsed = self._md.parseInline(markers.substitute(token.content), env)
        children = reparsed[0].children or []
        expanded: list[Token] = []
        for child in children:
            if child.type == "text":
                expanded.extend(self._split_text(child, markers, snippets, seen_ids))
                continue
            # Anything else (code spans, link targets, image alt text) keeps its source.
            markers.restore(child)
            if child.type == "html_inline":
                self._collect_placeholders(child.content, snippets, seen_ids)
            expanded.append(child)
        token.children = expanded

    def _split_text(
        self,
        token: Token,
        markers: _Markers,
        snippets: list[Snippet],
        seen_ids: set[str],
    ) -> list[Token]:
        content = token.content
        pieces: list[Token] = []
        pos = 0
        for found in markers.pattern.finditer(content):
            if found.start() > pos:
                pieces.append(self._token("text", content[pos : found.start()], token.level))
            snippet = self._snippet_from_match(markers.matches[int(found.group(1))], seen_ids)
            snippets.append(snippet)
            pieces.append(self._token("html_inline", render_placeholder(snippet.id), token.level))
            pos = found.end()

        if not pieces:
            return [token]
        if pos < len(content):
            pieces.append(self._token("text", content[pos:], token.level))
        return pieces

    @staticmethod
    def _token(token_type: str, content: str, level: int) -> Token:
        token = Token(token_type, "", 0)
        token.content = content
        token.level = level
        return token

    def _next_id(self, seen_ids: set[str]) -> str:
        snippet_id = self._id_factory()
        while snippet_id in seen_ids:
            snippet_id = self._id_factory()
        seen_ids.add(snippet_id)
        return snippet_id

    def _snippet_from_match(self, match: re.Match[str], seen_ids: set[str]) -> Snippet:
        snippet_type = match.group("type")
        attributes = parse_attributes(match.group("attrs") or "")
        action = action_for_type(snippet_type)
        if action is None:
            logger.debug("Unknown snippet type %r kept without action", snippet_type)

        is_section = snippet_type == SnippetType.SMART_SECTION.value
        return Snippet(
            id=self._next_id(seen_ids),
            type=snippet_type,
            text=match.group("label").strip(),
            attributes=attributes,
            action=action,
            prompt=attributes.get("prompt") if is_section else None,
            body=attributes.get("body") if is_section else None,
        )

    @staticmethod
    def _collect_placeholders(html: str, snippets: list[Snippet], seen_ids: set[str]) -> None:
        for match in PLACEHOLDER_PATTERN.finditer(html):
            snippet_id = match.group(1)
            if snippet_id in seen_ids:
                continue
            seen_ids.add(snippet_id)
            snippets.append(inferred_snippet(snippet_id))


def parse_markup(text: str) -> ParsedMarkup:
    """Parse ``text`` with a fresh ``MarkupParser``."""
    return MarkupParser().parse(text)
