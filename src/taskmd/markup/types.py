"""Smart snippet types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SnippetType(str, Enum):
    TASK = "task"
    AGENT = "agent"
    TEAM = "team"
    WORKTREE_SUGGESTION = "worktree-suggestion"
    TASK_SUGGESTION = "task-suggestion"
    SMART_SECTION = "smart-section"
    CLAIM_WORKTREE = "claim-worktree"
    RELATED_TASK = "related-task"
    CHAT_SUGGESTION = "chat-suggestion"
    METRIC = "metric"
    ADD_AGENT = "add-agent"
    INVITE_MEMBER = "invite-member"


# Total over SnippetType; checked at import time below.
SNIPPET_ACTIONS: dict[SnippetType, str] = {
    SnippetType.TASK: "create-task",
    SnippetType.AGENT: "add-agent",
    SnippetType.TEAM: "invite-member",
    SnippetType.WORKTREE_SUGGESTION: "suggest-worktree",
    SnippetType.TASK_SUGGESTION: "suggest-task",
    SnippetType.SMART_SECTION: "render-smart-section",
    SnippetType.CLAIM_WORKTREE: "claim-worktree",
    SnippetType.RELATED_TASK: "link-task",
    SnippetType.CHAT_SUGGESTION: "apply-suggestion",
    SnippetType.METRIC: "display-metric",
    SnippetType.ADD_AGENT: "show-agent-templates",
    SnippetType.INVITE_MEMBER: "show-invite-form",
}

if set(SNIPPET_ACTIONS) != set(SnippetType):
    raise RuntimeError("SNIPPET_ACTIONS must cover every SnippetType")

KNOWN_SNIPPET_TYPES = frozenset(t.value for t in SnippetType)


def action_for_type(snippet_type: str) -> str | None:
    """Return the action for a directive type, or None for unknown types."""
    if snippet_type not in KNOWN_SNIPPET_TYPES:
        return None
    return SNIPPET_ACTIONS[SnippetType(snippet_type)]


@dataclass
class Snippet:
    """One parsed ``::type[label]{attrs}`` directive."""

    id: str
    type: str
    text: str
    attributes: dict[str, str] = field(default_factory=dict)
    action: str | None = None
    prompt: str | None = None
    body: str | None = None
    inferred: bool = False

    @property
    def is_known(self) -> bool:
        return self.type in KNOWN_SNIPPET_TYPES

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "text": self.text,
            "attributes": dict(self.attributes),
            "action": self.action,
        }
        if self.prompt is not None:
            data["prompt"] = self.prompt
        if self.body is not None:
            data["body"] = self.body
        if self.inferred:
            data["inferred"] = True
        return data


@dataclass
class ParsedMarkup:
    """Render-ready document plus the snippets its placeholders refer to."""

    rendered_text: str
    snippets: list[Snippet]
    raw_content: str

    def snippets_of_type(self, snippet_type: SnippetType | str) -> list[Snippet]:
        wanted = snippet_type.value if isinstance(snippet_type, SnippetType) else snippet_type
        return [s for s in self.snippets if s.type == wanted]
