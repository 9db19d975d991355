"""Tests for writing smart snippet directives."""

from __future__ import annotations

import logging

import pytest

from taskmd.markup.directives import (
    agent_directive,
    directive_for_snippet,
    format_directive,
    smart_section_directive,
    task_directive,
)
from taskmd.markup.parser import parse_markup
from taskmd.markup.types import SnippetType


def test_format_directive_quotes_every_value() -> None:
    text = format_directive(SnippetType.TASK, "Patch auth", {"priority": "high", "points": 3})
    assert text == '::task[Patch auth]{priority="high", points="3"}'


def test_no_attributes_means_no_braces() -> None:
    assert format_directive("agent", "Reviewer") == "::agent[Reviewer]"
    assert format_directive("agent", "Reviewer", {"skip": None}) == "::agent[Reviewer]"


def test_labels_and_values_are_sanitized() -> None:
    text = task_directive("Fix [auth]\nbug", note='say "hi"\nlater')
    assert text == "::task[Fix [auth bug]{note=\"say 'hi' later\"}"

    snippet = parse_markup(text).snippets[0]
    assert snippet.text == "Fix [auth bug"
    assert snippet.attributes == {"note": "say 'hi' later"}


def test_invalid_attribute_keys_are_dropped(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        text = format_directive("task", "X", {"bad key": "1", "ok": "2"})
    assert text == '::task[X]{ok="2"}'
    assert "bad key" in caplog.text


def test_written_directives_parse_back() -> None:
    lines = [
        task_directive("Write docs", priority="low", owner="Ana Lopez"),
        agent_directive("Release bot", role="ops"),
        smart_section_directive("Risks", "List the risks, then rank them", "n/a"),
    ]
    parsed = parse_markup("\n\n".join(lines))

    assert [(s.type, s.text) for s in parsed.snippets] == [
        ("task", "Write docs"),
        ("agent", "Release bot"),
        ("smart-section", "Risks"),
    ]
    assert parsed.snippets[0].attributes == {"priority": "low", "owner": "Ana Lopez"}
    assert parsed.snippets[2].prompt == "List the risks, then rank them"

    assert [directive_for_snippet(s) for s in parsed.snippets] == lines
