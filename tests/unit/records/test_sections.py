"""Tests for markdown section helpers."""

from __future__ import annotations

from taskmd.records.sections import (
    description_section,
    extract_first_paragraph,
    extract_title,
    has_description,
    parse_sections,
)

BODY = """
# Billing revamp

## 📋 Description
Move invoices to the new provider.

## Notes
- call finance
"""


def test_description_accepts_leading_emoji() -> None:
    assert description_section(BODY) == "Move invoices to the new provider."
    assert has_description(BODY)


def test_description_stops_at_next_h2() -> None:
    body = "## Description\n\n## Notes\nnot a description\n"
    assert description_section(body) == ""
    assert not has_description(body)


def test_placeholder_is_not_a_description() -> None:
    assert not has_description("## Description\nNo description provided.\n")


def test_no_description_heading() -> None:
    assert description_section("# Title\n\ntext\n") is None
    assert not has_description("# Title\n\ntext\n")


def test_parse_sections() -> None:
    sections = parse_sections(BODY)
    assert sections["Notes"] == "- call finance"
    assert list(sections) == ["📋 Description", "Notes"]


def test_extract_title_prefers_first_heading() -> None:
    assert extract_title("intro\n## Second level\n# First level\n") == "Second level"
    assert extract_title("no headings") is None


def test_extract_first_paragraph_skips_headings_directives_and_fences() -> None:
    text = "# Title\n\n::task[Do it]\n```python\n---\nActual text here.\n"
    assert extract_first_paragraph(text) == "Actual text here."
    assert extract_first_paragraph("# Title\n\nHello there.\n") == "Hello there."
    assert extract_first_paragraph("# Only a heading\n") is None
