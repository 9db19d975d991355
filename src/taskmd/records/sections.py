"""Markdown section helpers shared by the codec and the rehydration engine."""

from __future__ import annotations

import re

NO_DESCRIPTION_PLACEHOLDER = "No description provided."

# "## Description", optionally with a leading emoji/symbol run ("## 📋 Description")
_DESCRIPTION_HEADING = re.compile(r"^##\s+(?:[^\w\s]+\s*)?Description\s*$")
_H2 = re.compile(r"^##\s+(.+)$")
_TITLE = re.compile(r"^#{1,2}\s+(.+)$")


def parse_sections(content: str) -> dict[str, str]:
    """Parse markdown sections by ## headings.

    Returns:
        Dict mapping section name to content
    """
    sections: dict[str, str] = {}
    current_section: str | None = None
    current_content: list[str] = []

    for line in content.split("\n"):
        h2_match = _H2.match(line)
        if h2_match:
            if current_section:
                sections[current_section] = "\n".join(current_content).strip()
            current_section = h2_match.group(1).strip()
            current_content = []
        elif current_section:
            current_content.append(line)

    if current_section:
        sections[current_section] = "\n".join(current_content).strip()

    return sections


def description_section(content: str) -> str | None:
    """Return the text of the Description section, or None when there is none."""
    lines = content.split("\n")
    for idx, line in enumerate(lines):
        if _DESCRIPTION_HEADING.match(line.strip()):
            collected: list[str] = []
            for following in lines[idx + 1 :]:
                if following.startswith("## "):
                    break
                collected.append(following)
            return "\n".join(collected).strip()
    return None


def has_description(content: str) -> bool:
    """True when a Description section holds something besides the placeholder."""
    text = description_section(content)
    return bool(text) and text != NO_DESCRIPTION_PLACEHOLDER


def extract_title(markdown: str) -> str | None:
    """Return the first H1 or H2 heading text."""
    for line in markdown.split("\n"):
        match = _TITLE.match(line)
        if match:
            return match.group(1).strip()
    return None


def extract_first_paragraph(markdown: str) -> str | None:
    """Return the first non-blank line that is not a heading, directive or fence."""
    for line in markdown.split("\n"):
        trimmed = line.strip()
        if trimmed and not trimmed.startswith(("#", "::", "```", "---")):
            return trimmed
    return None
