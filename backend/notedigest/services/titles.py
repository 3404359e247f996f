"""
NoteDigest Backend — Title Derivation
======================================

What:  Derives a short display title from a generated markdown summary.
How:   First markdown heading wins; otherwise the first non-blank line with
       leading markdown punctuation removed, capped at 100 characters.
Who:   Called by the ingestion service after every successful summarization.
"""

import re

HEADING_PATTERN = re.compile(r"^#+\s+(.+)$", re.MULTILINE)
LEADING_MARKDOWN_PATTERN = re.compile(r"^[#*-]\s*")

MAX_TITLE_LENGTH = 100
FALLBACK_TITLE = "Untitled Note"


def derive_title(markdown: str) -> str:
    """
    Derive a title from markdown. Always returns a non-empty string.

    Examples:
        "# Hello World\\nbody"  → "Hello World"
        "- plain first line"   → "plain first line"
        ""                     → "Untitled Note"
    """
    markdown = markdown or ""

    heading = HEADING_PATTERN.search(markdown)
    if heading and heading.group(1).strip():
        return heading.group(1).strip()

    first_line = next((line for line in markdown.splitlines() if line.strip()), None)
    if first_line is not None:
        cleaned = LEADING_MARKDOWN_PATTERN.sub("", first_line.strip()).strip()
        if 0 < len(cleaned) <= MAX_TITLE_LENGTH:
            return cleaned
        if len(cleaned) > MAX_TITLE_LENGTH:
            return cleaned[: MAX_TITLE_LENGTH - 3] + "..."

    return FALLBACK_TITLE
