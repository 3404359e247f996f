"""
NoteDigest Backend — Extraction Results and the Text Extractor
===============================================================

What:  The normalized shape every content extractor returns, plus the
       pass-through extractor for pasted text.
Who:   Produced by the text, web, YouTube and PDF extractors; consumed by the
       ingestion service, which turns segments into SourceText rows.

Contract:
    ExtractedContent.text is never empty. `segments`, when present, are
    ordered; concatenating their text (space-joined for transcripts)
    reproduces `text`. Without segments the whole text is one SourceText row.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from notedigest.exceptions import ValidationError


@dataclass
class Segment:
    """One ordered piece of a document: a transcript caption or a page."""

    text: str
    page_number: Optional[int] = None
    start_sec: Optional[int] = None
    end_sec: Optional[int] = None


@dataclass
class ExtractedContent:
    text: str
    segments: List[Segment] = field(default_factory=list)
    page_count: Optional[int] = None
    # Canonical origin (e.g. normalized YouTube watch URL)
    origin: Optional[str] = None


def extract_text(raw: Optional[str]) -> ExtractedContent:
    """
    Normalize pasted text.

    Raises:
        ValidationError: The text is missing or only whitespace.
    """
    text = (raw or "").strip()
    if not text:
        raise ValidationError("Text is required and cannot be empty.", field="text")
    return ExtractedContent(text=text)
