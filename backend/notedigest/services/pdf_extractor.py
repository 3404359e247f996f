"""
NoteDigest Backend — PDF Text Extractor
========================================

What:  Turns an uploaded PDF into plain text, trying progressively cruder
       strategies until one yields text.
How:   pypdf opens the file; each strategy is a pure function tried in order
       and any exception inside a strategy falls through to the next one.
Who:   Called by the ingestion service (through asyncio.to_thread) for
       POST /api/summaries.

Strategies (first non-empty result wins):
    1. text_layer        pypdf's structured text extraction, rejected when
                         it reaches 50,000,000 characters
    2. page_tree         text-showing operators (Tj, TJ, ', ") of every page
                         content stream plus AcroForm field values
    3. serialization     runs of ≥10 alphanumeric/space characters, quoted or
                         inside PDF literal-string parentheses, in the JSON
                         serialization of the raw parser output: unparsed
                         page content streams, annotation dictionaries and
                         document metadata

Page Tree Shape:
    {
        "Pages":    [{"Texts": ["Hello", "world"]}, ...],
        "Fields":   [{"name": "customer", "value": "ACME"}, ...],
        "Metadata": {"/Title": "...", ...},
    }

Raw Dump Shape:
    {
        "Pages":    [{"Stream": "BT /F1 12 Tf ... ET", "Annots": [{"/Contents": "..."}]}, ...],
        "Metadata": {"/Title": "...", ...},
    }
"""

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from pypdf import PdfReader
from pypdf.generic import ContentStream

from notedigest.exceptions import ExtractionError
from notedigest.services.extraction import ExtractedContent

logger = logging.getLogger(__name__)

MAX_TEXT_LAYER_LENGTH = 50_000_000
# Quoted JSON value, or a PDF literal string such as "(Some caption)"
SERIALIZED_TEXT_PATTERN = re.compile(r'"([A-Za-z0-9 ]{10,})"|\(([A-Za-z0-9 ]{10,})\)')

NO_TEXT_MESSAGE = (
    "Could not extract text from PDF. "
    "The file may be image-based, encrypted, or unsupported."
)
UNREADABLE_MESSAGE = "Failed to read the PDF file. The file may be corrupted."

PageTree = Dict[str, Any]
RawDump = Dict[str, Any]


# ── Page tree construction ────────────────────────────────────────────────

def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("latin-1", errors="ignore")
    if isinstance(value, str):
        return value
    return ""


def _page_texts(page, reader: PdfReader) -> List[str]:
    contents = page.get_contents()
    if contents is None:
        return []
    stream = ContentStream(contents, reader)

    texts: List[str] = []
    for operands, operator in stream.operations:
        if operator in (b"Tj", b"'") and operands:
            texts.append(_as_text(operands[0]))
        elif operator == b'"' and len(operands) >= 3:
            texts.append(_as_text(operands[2]))
        elif operator == b"TJ" and operands:
            # Array of strings interleaved with kerning numbers
            texts.append("".join(_as_text(item) for item in operands[0]))
    return [text for text in texts if text.strip()]


def build_page_tree(reader: PdfReader) -> PageTree:
    pages = []
    for index, page in enumerate(reader.pages):
        try:
            pages.append({"Texts": _page_texts(page, reader)})
        except Exception as e:
            logger.debug("Skipping unreadable content stream on page %d: %s", index + 1, e)
            pages.append({"Texts": []})

    fields = []
    for name, field in (reader.get_fields() or {}).items():
        value = field.get("/V") if hasattr(field, "get") else None
        if value is not None:
            fields.append({"name": str(name), "value": str(value)})

    return {"Pages": pages, "Fields": fields, "Metadata": _metadata(reader)}


def _metadata(reader: PdfReader) -> Dict[str, str]:
    return {str(key): str(value) for key, value in (reader.metadata or {}).items()}


# ── Raw parser output ─────────────────────────────────────────────────────

def _raw_stream(page) -> str:
    contents = page.get_contents()
    if contents is None:
        return ""
    return contents.get_data().decode("latin-1", errors="ignore")


def _raw_annotations(page) -> List[Dict[str, str]]:
    annots = page.get("/Annots")
    if annots is None:
        return []
    annotations = []
    for annot in annots.get_object():
        annot = annot.get_object()
        if hasattr(annot, "items"):
            annotations.append({str(key): str(value) for key, value in annot.items()})
    return annotations


def build_raw_dump(reader: PdfReader) -> RawDump:
    """
    Page content streams as pypdf reads them, before operator parsing, plus
    every annotation dictionary. Marked-content properties (/ActualText),
    comments and annotation /Contents survive here even though the text
    extractors ignore them.
    """
    pages = []
    for index, page in enumerate(reader.pages):
        entry = {"Stream": "", "Annots": []}
        try:
            entry["Stream"] = _raw_stream(page)
        except Exception as e:
            logger.debug("Skipping undecodable content stream on page %d: %s", index + 1, e)
        try:
            entry["Annots"] = _raw_annotations(page)
        except Exception as e:
            logger.debug("Skipping unreadable annotations on page %d: %s", index + 1, e)
        pages.append(entry)

    return {"Pages": pages, "Metadata": _metadata(reader)}


# ── Strategies ────────────────────────────────────────────────────────────

def extract_from_text_layer(reader: PdfReader) -> Optional[str]:
    text = "\n\n".join((page.extract_text() or "") for page in reader.pages).strip()
    if len(text) >= MAX_TEXT_LAYER_LENGTH:
        logger.warning("Text layer too large (%d chars); ignoring it", len(text))
        return None
    return text or None


def extract_from_page_tree(tree: PageTree) -> Optional[str]:
    page_texts = []
    for page in tree.get("Pages") or []:
        joined = " ".join(
            text.strip() for text in page.get("Texts") or [] if isinstance(text, str) and text.strip()
        )
        if joined:
            page_texts.append(joined)

    field_values = [
        str(field.get("value")).strip()
        for field in tree.get("Fields") or []
        if field.get("value") is not None and str(field.get("value")).strip()
    ]

    text = "\n\n".join(page_texts + field_values).strip()
    return text or None


def extract_from_serialization(dump: RawDump) -> Optional[str]:
    serialized = json.dumps(dump, default=str)
    matches = [
        (quoted or literal).strip()
        for quoted, literal in SERIALIZED_TEXT_PATTERN.findall(serialized)
    ]
    text = " ".join(match for match in matches if match)
    return text or None


STRATEGIES: List[Tuple[str, Callable[[PdfReader], Optional[str]]]] = [
    ("text_layer", extract_from_text_layer),
    ("page_tree", lambda reader: extract_from_page_tree(build_page_tree(reader))),
    ("serialization", lambda reader: extract_from_serialization(build_raw_dump(reader))),
]


# ── Extractor ─────────────────────────────────────────────────────────────

class PdfExtractor:
    """Runs the strategies against a PDF file on disk."""

    def extract_from_file(self, pdf_path: Path) -> ExtractedContent:
        """
        Raises:
            ExtractionError: The file cannot be opened or no strategy finds text.
        """
        try:
            reader = PdfReader(str(pdf_path))
            if reader.is_encrypted:
                # Many "encrypted" PDFs only carry an owner password
                reader.decrypt("")
            page_count = len(reader.pages)
        except Exception as e:
            logger.warning("pypdf could not open %s: %s", Path(pdf_path).name, e)
            raise ExtractionError(
                UNREADABLE_MESSAGE, context={"error_type": type(e).__name__}
            ) from e

        for name, strategy in STRATEGIES:
            try:
                text = strategy(reader)
            except Exception as e:
                logger.debug("PDF strategy %s failed: %s: %s", name, type(e).__name__, e)
                continue
            if text and text.strip():
                logger.info(
                    "Extracted %d chars from %d-page PDF using %s",
                    len(text),
                    page_count,
                    name,
                )
                return ExtractedContent(text=text.strip(), page_count=page_count)

        raise ExtractionError(NO_TEXT_MESSAGE, context={"page_count": page_count})

    async def extract(self, pdf_path: Path) -> ExtractedContent:
        """Parse in a worker thread so the event loop keeps serving requests."""
        return await asyncio.to_thread(self.extract_from_file, pdf_path)
