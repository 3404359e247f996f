"""
NoteDigest Backend — Pydantic Request/Response Schemas
=======================================================

What:  Pydantic models defining the HTTP contract of the note endpoints.
How:   FastAPI validates request bodies against these models and serializes
       responses through them. Field names are snake_case in Python and
       camelCase on the wire (alias generator).

Design Decision:
    Schemas are separate from SQLAlchemy models and store records:
    1. The wire format (camelCase ids, `summaryMd`) differs from column names
    2. We control exactly what data is exposed (owner ids never leave the server)
    3. Request fields are optional at the schema level so missing values get
       the same user-facing messages as empty ones
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class TextNoteRequest(CamelModel):
    """Body of POST /api/notes/text."""

    text: Optional[str] = Field(default=None, description="Pasted text to summarize")


class UrlNoteRequest(CamelModel):
    """Body of POST /api/notes/web and POST /api/notes/transcripts."""

    url: Optional[str] = Field(
        default=None,
        description="Web page URL, or a YouTube URL / bare 11-character video id",
    )


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class NoteCreatedResponse(CamelModel):
    """
    Returned by the text, web and transcript ingestion endpoints.

    Example:
        {"noteId": "…", "sourceId": "…", "summary": "# Title\\n- point"}
    """

    note_id: uuid.UUID
    source_id: uuid.UUID
    summary: str


class PdfSummaryResponse(CamelModel):
    """
    Returned by POST /api/summaries. Same shape for a new upload and for a
    re-upload of byte-identical content.
    """

    summary: str
    summary_id: uuid.UUID = Field(description="Note id")
    document_id: uuid.UUID = Field(description="Source id")
    page_count: Optional[int] = None


class SummaryListItem(CamelModel):
    id: uuid.UUID
    source_id: uuid.UUID
    title: str = Field(description="Note title, else source title, else 'Untitled source'")
    created_at: datetime
    summary: str


class SummaryListResponse(CamelModel):
    """Returned by GET /api/summaries, newest first."""

    summaries: List[SummaryListItem]


class NoteDetailResponse(CamelModel):
    """Returned by GET /api/notes/{source_id}."""

    id: uuid.UUID
    source_id: uuid.UUID
    title: str
    summary_md: str
    created_at: datetime


class ErrorResponse(CamelModel):
    """
    Body of every error response.

    Example:
        {"error": "Note not found.", "code": "not_found", "requestId": "a1b2c3d4"}
    """

    error: str = Field(description="User-facing error message")
    code: Optional[str] = Field(default=None, description="Machine-readable error code")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(CamelModel):
    """
    Returned by GET /health.

    Status levels:
        healthy:   database and generation service reachable
        degraded:  generation service down or circuit open
        unhealthy: database unreachable
    """

    status: str
    version: str
    database: str = Field(description="connected, disconnected")
    llm: str = Field(description="available, unavailable, circuit_open")
    uptime_seconds: float
