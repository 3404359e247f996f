"""
NoteDigest Backend — Summaries Route Handlers
==============================================

What:  PDF upload-and-summarize, and the newest-first listing of a user's notes.

Endpoints:
    POST /api/summaries   multipart: file, instructions?, title?
                          → 200 {summary, summaryId, documentId, pageCount}
    GET  /api/summaries   → 200 {summaries: [{id, sourceId, title, createdAt, summary}]}

    POST returns 200 for both a new upload and a re-upload of identical bytes
    (the latter updates the existing records in place).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile

from notedigest.auth import CurrentUser, get_current_user
from notedigest.config import settings
from notedigest.dependencies import get_ingestion_service, get_note_service
from notedigest.schemas.note import (
    ErrorResponse,
    PdfSummaryResponse,
    SummaryListItem,
    SummaryListResponse,
)
from notedigest.services.ingestion_service import IngestionService
from notedigest.services.note_service import NoteService, display_title

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/summaries", tags=["Summaries"])


@router.post(
    "",
    response_model=PdfSummaryResponse,
    responses={
        400: {"description": "Missing, non-PDF, empty or oversized file", "model": ErrorResponse},
        401: {"description": "Not authenticated", "model": ErrorResponse},
        409: {"description": "Identical upload in progress", "model": ErrorResponse},
        422: {"description": "No text could be extracted", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        503: {"description": "Summarization unavailable", "model": ErrorResponse},
    },
    summary="Upload a PDF and summarize it",
)
async def create_pdf_summary(
    user: CurrentUser = Depends(get_current_user),
    file: Optional[UploadFile] = File(default=None, description="PDF document (max 10MB)"),
    instructions: Optional[str] = Form(default=None),
    title: Optional[str] = Form(default=None),
    ingestion: IngestionService = Depends(get_ingestion_service),
) -> PdfSummaryResponse:
    content = None
    filename = None
    content_type = None
    if file is not None:
        # One byte past the limit is enough to reject oversized uploads
        content = await file.read(settings.max_file_size + 1)
        filename = file.filename
        content_type = file.content_type
        logger.info("PDF upload received: %s (%d bytes)", filename, len(content))

    result = await ingestion.ingest_pdf(
        user.id,
        filename=filename,
        content_type=content_type,
        content=content,
        instructions=instructions,
        title=title,
    )
    return PdfSummaryResponse(
        summary=result.summary,
        summary_id=result.note_id,
        document_id=result.source_id,
        page_count=result.page_count,
    )


@router.get(
    "",
    response_model=SummaryListResponse,
    responses={
        401: {"description": "Not authenticated", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="List the caller's notes, newest first",
)
async def list_summaries(
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
) -> SummaryListResponse:
    records = await notes.list_notes(user.id)
    response.headers["Cache-Control"] = "private, no-cache"
    return SummaryListResponse(
        summaries=[
            SummaryListItem(
                id=note.id,
                source_id=note.source_id,
                title=display_title(note),
                created_at=note.created_at,
                summary=note.summary_md,
            )
            for note in records
        ]
    )
