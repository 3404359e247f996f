"""
NoteDigest Backend — Notes Route Handlers
==========================================

What:  Ingestion of pasted text, web pages and YouTube transcripts, and the
       single-note fetch.
How:   Thin handlers: authenticate, hand the body to IngestionService or
       NoteService, shape the response. Errors propagate to the global
       exception handlers.

Endpoints:
    POST /api/notes/text          {text}           → 201 {noteId, sourceId, summary}
    POST /api/notes/web           {url}            → 201 {noteId, sourceId, summary}
    POST /api/notes/transcripts   {url | video id} → 201 {noteId, sourceId, summary}
    GET  /api/notes/{source_id}                    → 200 {id, sourceId, title, summaryMd, createdAt}

    `get_current_user` is the first dependency of every handler so an
    unauthenticated request fails before any other work.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Response

from notedigest.auth import CurrentUser, get_current_user
from notedigest.dependencies import get_ingestion_service, get_note_service
from notedigest.exceptions import NotFoundError
from notedigest.schemas.note import (
    ErrorResponse,
    NoteCreatedResponse,
    NoteDetailResponse,
    TextNoteRequest,
    UrlNoteRequest,
)
from notedigest.services.ingestion_service import IngestionResult, IngestionService
from notedigest.services.note_service import NoteService, display_title

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notes", tags=["Notes"])

INGESTION_ERRORS = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    401: {"description": "Not authenticated", "model": ErrorResponse},
    409: {"description": "Concurrent duplicate", "model": ErrorResponse},
    422: {"description": "Content could not be extracted", "model": ErrorResponse},
    429: {"description": "Rate limit exceeded", "model": ErrorResponse},
    503: {"description": "Summarization unavailable", "model": ErrorResponse},
}


def _created(result: IngestionResult) -> NoteCreatedResponse:
    return NoteCreatedResponse(
        note_id=result.note_id,
        source_id=result.source_id,
        summary=result.summary,
    )


@router.post(
    "/text",
    response_model=NoteCreatedResponse,
    status_code=201,
    responses=INGESTION_ERRORS,
    summary="Summarize pasted text",
)
async def create_text_note(
    body: TextNoteRequest,
    user: CurrentUser = Depends(get_current_user),
    ingestion: IngestionService = Depends(get_ingestion_service),
) -> NoteCreatedResponse:
    result = await ingestion.ingest_text(user.id, body.text)
    return _created(result)


@router.post(
    "/web",
    response_model=NoteCreatedResponse,
    status_code=201,
    responses=INGESTION_ERRORS,
    summary="Summarize a web page",
)
async def create_web_note(
    body: UrlNoteRequest,
    user: CurrentUser = Depends(get_current_user),
    ingestion: IngestionService = Depends(get_ingestion_service),
) -> NoteCreatedResponse:
    result = await ingestion.ingest_web(user.id, body.url)
    return _created(result)


@router.post(
    "/transcripts",
    response_model=NoteCreatedResponse,
    status_code=201,
    responses=INGESTION_ERRORS,
    summary="Summarize a YouTube video transcript",
)
async def create_transcript_note(
    body: UrlNoteRequest,
    user: CurrentUser = Depends(get_current_user),
    ingestion: IngestionService = Depends(get_ingestion_service),
) -> NoteCreatedResponse:
    result = await ingestion.ingest_youtube(user.id, body.url)
    return _created(result)


@router.get(
    "/{source_id}",
    response_model=NoteDetailResponse,
    responses={
        401: {"description": "Not authenticated", "model": ErrorResponse},
        403: {"description": "Note belongs to another user", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
    },
    summary="Get the note of a source",
)
async def get_note(
    source_id: str,
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
) -> NoteDetailResponse:
    try:
        parsed_id = uuid.UUID(source_id)
    except ValueError:
        # A malformed id cannot name an existing note
        raise NotFoundError(resource="note", resource_id=source_id)

    note = await notes.get_note(user.id, parsed_id)

    # Per-user content; the summary can change on re-upload
    response.headers["Cache-Control"] = "private, no-cache"
    return NoteDetailResponse(
        id=note.id,
        source_id=note.source_id,
        title=display_title(note),
        summary_md=note.summary_md,
        created_at=note.created_at,
    )
