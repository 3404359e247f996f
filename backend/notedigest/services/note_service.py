"""
NoteDigest Backend — Note Retrieval Service
============================================

What:  Lists a user's notes and fetches a single note with an ownership check.
How:   Reads through the injected NoteStore and applies one title fallback
       order everywhere: Note.title → Source.title → "Untitled source".
Who:   Called by GET /api/summaries and GET /api/notes/{source_id}.

Access Control:
    A note that exists but belongs to someone else is a 403, not a 404.
"""

import logging
import uuid
from typing import List

from notedigest.exceptions import ForbiddenError, NotFoundError
from notedigest.services.note_store import NoteRecord, NoteStore

logger = logging.getLogger(__name__)

UNTITLED_SOURCE = "Untitled source"


def display_title(note: NoteRecord) -> str:
    return note.title or note.source_title or UNTITLED_SOURCE


class NoteService:
    """Read-side counterpart to IngestionService."""

    def __init__(self, store: NoteStore):
        self.store = store

    async def list_notes(self, owner_id: str) -> List[NoteRecord]:
        """The owner's notes, newest first."""
        notes = await self.store.list_notes(owner_id)
        logger.debug("Listed %d notes for owner %s", len(notes), owner_id)
        return notes

    async def get_note(self, owner_id: str, source_id: uuid.UUID) -> NoteRecord:
        """
        Raises:
            NotFoundError:  No note exists for the source.
            ForbiddenError: The note belongs to another user.
        """
        note = await self.store.get_note_by_source(source_id)
        if note is None:
            raise NotFoundError(resource="note", resource_id=str(source_id))
        if note.owner_id != owner_id:
            logger.warning(
                "Owner %s denied access to note for source %s", owner_id, source_id
            )
            raise ForbiddenError(context={"source_id": str(source_id)})
        return note
