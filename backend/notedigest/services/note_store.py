"""
NoteDigest Backend — Persistence Adapter
=========================================

What:  The record-store interface the ingestion and retrieval services use,
       plus its SQLAlchemy implementation.
How:   NoteStore is an ABC of narrow create/find/update-by-key operations
       returning plain records. SqlAlchemyNoteStore runs them on one
       AsyncSession per request and flushes after each write.
Who:   Injected into IngestionService and NoteService by the dependency layer;
       tests inject an in-memory implementation.

Error Translation:
    IntegrityError on Source insert  → SourceConflictError (fingerprint race)
    any other SQLAlchemyError        → PersistenceError (details logged only)
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import desc, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notedigest.exceptions import PersistenceError
from notedigest.models.note import Note
from notedigest.models.source import Source, SourceText
from notedigest.services.extraction import Segment

logger = logging.getLogger(__name__)


class SourceConflictError(Exception):
    """A Source with the same fingerprint was committed concurrently."""

    def __init__(self, sha256: Optional[str]):
        super().__init__(f"source with fingerprint {sha256} already exists")
        self.sha256 = sha256


# ── Records ───────────────────────────────────────────────────────────────

@dataclass
class SourceRecord:
    id: uuid.UUID
    owner_id: str
    type: str
    filename: Optional[str]
    url: Optional[str]
    sha256: Optional[str]
    title: Optional[str]
    created_at: datetime


@dataclass
class SourceTextRecord:
    id: uuid.UUID
    source_id: uuid.UUID
    ordinal: int
    text: str


@dataclass
class NoteRecord:
    id: uuid.UUID
    owner_id: str
    source_id: uuid.UUID
    summary_md: str
    title: Optional[str]
    model: str
    created_at: datetime
    updated_at: datetime
    source_title: Optional[str] = None


# ── Interface ─────────────────────────────────────────────────────────────

class NoteStore(ABC):
    """
    Record store for Sources, SourceTexts and Notes.

    Every lookup that feeds a write is scoped by owner. `get_note_by_source`
    is deliberately not: the caller distinguishes "missing" from "not yours".
    """

    @abstractmethod
    async def find_source_by_fingerprint(
        self, owner_id: str, sha256: str
    ) -> Optional[SourceRecord]:
        ...

    @abstractmethod
    async def create_source(
        self,
        owner_id: str,
        source_type: str,
        filename: Optional[str] = None,
        url: Optional[str] = None,
        sha256: Optional[str] = None,
        title: Optional[str] = None,
    ) -> SourceRecord:
        """
        Raises:
            SourceConflictError: `sha256` is already taken.
        """
        ...

    @abstractmethod
    async def update_source_title(self, source_id: uuid.UUID, title: str) -> None:
        ...

    @abstractmethod
    async def add_source_texts(
        self, owner_id: str, source_id: uuid.UUID, segments: Sequence[Segment]
    ) -> None:
        """Insert segments with ordinals 0..n-1 in the given order."""
        ...

    @abstractmethod
    async def get_source_text(
        self, source_id: uuid.UUID, ordinal: int
    ) -> Optional[SourceTextRecord]:
        ...

    @abstractmethod
    async def update_source_text(self, source_text_id: uuid.UUID, text: str) -> None:
        ...

    @abstractmethod
    async def find_note_by_source(
        self, owner_id: str, source_id: uuid.UUID
    ) -> Optional[NoteRecord]:
        ...

    @abstractmethod
    async def create_note(
        self,
        owner_id: str,
        source_id: uuid.UUID,
        summary_md: str,
        title: Optional[str],
        model: str,
    ) -> NoteRecord:
        ...

    @abstractmethod
    async def update_note(
        self,
        note_id: uuid.UUID,
        summary_md: str,
        title: Optional[str],
        model: str,
    ) -> NoteRecord:
        ...

    @abstractmethod
    async def list_notes(self, owner_id: str) -> List[NoteRecord]:
        """The owner's notes, newest first, with their Source titles."""
        ...

    @abstractmethod
    async def get_note_by_source(self, source_id: uuid.UUID) -> Optional[NoteRecord]:
        ...

    @abstractmethod
    async def commit(self) -> None:
        ...


# ── SQLAlchemy implementation ─────────────────────────────────────────────

def _source_record(source: Source) -> SourceRecord:
    return SourceRecord(
        id=source.id,
        owner_id=source.owner_id,
        type=source.type,
        filename=source.filename,
        url=source.url,
        sha256=source.sha256,
        title=source.title,
        created_at=source.created_at,
    )


def _note_record(note: Note) -> NoteRecord:
    return NoteRecord(
        id=note.id,
        owner_id=note.owner_id,
        source_id=note.source_id,
        summary_md=note.summary_md,
        title=note.title,
        model=note.model,
        created_at=note.created_at,
        updated_at=note.updated_at,
        source_title=note.source.title if note.source is not None else None,
    )


class SqlAlchemyNoteStore(NoteStore):
    """NoteStore backed by the request's AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _flush(self, operation: str) -> None:
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error("Database error during %s: %s", operation, str(e))
            raise PersistenceError(context={"operation": operation}) from e

    async def find_source_by_fingerprint(self, owner_id, sha256):
        try:
            result = await self.session.execute(
                select(Source).where(Source.owner_id == owner_id, Source.sha256 == sha256)
            )
        except SQLAlchemyError as e:
            logger.error("Fingerprint lookup failed: %s", str(e))
            raise PersistenceError(context={"operation": "find_source"}) from e
        source = result.scalar_one_or_none()
        return _source_record(source) if source else None

    async def create_source(
        self, owner_id, source_type, filename=None, url=None, sha256=None, title=None
    ):
        source = Source(
            owner_id=owner_id,
            type=source_type,
            filename=filename,
            url=url,
            sha256=sha256,
            title=title,
        )
        self.session.add(source)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("Source insert rejected by unique constraint (sha256=%s)", sha256)
            raise SourceConflictError(sha256) from e
        except SQLAlchemyError as e:
            logger.error("Database error during create_source: %s", str(e))
            raise PersistenceError(context={"operation": "create_source"}) from e
        return _source_record(source)

    async def update_source_title(self, source_id, title):
        source = await self.session.get(Source, source_id)
        if source is None:
            return
        source.title = title
        await self._flush("update_source_title")

    async def add_source_texts(self, owner_id, source_id, segments):
        for ordinal, segment in enumerate(segments):
            self.session.add(
                SourceText(
                    owner_id=owner_id,
                    source_id=source_id,
                    ordinal=ordinal,
                    text=segment.text,
                    page_number=segment.page_number,
                    start_sec=segment.start_sec,
                    end_sec=segment.end_sec,
                )
            )
        await self._flush("add_source_texts")

    async def get_source_text(self, source_id, ordinal):
        try:
            result = await self.session.execute(
                select(SourceText).where(
                    SourceText.source_id == source_id,
                    SourceText.ordinal == ordinal,
                )
            )
        except SQLAlchemyError as e:
            logger.error("Source text lookup failed: %s", str(e))
            raise PersistenceError(context={"operation": "get_source_text"}) from e
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return SourceTextRecord(id=row.id, source_id=row.source_id, ordinal=row.ordinal, text=row.text)

    async def update_source_text(self, source_text_id, text):
        row = await self.session.get(SourceText, source_text_id)
        if row is None:
            return
        row.text = text
        await self._flush("update_source_text")

    async def find_note_by_source(self, owner_id, source_id):
        try:
            result = await self.session.execute(
                select(Note).where(Note.owner_id == owner_id, Note.source_id == source_id)
            )
        except SQLAlchemyError as e:
            logger.error("Note lookup failed: %s", str(e))
            raise PersistenceError(context={"operation": "find_note"}) from e
        note = result.unique().scalar_one_or_none()
        return _note_record(note) if note else None

    async def create_note(self, owner_id, source_id, summary_md, title, model):
        note = Note(
            owner_id=owner_id,
            source_id=source_id,
            summary_md=summary_md,
            title=title,
            model=model,
        )
        self.session.add(note)
        await self._flush("create_note")
        await self.session.refresh(note, attribute_names=["source"])
        return _note_record(note)

    async def update_note(self, note_id, summary_md, title, model):
        note = await self.session.get(Note, note_id)
        if note is None:
            raise PersistenceError(context={"operation": "update_note", "note_id": str(note_id)})
        note.summary_md = summary_md
        note.title = title
        note.model = model
        await self._flush("update_note")
        return _note_record(note)

    async def list_notes(self, owner_id):
        try:
            result = await self.session.execute(
                select(Note)
                .where(Note.owner_id == owner_id)
                .order_by(desc(Note.created_at))
            )
        except SQLAlchemyError as e:
            logger.error("Note listing failed: %s", str(e))
            raise PersistenceError(
                "Failed to fetch summaries", context={"operation": "list_notes"}
            ) from e
        return [_note_record(note) for note in result.unique().scalars().all()]

    async def get_note_by_source(self, source_id):
        try:
            result = await self.session.execute(
                select(Note).where(Note.source_id == source_id)
            )
        except SQLAlchemyError as e:
            logger.error("Note fetch failed: %s", str(e))
            raise PersistenceError(context={"operation": "get_note"}) from e
        note = result.unique().scalar_one_or_none()
        return _note_record(note) if note else None

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("Commit rejected by unique constraint: %s", str(e))
            raise SourceConflictError(None) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Commit failed: %s", str(e))
            raise PersistenceError(context={"operation": "commit"}) from e
