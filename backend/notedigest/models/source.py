"""
NoteDigest Backend — Source and SourceText SQLAlchemy Models
=============================================================

What:  ORM models for the `sources` and `source_texts` tables.
How:   Inherit from the shared DeclarativeBase; `create_tables()` reads them.
Who:   Used by the SQLAlchemy note store.

Table Design:
    sources
        - id: UUID primary key
        - owner_id: the authenticated user who ingested the document
        - type: pdf | text | web | youtube
        - filename (PDF) / url (web, YouTube); both NULL for pasted text
        - sha256: fingerprint of the uploaded bytes, PDFs only.
          UNIQUE across all owners; NULLs never collide.
        - title: optional display title

    source_texts
        - one row per normalized text segment
        - (source_id, ordinal) UNIQUE; ordinals start at 0 and concatenating
          rows in ordinal order rebuilds the document text
        - page_number for PDFs, start_sec/end_sec for transcript segments
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from notedigest.database import Base

SOURCE_TYPES = ("pdf", "text", "web", "youtube")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Source(Base):
    """
    One ingested document.

    Lifecycle:
        1. Created once per successful ingestion of new content
        2. For PDFs, a re-upload of byte-identical content updates the
           children (text, note) of the existing row instead
    """

    __tablename__ = "sources"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Authenticated user who ingested the document",
    )
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Input kind: pdf, text, web, youtube",
    )
    filename: Mapped[Optional[str]] = mapped_column(
        String(512),
        nullable=True,
        comment="Original filename of an uploaded PDF",
    )
    url: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Origin URL for web pages and YouTube videos",
    )
    sha256: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        unique=True,
        comment="SHA-256 of the uploaded bytes (PDF only); dedup key",
    )
    title: Mapped[Optional[str]] = mapped_column(
        String(512),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    texts: Mapped[List["SourceText"]] = relationship(
        back_populates="source",
        cascade="all, delete-orphan",
        order_by="SourceText.ordinal",
    )

    def __repr__(self) -> str:
        return f"<Source(id={self.id}, type='{self.type}', owner='{self.owner_id}')>"


class SourceText(Base):
    """A normalized text segment of a Source, ordered by `ordinal`."""

    __tablename__ = "source_texts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    source_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("sources.id", ondelete="CASCADE"),
        nullable=False,
    )
    ordinal: Mapped[int] = mapped_column(Integer, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    page_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    start_sec: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    end_sec: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    source: Mapped[Source] = relationship(back_populates="texts")

    __table_args__ = (
        UniqueConstraint("source_id", "ordinal", name="uq_source_texts_source_ordinal"),
        Index("idx_source_texts_owner", "owner_id"),
    )

    def __repr__(self) -> str:
        return f"<SourceText(source_id={self.source_id}, ordinal={self.ordinal})>"
