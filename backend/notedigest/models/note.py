"""
NoteDigest Backend — Note SQLAlchemy Model
===========================================

What:  ORM model representing the `notes` table: the AI-generated markdown
       summary of a Source.
Who:   Used by the SQLAlchemy note store for create/update/list/get.

Table Design Rationale:
    - source_id UNIQUE: at most one Note per Source; re-ingesting the same
      PDF updates the row (upsert), never inserts a second one
    - summary_md: full markdown, no length limit (TEXT)
    - title: derived from the summary's first heading or first line
    - model: generation model identifier used for the current summary
    - created_at / updated_at: UTC with timezone

    Index on (owner_id, created_at):
        Serves the listing query "my notes, newest first".
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from notedigest.database import Base
from notedigest.models.source import Source


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Note(Base):
    """
    The summary of one Source.

    Lifecycle:
        1. Created on first ingestion of a Source
        2. Overwritten (summary, title, model) when the same fingerprinted
           PDF is uploaded again
    """

    __tablename__ = "notes"

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
        unique=True,
    )
    summary_md: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Markdown summary generated by the LLM",
    )
    title: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    model: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Model identifier used to generate the summary",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    source: Mapped[Source] = relationship(lazy="joined")

    __table_args__ = (
        Index("idx_notes_owner_created_at", "owner_id", created_at.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<Note(id={self.id}, source_id={self.source_id}, "
            f"created_at='{self.created_at}')>"
        )
