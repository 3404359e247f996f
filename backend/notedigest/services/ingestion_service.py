"""
NoteDigest Backend — Ingestion Orchestrator
============================================

What:  Coordinates one ingestion end-to-end: validate → extract → fingerprint
       → dedup lookup → summarize → create-or-update persistence.
How:   Extractors, the summarizer and the record store are injected; this
       module is the one place that turns store conflicts into
       DuplicateContentError.
Who:   Called by the /api/notes/* and POST /api/summaries route handlers.

Workflow (PDF, the only deduplicated path):
    1. Validate upload (presence, MIME, size, signature)  → 400
    2. Fingerprint raw bytes (SHA-256)
    3. Extract text from a temporary copy                  → 422
    4. Look up an existing Source by (owner, fingerprint)
    5. Summarize                                           → 503
    6a. New:      create Source + SourceText(0) + Note
    6b. Existing: update SourceText(0) only if the text changed, upsert Note
    Unique-constraint race on 6a                           → 409

Error Recovery:
    Every step before persistence is read-only, so a failure there leaves no
    records behind. Persistence runs inside the request's transaction.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

from notedigest.exceptions import DuplicateContentError
from notedigest.services.extraction import ExtractedContent, Segment, extract_text
from notedigest.services.file_service import FileService
from notedigest.services.hashing import content_fingerprint
from notedigest.services.note_store import NoteStore, SourceConflictError
from notedigest.services.pdf_extractor import PdfExtractor
from notedigest.services.summarizer import Summarizer
from notedigest.services.titles import derive_title
from notedigest.services.web_extractor import WebExtractor, validate_web_url
from notedigest.services.youtube_extractor import YouTubeExtractor

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    note_id: uuid.UUID
    source_id: uuid.UUID
    summary: str
    page_count: Optional[int] = None


class IngestionService:
    """Pipeline controller for every input kind."""

    def __init__(
        self,
        store: NoteStore,
        summarizer: Summarizer,
        web_extractor: Optional[WebExtractor] = None,
        youtube_extractor: Optional[YouTubeExtractor] = None,
        pdf_extractor: Optional[PdfExtractor] = None,
        file_service: Optional[FileService] = None,
    ):
        self.store = store
        self.summarizer = summarizer
        self.web_extractor = web_extractor
        self.youtube_extractor = youtube_extractor
        self.pdf_extractor = pdf_extractor or PdfExtractor()
        self.file_service = file_service or FileService()

    # ── Simple paths: always create ───────────────────────────────────────

    async def ingest_text(self, owner_id: str, text: Optional[str]) -> IngestionResult:
        extracted = extract_text(text)
        summary = await self.summarizer.summarize(extracted.text, source_type="text")
        # Pasted text has no title of its own; the Note carries the derived one
        return await self._create(owner_id, "text", extracted, summary, source_title=None)

    async def ingest_web(self, owner_id: str, url: Optional[str]) -> IngestionResult:
        target = validate_web_url(url)
        extracted = await self.web_extractor.extract(target)
        summary = await self.summarizer.summarize(
            extracted.text, source_label=target, source_type="web"
        )
        return await self._create(
            owner_id,
            "web",
            extracted,
            summary,
            url=target,
            source_title=derive_title(summary),
        )

    async def ingest_youtube(self, owner_id: str, url_or_id: Optional[str]) -> IngestionResult:
        extracted = await self.youtube_extractor.extract(url_or_id)
        summary = await self.summarizer.summarize(
            extracted.text, source_label=extracted.origin, source_type="youtube"
        )
        return await self._create(
            owner_id,
            "youtube",
            extracted,
            summary,
            url=extracted.origin,
            source_title=derive_title(summary),
        )

    # ── PDF: fingerprint, dedup, create or update ─────────────────────────

    async def ingest_pdf(
        self,
        owner_id: str,
        filename: Optional[str],
        content_type: Optional[str],
        content: Optional[bytes],
        instructions: Optional[str] = None,
        title: Optional[str] = None,
    ) -> IngestionResult:
        self.file_service.validate_upload(filename, content_type, content)
        sha256 = content_fingerprint(content)

        async with self.file_service.temporary_file(content) as path:
            extracted = await self.pdf_extractor.extract(path)

        existing = await self.store.find_source_by_fingerprint(owner_id, sha256)

        summary = await self.summarizer.summarize(
            extracted.text, instructions=instructions, source_type="pdf"
        )
        explicit_title = title.strip() if title and title.strip() else None
        note_title = derive_title(summary)

        if existing is None:
            logger.info("New PDF %s (sha256=%s…) for owner %s", filename, sha256[:12], owner_id)
            result = await self._create(
                owner_id,
                "pdf",
                extracted,
                summary,
                filename=filename,
                sha256=sha256,
                source_title=explicit_title or note_title,
            )
            result.page_count = extracted.page_count
            return result

        logger.info("Re-ingesting existing PDF source %s", existing.id)
        if explicit_title and explicit_title != existing.title:
            await self.store.update_source_title(existing.id, explicit_title)

        current_text = await self.store.get_source_text(existing.id, 0)
        if current_text is None:
            await self.store.add_source_texts(owner_id, existing.id, [Segment(text=extracted.text)])
        elif current_text.text != extracted.text:
            await self.store.update_source_text(current_text.id, extracted.text)

        note = await self.store.find_note_by_source(owner_id, existing.id)
        if note is None:
            note = await self.store.create_note(
                owner_id, existing.id, summary, note_title, self.summarizer.model_name
            )
        else:
            note = await self.store.update_note(
                note.id, summary, note_title, self.summarizer.model_name
            )
        await self._commit()

        return IngestionResult(
            note_id=note.id,
            source_id=existing.id,
            summary=summary,
            page_count=extracted.page_count,
        )

    # ── Persistence helpers ───────────────────────────────────────────────

    async def _create(
        self,
        owner_id: str,
        source_type: str,
        extracted: ExtractedContent,
        summary: str,
        filename: Optional[str] = None,
        url: Optional[str] = None,
        sha256: Optional[str] = None,
        source_title: Optional[str] = None,
    ) -> IngestionResult:
        try:
            source = await self.store.create_source(
                owner_id,
                source_type,
                filename=filename,
                url=url,
                sha256=sha256,
                title=source_title,
            )
        except SourceConflictError as e:
            raise DuplicateContentError(context={"sha256": sha256}) from e

        segments: List[Segment] = extracted.segments or [Segment(text=extracted.text)]
        await self.store.add_source_texts(owner_id, source.id, segments)

        note = await self.store.create_note(
            owner_id,
            source.id,
            summary,
            derive_title(summary),
            self.summarizer.model_name,
        )
        await self._commit()

        logger.info(
            "Created %s source %s with %d segment(s) and note %s",
            source_type,
            source.id,
            len(segments),
            note.id,
        )
        return IngestionResult(note_id=note.id, source_id=source.id, summary=summary)

    async def _commit(self) -> None:
        try:
            await self.store.commit()
        except SourceConflictError as e:
            raise DuplicateContentError() from e
