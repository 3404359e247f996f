"""
NoteDigest Backend — Dependency Providers
==========================================

What:  FastAPI dependency functions that assemble the service graph per request.
How:   Long-lived clients (Gemini, extractors, file service) are process-wide
       singletons created on first use; the record store wraps the request's
       database session. Tests replace any provider with
       `app.dependency_overrides`.
"""

from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from notedigest.config import settings
from notedigest.database import get_db_session
from notedigest.services.file_service import FileService
from notedigest.services.gemini_service import GeminiService
from notedigest.services.ingestion_service import IngestionService
from notedigest.services.llm_base import LLMService
from notedigest.services.note_service import NoteService
from notedigest.services.note_store import NoteStore, SqlAlchemyNoteStore
from notedigest.services.pdf_extractor import PdfExtractor
from notedigest.services.quiz_service import QuizService
from notedigest.services.summarizer import Summarizer
from notedigest.services.web_extractor import WebExtractor
from notedigest.services.youtube_extractor import YouTubeExtractor

# GeminiService holds the circuit breaker state, which must outlive a request
_llm_service: Optional[LLMService] = None
_file_service: Optional[FileService] = None


def get_llm_service() -> LLMService:
    global _llm_service
    if _llm_service is None:
        _llm_service = GeminiService()
    return _llm_service


def get_summarizer(llm: LLMService = Depends(get_llm_service)) -> Summarizer:
    return Summarizer(llm)


def get_web_extractor() -> WebExtractor:
    return WebExtractor(
        api_key=settings.firecrawl_api_key,
        base_url=settings.firecrawl_base_url,
        timeout=settings.firecrawl_timeout,
    )


def get_youtube_extractor() -> YouTubeExtractor:
    return YouTubeExtractor(languages=settings.transcript_languages_list)


def get_pdf_extractor() -> PdfExtractor:
    return PdfExtractor()


def get_file_service() -> FileService:
    global _file_service
    if _file_service is None:
        _file_service = FileService()
    return _file_service


def get_note_store(session: AsyncSession = Depends(get_db_session)) -> NoteStore:
    return SqlAlchemyNoteStore(session)


def get_ingestion_service(
    store: NoteStore = Depends(get_note_store),
    summarizer: Summarizer = Depends(get_summarizer),
    web_extractor: WebExtractor = Depends(get_web_extractor),
    youtube_extractor: YouTubeExtractor = Depends(get_youtube_extractor),
    pdf_extractor: PdfExtractor = Depends(get_pdf_extractor),
    file_service: FileService = Depends(get_file_service),
) -> IngestionService:
    return IngestionService(
        store=store,
        summarizer=summarizer,
        web_extractor=web_extractor,
        youtube_extractor=youtube_extractor,
        pdf_extractor=pdf_extractor,
        file_service=file_service,
    )


def get_note_service(store: NoteStore = Depends(get_note_store)) -> NoteService:
    return NoteService(store)


def get_quiz_service(
    llm: LLMService = Depends(get_llm_service),
    pdf_extractor: PdfExtractor = Depends(get_pdf_extractor),
    file_service: FileService = Depends(get_file_service),
) -> QuizService:
    return QuizService(llm, pdf_extractor=pdf_extractor, file_service=file_service)
