"""
NoteDigest Backend — Ingestion Service Unit Tests
==================================================

What:  The orchestration of every input kind against the in-memory store.

Test Strategy:
    ✅ Each path creates a Source, its SourceText segment(s) and one Note
    ✅ Validation and extraction failures leave no records
    ✅ Summarizer failures leave no records
    ✅ PDF re-upload updates in place; text row only rewritten when changed
    ✅ Fingerprint conflicts become DuplicateContentError
"""

import httpx
import pytest

from notedigest.exceptions import (
    DuplicateContentError,
    ExtractionError,
    SummarizationUnavailableError,
    ValidationError,
)
from notedigest.services.extraction import ExtractedContent
from notedigest.services.hashing import content_fingerprint
from notedigest.services.ingestion_service import IngestionService
from notedigest.services.summarizer import Summarizer
from notedigest.services.web_extractor import WebExtractor
from notedigest.services.youtube_extractor import YouTubeExtractor

from conftest import OTHER_USER_ID, USER_ID, FakeLLM


class StubPdfExtractor:
    """Returns fixed text so re-upload scenarios control what 'changed' means."""

    def __init__(self, text="Extracted PDF text", page_count=3):
        self.text = text
        self.page_count = page_count
        self.paths = []

    async def extract(self, path):
        self.paths.append(path)
        return ExtractedContent(text=self.text, page_count=self.page_count)


@pytest.fixture
def make_service(memory_store, file_service, firecrawl_handler, transcript_snippets):
    def _make(llm=None, pdf_extractor=None):
        return IngestionService(
            store=memory_store,
            summarizer=Summarizer(llm or FakeLLM()),
            web_extractor=WebExtractor(
                api_key="fc-test-key",
                base_url="https://firecrawl.test",
                transport=httpx.MockTransport(firecrawl_handler.handle),
            ),
            youtube_extractor=YouTubeExtractor(
                fetcher=lambda video_id, languages: transcript_snippets
            ),
            pdf_extractor=pdf_extractor,
            file_service=file_service,
        )

    return _make


def _assert_empty(store):
    assert store.sources == {}
    assert store.notes == {}


class TestTextIngestion:
    @pytest.mark.asyncio
    async def test_creates_source_text_and_note(self, make_service, memory_store):
        result = await make_service().ingest_text(USER_ID, "  Some pasted text  ")

        source = memory_store.sources[result.source_id]
        note = memory_store.notes[result.note_id]
        assert source.type == "text"
        assert source.owner_id == USER_ID
        assert source.title is None
        assert source.sha256 is None
        assert [t.text for t in memory_store.texts[source.id]] == ["Some pasted text"]
        assert note.title == "Generated Summary"
        assert note.model == "fake-model"
        assert result.summary == note.summary_md
        assert memory_store.commits == 1

    @pytest.mark.asyncio
    async def test_same_text_twice_creates_two_sources(self, make_service, memory_store):
        service = make_service()
        first = await service.ingest_text(USER_ID, "repeat")
        second = await service.ingest_text(USER_ID, "repeat")

        assert first.source_id != second.source_id
        assert len(memory_store.notes) == 2

    @pytest.mark.asyncio
    async def test_blank_text_rejected_without_llm_call(self, memory_store, make_service):
        llm = FakeLLM()
        with pytest.raises(ValidationError):
            await make_service(llm=llm).ingest_text(USER_ID, "   ")

        assert llm.prompts == []
        _assert_empty(memory_store)

    @pytest.mark.asyncio
    async def test_summarizer_failure_leaves_no_records(self, make_service, memory_store):
        llm = FakeLLM(error=SummarizationUnavailableError())
        with pytest.raises(SummarizationUnavailableError):
            await make_service(llm=llm).ingest_text(USER_ID, "text")

        _assert_empty(memory_store)


class TestWebIngestion:
    @pytest.mark.asyncio
    async def test_web_source_records_url_and_title(
        self, make_service, memory_store, fake_llm
    ):
        result = await make_service(llm=fake_llm).ingest_web(USER_ID, "https://example.com")

        source = memory_store.sources[result.source_id]
        assert source.type == "web"
        assert source.url == "https://example.com"
        assert source.title == "Generated Summary"
        assert "Source URL: https://example.com" in fake_llm.prompts[0]
        assert "# Example Domain" in fake_llm.prompts[0]

    @pytest.mark.asyncio
    async def test_invalid_url_rejected_before_scrape(
        self, make_service, memory_store, firecrawl_handler
    ):
        with pytest.raises(ValidationError):
            await make_service().ingest_web(USER_ID, "javascript:alert(1)")

        assert firecrawl_handler.requests == []
        _assert_empty(memory_store)

    @pytest.mark.asyncio
    async def test_scrape_failure_leaves_no_records(
        self, make_service, memory_store, firecrawl_handler
    ):
        firecrawl_handler.response = httpx.Response(404, json={})
        with pytest.raises(ExtractionError):
            await make_service().ingest_web(USER_ID, "https://example.com/missing")

        _assert_empty(memory_store)


class TestYouTubeIngestion:
    @pytest.mark.asyncio
    async def test_transcript_segments_stored_in_order(
        self, make_service, memory_store, fake_llm
    ):
        result = await make_service(llm=fake_llm).ingest_youtube(
            USER_ID, "https://youtu.be/dQw4w9WgXcQ"
        )

        source = memory_store.sources[result.source_id]
        texts = memory_store.texts[source.id]
        assert source.type == "youtube"
        assert source.url == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
        assert [t.ordinal for t in texts] == [0, 1, 2]
        assert texts[0].text == "Welcome to the lecture."
        assert "Transcript content:" in fake_llm.prompts[0]

    @pytest.mark.asyncio
    async def test_bad_video_reference(self, make_service, memory_store):
        with pytest.raises(ValidationError):
            await make_service().ingest_youtube(USER_ID, "https://example.com/video")
        _assert_empty(memory_store)


class TestPdfIngestion:
    @pytest.mark.asyncio
    async def test_new_pdf_creates_records(self, make_service, memory_store, pdf_bytes):
        content = pdf_bytes()
        extractor = StubPdfExtractor()

        result = await make_service(pdf_extractor=extractor).ingest_pdf(
            USER_ID, "doc.pdf", "application/pdf", content
        )

        source = memory_store.sources[result.source_id]
        assert source.type == "pdf"
        assert source.filename == "doc.pdf"
        assert source.sha256 == content_fingerprint(content)
        assert source.title == "Generated Summary"
        assert result.page_count == 3
        assert [t.text for t in memory_store.texts[source.id]] == ["Extracted PDF text"]
        # Staged file is gone once extraction finishes
        assert not extractor.paths[0].exists()

    @pytest.mark.asyncio
    async def test_explicit_title_and_instructions(
        self, make_service, memory_store, pdf_bytes, fake_llm
    ):
        result = await make_service(llm=fake_llm, pdf_extractor=StubPdfExtractor()).ingest_pdf(
            USER_ID,
            "doc.pdf",
            "application/pdf",
            pdf_bytes(),
            instructions="Focus on numbers",
            title="  Quarterly report  ",
        )

        assert memory_store.sources[result.source_id].title == "Quarterly report"
        assert "User instructions: Focus on numbers" in fake_llm.prompts[0]

    @pytest.mark.asyncio
    async def test_reupload_updates_note_in_place(self, make_service, memory_store, pdf_bytes):
        content = pdf_bytes()
        llm = FakeLLM(["# First\n- a", "# Second\n- b"])
        service = make_service(llm=llm, pdf_extractor=StubPdfExtractor())

        first = await service.ingest_pdf(USER_ID, "doc.pdf", "application/pdf", content)
        second = await service.ingest_pdf(USER_ID, "doc.pdf", "application/pdf", content)

        assert second.source_id == first.source_id
        assert second.note_id == first.note_id
        assert len(memory_store.sources) == 1
        assert len(memory_store.notes) == 1
        note = memory_store.notes[first.note_id]
        assert note.summary_md == "# Second\n- b"
        assert note.title == "Second"
        assert note.updated_at > note.created_at
        # Extracted text identical: SourceText left alone
        assert memory_store.text_updates == 0
        assert len(memory_store.texts[first.source_id]) == 1

    @pytest.mark.asyncio
    async def test_reupload_rewrites_changed_text(self, make_service, memory_store, pdf_bytes):
        content = pdf_bytes()
        extractor = StubPdfExtractor(text="old text")
        service = make_service(pdf_extractor=extractor)

        first = await service.ingest_pdf(USER_ID, "doc.pdf", "application/pdf", content)
        extractor.text = "new text"
        await service.ingest_pdf(USER_ID, "doc.pdf", "application/pdf", content)

        assert memory_store.text_updates == 1
        assert memory_store.texts[first.source_id][0].text == "new text"

    @pytest.mark.asyncio
    async def test_reupload_with_new_title_updates_source(
        self, make_service, memory_store, pdf_bytes
    ):
        content = pdf_bytes()
        service = make_service(pdf_extractor=StubPdfExtractor())

        first = await service.ingest_pdf(USER_ID, "doc.pdf", "application/pdf", content)
        await service.ingest_pdf(
            USER_ID, "doc.pdf", "application/pdf", content, title="Renamed"
        )

        assert memory_store.sources[first.source_id].title == "Renamed"

    @pytest.mark.asyncio
    async def test_different_pdfs_create_separate_sources(
        self, make_service, memory_store, pdf_bytes
    ):
        first_bytes = pdf_bytes("First document")
        second_bytes = pdf_bytes("Second document")
        service = make_service(pdf_extractor=StubPdfExtractor())

        first = await service.ingest_pdf(USER_ID, "a.pdf", "application/pdf", first_bytes)
        second = await service.ingest_pdf(USER_ID, "b.pdf", "application/pdf", second_bytes)

        assert first.source_id != second.source_id
        assert first.note_id != second.note_id
        assert len(memory_store.sources) == 2
        assert len(memory_store.notes) == 2
        assert {s.sha256 for s in memory_store.sources.values()} == {
            content_fingerprint(first_bytes),
            content_fingerprint(second_bytes),
        }

    @pytest.mark.asyncio
    async def test_same_bytes_from_another_user_conflict(
        self, make_service, memory_store, pdf_bytes
    ):
        content = pdf_bytes()
        service = make_service(pdf_extractor=StubPdfExtractor())
        await service.ingest_pdf(USER_ID, "doc.pdf", "application/pdf", content)

        with pytest.raises(DuplicateContentError) as exc_info:
            await service.ingest_pdf(OTHER_USER_ID, "doc.pdf", "application/pdf", content)

        assert exc_info.value.status_code == 409
        assert len(memory_store.sources) == 1

    @pytest.mark.asyncio
    async def test_concurrent_insert_race_becomes_conflict(
        self, make_service, memory_store, pdf_bytes
    ):
        memory_store.fail_next_create = True
        with pytest.raises(DuplicateContentError):
            await make_service(pdf_extractor=StubPdfExtractor()).ingest_pdf(
                USER_ID, "doc.pdf", "application/pdf", pdf_bytes()
            )
        assert memory_store.notes == {}

    @pytest.mark.asyncio
    async def test_invalid_upload_never_extracted(self, make_service, memory_store):
        extractor = StubPdfExtractor()
        with pytest.raises(ValidationError):
            await make_service(pdf_extractor=extractor).ingest_pdf(
                USER_ID, "notes.txt", "text/plain", b"plain text"
            )

        assert extractor.paths == []
        _assert_empty(memory_store)

    @pytest.mark.asyncio
    async def test_real_pdf_end_to_end(self, make_service, memory_store, pdf_bytes, fake_llm):
        result = await make_service(llm=fake_llm).ingest_pdf(
            USER_ID, "hello.pdf", "application/pdf", pdf_bytes("Hello PDF world")
        )

        assert result.page_count == 1
        assert "Hello PDF world" in fake_llm.prompts[0]
        assert "Hello PDF world" in memory_store.texts[result.source_id][0].text
