"""
NoteDigest Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── memory_store:   In-memory NoteStore (no database needed)
    ├── fake_llm:       Scripted LLMService (no Gemini calls)
    ├── summarizer:     Summarizer over fake_llm
    ├── file_service:   FileService writing into tmp_path
    ├── pdf_bytes:      Builder for small, valid, text-bearing PDFs
    ├── app:            FastAPI app with all external collaborators overridden
    └── test_client:    HTTPX AsyncClient over `app`
"""

import os

# Override settings for testing BEFORE any notedigest imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["FIRECRAWL_API_KEY"] = "fc-test-key"
os.environ["AUTH_GATEWAY_KEY"] = ""
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"
os.environ["DB_CREATE_TABLES"] = "false"

import base64
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from types import SimpleNamespace

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from notedigest.services.file_service import FileService
from notedigest.services.llm_base import LLMService
from notedigest.services.note_store import (
    NoteRecord,
    NoteStore,
    SourceConflictError,
    SourceRecord,
    SourceTextRecord,
)
from notedigest.services.summarizer import Summarizer

USER_ID = "user-alice"
OTHER_USER_ID = "user-bob"


# ══════════════════════════════════════════════════════════════════════════
# Fakes
# ══════════════════════════════════════════════════════════════════════════

class InMemoryNoteStore(NoteStore):
    """
    NoteStore kept in dicts. Enforces the same uniqueness rules as the
    database: sha256 unique across owners, one note per source.
    """

    def __init__(self):
        self.sources: Dict[uuid.UUID, SourceRecord] = {}
        self.texts: Dict[uuid.UUID, List[SourceTextRecord]] = {}
        self.notes: Dict[uuid.UUID, NoteRecord] = {}
        self.text_updates = 0
        self.commits = 0
        self.fail_next_create = False
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _now(self) -> datetime:
        # Strictly increasing so newest-first ordering is deterministic
        self._clock += timedelta(seconds=1)
        return self._clock

    async def find_source_by_fingerprint(self, owner_id, sha256):
        for source in self.sources.values():
            if source.owner_id == owner_id and source.sha256 == sha256:
                return source
        return None

    async def create_source(
        self, owner_id, source_type, filename=None, url=None, sha256=None, title=None
    ):
        if self.fail_next_create or (
            sha256 is not None and any(s.sha256 == sha256 for s in self.sources.values())
        ):
            self.fail_next_create = False
            raise SourceConflictError(sha256)
        record = SourceRecord(
            id=uuid.uuid4(),
            owner_id=owner_id,
            type=source_type,
            filename=filename,
            url=url,
            sha256=sha256,
            title=title,
            created_at=self._now(),
        )
        self.sources[record.id] = record
        self.texts[record.id] = []
        return record

    async def update_source_title(self, source_id, title):
        self.sources[source_id].title = title

    async def add_source_texts(self, owner_id, source_id, segments):
        rows = self.texts.setdefault(source_id, [])
        start = len(rows)
        for offset, segment in enumerate(segments):
            rows.append(
                SourceTextRecord(
                    id=uuid.uuid4(),
                    source_id=source_id,
                    ordinal=start + offset,
                    text=segment.text,
                )
            )

    async def get_source_text(self, source_id, ordinal):
        for row in self.texts.get(source_id, []):
            if row.ordinal == ordinal:
                return row
        return None

    async def update_source_text(self, source_text_id, text):
        for rows in self.texts.values():
            for row in rows:
                if row.id == source_text_id:
                    row.text = text
                    self.text_updates += 1

    def _with_source_title(self, note: NoteRecord) -> NoteRecord:
        note.source_title = self.sources[note.source_id].title
        return note

    async def find_note_by_source(self, owner_id, source_id):
        for note in self.notes.values():
            if note.owner_id == owner_id and note.source_id == source_id:
                return self._with_source_title(note)
        return None

    async def create_note(self, owner_id, source_id, summary_md, title, model):
        assert all(n.source_id != source_id for n in self.notes.values()), "one note per source"
        now = self._now()
        note = NoteRecord(
            id=uuid.uuid4(),
            owner_id=owner_id,
            source_id=source_id,
            summary_md=summary_md,
            title=title,
            model=model,
            created_at=now,
            updated_at=now,
        )
        self.notes[note.id] = note
        return self._with_source_title(note)

    async def update_note(self, note_id, summary_md, title, model):
        note = self.notes[note_id]
        note.summary_md = summary_md
        note.title = title
        note.model = model
        note.updated_at = self._now()
        return self._with_source_title(note)

    async def list_notes(self, owner_id):
        owned = [self._with_source_title(n) for n in self.notes.values() if n.owner_id == owner_id]
        return sorted(owned, key=lambda n: n.created_at, reverse=True)

    async def get_note_by_source(self, source_id):
        for note in self.notes.values():
            if note.source_id == source_id:
                return self._with_source_title(note)
        return None

    async def commit(self):
        self.commits += 1


class FakeLLM(LLMService):
    """Returns scripted summaries in order (the last one repeats) and records prompts."""

    def __init__(self, responses: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.responses = list(responses or ["# Generated Summary\n\n- point one\n- point two"])
        self.error = error
        self.prompts: List[str] = []
        self.max_tokens: List[int] = []
        self.healthy = True

    @property
    def model_name(self) -> str:
        return "fake-model"

    async def generate(self, prompt: str, max_output_tokens: int) -> str:
        self.prompts.append(prompt)
        self.max_tokens.append(max_output_tokens)
        if self.error is not None:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]

    async def health_check(self) -> bool:
        return self.healthy


def build_pdf(
    pages: List[str],
    streams: Optional[List[bytes]] = None,
    annotations: Optional[List[str]] = None,
) -> bytes:
    """
    Assemble a minimal PDF with one Helvetica text line per page.

    `streams` replaces the generated content streams page by page and
    `annotations` adds one inline annotation dictionary per page.

    Object layout: 1 catalog, 2 page tree, 3 font, then a (page, content)
    pair per page. Cross-reference offsets are computed from the bytes.
    """
    page_count = len(pages)
    page_ids = [4 + 2 * i for i in range(page_count)]
    streams = streams or [
        f"BT /F1 12 Tf 72 720 Td ({text}) Tj ET".encode() if text else b"" for text in pages
    ]
    annotations = annotations or [None] * page_count

    objects = {
        1: b"<< /Type /Catalog /Pages 2 0 R >>",
        2: (
            "<< /Type /Pages /Kids [" + " ".join(f"{pid} 0 R" for pid in page_ids)
            + f"] /Count {page_count} >>"
        ).encode(),
        3: b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    }
    for pid, stream, annotation in zip(page_ids, streams, annotations):
        annots = f" /Annots [{annotation}]" if annotation else ""
        objects[pid] = (
            f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            f"/Resources << /Font << /F1 3 0 R >> >> /Contents {pid + 1} 0 R{annots} >>"
        ).encode()
        objects[pid + 1] = (
            f"<< /Length {len(stream)} >>\nstream\n".encode() + stream + b"\nendstream"
        )

    out = bytearray(b"%PDF-1.4\n")
    offsets = {}
    for number in sorted(objects):
        offsets[number] = len(out)
        out += f"{number} 0 obj\n".encode() + objects[number] + b"\nendobj\n"

    xref_offset = len(out)
    size = max(objects) + 1
    out += f"xref\n0 {size}\n".encode()
    out += b"0000000000 65535 f \n"
    for number in range(1, size):
        out += f"{offsets[number]:010d} 00000 n \n".encode()
    out += f"trailer\n<< /Size {size} /Root 1 0 R >>\nstartxref\n{xref_offset}\n%%EOF\n".encode()
    return bytes(out)


def pdf_data_url(content: bytes) -> str:
    return "data:application/pdf;base64," + base64.b64encode(content).decode("ascii")


def quiz_payload(count: int = 4) -> dict:
    """A well-formed quiz as the generation service would return it."""
    return {
        "questions": [
            {
                "question": f"Question {n + 1}?",
                "options": ["alpha", "beta", "gamma", "delta"],
                "correctIndex": n % 4,
            }
            for n in range(count)
        ]
    }


def snippet(text: str, start: float, duration: float) -> SimpleNamespace:
    """Stand-in for a youtube-transcript-api caption snippet."""
    return SimpleNamespace(text=text, start=start, duration=duration)


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def memory_store():
    return InMemoryNoteStore()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def summarizer(fake_llm):
    return Summarizer(fake_llm)


@pytest.fixture
def file_service(tmp_path):
    return FileService(temp_dir=str(tmp_path / "uploads"))


@pytest.fixture
def pdf_bytes():
    """Builder fixture: pdf_bytes("page one", "page two") → PDF bytes."""

    def _build(*pages: str) -> bytes:
        return build_pdf(list(pages) or ["Hello PDF world"])

    return _build


@pytest.fixture
def firecrawl_handler():
    """
    Mutable holder for the Firecrawl mock response; tests replace
    `handler.response` to simulate errors.
    """
    holder = SimpleNamespace(
        response=httpx.Response(
            200,
            json={"success": True, "data": {"markdown": "# Example Domain\n\nSome page text."}},
        ),
        requests=[],
    )

    def handle(request: httpx.Request) -> httpx.Response:
        holder.requests.append(request)
        if isinstance(holder.response, Exception):
            raise holder.response
        return holder.response

    holder.handle = handle
    return holder


@pytest.fixture
def transcript_snippets():
    return [
        snippet("Welcome to the lecture.", 0.0, 2.5),
        snippet("Today we cover sorting.", 2.5, 3.0),
        snippet("Quicksort comes first.", 5.5, 4.2),
    ]


@pytest.fixture
def app(memory_store, fake_llm, file_service, firecrawl_handler, transcript_snippets):
    """
    A fresh app instance with every external collaborator overridden: the
    record store is in memory, Gemini is the FakeLLM, Firecrawl goes through
    an httpx.MockTransport and transcripts come from a stub fetcher.
    """
    from notedigest import dependencies
    from notedigest.main import create_app
    from notedigest.services.web_extractor import WebExtractor
    from notedigest.services.youtube_extractor import YouTubeExtractor

    app = create_app()
    app.dependency_overrides[dependencies.get_note_store] = lambda: memory_store
    app.dependency_overrides[dependencies.get_llm_service] = lambda: fake_llm
    app.dependency_overrides[dependencies.get_file_service] = lambda: file_service
    app.dependency_overrides[dependencies.get_web_extractor] = lambda: WebExtractor(
        api_key="fc-test-key",
        base_url="https://firecrawl.test",
        transport=httpx.MockTransport(firecrawl_handler.handle),
    )
    app.dependency_overrides[dependencies.get_youtube_extractor] = lambda: YouTubeExtractor(
        fetcher=lambda video_id, languages: transcript_snippets,
    )
    return app


@pytest_asyncio.fixture
async def test_client(app):
    """
    HTTPX AsyncClient talking to the `app` fixture. Requests authenticate with
    the X-User-Id header unless a test passes other headers.
    """
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-User-Id": USER_ID},
    ) as client:
        yield client
