"""
NoteDigest Backend — SQLAlchemy Note Store Tests
=================================================

What:  SqlAlchemyNoteStore against an in-memory SQLite database (aiosqlite).
How:   A fresh schema per test built from Base.metadata; StaticPool keeps the
       single in-memory connection alive across sessions.

Test Strategy:
    ✅ Source/SourceText/Note round-trip with ordinals
    ✅ Fingerprint lookup is owner-scoped; the unique constraint is global
    ✅ Note upsert and listing with Source titles
    ✅ SQL errors become PersistenceError
    ✅ Lazy session factory is built once and rebuilt after dispose
"""

import asyncio
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from notedigest.database import Base, dispose_engine, get_engine, get_session_factory
from notedigest.exceptions import PersistenceError
from notedigest.models import note as note_model  # noqa: F401
from notedigest.models import source as source_model  # noqa: F401
from notedigest.services.extraction import Segment
from notedigest.services.note_store import SourceConflictError, SqlAlchemyNoteStore

from conftest import OTHER_USER_ID, USER_ID

SHA = "a" * 64


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def store(session_factory):
    async with session_factory() as session:
        yield SqlAlchemyNoteStore(session)


class TestSources:
    @pytest.mark.asyncio
    async def test_create_and_find_by_fingerprint(self, store):
        created = await store.create_source(
            USER_ID, "pdf", filename="doc.pdf", sha256=SHA, title="Doc"
        )
        await store.commit()

        found = await store.find_source_by_fingerprint(USER_ID, SHA)
        assert found is not None
        assert found.id == created.id
        assert found.filename == "doc.pdf"
        assert found.title == "Doc"

    @pytest.mark.asyncio
    async def test_fingerprint_lookup_is_owner_scoped(self, store):
        await store.create_source(USER_ID, "pdf", sha256=SHA)
        assert await store.find_source_by_fingerprint(OTHER_USER_ID, SHA) is None

    @pytest.mark.asyncio
    async def test_duplicate_fingerprint_raises_conflict(self, store):
        await store.create_source(USER_ID, "pdf", sha256=SHA)
        await store.commit()

        with pytest.raises(SourceConflictError):
            await store.create_source(OTHER_USER_ID, "pdf", sha256=SHA)

    @pytest.mark.asyncio
    async def test_null_fingerprints_never_collide(self, store):
        first = await store.create_source(USER_ID, "text")
        second = await store.create_source(USER_ID, "text")
        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_update_title(self, store):
        source = await store.create_source(USER_ID, "pdf", sha256=SHA, title="Old")
        await store.update_source_title(source.id, "New")

        found = await store.find_source_by_fingerprint(USER_ID, SHA)
        assert found.title == "New"


class TestSourceTexts:
    @pytest.mark.asyncio
    async def test_segments_get_sequential_ordinals(self, store):
        source = await store.create_source(USER_ID, "youtube", url="https://youtu.be/x")
        await store.add_source_texts(
            USER_ID,
            source.id,
            [
                Segment(text="first", start_sec=0, end_sec=2),
                Segment(text="second", start_sec=2, end_sec=5),
            ],
        )

        first = await store.get_source_text(source.id, 0)
        second = await store.get_source_text(source.id, 1)
        assert (first.text, first.ordinal) == ("first", 0)
        assert (second.text, second.ordinal) == ("second", 1)
        assert await store.get_source_text(source.id, 2) is None

    @pytest.mark.asyncio
    async def test_update_text(self, store):
        source = await store.create_source(USER_ID, "pdf", sha256=SHA)
        await store.add_source_texts(USER_ID, source.id, [Segment(text="old")])
        row = await store.get_source_text(source.id, 0)

        await store.update_source_text(row.id, "new")

        assert (await store.get_source_text(source.id, 0)).text == "new"


class TestNotes:
    @pytest.mark.asyncio
    async def test_create_note_carries_source_title(self, store):
        source = await store.create_source(USER_ID, "web", url="https://e.com", title="Page")
        note = await store.create_note(USER_ID, source.id, "# Sum", "Sum", "gemini-test")

        assert note.source_title == "Page"
        assert note.model == "gemini-test"
        assert note.created_at is not None

    @pytest.mark.asyncio
    async def test_find_and_update_note(self, store):
        source = await store.create_source(USER_ID, "pdf", sha256=SHA)
        created = await store.create_note(USER_ID, source.id, "# One", "One", "m1")
        await store.commit()

        found = await store.find_note_by_source(USER_ID, source.id)
        assert found.id == created.id
        assert await store.find_note_by_source(OTHER_USER_ID, source.id) is None

        updated = await store.update_note(created.id, "# Two", "Two", "m2")
        assert updated.id == created.id
        assert (updated.summary_md, updated.title, updated.model) == ("# Two", "Two", "m2")

    @pytest.mark.asyncio
    async def test_list_is_owner_scoped_newest_first(self, store):
        ids = []
        for owner in (USER_ID, OTHER_USER_ID, USER_ID):
            source = await store.create_source(owner, "text")
            note = await store.create_note(owner, source.id, "# S", "S", "m")
            ids.append(note.id)
            await asyncio.sleep(0.01)
        await store.commit()

        listed = await store.list_notes(USER_ID)
        assert [n.id for n in listed] == [ids[2], ids[0]]

    @pytest.mark.asyncio
    async def test_get_note_by_source_ignores_owner(self, store):
        source = await store.create_source(OTHER_USER_ID, "text")
        note = await store.create_note(OTHER_USER_ID, source.id, "# S", None, "m")

        found = await store.get_note_by_source(source.id)
        assert found.id == note.id
        assert found.owner_id == OTHER_USER_ID
        assert await store.get_note_by_source(uuid.uuid4()) is None


class TestErrorTranslation:
    @pytest.mark.asyncio
    async def test_list_failure_is_persistence_error(self):
        session = MagicMock()
        session.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("db down")))

        with pytest.raises(PersistenceError) as exc_info:
            await SqlAlchemyNoteStore(session).list_notes(USER_ID)

        assert exc_info.value.message == "Failed to fetch summaries"
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_commit_failure_rolls_back(self):
        session = MagicMock()
        session.commit = AsyncMock(side_effect=OperationalError("COMMIT", {}, Exception("db down")))
        session.rollback = AsyncMock()

        with pytest.raises(PersistenceError):
            await SqlAlchemyNoteStore(session).commit()

        session.rollback.assert_awaited_once()


class TestSessionFactory:
    @pytest.mark.asyncio
    async def test_factory_built_on_first_use_and_reused(self):
        await dispose_engine()
        try:
            factory = get_session_factory()

            assert isinstance(factory, async_sessionmaker)
            assert get_session_factory() is factory
            assert factory.kw["bind"] is get_engine()

            async with factory() as session:
                assert (await session.execute(text("SELECT 1"))).scalar() == 1
        finally:
            await dispose_engine()

    @pytest.mark.asyncio
    async def test_factory_rebuilt_after_dispose(self):
        first = get_session_factory()
        await dispose_engine()
        try:
            second = get_session_factory()
            assert second is not first
            assert second.kw["bind"] is get_engine()
        finally:
            await dispose_engine()
