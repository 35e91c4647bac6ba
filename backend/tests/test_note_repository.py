"""
StudySnap Backend - Note Repository Tests
===========================================

What:  NoteRepository against an in-memory SQLite database.

What we test:
    ✅ insert returns an id readable by get and list (read-after-write)
    ✅ list orders by date DESC and honours limit
    ✅ get raises NotFoundError for unknown ids
    ✅ SQLAlchemy failures surface as DatabaseError
"""

import datetime as dt
import uuid
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from studysnap.exceptions import DatabaseError, NotFoundError
from studysnap.schemas.note import NoteCreate
from studysnap.services.note_repository import NoteRepository


def make_note(title: str = "Calc I", date: dt.date = dt.date(2026, 1, 15), **overrides) -> NoteCreate:
    fields = {
        "title": title,
        "subject": "Math",
        "preview": "Derivatives",
        "tags": ["calc", "type:note"],
        "date": date,
    }
    fields.update(overrides)
    return NoteCreate(**fields)


class TestInsertAndGet:
    @pytest.mark.asyncio
    async def test_insert_then_get(self, repository):
        note_id = await repository.insert(make_note())

        stored = await repository.get(note_id)

        assert isinstance(note_id, uuid.UUID)
        assert stored.id == note_id
        assert stored.title == "Calc I"
        assert stored.subject == "Math"
        assert stored.preview == "Derivatives"
        assert stored.tags == ["calc", "type:note"]
        assert stored.date == dt.date(2026, 1, 15)
        assert stored.created_at is not None

    @pytest.mark.asyncio
    async def test_tags_keep_order_and_duplicates(self, repository):
        note_id = await repository.insert(make_note(tags=["b", "a", "b"]))
        assert (await repository.get(note_id)).tags == ["b", "a", "b"]

    @pytest.mark.asyncio
    async def test_get_unknown_id(self, repository):
        with pytest.raises(NotFoundError):
            await repository.get(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_insert_is_visible_to_list(self, repository):
        note_id = await repository.insert(make_note())
        assert [n.id for n in await repository.list()] == [note_id]


class TestList:
    @pytest.mark.asyncio
    async def test_empty(self, repository):
        assert await repository.list() == []
        assert await repository.count() == 0

    @pytest.mark.asyncio
    async def test_orders_by_date_desc(self, repository):
        await repository.insert(make_note("old", dt.date(2025, 9, 1)))
        await repository.insert(make_note("new", dt.date(2026, 2, 1)))
        await repository.insert(make_note("mid", dt.date(2025, 12, 24)))

        titles = [n.title for n in await repository.list()]

        assert titles == ["new", "mid", "old"]

    @pytest.mark.asyncio
    async def test_same_day_notes_all_present(self, repository):
        ids = {await repository.insert(make_note(f"n{i}")) for i in range(3)}
        assert {n.id for n in await repository.list()} == ids

    @pytest.mark.asyncio
    async def test_limit(self, repository):
        for day in range(1, 6):
            await repository.insert(make_note(f"d{day}", dt.date(2026, 1, day)))

        notes = await repository.list(limit=2)

        assert [n.title for n in notes] == ["d5", "d4"]
        assert await repository.count() == 5


class TestDatabaseErrors:
    def _broken_repository(self) -> NoteRepository:
        def broken_factory():
            raise OperationalError("SELECT 1", {}, Exception("database is down"))

        return NoteRepository(session_factory=MagicMock(side_effect=broken_factory))

    @pytest.mark.asyncio
    async def test_insert_wraps_errors(self):
        with pytest.raises(DatabaseError):
            await self._broken_repository().insert(make_note())

    @pytest.mark.asyncio
    async def test_list_wraps_errors(self):
        with pytest.raises(DatabaseError):
            await self._broken_repository().list()

    @pytest.mark.asyncio
    async def test_get_wraps_errors(self):
        with pytest.raises(DatabaseError):
            await self._broken_repository().get(uuid.uuid4())
