"""
StudySnap Backend - Note Repository
=====================================

What:  Record repository for structured notes: insert, list, get, count.
How:   Async SQLAlchemy. Every operation opens its own short-lived session
       from the session factory and commits before returning, so an insert is
       visible to the list query that follows it (read-after-write).
Who:   IngestionPipeline (insert + refresh list) and the notes routes.

Query plan (list):
    SELECT * FROM notes ORDER BY date DESC, created_at DESC [LIMIT :limit]
    → Uses idx_notes_date_created_at

Error Handling Strategy:
    SQLAlchemy errors are wrapped in DatabaseError (hides driver details from
    clients). NotFoundError propagates as-is. The pipeline maps any failure of
    insert/list onto its own PersistenceError / RefreshError.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studysnap.database import async_session_factory
from studysnap.exceptions import DatabaseError, NotFoundError
from studysnap.models.note import Note
from studysnap.schemas.note import NoteCreate, PersistedNote

logger = logging.getLogger(__name__)


class NoteRepository:
    """
    Persistence boundary for notes.

    Args:
        session_factory: async_sessionmaker to open sessions from. Tests pass a
            factory bound to an in-memory SQLite engine.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session_factory):
        self._session_factory = session_factory

    async def insert(self, note: NoteCreate) -> UUID:
        """
        Store a new note and return its repository-assigned id.

        Raises:
            DatabaseError: the insert or commit failed; nothing was stored
        """
        row = Note(
            title=note.title,
            subject=note.subject,
            preview=note.preview,
            tags=list(note.tags),
            date=note.date,
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(row)
                    await session.flush()
                    note_id = row.id
        except SQLAlchemyError as e:
            logger.error("Database error inserting note: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the note. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        logger.info("Note inserted: %s (date=%s, %d tags)", note_id, note.date, len(note.tags))
        return note_id

    async def list(self, limit: Optional[int] = None) -> List[PersistedNote]:
        """
        Return notes ordered by date DESC, then created_at DESC.

        Args:
            limit: maximum number of notes; None returns all of them
        """
        query = select(Note).order_by(Note.date.desc(), Note.created_at.desc())
        if limit is not None:
            query = query.limit(limit)

        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                rows = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing notes: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve notes. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        return [PersistedNote.model_validate(row) for row in rows]

    async def get(self, note_id: UUID) -> PersistedNote:
        """
        Retrieve a single note by id.

        Raises:
            NotFoundError: no note with this id (→ 404)
            DatabaseError: query execution failed (→ 500)
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(Note).where(Note.id == note_id))
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching note %s: %s", note_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the note. Please try again.",
                context={"note_id": str(note_id)},
            ) from e

        if row is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        return PersistedNote.model_validate(row)

    async def count(self) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(func.count(Note.id)))
                return result.scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Database error counting notes: %s", str(e))
            raise DatabaseError(context={"error_type": type(e).__name__}) from e
