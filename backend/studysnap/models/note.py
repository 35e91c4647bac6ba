"""
StudySnap Backend - Note SQLAlchemy Model
===========================================

What:  ORM model for the `notes` table.
Who:   NoteRepository for inserts/reads; Alembic for schema management.

Table Design:
    - UUID primary key, generated in Python so SQLite and PostgreSQL behave alike
    - title / subject / preview / tags: the structured fields extracted from the photo
    - tags: JSON array, order preserved, duplicates allowed
    - date: calendar date (YYYY-MM-DD) the note was ingested; the list sort key
    - created_at: UTC timestamp; orders notes that share a date

    Index on (date DESC, created_at DESC) matches the only list query the
    pipeline issues after an insert.
"""

import datetime as dt
import uuid
from typing import List

from sqlalchemy import JSON, Date, DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from studysnap.database import Base


class Note(Base):
    """
    A structured study note created from a photo.

    Lifecycle:
        1. Inserted once by the ingestion pipeline, already complete
        2. Never updated by this service (editing is out of scope)
        3. Only removed by an external deletion
    """

    __tablename__ = "notes"

    # ── Primary Key ───────────────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier assigned at insert time",
    )

    # ── Extracted Fields ──────────────────────────────────────────────────
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Note title read from the photo (never empty)",
    )
    subject: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        comment="School subject, e.g. Math, Physics",
    )
    preview: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="Short summary of the note content (max 500 chars)",
    )
    tags: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Ordered tag list; type:/grade:/term:/exam: prefixes carry item metadata",
    )

    # ── Dates ─────────────────────────────────────────────────────────────
    date: Mapped[dt.date] = mapped_column(
        Date,
        nullable=False,
        comment="Ingestion date (UTC calendar date)",
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: dt.datetime.now(dt.timezone.utc),
        comment="Insert timestamp (UTC); tie-break for notes sharing a date",
    )

    # ── Indexes ───────────────────────────────────────────────────────────
    __table_args__ = (
        Index("idx_notes_date_created_at", date.desc(), created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, title='{self.title}', date='{self.date}')>"
