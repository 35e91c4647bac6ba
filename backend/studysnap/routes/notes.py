"""
StudySnap Backend - Notes Route Handlers
==========================================

What:  Handles GET /api/notes (list) and GET /api/notes/{id} (detail).
How:   Reads from NoteRepository; notes are ordered by date, newest first.
Who:   Called by the frontend note grid and note detail view.

Caching Strategy:
    - GET /api/notes: no cache header; the list changes with every ingest
    - GET /api/notes/{id}: long private cache, notes are never edited here
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from studysnap.schemas.note import ErrorResponse, NoteListResponse, PersistedNote
from studysnap.services.ingestion_controller import get_note_repository
from studysnap.services.note_repository import NoteRepository

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api", tags=["Notes"])


@router.get(
    "/notes",
    response_model=NoteListResponse,
    responses={
        200: {"description": "Notes ordered by date, newest first", "model": NoteListResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="List stored notes",
    description=(
        "Returns stored notes ordered by date (newest first); notes sharing a date "
        "are ordered by creation time. The number of returned notes is also sent in "
        "the X-Total-Count header."
    ),
)
async def list_notes(
    response: Response,
    limit: Optional[int] = Query(
        default=None,
        ge=1,
        le=1000,
        description="Maximum number of notes to return. Omit for all notes.",
    ),
    repository: NoteRepository = Depends(get_note_repository),
) -> NoteListResponse:
    notes = await repository.list(limit=limit)

    response.headers["X-Total-Count"] = str(len(notes))
    return NoteListResponse(notes=notes, total_count=len(notes))


@router.get(
    "/notes/{note_id}",
    response_model=PersistedNote,
    responses={
        200: {"description": "Full note details", "model": PersistedNote},
        404: {"description": "Note not found", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Get a single note by ID",
)
async def get_note(
    note_id: UUID,
    response: Response,
    repository: NoteRepository = Depends(get_note_repository),
) -> PersistedNote:
    """
    Return one note.

    Args:
        note_id: UUID path parameter. Invalid UUIDs return 422 (FastAPI default).
    """
    note = await repository.get(note_id)

    # private: handwritten content must not sit in shared caches
    response.headers["Cache-Control"] = "private, max-age=3600"
    return note
