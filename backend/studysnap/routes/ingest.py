"""
StudySnap Backend - Ingest Route Handlers
===========================================

What:  POST /api/ingest turns an uploaded note photo into a stored note.
       The /api/ingest/status endpoints expose the controller's busy flag,
       state and banner; /api/ingest/cancel stops the running photo.
How:   Validates the upload with UploadService, then hands the RawImage to the
       process-wide IngestionController.
Who:   Called by the frontend upload zone and its status indicator.

Request Flow:
    1. Client sends multipart/form-data with an optional 'file' field
    2. UploadService checks size and type (400 on rejection)
    3. IngestionController.submit runs the pipeline (409 if already busy)
    4. Success → 201 IngestResponse with the new note and the refreshed list
       Cancelled → 200 {"status": "cancelled"}
       Failure → the pipeline's error, formatted by the handlers in main.py
"""

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse

from studysnap.schemas.note import (
    CancelResponse,
    ErrorResponse,
    IngestCancelledResponse,
    IngestionStatusResponse,
    IngestResponse,
)
from studysnap.services.image_codec import RawImage
from studysnap.services.ingestion_controller import (
    IngestionController,
    get_ingestion_controller,
    get_note_repository,
)
from studysnap.services.note_repository import NoteRepository
from studysnap.services.upload_service import upload_service

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api/ingest", tags=["Ingest"])


@router.post(
    "",
    status_code=201,
    response_model=IngestResponse,
    responses={
        200: {"description": "Processing was cancelled", "model": IngestCancelledResponse},
        201: {"description": "Note extracted and stored", "model": IngestResponse},
        400: {"description": "No file, or invalid file type or size", "model": ErrorResponse},
        409: {"description": "Another photo is still processing", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        500: {"description": "Note could not be stored or reloaded", "model": ErrorResponse},
        502: {"description": "AI extraction failed", "model": ErrorResponse},
    },
    summary="Create a structured note from a photo",
    description=(
        "Upload a photo of a handwritten study note (PNG, JPEG, WEBP or HEIC). "
        "The photo is analyzed by Gemini (or replaced by a demo record when no API key "
        "is configured) and stored as a note with title, subject, preview and tags."
    ),
)
async def ingest_note(
    file: Optional[UploadFile] = File(
        default=None,
        description="Photo of a handwritten note (max 10MB)",
    ),
    controller: IngestionController = Depends(get_ingestion_controller),
    repository: NoteRepository = Depends(get_note_repository),
) -> Union[IngestResponse, JSONResponse]:
    """
    Ingest one photo.

    A request without a file still reaches the pipeline, which reports
    input_missing (400) without touching any state.
    """
    raw_image: Optional[RawImage] = None
    try:
        if file is not None:
            content = await file.read()
            logger.info(
                "Received ingest request: filename=%s, size=%d bytes",
                file.filename or "unknown",
                len(content),
            )
            raw_image = upload_service.read_upload(
                filename=file.filename,
                content_type=file.content_type,
                content=content,
            )
    finally:
        if file is not None:
            await file.close()

    outcome = await controller.submit(raw_image)

    if outcome is None:
        return JSONResponse(status_code=200, content=IngestCancelledResponse().model_dump())

    if not outcome.ok:
        # Formatted by the StudySnapError handlers in main.py
        raise outcome.error

    note = outcome.note
    if note is None:
        note = await repository.get(outcome.note_id)

    return IngestResponse(
        message=controller.message.text if controller.message else "Note saved.",
        source=outcome.source,
        note=note,
        notes=outcome.notes,
    )


@router.get(
    "/status",
    response_model=IngestionStatusResponse,
    summary="Current ingestion status",
)
async def ingestion_status(
    controller: IngestionController = Depends(get_ingestion_controller),
) -> IngestionStatusResponse:
    return controller.snapshot()


@router.post(
    "/status/dismiss",
    response_model=IngestionStatusResponse,
    summary="Dismiss the latest status message",
)
async def dismiss_status(
    controller: IngestionController = Depends(get_ingestion_controller),
) -> IngestionStatusResponse:
    controller.dismiss()
    return controller.snapshot()


@router.post(
    "/cancel",
    response_model=CancelResponse,
    summary="Cancel the photo currently being processed",
    description="A photo cancelled before its insert is not stored. Returns cancelled=false when idle.",
)
async def cancel_ingestion(
    controller: IngestionController = Depends(get_ingestion_controller),
) -> CancelResponse:
    cancelled = controller.cancel()
    if cancelled:
        logger.info("Cancellation requested for running ingestion")
    return CancelResponse(cancelled=cancelled)
