"""
StudySnap Backend - Health Check Route
========================================

What:  Health check endpoint for monitoring and container probes.
How:   Checks the database with a COUNT query and reports the extraction mode.
Who:   Called by Docker health checks and monitoring systems.

Status levels:
    - healthy:   database reachable; extraction available or in fallback mode
    - degraded:  database reachable, Gemini key configured but API unreachable
    - unhealthy: database unreachable

Fallback mode is not a degradation: without a key the service still stores
(demo) notes end to end.
"""

import logging
import time

from fastapi import APIRouter, Depends

from studysnap import __version__
from studysnap.schemas.note import HealthResponse
from studysnap.services.ingestion_controller import get_ingestion_pipeline, get_note_repository
from studysnap.services.ingestion_pipeline import IngestionPipeline
from studysnap.services.note_repository import NoteRepository

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Track when the service started for uptime reporting
_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description=(
        "Returns the health status of the backend and its dependencies, and whether "
        "notes are extracted by Gemini or generated in demo (fallback) mode."
    ),
)
async def health_check(
    repository: NoteRepository = Depends(get_note_repository),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
) -> HealthResponse:
    db_status = "connected"
    extraction_status = "available"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        await repository.count()
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Check Extraction ──────────────────────────────────────────────────
    if not pipeline.client.is_available():
        extraction_status = "fallback"
    elif not await pipeline.client.health_check():
        extraction_status = "unavailable"
        overall = "degraded" if overall != "unhealthy" else overall

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        extraction=extraction_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
