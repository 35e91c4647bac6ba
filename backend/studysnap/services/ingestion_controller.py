"""
StudySnap Backend - Ingestion Controller
==========================================

What:  UI-facing subscriber of the ingestion pipeline: busy flag, current
       state, status banner and cancellation.
How:   submit() runs IngestionPipeline.run() in its own asyncio task and follows
       its state transitions. cancel() cancels that task.
Who:   The /api/ingest routes. One controller per process (see
       get_ingestion_controller), matching the single-user scope.

Concurrency:
    The busy check and set in submit() happen without an await in between, so
    two requests on the same event loop cannot both pass it. The second one
    gets IngestionBusyError (409).

Dependency wiring:
    get_note_repository / get_ingestion_pipeline / get_ingestion_controller are
    FastAPI dependencies returning process-wide instances. Tests replace them
    with app.dependency_overrides.
"""

import asyncio
import logging
from functools import lru_cache
from typing import Optional

from studysnap.exceptions import IngestionBusyError
from studysnap.schemas.note import IngestionStatusResponse, StatusMessage
from studysnap.services.gemini_service import GeminiExtractionClient
from studysnap.services.image_codec import RawImage
from studysnap.services.ingestion_pipeline import (
    SOURCE_FALLBACK,
    IngestionOutcome,
    IngestionPipeline,
    IngestionState,
)
from studysnap.services.note_repository import NoteRepository

logger = logging.getLogger(__name__)


class IngestionController:
    """
    Holds the observable ingestion status between requests.

    Attributes:
        busy:          True while a run is in progress
        state:         latest pipeline state reported by the running task
        message:       latest outcome banner (None after dismiss or while busy)
        pending_input: the image being processed; cleared after every run
    """

    def __init__(self, pipeline: IngestionPipeline):
        self.pipeline = pipeline
        self.busy = False
        self.state = IngestionState.IDLE
        self.message: Optional[StatusMessage] = None
        self.pending_input: Optional[RawImage] = None
        self._task: Optional["asyncio.Task[IngestionOutcome]"] = None
        self._cancel_requested = False

    def _on_transition(self, state: IngestionState) -> None:
        self.state = state

    async def submit(self, raw_image: Optional[RawImage]) -> Optional[IngestionOutcome]:
        """
        Run the pipeline for one photo.

        Returns:
            The IngestionOutcome, or None when the run was cancelled via cancel().

        Raises:
            IngestionBusyError: a previous run has not finished yet
        """
        if self.busy:
            raise IngestionBusyError()
        self.busy = True
        self.pending_input = raw_image
        self.message = None
        self._cancel_requested = False

        self._task = asyncio.create_task(
            self.pipeline.run(raw_image, on_transition=self._on_transition)
        )
        try:
            outcome = await self._task
        except asyncio.CancelledError:
            if not self._cancel_requested:
                # The request itself was cancelled (client went away)
                raise
            logger.info("Ingestion cancelled by user")
            return None
        except Exception:
            self.message = StatusMessage(
                kind="error",
                text="Something went wrong while saving your note. Please try again.",
            )
            raise
        finally:
            self.busy = False
            self.pending_input = None
            self.state = IngestionState.IDLE
            self._task = None

        self.message = self._status_for(outcome)
        return outcome

    def cancel(self) -> bool:
        """Cancel the running ingestion. Returns False when nothing is running."""
        if self._task is None or self._task.done():
            return False
        self._cancel_requested = True
        self._task.cancel()
        return True

    def dismiss(self) -> None:
        self.message = None

    def snapshot(self) -> IngestionStatusResponse:
        return IngestionStatusResponse(
            busy=self.busy,
            state=self.state.value,
            message=self.message,
        )

    @staticmethod
    def _status_for(outcome: IngestionOutcome) -> StatusMessage:
        if not outcome.ok:
            return StatusMessage(kind="error", text=outcome.detail)
        if outcome.source == SOURCE_FALLBACK:
            return StatusMessage(
                kind="success",
                text="Demo note saved. Add a Gemini API key to analyze real photos.",
            )
        title = outcome.note.title if outcome.note is not None else "note"
        return StatusMessage(kind="success", text=f"Note \"{title}\" saved.")


# ── Dependency Wiring ─────────────────────────────────────────────────────


@lru_cache
def get_note_repository() -> NoteRepository:
    return NoteRepository()


@lru_cache
def get_ingestion_pipeline() -> IngestionPipeline:
    return IngestionPipeline(
        client=GeminiExtractionClient(),
        repository=get_note_repository(),
    )


@lru_cache
def get_ingestion_controller() -> IngestionController:
    return IngestionController(get_ingestion_pipeline())
