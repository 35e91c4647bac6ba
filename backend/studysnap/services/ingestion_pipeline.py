"""
StudySnap Backend - Ingestion Pipeline (Orchestrator)
=======================================================

What:  Central orchestrator for photo → structured note ingestion.
How:   Composes ImageCodec, ExtractionClient, ExtractionParser,
       FallbackGenerator and NoteRepository behind a small state machine.
Who:   IngestionController (HTTP) or any caller holding a RawImage.
When:  Once per submitted photo. Returns an IngestionOutcome, never raises for
       ingestion failures.

State Machine:
    IDLE → ENCODING → EXTRACTING → PARSING → PERSISTING → REFRESHING → DONE → IDLE
                          │                                    (any failure)
                          └─ no key: fallback ──→ PERSISTING   ERRORED → IDLE

    ┌──────────┐   ┌─────────────┐   ┌─────────┐   ┌─────────┐   ┌──────────┐
    │  Encode  │──▶│  Extract or │──▶│  Parse  │──▶│ Insert  │──▶│ Refresh  │
    │ (Codec)  │   │  Fallback   │   │ (JSON)  │   │ (Repo)  │   │ (list()) │
    └──────────┘   └─────────────┘   └─────────┘   └─────────┘   └──────────┘

Error Recovery:
    Encoding fails   → EncodingError, nothing sent
    Transport fails  → ExtractionTransportError, no insert
    Parsing fails    → ExtractionFormatError (raw text kept), no insert
    Insert fails     → PersistenceError, nothing stored
    Refresh fails    → RefreshError with the committed note id (insert kept)

Cancellation:
    Cancelling the task running run() records a direct transition to IDLE and
    re-raises CancelledError; no outcome is produced. A cancel during the
    insert may or may not leave a committed row, depending on the driver.

Each run has its own _RunTracker; the pipeline object itself holds no per-run
state, so one instance can serve any number of runs.
"""

import asyncio
import dataclasses
import datetime as dt
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)
from tenacity.wait import wait_base

from studysnap.config import settings
from studysnap.exceptions import (
    ErrorKind,
    ExtractionTransportError,
    InputMissingError,
    PersistenceError,
    RefreshError,
    StudySnapError,
)
from studysnap.schemas.note import NOTE_TYPE_TAG, ExtractionResult, NoteCreate, PersistedNote
from studysnap.services.extraction_parser import ExtractionParser, extraction_parser
from studysnap.services.fallback_generator import FallbackGenerator, fallback_generator
from studysnap.services.image_codec import EncodedPayload, ImageCodec, RawImage, image_codec
from studysnap.services.llm_base import ExtractionClient
from studysnap.services.note_repository import NoteRepository

logger = logging.getLogger(__name__)

SOURCE_MODEL = "model"
SOURCE_FALLBACK = "fallback"


class IngestionState(str, Enum):
    IDLE = "idle"
    ENCODING = "encoding"
    EXTRACTING = "extracting"
    PARSING = "parsing"
    PERSISTING = "persisting"
    REFRESHING = "refreshing"
    DONE = "done"
    ERRORED = "errored"


TransitionCallback = Callable[[IngestionState], None]


@dataclass(frozen=True)
class IngestionOutcome:
    """
    Result of one pipeline run.

    Success: ok=True with note_id, source, the stored note and the refreshed list.
    Failure: ok=False with reason (ErrorKind) and a user-facing detail. The
             originating exception is kept in `error` for the HTTP layer.
    transitions lists every state the run passed through, ending in IDLE.
    """

    ok: bool
    reason: Optional[ErrorKind] = None
    detail: str = ""
    note_id: Optional[uuid.UUID] = None
    note: Optional[PersistedNote] = None
    notes: List[PersistedNote] = field(default_factory=list)
    source: Optional[str] = None
    transitions: Tuple[IngestionState, ...] = ()
    error: Optional[StudySnapError] = field(default=None, repr=False)

    @classmethod
    def success(
        cls,
        note_id: uuid.UUID,
        source: str,
        notes: List[PersistedNote],
    ) -> "IngestionOutcome":
        note = next((n for n in notes if n.id == note_id), None)
        return cls(ok=True, note_id=note_id, note=note, notes=notes, source=source)

    @classmethod
    def failure(cls, error: StudySnapError) -> "IngestionOutcome":
        note_id = error.note_id if isinstance(error, RefreshError) else None
        return cls(
            ok=False,
            reason=error.kind,
            detail=error.message,
            note_id=note_id,
            error=error,
        )


def utc_today() -> dt.date:
    return dt.datetime.now(dt.timezone.utc).date()


def is_transient_transport_error(error: BaseException) -> bool:
    """Network failure, 429 or 5xx: worth another attempt when retry is enabled."""
    if not isinstance(error, ExtractionTransportError):
        return False
    status = error.upstream_status
    return status is None or status == 429 or status >= 500


class _RunTracker:
    """State of a single run: current state, history and the subscriber callback."""

    def __init__(self, run_id: str, on_transition: Optional[TransitionCallback] = None):
        self.run_id = run_id
        self.state = IngestionState.IDLE
        self.transitions: List[IngestionState] = []
        self._on_transition = on_transition

    def advance(self, state: IngestionState) -> None:
        logger.debug("[%s] %s → %s", self.run_id, self.state.value, state.value)
        self.state = state
        self.transitions.append(state)
        if self._on_transition is not None:
            self._on_transition(state)


class IngestionPipeline:
    """
    Photo ingestion orchestrator.

    Args:
        client: extraction provider; is_available() is read once per run
        repository: note storage; insert + list are the only calls made
        parser / fallback / codec: default to the module singletons
        clock: returns the date stamped on new notes (UTC today by default)
        fallback_delay: seconds to wait before the demo record, to mimic latency
        retry_attempts: total extraction attempts for transient transport
            errors; 1 disables retry
        retry_wait: tenacity wait strategy override (tests pass wait_none())
    """

    def __init__(
        self,
        client: ExtractionClient,
        repository: NoteRepository,
        parser: ExtractionParser = extraction_parser,
        fallback: FallbackGenerator = fallback_generator,
        codec: ImageCodec = image_codec,
        clock: Callable[[], dt.date] = utc_today,
        fallback_delay: Optional[float] = None,
        retry_attempts: Optional[int] = None,
        retry_wait: Optional[wait_base] = None,
    ):
        self.client = client
        self.repository = repository
        self.parser = parser
        self.fallback = fallback
        self.codec = codec
        self.clock = clock
        self.fallback_delay = (
            settings.fallback_delay_seconds if fallback_delay is None else fallback_delay
        )
        self.retry_attempts = (
            settings.retry_max_attempts if retry_attempts is None else retry_attempts
        )
        self.retry_wait = retry_wait or wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
        )

    # ── Public API ────────────────────────────────────────────────────────

    async def run(
        self,
        raw_image: Optional[RawImage],
        on_transition: Optional[TransitionCallback] = None,
    ) -> IngestionOutcome:
        """
        Ingest one photo.

        Returns:
            IngestionOutcome: success, or failure with an ErrorKind. A missing
            image fails immediately without any state change.

        Raises:
            asyncio.CancelledError: the task running this coroutine was cancelled
        """
        if raw_image is None:
            logger.info("Ingestion requested without an image")
            return IngestionOutcome.failure(InputMissingError())

        tracker = _RunTracker(str(uuid.uuid4())[:8], on_transition)
        logger.info("[%s] Ingestion started: %r", tracker.run_id, raw_image)

        try:
            outcome = await self._execute(raw_image, tracker)
        except asyncio.CancelledError:
            logger.info("[%s] Ingestion cancelled during %s", tracker.run_id, tracker.state.value)
            tracker.advance(IngestionState.IDLE)
            raise
        except Exception:
            logger.exception("[%s] Unexpected error during %s", tracker.run_id, tracker.state.value)
            tracker.advance(IngestionState.ERRORED)
            tracker.advance(IngestionState.IDLE)
            raise

        tracker.advance(IngestionState.IDLE)
        return dataclasses.replace(outcome, transitions=tuple(tracker.transitions))

    # ── Steps ─────────────────────────────────────────────────────────────

    async def _execute(self, raw_image: RawImage, tracker: _RunTracker) -> IngestionOutcome:
        try:
            tracker.advance(IngestionState.ENCODING)
            payload = self.codec.encode(raw_image)

            tracker.advance(IngestionState.EXTRACTING)
            if self.client.is_available():
                raw_text = await self._extract(payload, tracker.run_id)
                tracker.advance(IngestionState.PARSING)
                result = self.parser.parse(raw_text)
                source = SOURCE_MODEL
            else:
                logger.info("[%s] No extraction key configured, using demo record", tracker.run_id)
                if self.fallback_delay > 0:
                    await asyncio.sleep(self.fallback_delay)
                result = self.fallback.generate()
                source = SOURCE_FALLBACK

            tracker.advance(IngestionState.PERSISTING)
            note_id = await self._persist(self._stamp(result), tracker.run_id)

            tracker.advance(IngestionState.REFRESHING)
            notes = await self._refresh(note_id, tracker.run_id)

            tracker.advance(IngestionState.DONE)
            logger.info(
                "[%s] Ingestion completed: note %s from %s, %d notes listed",
                tracker.run_id,
                note_id,
                source,
                len(notes),
            )
            return IngestionOutcome.success(note_id=note_id, source=source, notes=notes)

        except StudySnapError as e:
            logger.warning(
                "[%s] Ingestion failed during %s: %s (%s)",
                tracker.run_id,
                tracker.state.value,
                e.message,
                e.error_code,
            )
            tracker.advance(IngestionState.ERRORED)
            return IngestionOutcome.failure(e)

    async def _extract(self, payload: EncodedPayload, run_id: str) -> str:
        """Call the extraction client, retrying transient failures when enabled."""
        if self.retry_attempts <= 1:
            return await self.client.extract(payload)

        raw_text = ""
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(is_transient_transport_error),
            stop=stop_after_attempt(self.retry_attempts),
            wait=self.retry_wait,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        "[%s] Extraction attempt %d/%d",
                        run_id,
                        attempt.retry_state.attempt_number,
                        self.retry_attempts,
                    )
                raw_text = await self.client.extract(payload)
        return raw_text

    def _stamp(self, result: ExtractionResult) -> NoteCreate:
        tags = list(result.tags)
        if NOTE_TYPE_TAG not in tags:
            tags.append(NOTE_TYPE_TAG)
        return NoteCreate(
            title=result.title,
            subject=result.subject,
            preview=result.preview,
            tags=tags,
            date=self.clock(),
        )

    async def _persist(self, record: NoteCreate, run_id: str) -> uuid.UUID:
        try:
            return await self.repository.insert(record)
        except Exception as e:
            logger.error("[%s] Insert failed: %s", run_id, str(e))
            raise PersistenceError(context={"error_type": type(e).__name__}) from e

    async def _refresh(self, note_id: uuid.UUID, run_id: str) -> List[PersistedNote]:
        try:
            return await self.repository.list()
        except Exception as e:
            logger.error("[%s] Refresh failed after inserting %s: %s", run_id, note_id, str(e))
            raise RefreshError(
                note_id=note_id,
                context={"error_type": type(e).__name__},
            ) from e
