"""
StudySnap Backend - Pydantic Schemas
======================================

What:  Pydantic models for the structured note record and the API contract.
How:   ExtractionResult is the single validation point for extracted notes.
       ExtractionParser feeds it model JSON and FallbackGenerator feeds it the
       demo record, so both paths hit the exact same rules. The remaining
       models describe HTTP responses and are used by FastAPI for
       serialization and OpenAPI docs.

ExtractionResult invariants:
    - title, subject: present and non-empty after trimming, cut to the column
      widths (TITLE_MAX_LENGTH, SUBJECT_MAX_LENGTH)
    - preview: present (missing/null becomes ""), at most PREVIEW_MAX_LENGTH chars
    - tags: ordered list of strings (missing/null becomes []); duplicates kept
"""

import datetime as dt
import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, computed_field, field_validator

PREVIEW_MAX_LENGTH = 500
TITLE_MAX_LENGTH = 255
SUBJECT_MAX_LENGTH = 120

# Tag prefixes used by the notes UI to classify items
NOTE_TYPE_TAG = "type:note"
UNSET_META = "unset"


# ══════════════════════════════════════════════════════════════════════════
# Core Records
# ══════════════════════════════════════════════════════════════════════════


class ExtractionResult(BaseModel):
    """
    Structured fields derived from a note photo.

    Produced by ExtractionParser (model output) or FallbackGenerator (demo),
    consumed by IngestionPipeline without knowing which one made it.
    """

    title: str = Field(description="Note title (non-empty)")
    subject: str = Field(description="School subject (non-empty)")
    preview: str = Field(default="", description="Short summary of the note")
    tags: List[str] = Field(default_factory=list, description="Ordered tag list")

    @field_validator("title", "subject")
    @classmethod
    def require_text(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("must not be empty")
        return stripped

    @field_validator("title")
    @classmethod
    def bound_title(cls, v: str) -> str:
        return v[:TITLE_MAX_LENGTH].rstrip()

    @field_validator("subject")
    @classmethod
    def bound_subject(cls, v: str) -> str:
        return v[:SUBJECT_MAX_LENGTH].rstrip()

    @field_validator("preview", mode="before")
    @classmethod
    def default_preview(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("preview")
    @classmethod
    def bound_preview(cls, v: str) -> str:
        return v.strip()[:PREVIEW_MAX_LENGTH]

    @field_validator("tags", mode="before")
    @classmethod
    def default_tags(cls, v: Any) -> Any:
        return [] if v is None else v


class NoteCreate(ExtractionResult):
    """An ExtractionResult stamped with its ingestion date, ready for insert."""

    date: dt.date = Field(description="Ingestion date (YYYY-MM-DD)")


class PersistedNote(ExtractionResult):
    """
    What:  A stored note as returned by the repository.
    Who:   Returned by GET /api/notes, GET /api/notes/{id} and the ingest route.

    item_type / exam_meta are derived from tags:
        type:exam     → "exam"      (grade:/term:/exam: tags fill exam_meta)
        type:material → "material"
        anything else → "note"
    """

    id: uuid.UUID = Field(description="Repository-assigned identifier")
    date: dt.date = Field(description="Ingestion date (YYYY-MM-DD)")
    created_at: Optional[dt.datetime] = Field(
        default=None,
        description="Insert timestamp (UTC)",
    )

    model_config = {"from_attributes": True}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def item_type(self) -> str:
        if "type:exam" in self.tags:
            return "exam"
        if "type:material" in self.tags:
            return "material"
        return "note"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def exam_meta(self) -> Dict[str, str]:
        meta = {"grade": UNSET_META, "term": UNSET_META, "exam_type": UNSET_META}
        prefixes = {"grade:": "grade", "term:": "term", "exam:": "exam_type"}
        for tag in self.tags:
            for prefix, key in prefixes.items():
                if tag.startswith(prefix):
                    meta[key] = tag[len(prefix):]
        return meta


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class NoteListResponse(BaseModel):
    """
    What:  Note list, newest date first.
    Who:   Returned by GET /api/notes; total_count is mirrored in X-Total-Count.
    """

    notes: List[PersistedNote] = Field(description="Notes ordered by date, newest first")
    total_count: int = Field(description="Number of notes returned")


class IngestResponse(BaseModel):
    """
    What:  Result of a successful POST /api/ingest.
    note / notes: the new card plus the full list re-read after the insert,
           so the client can redraw its grid from one response.
    """

    message: str = Field(description="Human-readable success message")
    source: Literal["model", "fallback"] = Field(
        description="Where the fields came from: the vision model or the demo generator"
    )
    note: PersistedNote = Field(description="The note that was just stored")
    notes: List[PersistedNote] = Field(description="Refreshed note list after the insert")


class IngestCancelledResponse(BaseModel):
    status: Literal["cancelled"] = "cancelled"
    message: str = "Processing was cancelled. Nothing was saved."


class StatusMessage(BaseModel):
    """Banner shown by the UI after a run; cleared by dismiss."""

    kind: Literal["success", "error"]
    text: str


class IngestionStatusResponse(BaseModel):
    """
    What:  Snapshot of the ingestion controller for the UI status channel.
    Who:   Returned by GET /api/ingest/status and the dismiss endpoint.
    """

    busy: bool = Field(description="True while a photo is being processed")
    state: str = Field(description="Current pipeline state (idle, extracting, ...)")
    message: Optional[StatusMessage] = Field(
        default=None,
        description="Latest outcome banner, null once dismissed",
    )


class CancelResponse(BaseModel):
    cancelled: bool = Field(description="True if a running ingestion was cancelled")


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Example:
        {
            "error": "extraction_transport_error",
            "message": "API request failed: 429",
            "details": {"upstream_status": 429},
            "request_id": "a1b2c3d4"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """
    What:  Health check response showing service and dependency status.
    Who:   Returned by GET /health for monitoring and container health checks.
    """

    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    extraction: str = Field(
        description="Extraction mode: available, fallback (no key), unavailable"
    )
    uptime_seconds: float = Field(description="Seconds since service started")
