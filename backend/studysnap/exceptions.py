"""
StudySnap Backend - Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for every failure the service can report.
How:   Each exception class carries a user-facing message and an optional
       context dict (logged, partially returned). Class attributes map each
       exception to an HTTP status, a machine-readable error code and, for
       ingestion failures, an ErrorKind.
Who:   Raised by the ingestion components and the repository; converted into
       IngestionOutcome failures by the pipeline and into JSON by main.py.

Exception Hierarchy:
    StudySnapError (base)
    ├── InputMissingError           → 400  kind=input_missing
    ├── MalformedPayloadError       → 400  kind=malformed_payload
    ├── EncodingError               → 500  kind=encoding_error
    ├── ExtractionTransportError    → 502  kind=extraction_transport_error
    ├── ExtractionFormatError       → 502  kind=extraction_format_error
    ├── PersistenceError            → 500  kind=persistence_error
    ├── RefreshError                → 500  kind=refresh_error
    ├── ValidationError             → 400  (upload rejected before ingestion)
    ├── NotFoundError               → 404
    ├── DatabaseError               → 500  (repository failure, details hidden)
    ├── IngestionBusyError          → 409
    └── RateLimitExceededError      → 429

Nothing in this hierarchy is fatal to the process. Every ingestion failure ends
with the controller back in the idle state and the user free to re-submit.
"""

from enum import Enum
from typing import Any, ClassVar, Dict, Optional


class ErrorKind(str, Enum):
    """Reason codes carried by a failed IngestionOutcome."""

    INPUT_MISSING = "input_missing"
    MALFORMED_PAYLOAD = "malformed_payload"
    EXTRACTION_TRANSPORT_ERROR = "extraction_transport_error"
    EXTRACTION_FORMAT_ERROR = "extraction_format_error"
    ENCODING_ERROR = "encoding_error"
    PERSISTENCE_ERROR = "persistence_error"
    REFRESH_ERROR = "refresh_error"


class StudySnapError(Exception):
    """
    Base exception for all StudySnap application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged; see each handler for exposure)
    """

    status_code: ClassVar[int] = 500
    error_code: ClassVar[str] = "server_error"
    kind: ClassVar[Optional[ErrorKind]] = None

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


# ══════════════════════════════════════════════════════════════════════════
# Ingestion Errors (one per ErrorKind)
# ══════════════════════════════════════════════════════════════════════════


class InputMissingError(StudySnapError):
    """No file was supplied to the ingestion run."""

    status_code = 400
    error_code = "input_missing"
    kind = ErrorKind.INPUT_MISSING

    def __init__(
        self,
        message: str = "No image was supplied. Choose a photo of your note and try again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class MalformedPayloadError(StudySnapError):
    """An encoded payload is not valid base64 and cannot be decoded."""

    status_code = 400
    error_code = "malformed_payload"
    kind = ErrorKind.MALFORMED_PAYLOAD

    def __init__(
        self,
        message: str = "The image payload is not validly encoded.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class EncodingError(StudySnapError):
    """The raw image could not be converted into a transport payload."""

    status_code = 500
    error_code = "encoding_error"
    kind = ErrorKind.ENCODING_ERROR

    def __init__(
        self,
        message: str = "The image could not be prepared for extraction.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ExtractionTransportError(StudySnapError):
    """
    The extraction service answered with a non-success status, or could not be
    reached at all.

    status_code_upstream is the HTTP status returned by the model API, or None
    when the request never produced a response (DNS, connect, timeout).
    """

    status_code = 502
    error_code = "extraction_transport_error"
    kind = ErrorKind.EXTRACTION_TRANSPORT_ERROR

    def __init__(
        self,
        upstream_status: Optional[int] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            shown = upstream_status if upstream_status is not None else "network error"
            message = f"API request failed: {shown}"
        ctx = context or {}
        ctx["upstream_status"] = upstream_status
        super().__init__(message=message, context=ctx)
        self.upstream_status = upstream_status


class ExtractionFormatError(StudySnapError):
    """
    The model answered, but its text is not the expected JSON object.

    raw_text keeps the offending model output for diagnosis.
    """

    status_code = 502
    error_code = "extraction_format_error"
    kind = ErrorKind.EXTRACTION_FORMAT_ERROR

    # Raw text is echoed back in API error details up to this many characters
    RAW_TEXT_PREVIEW = 500

    def __init__(
        self,
        raw_text: str,
        reason: str = "Model output is not a valid note JSON object",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["reason"] = reason
        ctx["raw_text"] = raw_text[: self.RAW_TEXT_PREVIEW]
        super().__init__(
            message=f"Could not read the AI response: {reason}.",
            context=ctx,
        )
        self.raw_text = raw_text
        self.reason = reason


class PersistenceError(StudySnapError):
    """The repository rejected the insert; nothing was stored."""

    status_code = 500
    error_code = "persistence_error"
    kind = ErrorKind.PERSISTENCE_ERROR

    def __init__(
        self,
        message: str = "The note could not be saved. Please try again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RefreshError(StudySnapError):
    """
    The note was saved, but re-reading the note list failed.

    The insert is not rolled back; note_id identifies the committed record.
    """

    status_code = 500
    error_code = "refresh_error"
    kind = ErrorKind.REFRESH_ERROR

    def __init__(
        self,
        note_id: Optional[Any] = None,
        message: str = "The note was saved, but the note list could not be reloaded.",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if note_id is not None:
            ctx["note_id"] = str(note_id)
        super().__init__(message=message, context=ctx)
        self.note_id = note_id


# ══════════════════════════════════════════════════════════════════════════
# Service Errors
# ══════════════════════════════════════════════════════════════════════════


class ValidationError(StudySnapError):
    """
    Raised when an upload fails validation before ingestion starts.

    When:    Empty file, size exceeded, unsupported image type.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "File type 'application/pdf' is not supported. ...",
            "details": {"field": "file", "allowed_types": ["image/jpeg", ...]}
        }
    """

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(StudySnapError):
    """
    Raised when a requested resource does not exist.

    When:    GET /api/notes/{id} with an unknown UUID.
    HTTP:    404 Not Found
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class DatabaseError(StudySnapError):
    """
    Raised by the repository when a query or commit fails.

    The message returned to the client is always generic. Driver errors, SQL
    and constraint names stay in the server log.
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class IngestionBusyError(StudySnapError):
    """A previous photo is still being processed by the same controller."""

    status_code = 409
    error_code = "ingestion_busy"

    def __init__(
        self,
        message: str = "A note is already being processed. Wait for it to finish.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(StudySnapError):
    """
    Raised when a client exceeds the per-IP ingestion rate limit.

    HTTP:    429 Too Many Requests, with a Retry-After header.
    """

    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before uploading again."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
