"""
StudySnap Backend - Upload Validation Service
===============================================

What:  Turns a multipart upload into a RawImage, or rejects it.
How:   Checks emptiness, size, then image type. The type comes from the
       upload's Content-Type header; when the client sends none (or a generic
       application/octet-stream) it is guessed from the file extension.
Who:   POST /api/ingest, before the ingestion controller is involved.
When:  Once per upload. Nothing is written to disk; the bytes live only as
       long as the request.

Validation order (cheapest first):
    1. Empty content        → ValidationError
    2. Size > max_file_size → ValidationError
    3. Unsupported type     → ValidationError
"""

import logging
import mimetypes
from pathlib import Path
from typing import Optional

from studysnap.config import settings
from studysnap.exceptions import ValidationError
from studysnap.services.image_codec import RawImage

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
# Image types Gemini accepts as inline data
ALLOWED_MIME_TYPES = {
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/heic",
    "image/heif",
}

# Aliases some browsers and phones send
MIME_ALIASES = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
    "image/x-png": "image/png",
}

# mimetypes does not know HEIC/HEIF on every platform
EXTENSION_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".heif": "image/heif",
}

GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


class UploadService:
    """Validates uploaded photos against size and type rules."""

    def __init__(self, max_file_size: Optional[int] = None):
        self.max_file_size = max_file_size or settings.max_file_size

    def resolve_mime_type(self, filename: Optional[str], content_type: Optional[str]) -> str:
        """
        Determine the MIME type of an upload.

        The declared Content-Type wins unless it is missing or generic; then the
        extension decides. Parameters such as "; charset=..." are dropped.
        """
        declared = (content_type or "").split(";")[0].strip().lower()
        declared = MIME_ALIASES.get(declared, declared)
        if declared not in GENERIC_MIME_TYPES:
            return declared

        if filename:
            ext = Path(filename).suffix.lower()
            if ext in EXTENSION_MIME_TYPES:
                return EXTENSION_MIME_TYPES[ext]
            guessed, _ = mimetypes.guess_type(filename)
            if guessed:
                return MIME_ALIASES.get(guessed, guessed)
        return "application/octet-stream"

    def validate_size(self, size: int) -> None:
        max_mb = self.max_file_size / (1024 * 1024)

        if size == 0:
            raise ValidationError(
                message="The uploaded file is empty. Choose a photo of your note.",
                field="file",
            )
        if size > self.max_file_size:
            raise ValidationError(
                message=f"File size ({size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="file",
                context={"max_size_mb": max_mb, "actual_size": size},
            )

    def read_upload(
        self,
        filename: Optional[str],
        content_type: Optional[str],
        content: bytes,
    ) -> RawImage:
        """
        Validate an upload and wrap it as a RawImage.

        Raises:
            ValidationError: empty, too large, or not a supported image type
        """
        self.validate_size(len(content))

        mime_type = self.resolve_mime_type(filename, content_type)
        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=(
                    f"File type '{mime_type}' is not supported. "
                    "Upload a photo in PNG, JPEG, WEBP or HEIC format."
                ),
                field="file",
                context={"detected_mime": mime_type, "allowed_types": sorted(ALLOWED_MIME_TYPES)},
            )

        logger.debug("Upload accepted: %s (%s, %d bytes)", filename, mime_type, len(content))
        return RawImage(content=content, mime_type=mime_type)


# ── Singleton Instance ────────────────────────────────────────────────────
upload_service = UploadService()
