"""
StudySnap Backend - Extraction Parser
=======================================

What:  Turns raw model text into a validated ExtractionResult.
How:   1. Strip markdown code fences (```json ... ``` or ``` ... ```)
       2. Trim whitespace
       3. json.loads → must be an object
       4. Validate through the ExtractionResult model
Who:   IngestionPipeline, for every run that went to the real model.

Failure policy:
    Every way the text can be wrong ends as ExtractionFormatError carrying the
    raw text. json/pydantic exceptions never escape this module.
"""

import json
import logging
import re

from pydantic import ValidationError as PydanticValidationError

from studysnap.exceptions import ExtractionFormatError
from studysnap.schemas.note import ExtractionResult

logger = logging.getLogger(__name__)

# Opening fence with optional language tag (```json, ```JSON, ```javascript ...)
_LEADING_FENCE = re.compile(r"^\s*```[A-Za-z0-9_+-]*[ \t]*\r?\n?")
_TRAILING_FENCE = re.compile(r"\r?\n?[ \t]*```\s*$")


def strip_code_fences(text: str) -> str:
    """
    Remove surrounding markdown fences and whitespace.

    Idempotent: stripping an already clean string returns it unchanged.
    Repeated fence layers are removed one after the other.
    """
    cleaned = text.strip()
    while True:
        unfenced = _TRAILING_FENCE.sub("", _LEADING_FENCE.sub("", cleaned, count=1), count=1)
        unfenced = unfenced.strip()
        if unfenced == cleaned:
            return cleaned
        cleaned = unfenced


def _describe(error: PydanticValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "record"
    return f"{location}: {first.get('msg', 'invalid value')}"


class ExtractionParser:
    """Deterministic, side-effect free parser for model answers."""

    def parse(self, raw_text: str) -> ExtractionResult:
        """
        Parse the model answer into an ExtractionResult.

        Raises:
            ExtractionFormatError: empty text, invalid or too deeply nested JSON, a non-object JSON
                value, or a record failing ExtractionResult validation
        """
        if not isinstance(raw_text, str):
            raise ExtractionFormatError(raw_text=repr(raw_text), reason="model output is not text")

        cleaned = strip_code_fences(raw_text)
        if not cleaned:
            raise ExtractionFormatError(raw_text=raw_text, reason="model returned no text")

        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.warning("Model output is not JSON (%s): %.120r", e.msg, cleaned)
            raise ExtractionFormatError(
                raw_text=raw_text,
                reason=f"invalid JSON ({e.msg} at line {e.lineno} column {e.colno})",
            ) from e
        except RecursionError as e:
            logger.warning("Model output nests too deeply to decode (%d chars)", len(cleaned))
            raise ExtractionFormatError(
                raw_text=raw_text,
                reason="invalid JSON (nested too deeply)",
            ) from e
        except ValueError as e:
            # e.g. integer literals past the int-string conversion limit
            logger.warning("Model output could not be decoded: %s", e)
            raise ExtractionFormatError(raw_text=raw_text, reason=f"invalid JSON ({e})") from e

        if not isinstance(data, dict):
            raise ExtractionFormatError(
                raw_text=raw_text,
                reason=f"expected a JSON object, got {type(data).__name__}",
            )

        try:
            return ExtractionResult.model_validate(data)
        except PydanticValidationError as e:
            reason = _describe(e)
            logger.warning("Model JSON failed validation: %s", reason)
            raise ExtractionFormatError(raw_text=raw_text, reason=reason) from e


# ── Singleton Instance ────────────────────────────────────────────────────
extraction_parser = ExtractionParser()
