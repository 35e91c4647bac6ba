"""
StudySnap Backend - Google Gemini Extraction Client
=====================================================

What:  ExtractionClient implementation on the Gemini `generateContent` REST API.
How:   One POST per photo via httpx.AsyncClient. The request body inlines the
       base64 image next to EXTRACTION_PROMPT; the answer is the text of the
       first candidate.
Who:   Created once by the ingestion dependency wiring; called by
       IngestionPipeline for each run where is_available() is True.

Wire format:
    POST {api_base}/models/{model}:generateContent
    x-goog-api-key: <key>

    {"contents": [{"role": "user", "parts": [
        {"text": "<EXTRACTION_PROMPT>"},
        {"inlineData": {"mimeType": "image/jpeg", "data": "<base64>"}}
    ]}]}

    → {"candidates": [{"content": {"parts": [{"text": "{\"title\": ...}"}]}}]}

Error mapping:
    HTTP status outside 2xx      → ExtractionTransportError(status)
    connect error / timeout      → ExtractionTransportError(None)
    2xx without candidate text   → "" (ExtractionParser reports a format error)

This client never retries. Retry policy, when enabled, lives in the pipeline.
"""

import logging
import time
import uuid
from typing import Any, Callable, Dict, Optional

import httpx

from studysnap.config import PLACEHOLDER_API_KEY, settings
from studysnap.exceptions import ExtractionTransportError
from studysnap.services.image_codec import EncodedPayload
from studysnap.services.llm_base import EXTRACTION_PROMPT, ExtractionClient

logger = logging.getLogger(__name__)


def collect_candidate_text(response_payload: Any) -> str:
    """
    Return the text of the first candidate in a generateContent response.

    Text parts of that candidate are joined in order; "thought" parts are
    skipped. Any unexpected shape yields "".
    """
    if not isinstance(response_payload, dict):
        return ""
    candidates = response_payload.get("candidates") or []
    if not isinstance(candidates, list) or not candidates:
        return ""
    first = candidates[0] if isinstance(candidates[0], dict) else {}
    content = first.get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""

    texts = []
    for part in parts:
        if not isinstance(part, dict) or part.get("thought"):
            continue
        text = part.get("text")
        if isinstance(text, str):
            texts.append(text)
    return "".join(texts)


class GeminiExtractionClient(ExtractionClient):
    """
    Google Gemini implementation of the extraction contract.

    Args:
        api_key_provider: returns the current API key. Defaults to reading
            settings at call time, so is_available() tracks configuration.
        model / api_base / timeout: override settings (used in tests).
        transport: optional httpx transport (httpx.MockTransport in tests).
    """

    def __init__(
        self,
        api_key_provider: Optional[Callable[[], str]] = None,
        model: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key_provider = api_key_provider or (lambda: settings.gemini_api_key)
        self.model = model or settings.gemini_model
        self.api_base = (api_base or settings.gemini_api_base).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.gemini_timeout
        self._transport = transport

        logger.info(
            "GeminiExtractionClient initialized with model=%s, timeout=%.0fs",
            self.model,
            self.timeout,
        )

    # ── Configuration ─────────────────────────────────────────────────────

    def _api_key(self) -> str:
        return (self._api_key_provider() or "").strip()

    def is_available(self) -> bool:
        key = self._api_key()
        return bool(key) and key != PLACEHOLDER_API_KEY

    @property
    def generate_url(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"x-goog-api-key": self._api_key()},
        )

    @staticmethod
    def build_request_body(payload: EncodedPayload) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": EXTRACTION_PROMPT},
                        {"inlineData": {"mimeType": payload.mime_type, "data": payload.data}},
                    ],
                }
            ]
        }

    # ── Extraction ────────────────────────────────────────────────────────

    async def extract(self, payload: EncodedPayload) -> str:
        """
        Send the photo to Gemini and return the first candidate's text.

        Flow:
            1. POST the prompt + inline image
            2. Non-2xx → ExtractionTransportError(status)
            3. Decode JSON and pull candidates[0].content.parts[*].text
        """
        call_id = str(uuid.uuid4())[:8]
        start_time = time.perf_counter()
        logger.info(
            "[%s] Sending extraction request (model=%s, mime=%s, %d base64 chars)",
            call_id,
            self.model,
            payload.mime_type,
            len(payload.data),
        )

        try:
            async with self._client() as client:
                response = await client.post(
                    self.generate_url,
                    json=self.build_request_body(payload),
                )
        except httpx.HTTPError as e:
            # Covers ConnectError, TimeoutException and friends: no response at all
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.warning(
                "[%s] Extraction request failed after %.0fms: %s",
                call_id,
                duration_ms,
                type(e).__name__,
            )
            raise ExtractionTransportError(
                upstream_status=None,
                context={"call_id": call_id, "error_type": type(e).__name__},
            ) from e

        duration_ms = (time.perf_counter() - start_time) * 1000

        if not response.is_success:
            logger.warning(
                "[%s] Extraction API returned HTTP %d after %.0fms",
                call_id,
                response.status_code,
                duration_ms,
            )
            raise ExtractionTransportError(
                upstream_status=response.status_code,
                context={"call_id": call_id, "body": response.text[:300]},
            )

        try:
            response_payload = response.json()
        except ValueError:
            logger.warning("[%s] Extraction API returned a non-JSON body", call_id)
            return ""

        text = collect_candidate_text(response_payload)
        logger.info(
            "[%s] Extraction completed in %.0fms, %d chars of model text",
            call_id,
            duration_ms,
            len(text),
        )
        return text

    async def health_check(self) -> bool:
        """
        Fetch the configured model resource (free, no tokens).

        Returns False when no key is configured or the API is unreachable.
        """
        if not self.is_available():
            return False
        try:
            async with self._client() as client:
                response = await client.get(f"{self.api_base}/models/{self.model}")
            if response.is_success:
                return True
            logger.warning("Gemini health check returned HTTP %d", response.status_code)
            return False
        except httpx.HTTPError as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False
