"""
StudySnap Backend - Gemini Extraction Client Unit Tests (Mocked Transport)
============================================================================

What:  Tests for GeminiExtractionClient against httpx.MockTransport.
How:   Each test installs a handler that inspects the outgoing request and
       returns a canned generateContent response. No network access.

What we test:
    ✅ Availability follows the configured key (empty and placeholder = unavailable)
    ✅ Request URL, API key header and body shape
    ✅ Candidate text extraction, including multi-part and odd shapes
    ✅ Non-2xx and network failures → ExtractionTransportError
    ✅ Health check uses the model resource and never raises
"""

import json

import httpx
import pytest

from studysnap.config import PLACEHOLDER_API_KEY
from studysnap.exceptions import ErrorKind, ExtractionTransportError
from studysnap.services.gemini_service import GeminiExtractionClient, collect_candidate_text
from studysnap.services.image_codec import EncodedPayload
from studysnap.services.llm_base import EXTRACTION_PROMPT

API_BASE = "https://gemini.test/v1beta"
PAYLOAD = EncodedPayload(data="aGVsbG8=", mime_type="image/png")


def make_client(handler, api_key: str = "test-key") -> GeminiExtractionClient:
    return GeminiExtractionClient(
        api_key_provider=lambda: api_key,
        model="gemini-test",
        api_base=API_BASE,
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


def candidates_response(*texts: str) -> dict:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": t} for t in texts]}}]}


class TestAvailability:
    @pytest.mark.parametrize("key", ["", "   ", PLACEHOLDER_API_KEY])
    def test_unavailable_without_usable_key(self, key):
        client = make_client(lambda request: httpx.Response(200), api_key=key)
        assert client.is_available() is False

    def test_available_with_key(self):
        client = make_client(lambda request: httpx.Response(200))
        assert client.is_available() is True

    def test_key_is_read_at_call_time(self):
        keys = {"current": ""}
        client = GeminiExtractionClient(api_key_provider=lambda: keys["current"])
        assert client.is_available() is False
        keys["current"] = "now-set"
        assert client.is_available() is True


class TestExtract:
    @pytest.mark.asyncio
    async def test_sends_prompt_and_inline_image(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(200, json=candidates_response('{"title": "x"}'))

        client = make_client(handler)
        text = await client.extract(PAYLOAD)

        request = captured["request"]
        assert text == '{"title": "x"}'
        assert request.method == "POST"
        assert str(request.url) == f"{API_BASE}/models/gemini-test:generateContent"
        assert request.headers["x-goog-api-key"] == "test-key"

        body = json.loads(request.content)
        parts = body["contents"][0]["parts"]
        assert parts[0] == {"text": EXTRACTION_PROMPT}
        assert parts[1] == {"inlineData": {"mimeType": "image/png", "data": "aGVsbG8="}}

    @pytest.mark.asyncio
    async def test_joins_text_parts_and_skips_thoughts(self):
        response = {
            "candidates": [
                {
                    "content": {
                        "parts": [
                            {"text": "thinking...", "thought": True},
                            {"text": '{"title": '},
                            {"text": '"x"}'},
                        ]
                    }
                }
            ]
        }
        client = make_client(lambda request: httpx.Response(200, json=response))
        assert await client.extract(PAYLOAD) == '{"title": "x"}'

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"candidates": []},
            {"candidates": [{}]},
            {"candidates": [{"content": {"parts": []}}]},
            {"candidates": [{"content": {"parts": [{"inlineData": {}}]}}]},
            {"promptFeedback": {"blockReason": "SAFETY"}},
        ],
    )
    async def test_missing_candidate_text_returns_empty(self, payload):
        client = make_client(lambda request: httpx.Response(200, json=payload))
        assert await client.extract(PAYLOAD) == ""

    @pytest.mark.asyncio
    async def test_non_json_body_returns_empty(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))
        assert await client.extract(PAYLOAD) == ""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 401, 403, 429, 500, 503])
    async def test_error_status_raises_transport_error(self, status):
        client = make_client(lambda request: httpx.Response(status, json={"error": {}}))

        with pytest.raises(ExtractionTransportError) as exc_info:
            await client.extract(PAYLOAD)

        error = exc_info.value
        assert error.upstream_status == status
        assert error.kind == ErrorKind.EXTRACTION_TRANSPORT_ERROR
        assert error.message == f"API request failed: {status}"

    @pytest.mark.asyncio
    async def test_network_failure_raises_transport_error_without_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(ExtractionTransportError) as exc_info:
            await client.extract(PAYLOAD)

        assert exc_info.value.upstream_status is None
        assert exc_info.value.message == "API request failed: network error"

    @pytest.mark.asyncio
    async def test_timeout_raises_transport_error_without_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ExtractionTransportError) as exc_info:
            await make_client(handler).extract(PAYLOAD)
        assert exc_info.value.upstream_status is None


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_gets_model_resource(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"name": "models/gemini-test"})

        assert await make_client(handler).health_check() is True
        assert seen[0].method == "GET"
        assert str(seen[0].url) == f"{API_BASE}/models/gemini-test"

    @pytest.mark.asyncio
    async def test_false_on_error_status(self):
        client = make_client(lambda request: httpx.Response(403))
        assert await client.health_check() is False

    @pytest.mark.asyncio
    async def test_false_on_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        assert await make_client(handler).health_check() is False

    @pytest.mark.asyncio
    async def test_false_without_key_and_no_request(self):
        seen = []
        client = make_client(lambda request: seen.append(request) or httpx.Response(200), api_key="")
        assert await client.health_check() is False
        assert seen == []


class TestCollectCandidateText:
    def test_non_dict_payload(self):
        assert collect_candidate_text(["not", "a", "dict"]) == ""

    def test_first_candidate_only(self):
        payload = {
            "candidates": [
                {"content": {"parts": [{"text": "first"}]}},
                {"content": {"parts": [{"text": "second"}]}},
            ]
        }
        assert collect_candidate_text(payload) == "first"
