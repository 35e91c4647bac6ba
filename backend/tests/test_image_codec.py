"""
StudySnap Backend - Image Codec Unit Tests
============================================

What we test:
    ✅ encode → decode returns the original bytes and MIME type
    ✅ Empty and arbitrary binary content survive the round trip
    ✅ Invalid base64 is rejected with MalformedPayloadError
    ✅ Non-binary content is rejected with EncodingError
"""

import base64

import pytest

from studysnap.exceptions import EncodingError, ErrorKind, MalformedPayloadError
from studysnap.services.image_codec import EncodedPayload, ImageCodec, RawImage


class TestImageCodec:
    def setup_method(self):
        self.codec = ImageCodec()

    def test_round_trip_preserves_bytes(self, sample_image_bytes):
        image = RawImage(content=sample_image_bytes, mime_type="image/jpeg")

        decoded = self.codec.decode(self.codec.encode(image))

        assert decoded.content == sample_image_bytes
        assert decoded.mime_type == "image/jpeg"

    def test_round_trip_all_byte_values(self):
        content = bytes(range(256)) * 3
        decoded = self.codec.decode(self.codec.encode(RawImage(content=content)))
        assert decoded.content == content

    def test_empty_content_round_trip(self):
        payload = self.codec.encode(RawImage(content=b""))
        assert payload.data == ""
        assert self.codec.decode(payload).content == b""

    def test_encode_is_standard_base64(self, sample_image_bytes):
        payload = self.codec.encode(RawImage(content=sample_image_bytes, mime_type="image/png"))
        assert payload.data == base64.b64encode(sample_image_bytes).decode("ascii")
        assert payload.mime_type == "image/png"

    def test_decode_rejects_invalid_alphabet(self):
        with pytest.raises(MalformedPayloadError) as exc_info:
            self.codec.decode(EncodedPayload(data="not base64!!", mime_type="image/jpeg"))
        assert exc_info.value.kind == ErrorKind.MALFORMED_PAYLOAD

    def test_decode_rejects_bad_padding(self):
        with pytest.raises(MalformedPayloadError):
            self.codec.decode(EncodedPayload(data="abc", mime_type="image/jpeg"))

    def test_encode_rejects_text_content(self):
        with pytest.raises(EncodingError):
            self.codec.encode(RawImage(content="not bytes"))  # type: ignore[arg-type]

    def test_repr_hides_content(self, sample_image_bytes):
        image = RawImage(content=sample_image_bytes)
        assert "JFIF" not in repr(image)
        assert f"size={len(sample_image_bytes)}" in repr(image)
