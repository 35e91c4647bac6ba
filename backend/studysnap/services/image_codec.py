"""
StudySnap Backend - Image Codec
=================================

What:  Converts raw image bytes into the base64 payload the vision API expects,
       and back.
How:   Standard base64 (RFC 4648) with strict decoding. The MIME type travels
       next to the data so the extraction request can declare it.
Who:   IngestionPipeline (encode), tests and diagnostics (decode).

Round-trip guarantee:
    decode(encode(image)) == image, byte for byte, for any binary content.
    No size cap is applied here; the upload route enforces max_file_size.
"""

import base64
import binascii
from dataclasses import dataclass

from studysnap.exceptions import EncodingError, MalformedPayloadError

DEFAULT_MIME_TYPE = "image/jpeg"


@dataclass(frozen=True)
class RawImage:
    """Binary image content exactly as uploaded, plus its declared MIME type."""

    content: bytes
    mime_type: str = DEFAULT_MIME_TYPE

    def __repr__(self) -> str:
        return f"RawImage(mime_type={self.mime_type!r}, size={len(self.content)})"


@dataclass(frozen=True)
class EncodedPayload:
    """Transport-safe (base64 text) form of a RawImage."""

    data: str
    mime_type: str = DEFAULT_MIME_TYPE

    def __repr__(self) -> str:
        return f"EncodedPayload(mime_type={self.mime_type!r}, length={len(self.data)})"


class ImageCodec:
    """Stateless base64 codec for note images."""

    def encode(self, image: RawImage) -> EncodedPayload:
        """
        Encode a RawImage for inline transport.

        Raises:
            EncodingError: content is not bytes-like (a caller bug, not user input)
        """
        if not isinstance(image.content, (bytes, bytearray, memoryview)):
            raise EncodingError(
                context={"content_type": type(image.content).__name__},
            )
        data = base64.b64encode(bytes(image.content)).decode("ascii")
        return EncodedPayload(data=data, mime_type=image.mime_type or DEFAULT_MIME_TYPE)

    def decode(self, payload: EncodedPayload) -> RawImage:
        """
        Decode a payload produced by encode().

        Raises:
            MalformedPayloadError: data is not valid base64 (bad alphabet or padding)
        """
        try:
            content = base64.b64decode(payload.data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedPayloadError(
                context={"length": len(payload.data), "error": str(e)},
            ) from e
        return RawImage(content=content, mime_type=payload.mime_type)


# ── Singleton Instance ────────────────────────────────────────────────────
image_codec = ImageCodec()
