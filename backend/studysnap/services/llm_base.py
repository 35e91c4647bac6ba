"""
StudySnap Backend - Abstract Extraction Client Interface
==========================================================

What:  Abstract base class defining the contract for vision extraction providers.
How:   Concrete implementations inherit from ExtractionClient and implement
       is_available(), extract() and health_check().
Who:   IngestionPipeline depends on this interface only; GeminiExtractionClient
       is the production implementation and tests substitute fakes.

Prompt Contract:
    Every implementation sends one request containing EXTRACTION_PROMPT and the
    inline image. The prompt asks for a bare JSON object with exactly the keys
    title, subject, preview and tags. ExtractionParser is written against that
    contract and tolerates the markdown fences models like to add anyway.
"""

from abc import ABC, abstractmethod

from studysnap.services.image_codec import EncodedPayload

EXTRACTION_PROMPT = """You are reading a photo of a student's handwritten study note.
Analyze the image and return a single JSON object with exactly these keys:

{
  "title": "short title of the note",
  "subject": "school subject, e.g. Math, Physics, English",
  "preview": "detailed summary of the note content in 2-4 sentences",
  "tags": ["keyword", "keyword"]
}

Rules:
1. Return ONLY the JSON object. No markdown, no commentary, no text before or after it.
2. "tags" is a list of short lowercase keywords (3-6 items).
3. Write the values in the language used in the note.
4. If the handwriting is unreadable, still return the object and describe what is visible."""


class ExtractionClient(ABC):
    """
    Abstract interface for AI-powered note extraction from images.

    Contract:
        - is_available() reflects the configuration at call time (no caching)
        - extract() returns the model's raw text; "" when the response holds no text
        - transport failures raise ExtractionTransportError; no retries inside
    """

    @abstractmethod
    def is_available(self) -> bool:
        """True iff a usable credential/configuration is present right now."""
        ...

    @abstractmethod
    async def extract(self, payload: EncodedPayload) -> str:
        """
        Send the image to the vision model and return its raw text answer.

        Args:
            payload: base64 image and MIME type from ImageCodec.encode()

        Returns:
            Text of the first candidate. Empty string if the response carries no
            candidate text (ExtractionParser turns that into a format error).

        Raises:
            ExtractionTransportError: non-success HTTP status or network failure
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the extraction service is reachable and the key is accepted.

        Does not consume generation quota. Returns False instead of raising.
        """
        ...
