"""
StudySnap Backend - Fallback (Demo) Generator
===============================================

What:  Deterministic placeholder note used when no Gemini key is configured.
How:   Builds the record through ExtractionResult, the same model that
       validates parsed model output, so downstream code cannot tell the two
       sources apart.
When:  IngestionPipeline calls generate() when ExtractionClient.is_available()
       is False. The pipeline (not this class) adds the optional fake latency.
"""

from studysnap.schemas.note import ExtractionResult

DEMO_TITLE = "Demo note (AI extraction disabled)"
DEMO_SUBJECT = "demo"
DEMO_PREVIEW = (
    "This is a placeholder created in demo mode. No Gemini API key is configured, "
    "so the photo was not analyzed. Set GEMINI_API_KEY and upload the photo again "
    "to get a real title, subject, summary and tags."
)
DEMO_TAGS = ("demo", "sample")


class FallbackGenerator:
    def generate(self) -> ExtractionResult:
        """Return a fresh demo record; identical content on every call."""
        return ExtractionResult(
            title=DEMO_TITLE,
            subject=DEMO_SUBJECT,
            preview=DEMO_PREVIEW,
            tags=list(DEMO_TAGS),
        )


fallback_generator = FallbackGenerator()
