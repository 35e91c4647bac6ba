# Services package init
"""
StudySnap Backend - Services Layer
====================================

What:  The ingestion core and the persistence boundary, independent of HTTP.
How:   Each component is a small class with a module-level singleton where it
       is stateless. The pipeline receives its collaborators in its constructor
       so tests can substitute any of them.

Service Inventory:
    - ImageCodec:           RawImage <-> base64 EncodedPayload
    - ExtractionClient:     abstract vision-model interface (llm_base)
    - GeminiExtractionClient: Gemini generateContent over httpx
    - ExtractionParser:     model text → validated ExtractionResult
    - FallbackGenerator:    demo ExtractionResult when no key is configured
    - NoteRepository:       insert / list / get on async SQLAlchemy
    - UploadService:        multipart upload → RawImage (size and type checks)
    - IngestionPipeline:    encode → extract-or-fallback → parse → insert → refresh
    - IngestionController:  busy flag, status banner, cancellation for the routes
"""
