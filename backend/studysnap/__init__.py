"""
StudySnap Backend - Application Package Initializer
=====================================================

What: Marks the `studysnap` directory as a Python package.
Who:  Imported by uvicorn (`studysnap.main:app`), Alembic and pytest.

Architecture Note:
    The backend is layered so the ingestion core can run without any HTTP surface:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns, status channel
    ├─────────────────────────────────────┤
    │   Ingestion (Controller, Pipeline)  │  ← State machine, outcomes
    ├─────────────────────────────────────┤
    │  Codec / Extraction / Parser / Demo │  ← Leaf components
    ├─────────────────────────────────────┤
    │     Repository (Async SQLAlchemy)   │  ← Notes table
    └─────────────────────────────────────┘

    Routes never talk to Gemini or the database directly. They hand a RawImage
    to the IngestionController and render whatever IngestionOutcome comes back.
"""

__version__ = "1.0.0"
