"""
StudySnap Backend - Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped, fresh for each test):
    ├── db_engine / session_factory: in-memory SQLite (aiosqlite + StaticPool)
    ├── repository: NoteRepository bound to that engine
    ├── sample_image_bytes / raw_image: a tiny JPEG
    ├── fake_client: scriptable ExtractionClient (no network)
    ├── pipeline / controller: the real ingestion core wired to the fakes above
    └── test_client: HTTPX AsyncClient on the FastAPI app, dependencies overridden
"""

import asyncio
import datetime as dt
import json
import os
from typing import List, Optional, Union

# Override settings BEFORE any studysnap import: the settings singleton and the
# module-level engine are created at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["GEMINI_API_KEY"] = ""
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["FALLBACK_DELAY_SECONDS"] = "0"
os.environ["RETRY_MAX_ATTEMPTS"] = "1"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from studysnap.database import Base
from studysnap.models.note import Note  # noqa: F401
from studysnap.services.image_codec import EncodedPayload, RawImage
from studysnap.services.ingestion_controller import (
    IngestionController,
    get_ingestion_controller,
    get_ingestion_pipeline,
    get_note_repository,
)
from studysnap.services.ingestion_pipeline import IngestionPipeline
from studysnap.services.llm_base import ExtractionClient
from studysnap.services.note_repository import NoteRepository

FIXED_DATE = dt.date(2026, 1, 15)

CALC_MODEL_TEXT = (
    "```json\n"
    + json.dumps({"title": "Calc I", "subject": "Math", "preview": "Derivatives", "tags": ["calc"]})
    + "\n```"
)


# ══════════════════════════════════════════════════════════════════════════
# Test Doubles
# ══════════════════════════════════════════════════════════════════════════


class FakeExtractionClient(ExtractionClient):
    """
    Scriptable extraction client.

    responses: consumed one per extract() call; an exception instance is
        raised, a string is returned. When empty, CALC_MODEL_TEXT is returned.
    block: when True, extract() waits forever after signalling `started`
        (used to test busy state and cancellation).
    """

    def __init__(
        self,
        available: bool = True,
        responses: Optional[List[Union[str, BaseException]]] = None,
    ):
        self.available = available
        self.responses = list(responses or [])
        self.block = False
        self.calls = 0
        self.payloads: List[EncodedPayload] = []
        self.started = asyncio.Event()

    def is_available(self) -> bool:
        return self.available

    async def extract(self, payload: EncodedPayload) -> str:
        self.calls += 1
        self.payloads.append(payload)
        self.started.set()
        if self.block:
            await asyncio.Event().wait()
        response = self.responses.pop(0) if self.responses else CALC_MODEL_TEXT
        if isinstance(response, BaseException):
            raise response
        return response

    async def health_check(self) -> bool:
        return self.available


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def db_engine():
    """
    In-memory SQLite engine with the schema created from the ORM metadata.

    StaticPool keeps one connection, so every session sees the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
def repository(session_factory):
    return NoteRepository(session_factory=session_factory)


# ══════════════════════════════════════════════════════════════════════════
# Ingestion Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def sample_image_bytes():
    """
    Minimal JPEG: Start of Image (FFD8) + JFIF marker + End of Image (FFD9).

    Not a real photograph; enough for codec and upload checks.
    """
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


@pytest.fixture
def raw_image(sample_image_bytes):
    return RawImage(content=sample_image_bytes, mime_type="image/jpeg")


@pytest.fixture
def fake_client():
    return FakeExtractionClient(available=True)


@pytest.fixture
def pipeline(fake_client, repository):
    return IngestionPipeline(
        client=fake_client,
        repository=repository,
        clock=lambda: FIXED_DATE,
        fallback_delay=0,
        retry_attempts=1,
    )


@pytest.fixture
def controller(pipeline):
    return IngestionController(pipeline)


# ══════════════════════════════════════════════════════════════════════════
# HTTP Fixtures
# ══════════════════════════════════════════════════════════════════════════


def override_dependencies(app, repository, pipeline, controller) -> None:
    app.dependency_overrides[get_note_repository] = lambda: repository
    app.dependency_overrides[get_ingestion_pipeline] = lambda: pipeline
    app.dependency_overrides[get_ingestion_controller] = lambda: controller


@pytest_asyncio.fixture
async def test_client(repository, pipeline, controller):
    """
    HTTPX AsyncClient talking to a fresh app through ASGITransport.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from studysnap.main import create_app

    app = create_app()
    override_dependencies(app, repository, pipeline, controller)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
