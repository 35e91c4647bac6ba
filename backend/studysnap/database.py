"""
StudySnap Backend - Database Engine & Session Factory
=======================================================

What:  Async SQLAlchemy engine, session factory and declarative base.
How:   Creates an async engine with connection pooling. The note repository
       opens one short-lived session per operation from `async_session_factory`,
       so every insert is committed before the follow-up list query runs.
Who:   NoteRepository, the health route, Alembic and the app lifespan.
When:  Engine is created at module import; sessions are created per operation.

Connection Pooling:
    pool_size=20:      Persistent connections for normal load
    max_overflow=10:   Temporary connections for traffic spikes (total max = 30)
    pool_pre_ping:     Validates connections before use
    pool_recycle=3600: Recycles connections every hour

    SQLite (aiosqlite) manages its own pool and rejects these arguments, so
    they are only passed for server databases.
"""

from typing import Any, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from studysnap.config import settings


def _engine_options() -> Dict[str, Any]:
    """Pool options for the configured database URL."""
    options: Dict[str, Any] = {
        # SQL echo is only useful while debugging queries
        "echo": settings.log_level == "DEBUG",
    }
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


# ── Engine Configuration ──────────────────────────────────────────────────
engine: AsyncEngine = create_async_engine(settings.database_url, **_engine_options())

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: rows stay readable after commit, outside the session
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object between the models, Alembic autogenerate
    and the test suite's `create_all`.
    """
    pass


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    """
    await engine.dispose()
