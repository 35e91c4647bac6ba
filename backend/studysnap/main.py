"""
StudySnap Backend - FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn studysnap.main:app).
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌──────────┐ ┌──────────┐ ┌────────────┐ ┌───────────┐  │
    │  │  Req ID  │→│ Logging  │→│ Rate Limit │→│ GZip/CORS │  │
    │  └──────────┘ └──────────┘ └────────────┘ └───────────┘  │
    │                                                          │
    │  Routes:                                                 │
    │  ┌──────────────┐ ┌──────────────┐ ┌─────────────────┐   │
    │  │ /api/ingest* │ │ GET /notes*  │ │ GET /health     │   │
    │  └──────────────┘ └──────────────┘ └─────────────────┘   │
    │                                                          │
    │  Exception Handlers:                                     │
    │  ┌────────────────────────────────────────────────────┐  │
    │  │ StudySnapError→status_code │ DB→500 │ Exception→500 │  │
    │  └────────────────────────────────────────────────────┘  │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Report extraction mode (Gemini or demo fallback)
    3. Log startup complete

    Shutdown:
    1. Dispose database engine (close all connections)
    2. Log shutdown complete
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from studysnap import __version__
from studysnap.config import settings
from studysnap.database import dispose_engine
from studysnap.exceptions import (
    DatabaseError,
    RateLimitExceededError,
    StudySnapError,
)
from studysnap.middleware.logging import RequestLoggingMiddleware
from studysnap.middleware.rate_limit import RateLimitMiddleware
from studysnap.middleware.request_id import (
    RequestIDLogFilter,
    RequestIDMiddleware,
    request_id_var,
)
from studysnap.routes import health, ingest, notes

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Every record also gets a `request_id` attribute (RequestIDLogFilter) for
    handlers that want to include it.
    """
    handler = logging.StreamHandler(sys.stdout)  # Docker captures stdout
    handler.addFilter(RequestIDLogFilter())

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # Third-party libraries log every request/query at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("StudySnap Backend %s starting up...", __version__)

    if settings.extraction_configured:
        logger.info("Extraction: Gemini model %s", settings.gemini_model)
    else:
        logger.warning(
            "GEMINI_API_KEY is not set. Running in demo mode: uploaded photos are "
            "stored as placeholder notes instead of being analyzed."
        )

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("StudySnap Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(exc: StudySnapError, rid: str, include_details: bool = True) -> dict:
    content = {
        "error": exc.error_code,
        "message": exc.message,
        "request_id": rid or None,
    }
    if include_details and exc.context:
        content["details"] = exc.context
    return content


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy:
        RateLimitExceededError  → 429 with Retry-After
        DatabaseError           → 500, generic message, details logged only
        StudySnapError (base)   → exc.status_code (400/404/409/500/502)
        Exception (fallback)    → 500 (unexpected errors)

    Starlette picks the handler registered for the closest class in the
    exception's MRO, so subclasses fall through to the base handler.
    """

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        rid = request_id_var.get("")
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc, rid),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.error_code,
                "message": "An internal error occurred. Please try again later.",
                "request_id": rid or None,
            },
        )

    @app.exception_handler(StudySnapError)
    async def handle_studysnap_error(request: Request, exc: StudySnapError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error(
                "[%s] %s: %s | Context: %s",
                rid,
                exc.error_code,
                exc.message,
                {k: v for k, v in exc.context.items() if k != "raw_text"},
            )
        else:
            logger.warning("[%s] %s: %s", rid, exc.error_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc, rid))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Stack trace is logged server-side only, never returned."""
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid or None,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(rate_limit_requests: Optional[int] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        rate_limit_requests: override settings.rate_limit_requests for the
            ingest rate limiter (tests use a small value)
    """
    app = FastAPI(
        title="StudySnap API",
        description=(
            "Turns photos of handwritten study notes into structured notes "
            "(title, subject, summary, tags) using Google Gemini, with a demo mode "
            "when no API key is configured."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → RateLimit → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-Total-Count",
            "Retry-After",
        ],
    )
    # Note lists with long previews compress well; tiny bodies do not
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RateLimitMiddleware, max_requests=rate_limit_requests)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(ingest.router)
    app.include_router(notes.router)
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
# uvicorn expects `studysnap.main:app` to be importable
app = create_app()
