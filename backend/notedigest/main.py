"""
NoteDigest Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn notedigest.main:app).

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware:  Request ID → Access log → Rate limit       │
    │                                                          │
    │  Routes:                                                 │
    │    POST /api/notes/{text,web,transcripts}                │
    │    POST /api/summaries   GET /api/summaries              │
    │    GET  /api/notes/{source_id}   GET /health             │
    │    POST /api/chat/quiz                                   │
    │                                                          │
    │  Exception Handlers:                                     │
    │    NoteDigestError → exc.status_code (400…503)           │
    │    RequestValidationError → 400, Exception → 500         │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration report, table creation
    Shutdown: dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from notedigest import __version__
from notedigest.config import settings
from notedigest.database import create_tables, dispose_engine
from notedigest.exceptions import NoteDigestError
from notedigest.middleware.logging import RequestLoggingMiddleware
from notedigest.middleware.rate_limit import RateLimitMiddleware
from notedigest.middleware.request_id import RequestIDMiddleware, request_id_var
from notedigest.routes import chat, health, notes, summaries

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during app startup, before any other initialization.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries that log every operation at DEBUG/INFO
    for name in ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx", "pypdf"):
        logging.getLogger(name).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("NoteDigest Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Don't exit: health checks and the unaffected endpoints still work
        logger.error("Configuration error: %s", str(e))

    if settings.db_create_tables:
        await create_tables()
        logger.info("Database tables ensured")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("NoteDigest Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_response(
    status_code: int, message: str, code: str, headers: Dict[str, str] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "code": code, "requestId": request_id_var.get("")},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy:
        NoteDigestError         → its own status_code and code
                                  (401, 400, 403, 404, 409, 422, 429, 503, 500)
        RequestValidationError  → 400 (malformed or mistyped request body)
        HTTPException           → its status (unknown route, wrong method)
        Exception (fallback)    → 500

    Security: handlers never expose internal details (stack traces, SQL,
    provider responses). Context is logged server-side only.
    """

    @app.exception_handler(NoteDigestError)
    async def handle_app_error(request: Request, exc: NoteDigestError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error(
                "[%s] %s: %s | Context: %s",
                rid,
                type(exc).__name__,
                exc.message,
                exc.context,
            )
        else:
            logger.warning("[%s] %s: %s", rid, type(exc).__name__, exc.message)

        headers = {}
        retry_after = getattr(exc, "retry_after", None)
        if retry_after:
            headers["Retry-After"] = str(retry_after)
        return error_response(exc.status_code, exc.message, exc.code, headers or None)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"Invalid request: {location + ': ' if location else ''}{first.get('msg', 'invalid value')}"
        else:
            message = "Invalid request body."
        logger.warning("[%s] Request validation error: %s", request_id_var.get(""), message)
        return error_response(400, message, "validation_error")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return error_response(
            exc.status_code,
            str(exc.detail),
            "http_error",
            getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return error_response(
            500,
            "An unexpected error occurred. Please try again later.",
            "server_error",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """Assemble middleware, exception handlers and routers."""
    app = FastAPI(
        title="NoteDigest API",
        description=(
            "Turns PDFs, pasted text, web pages and YouTube videos into concise "
            "markdown notes generated by Google Gemini."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware executes in REVERSE order of addition (last added = outermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(notes.router)
    app.include_router(summaries.router)
    app.include_router(chat.router)
    app.include_router(health.router)

    return app


app = create_app()
