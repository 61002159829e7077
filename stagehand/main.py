"""
Stagehand - FastAPI Application Factory
=======================================

What:  Creates and configures the FastAPI application that hosts the pipeline.
How:   create_app() wires middleware, exception handlers and the health route;
       the lifespan sets up logging and releases the cache client and the
       database engine on shutdown.

Run with: uvicorn stagehand.main:app

Every error path renders the same envelope as a pipeline short-circuit:
    {"title", "status", "detail", "errors"?, "timestamp"}

Exception handlers:
    ShortCircuitError       → status carried by the envelope
    ValidationError         → 400 with field errors
    RequestValidationError  → 400 with field errors (FastAPI body/query parsing)
    StagehandError          → its status_code / title
    Exception               → 500, detail hidden unless ENVIRONMENT=development
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from stagehand import __version__
from stagehand.cache.store import response_cache
from stagehand.config import settings
from stagehand.database import dispose_engine
from stagehand.exceptions import ShortCircuitError, StagehandError, ValidationError
from stagehand.middleware.acting_user import ActingUserMiddleware
from stagehand.middleware.logging import RequestLoggingMiddleware
from stagehand.middleware.request_id import RequestIDMiddleware, request_id_var
from stagehand.pipeline.results import DEFAULT_DETAILS
from stagehand.responses import abort_response
from stagehand.routes import health

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """Configure the root logger once at startup."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

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
    logger.info("Stagehand %s starting up (environment=%s)", __version__, settings.environment)
    if response_cache.enabled:
        logger.info(
            "Response cache enabled (default expiration %d min, throw_on_error=%s)",
            response_cache.config.default_expiration_minutes,
            response_cache.config.throw_on_error,
        )
    else:
        logger.info("Response cache disabled; cache stages pass through")

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Stagehand shutting down...")
    await response_cache.close()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _group_request_errors(exc: RequestValidationError) -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = {}
    for error in exc.errors():
        # ("body", "name") -> "name"; ("query", "limit") -> "limit"
        location = [str(part) for part in error.get("loc", ())[1:]] or ["request"]
        messages = grouped.setdefault(".".join(location), [])
        if error.get("msg") not in messages:
            messages.append(error.get("msg"))
    return grouped


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ShortCircuitError)
    async def handle_short_circuit(request: Request, exc: ShortCircuitError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.body.to_json())

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.errors)
        return abort_response(400, exc.title, exc.message, errors=exc.errors)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return abort_response(
            400,
            "Validation errors",
            "One or more validation errors occurred.",
            errors=_group_request_errors(exc),
        )

    @app.exception_handler(StagehandError)
    async def handle_stagehand_error(request: Request, exc: StagehandError) -> JSONResponse:
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            # Context is for the logs only
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
            detail = exc.message if settings.is_development else DEFAULT_DETAILS[500]
            return abort_response(exc.status_code, exc.title, detail)
        return abort_response(
            exc.status_code,
            exc.title,
            exc.message,
            errors=getattr(exc, "errors", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        if settings.is_development:
            return abort_response(
                500,
                "Internal Server Error",
                str(exc),
                exception_type=f"{type(exc).__module__}.{type(exc).__qualname__}",
            )
        return abort_response(500, "Internal Server Error", DEFAULT_DETAILS[500])


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Stagehand API",
        version=__version__,
        lifespan=lifespan,
    )

    # Last added runs first: RequestID → ActingUser → Logging → routes
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ActingUserMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)

    return app


app = create_app()
