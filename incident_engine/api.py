"""
FastAPI application for the Incident Engine.
"""

from __future__ import annotations

import importlib.metadata
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Dict

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.orm import Session

from .cache import CacheCoordinator
from .config import get_settings
from .db.base import get_db, init_database
from .dependencies import get_cache
from .errors import (
    IdempotencyKeyConflict,
    IncidentEngineError,
    IncidentNotFound,
    InvalidTransition,
    UserAlreadyExists,
    UserNotFound,
)
from .logging_config import configure_logging
from .rate_limit import limiter, rate_limit_exceeded_handler
from .routes import router

# Initialize structured logging
logger = structlog.get_logger()

settings = get_settings()

REQUEST_ID_HEADER = "X-Request-ID"

ERROR_STATUS_CODES: Dict[type, int] = {
    UserNotFound: 404,
    IncidentNotFound: 404,
    InvalidTransition: 400,
    IdempotencyKeyConflict: 409,
    UserAlreadyExists: 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    configure_logging(settings)
    logger.info("Starting Incident Engine", environment=settings.environment)

    try:
        init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error("Failed to start application", error=str(e))
        raise

    yield

    logger.info("Shutdown complete")


app = FastAPI(
    title="Incident Engine",
    description="Incident lifecycle service with idempotent writes and a cached read path",
    version=importlib.metadata.version("incident-engine"),
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Propagate or mint a request id and bind it to every log line."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.bind_contextvars(request_id=request_id)
    try:
        response = await call_next(request)
    finally:
        structlog.contextvars.unbind_contextvars("request_id")
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


@app.exception_handler(IncidentEngineError)
async def incident_engine_error_handler(
    request: Request, exc: IncidentEngineError
) -> JSONResponse:
    body = exc.to_dict()
    body["request_id"] = _request_id(request)
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(type(exc), 400),
        content=body,
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unexpected error", error=str(exc), exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "code": "INTERNAL_SERVER_ERROR",
            "message": "An unexpected error occurred",
            "request_id": _request_id(request),
        },
    )


app.include_router(router)


# Health and Info Endpoints
@app.get("/health", tags=["system"])
def health() -> dict[str, str]:
    """Liveness: the process is up."""
    return {"status": "ok"}


@app.get("/ready", tags=["system"])
def ready(
    db: Session = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
) -> JSONResponse:
    """Readiness: both the database and Redis answer."""
    try:
        db.execute(text("SELECT 1"))
        database_ok = True
    except Exception as e:
        logger.warning("Readiness database check failed", error=str(e))
        database_ok = False

    cache_ok = cache.ping()
    content: Dict[str, Any] = {
        "status": "ready" if database_ok and cache_ok else "not_ready",
        "database": "ok" if database_ok else "unavailable",
        "redis": "ok" if cache_ok else "unavailable",
    }
    return JSONResponse(status_code=200 if database_ok and cache_ok else 503, content=content)


@app.get("/version", tags=["system"])
def version() -> dict[str, str]:
    """Return the version of the application."""
    return {"version": importlib.metadata.version("incident-engine")}
