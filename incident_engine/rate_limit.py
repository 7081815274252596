"""
Rate limiting for the write endpoints.

POST /v1/users, POST /v1/incidents and POST /v1/incidents/{id}/comments draw
from one budget per client address: ``RATE_LIMIT_MAX_REQUESTS`` requests per
``RATE_LIMIT_WINDOW_SECONDS``. The limit is read from settings on every
request.
"""

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .config import get_settings

logger = structlog.get_logger()

WRITE_SCOPE = "writes"


def write_limit() -> str:
    """Current write budget in ``limits`` notation."""
    settings = get_settings()
    return f"{settings.rate_limit_max_requests} per {settings.rate_limit_window_seconds} seconds"


def build_limiter() -> Limiter:
    settings = get_settings()
    return Limiter(
        key_func=get_remote_address,
        enabled=settings.rate_limit_enabled,
        storage_uri=settings.rate_limit_storage_uri,
    )


limiter = build_limiter()


def limit_writes(func):
    """Charge the decorated endpoint against the shared write budget.

    The endpoint must accept a ``request: Request`` argument.
    """
    return limiter.shared_limit(write_limit, scope=WRITE_SCOPE)(func)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    settings = get_settings()
    request_id = getattr(request.state, "request_id", None)
    logger.warning(
        "rate_limit_exceeded",
        client=get_remote_address(request),
        path=request.url.path,
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={
            "code": "RATE_LIMIT_EXCEEDED",
            "message": "Too many requests, please try again later",
            "request_id": request_id,
        },
        headers={"Retry-After": str(settings.rate_limit_window_seconds)},
    )
