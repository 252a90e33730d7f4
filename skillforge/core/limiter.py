# File: skillforge/core/limiter.py

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from skillforge.core.config import settings

# `get_remote_address` keys the counters on the client's IP address.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.rate_limit_storage_uri,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)

# Auth endpoints get a tighter window than the global default
AUTH_RATE_LIMIT = "5/15minutes"
AI_RATE_LIMIT = "10/minute"


async def custom_rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """
    Custom exception handler for rate-limited requests to return the envelope.
    """
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "Too many requests from this IP, please try again later.",
            "message": f"Rate limit exceeded ({exc.detail})",
        },
    )
