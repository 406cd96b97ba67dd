"""Per-client rate limiting for turn endpoints."""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from agentchat.schemas.response_schema import error_response

limiter = Limiter(key_func=get_remote_address)


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Render an exceeded limit in the unified error shape."""
    return JSONResponse(
        status_code=429,
        content=error_response(429, "Rate limit exceeded", "RATE_LIMIT_EXCEEDED"),
    )
