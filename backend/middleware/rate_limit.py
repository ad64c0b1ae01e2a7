"""Rate limiting for login and refresh using SlowAPI."""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

# Keyed on client IP
limiter = Limiter(key_func=get_remote_address)

LOGIN_RATE_LIMIT = "5/minute"
# Each refresh fans out to every upstream API
REFRESH_RATE_LIMIT = "6/hour"


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Return 429 with a JSON detail instead of SlowAPI's plain text."""
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Too many requests. Please try again later.",
            "retry_after": exc.detail,
        }
    )
