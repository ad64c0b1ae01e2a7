"""Authentication router - dashboard password login and logout."""

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Request, Response, status
from pydantic import BaseModel, Field

from config import get_settings
from middleware.rate_limit import LOGIN_RATE_LIMIT, limiter
from services.auth_service import AUTH_COOKIE_NAME, AuthService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])
settings = get_settings()

# Slows down password guessing on top of the rate limit
FAILED_LOGIN_DELAY_SECONDS = 0.5


class LoginRequest(BaseModel):
    password: str = Field(min_length=1)


class SuccessResponse(BaseModel):
    success: bool = True


@router.post("/login", response_model=SuccessResponse)
@limiter.limit(LOGIN_RATE_LIMIT)
async def login(
    request: Request,  # Required for rate limiting - must be named 'request'
    response: Response,
    login_data: LoginRequest,
):
    """Check the dashboard password and set the session cookie."""
    if not AuthService.verify_password(login_data.password):
        await asyncio.sleep(FAILED_LOGIN_DELAY_SECONDS)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid password",
        )

    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=AuthService.create_session_token(),
        max_age=AuthService.session_max_age(),
        httponly=True,
        secure=not settings.debug,
        samesite="lax",
        path="/",
    )
    logger.info("Dashboard login succeeded")
    return SuccessResponse()


@router.post("/logout", response_model=SuccessResponse)
async def logout(response: Response):
    """Clear the session cookie."""
    response.delete_cookie(key=AUTH_COOKIE_NAME, path="/")
    return SuccessResponse()
