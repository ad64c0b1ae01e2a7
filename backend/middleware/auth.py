"""Authentication middleware - session cookie / bearer token verification."""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from services.auth_service import AUTH_COOKIE_NAME, AuthService, TokenData

# auto_error=False so the cookie can be used instead of the header
security = HTTPBearer(auto_error=False)


async def require_auth(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> TokenData:
    """Accept the clipper-auth cookie or an Authorization: Bearer token."""
    token = request.cookies.get(AUTH_COOKIE_NAME)
    if not token and credentials is not None:
        token = credentials.credentials

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_data = AuthService.decode_token(token)
    if token_data is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return token_data
