"""Authentication service - dashboard password check and session JWTs."""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

AUTH_COOKIE_NAME = "clipper-auth"
SESSION_SUBJECT = "dashboard"


class TokenData(BaseModel):
    """Data extracted from a session token."""
    subject: str
    expires_at: datetime


class AuthService:
    """Single shared-password authentication for the dashboard."""

    @staticmethod
    def verify_password(password: str) -> bool:
        """Compare against DASHBOARD_PASSWORD. Always False when it is unset."""
        expected = settings.dashboard_password
        if not expected:
            logger.error("DASHBOARD_PASSWORD not set in environment")
            return False
        return secrets.compare_digest(password.encode("utf-8"), expected.encode("utf-8"))

    @staticmethod
    def session_max_age() -> int:
        """Cookie lifetime in seconds."""
        return int(timedelta(days=settings.session_expire_days).total_seconds())

    @staticmethod
    def create_session_token(now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        payload = {
            "sub": SESSION_SUBJECT,
            "iat": int(now.timestamp()),
            "exp": now + timedelta(days=settings.session_expire_days),
        }
        return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)

    @staticmethod
    def decode_token(token: str) -> Optional[TokenData]:
        """Decode and validate a session token. Returns None if invalid or expired."""
        try:
            payload = jwt.decode(
                token,
                settings.jwt_secret,
                algorithms=[settings.jwt_algorithm],
            )
        except JWTError:
            return None

        subject = payload.get("sub")
        exp = payload.get("exp")
        if subject != SESSION_SUBJECT or exp is None:
            return None

        return TokenData(
            subject=subject,
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )
