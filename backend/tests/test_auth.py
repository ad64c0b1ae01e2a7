"""Dashboard password check and session tokens."""

from datetime import datetime, timedelta, timezone

from jose import jwt

from config import get_settings
from services.auth_service import AuthService


def test_password_check():
    assert AuthService.verify_password("test-password")
    assert not AuthService.verify_password("test-passwor")


def test_session_token_round_trip():
    token = AuthService.create_session_token()
    data = AuthService.decode_token(token)

    assert data.subject == "dashboard"
    assert data.expires_at > datetime.now(timezone.utc) + timedelta(days=6)


def test_expired_token_rejected():
    issued = datetime.now(timezone.utc) - timedelta(days=30)
    assert AuthService.decode_token(AuthService.create_session_token(now=issued)) is None


def test_token_for_other_subject_rejected():
    settings = get_settings()
    token = jwt.encode(
        {"sub": "someone-else", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    assert AuthService.decode_token(token) is None


def test_token_signed_with_other_secret_rejected():
    token = jwt.encode(
        {"sub": "dashboard", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        "not-the-secret",
        algorithm="HS256",
    )
    assert AuthService.decode_token(token) is None
