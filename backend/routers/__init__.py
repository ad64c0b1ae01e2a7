"""Routers package."""

from .analytics import router as analytics_router
from .auth import router as auth_router
from .clippers import router as clippers_router
from .refresh import router as refresh_router

__all__ = [
    "analytics_router",
    "auth_router",
    "clippers_router",
    "refresh_router",
]
