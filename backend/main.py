"""Clipper Tracker - FastAPI application entry point."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from config import get_settings
from database import engine
from middleware.rate_limit import limiter, rate_limit_exceeded_handler
from models import Base
from routers import (
    analytics_router,
    auth_router,
    clippers_router,
    refresh_router,
)
from services.scheduler import start_scheduler, stop_scheduler

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - create tables on startup, cleanup on shutdown."""
    # Startup: create database tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Security check: Warn if using default JWT secret in production
    if not settings.debug and settings.jwt_secret == "dev-secret-change-in-production":
        logger.warning("SECURITY WARNING: Using default JWT secret in production!")
        logger.warning("Set JWT_SECRET environment variable to a secure random value.")

    if not settings.scraping_enabled:
        logger.warning("RAPIDAPI_KEY not set - refresh endpoints will return 400")

    # Start background scheduler for the daily refresh
    if settings.scheduler_enabled:
        start_scheduler()

    yield

    # Shutdown: stop scheduler and release pooled connections
    stop_scheduler()
    await engine.dispose()


app = FastAPI(
    title="Clipper Tracker API",
    description="Views, hashtag and posting analytics for a roster of clippers",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging
def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status, duration and client IP for every request."""
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.error(
            f"{request.method} {request.url.path} status=500 duration={duration_ms}ms "
            f"ip={client_ip(request)} error=\"{e}\""
        )
        raise

    duration_ms = int((time.perf_counter() - start) * 1000)
    if response.status_code >= 500:
        level = logging.ERROR
    elif response.status_code >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO
    logger.log(
        level,
        f"{request.method} {request.url.path} status={response.status_code} "
        f"duration={duration_ms}ms ip={client_ip(request)}",
    )
    return response


# Include routers
app.include_router(analytics_router)
app.include_router(auth_router)
app.include_router(clippers_router)
app.include_router(refresh_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "clipper-tracker"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Clipper Tracker API",
        "version": "0.1.0",
        "docs": "/docs",
    }
