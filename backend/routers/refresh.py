"""Refresh router - triggers ingestion and reports when it last ran."""

import logging
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import get_settings
from database import get_db, get_session_factory
from middleware.auth import require_auth
from middleware.rate_limit import REFRESH_RATE_LIMIT, limiter
from services.ingestion import IngestionEngine, RefreshSummary, build_ingestion_engine
from services.post_queries import latest_refresh
from services.scraper_base import ScrapingNotConfiguredError

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/refresh",
    tags=["refresh"],
    dependencies=[Depends(require_auth)],
)


class RefreshStatus(BaseModel):
    last_refreshed_at: Optional[datetime] = None


def get_ingestion_engine(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> IngestionEngine:
    """Engine for this request, or 400 when scraping isn't configured."""
    try:
        return build_ingestion_engine(get_settings(), session_factory)
    except ScrapingNotConfiguredError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


@router.post("", response_model=RefreshSummary)
@limiter.limit(REFRESH_RATE_LIMIT)
async def trigger_refresh(
    request: Request,  # Required for rate limiting - must be named 'request'
    engine: Annotated[IngestionEngine, Depends(get_ingestion_engine)],
    force: bool = Query(False, description="Ignore the refresh cache window"),
):
    """Scrape every clipper outside the cache window (or all of them with force)."""
    summary = await engine.run(force=force)
    logger.info(f"Manual refresh finished (force={force}, cached={summary.cached})")
    return summary


@router.get("", response_model=RefreshSummary)
async def cron_refresh(
    engine: Annotated[IngestionEngine, Depends(get_ingestion_engine)],
):
    """Non-forced refresh for external cron callers."""
    return await engine.run(force=False)


@router.get("/status", response_model=RefreshStatus)
async def refresh_status(
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Most recent refresh time across all clippers."""
    return RefreshStatus(last_refreshed_at=await latest_refresh(db))
