"""Analytics router - hashtag trends, posting frequency and the activity calendar."""

from datetime import date
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from middleware.auth import require_auth
from models.clipper import Platform
from routers.filters import get_date_range
from services.analytics import (
    CalendarReport,
    FrequencyGrouping,
    FrequencyReport,
    HashtagReport,
    HashtagSort,
    calendar_activity,
    hashtag_analytics,
    one_year_before,
    posting_frequency,
)
from services.post_queries import DateRange, load_posts
from services.timeutil import utcnow

router = APIRouter(
    prefix="/api",
    tags=["analytics"],
    dependencies=[Depends(require_auth)],
)


# ============== Response Models ==============

class AnalyticsFilters(BaseModel):
    """Echo of the filters a response was computed with."""
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    clipper_group: Optional[str] = None
    clipper_id: Optional[str] = None
    platform: Optional[Platform] = None


class HashtagResponse(HashtagReport):
    filters: AnalyticsFilters


class FrequencyResponse(FrequencyReport):
    filters: AnalyticsFilters


class ActivityResponse(CalendarReport):
    filters: AnalyticsFilters


# ============== Endpoints ==============

@router.get("/hashtags", response_model=HashtagResponse)
async def get_hashtags(
    db: Annotated[AsyncSession, Depends(get_db)],
    date_range: Annotated[DateRange, Depends(get_date_range)],
    clipper_group: Optional[str] = Query(None, alias="clipperGroup"),
    limit: int = Query(50, ge=1, le=500),
    sort_by: HashtagSort = Query("views", alias="sortBy"),
):
    """Hashtag performance across post titles, with a week-over-week trend."""
    posts = await load_posts(db, date_range=date_range, clipper_group=clipper_group)
    report = hashtag_analytics(posts, sort_by=sort_by, limit=limit)

    return HashtagResponse(
        **report.model_dump(),
        filters=AnalyticsFilters(
            from_date=date_range.start,
            to_date=date_range.end,
            clipper_group=clipper_group,
        ),
    )


@router.get("/frequency", response_model=FrequencyResponse)
async def get_frequency(
    db: Annotated[AsyncSession, Depends(get_db)],
    date_range: Annotated[DateRange, Depends(get_date_range)],
    clipper_group: Optional[str] = Query(None, alias="clipperGroup"),
    platform: Optional[Platform] = Query(None),
    group_by: FrequencyGrouping = Query("page", alias="groupBy"),
):
    """Posts per week per page (clipper x platform) or per clipper group."""
    posts = await load_posts(
        db,
        date_range=date_range,
        clipper_group=clipper_group,
        platform=platform,
    )
    report = posting_frequency(posts, group_by=group_by)

    return FrequencyResponse(
        **report.model_dump(),
        filters=AnalyticsFilters(
            from_date=date_range.start,
            to_date=date_range.end,
            clipper_group=clipper_group,
            platform=platform,
        ),
    )


@router.get("/activity", response_model=ActivityResponse)
async def get_activity(
    db: Annotated[AsyncSession, Depends(get_db)],
    date_range: Annotated[DateRange, Depends(get_date_range)],
    clipper_id: Optional[str] = Query(None, alias="clipperId"),
    clipper_group: Optional[str] = Query(None, alias="clipperGroup"),
):
    """Daily post counts for the calendar heatmap. Defaults to the last year."""
    today = utcnow().date()
    # Open bounds default around whichever bound was sent so they never cross
    end = date_range.end or max(today, date_range.start or today)
    start = date_range.start or min(one_year_before(today), end)
    window = DateRange(start, end)

    posts = await load_posts(
        db,
        date_range=window,
        clipper_group=clipper_group,
        clipper_id=clipper_id,
        dated_only=True,
    )
    report = calendar_activity(posts, start=start, end=end)

    return ActivityResponse(
        **report.model_dump(),
        filters=AnalyticsFilters(
            from_date=date_range.start,
            to_date=date_range.end,
            clipper_group=clipper_group,
            clipper_id=clipper_id,
        ),
    )
