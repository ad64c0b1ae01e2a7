"""Filtered loads of clippers and posts feeding the analytics functions."""

from datetime import date, datetime, time, timezone
from typing import NamedTuple, Optional

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.clipper import Clipper, Platform
from models.metric_snapshot import MetricSnapshot
from models.post import Post
from services.timeutil import as_utc


class ClipperNotFoundError(Exception):
    """No clipper exists with the requested id."""


class InvalidDateRangeError(ValueError):
    """The range start falls after its end."""


class DateRange:
    """Inclusive calendar-day range in UTC. Either bound may be open."""

    def __init__(self, start: Optional[date] = None, end: Optional[date] = None):
        if start and end and start > end:
            raise InvalidDateRangeError(
                f"fromDate {start.isoformat()} is after toDate {end.isoformat()}"
            )
        self.start = start
        self.end = end

    @property
    def start_at(self) -> Optional[datetime]:
        if self.start is None:
            return None
        return datetime.combine(self.start, time.min, tzinfo=timezone.utc)

    @property
    def end_at(self) -> Optional[datetime]:
        # End of the last day
        if self.end is None:
            return None
        return datetime.combine(self.end, time.max, tzinfo=timezone.utc)

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None

    def apply(self, query: Select) -> Select:
        if self.start_at is not None:
            query = query.where(Post.posted_at >= self.start_at)
        if self.end_at is not None:
            query = query.where(Post.posted_at <= self.end_at)
        return query


async def load_posts(
    db: AsyncSession,
    *,
    date_range: Optional[DateRange] = None,
    clipper_group: Optional[str] = None,
    platform: Optional[Platform] = None,
    clipper_id: Optional[str] = None,
    dated_only: bool = False,
) -> list[Post]:
    """Posts matching the filters, each with its Clipper loaded."""
    query = select(Post).options(selectinload(Post.clipper))

    if date_range is not None:
        query = date_range.apply(query)
    if clipper_group:
        query = query.join(Post.clipper).where(Clipper.clipper_group == clipper_group)
    if platform is not None:
        query = query.where(Post.platform == platform.value)
    if clipper_id:
        query = query.where(Post.clipper_id == clipper_id)
    if dated_only:
        query = query.where(Post.posted_at.is_not(None))

    query = query.order_by(Post.posted_at, Post.id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def load_clippers(
    db: AsyncSession,
    *,
    clipper_group: Optional[str] = None,
) -> list[Clipper]:
    query = select(Clipper).order_by(Clipper.created_at.desc(), Clipper.id)
    if clipper_group:
        query = query.where(Clipper.clipper_group == clipper_group)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_clipper(db: AsyncSession, clipper_id: str) -> Clipper:
    clipper = await db.get(Clipper, clipper_id)
    if clipper is None:
        raise ClipperNotFoundError(clipper_id)
    return clipper


class ClipperDetail(NamedTuple):
    clipper: Clipper
    posts: list[Post]
    snapshots: dict[str, list[MetricSnapshot]]


async def get_clipper_detail(
    db: AsyncSession,
    clipper_id: str,
    date_range: Optional[DateRange] = None,
    snapshot_limit: int = 30,
) -> ClipperDetail:
    """A clipper with its posts (views descending) and recent snapshots per post."""
    clipper = await get_clipper(db, clipper_id)

    query = select(Post).where(Post.clipper_id == clipper_id)
    if date_range is not None:
        query = date_range.apply(query)
    query = query.order_by(Post.views.desc(), Post.id)
    posts = list((await db.execute(query)).scalars().all())

    snapshots: dict[str, list[MetricSnapshot]] = {post.id: [] for post in posts}
    if posts:
        # Rank snapshots per post so only the newest N are loaded
        ranked = (
            select(
                MetricSnapshot.id,
                func.row_number()
                .over(
                    partition_by=MetricSnapshot.post_id,
                    order_by=MetricSnapshot.recorded_at.desc(),
                )
                .label("rank"),
            )
            .where(MetricSnapshot.post_id.in_(list(snapshots)))
            .subquery()
        )
        result = await db.execute(
            select(MetricSnapshot)
            .join(ranked, ranked.c.id == MetricSnapshot.id)
            .where(ranked.c.rank <= snapshot_limit)
            .order_by(MetricSnapshot.post_id, MetricSnapshot.recorded_at.desc())
        )
        for snapshot in result.scalars().all():
            snapshots[snapshot.post_id].append(snapshot)

    return ClipperDetail(clipper=clipper, posts=posts, snapshots=snapshots)


async def latest_refresh(db: AsyncSession) -> Optional[datetime]:
    """Most recent last_refreshed_at across the roster."""
    latest = await db.scalar(select(func.max(Clipper.last_refreshed_at)))
    return as_utc(latest)
