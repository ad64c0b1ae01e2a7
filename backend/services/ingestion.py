"""Ingestion engine - pulls recent posts for every clipper and stores them.

For each clipper outside the refresh cache window, every configured platform
is scraped and each returned post is upserted by URL with a MetricSnapshot
appended. Failures on one platform never abort the run; they are logged and
reported back in the RefreshSummary.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import Settings, get_settings
from models.clipper import Clipper, Platform
from models.metric_snapshot import MetricSnapshot
from models.post import Post
from services.scraper_base import BaseScraper, NormalizedPost
from services.scrapers import build_scrapers
from services.timeutil import as_utc, utcnow

logger = logging.getLogger(__name__)


class PlatformFailure(BaseModel):
    clipper_id: str
    clipper_name: str
    platform: Optional[Platform] = None
    stage: Literal["fetch", "store"]
    error: str


class RefreshSummary(BaseModel):
    """Totals for one ingestion run."""
    new_posts: int = 0
    updated_posts: int = 0
    clippers_processed: int = 0
    clippers_skipped: int = 0
    cached: bool = False
    last_refreshed_at: Optional[datetime] = None
    failures: list[PlatformFailure] = Field(default_factory=list)


def _apply_metrics(existing: Post, post: NormalizedPost) -> None:
    existing.views = post.views
    existing.likes = post.likes
    existing.comments = post.comments
    existing.shares = post.shares
    if post.title is not None:
        existing.title = post.title
    if post.thumbnail is not None:
        existing.thumbnail = post.thumbnail
    # posted_at never changes once known
    if existing.posted_at is None and post.posted_at is not None:
        existing.posted_at = post.posted_at


async def upsert_post(
    db: AsyncSession,
    clipper_id: str,
    platform: Platform,
    post: NormalizedPost,
    now: datetime,
) -> bool:
    """Insert or update a post by URL and append a snapshot.

    Returns True when a new Post row was created.
    """
    result = await db.execute(select(Post).where(Post.post_url == post.post_url))
    existing = result.scalar_one_or_none()
    created = False

    if existing is None:
        new_post = Post(
            id=str(uuid4()),
            clipper_id=clipper_id,
            platform=platform.value,
            post_url=post.post_url,
            post_id=post.post_id,
            title=post.title,
            thumbnail=post.thumbnail,
            views=post.views,
            likes=post.likes,
            comments=post.comments,
            shares=post.shares,
            posted_at=post.posted_at,
        )
        try:
            async with db.begin_nested():
                db.add(new_post)
        except IntegrityError:
            # Another writer inserted the same URL first
            logger.info(f"Post {post.post_url} created concurrently, updating instead")
            result = await db.execute(select(Post).where(Post.post_url == post.post_url))
            existing = result.scalar_one()
        else:
            created = True
            target = new_post

    if existing is not None:
        _apply_metrics(existing, post)
        target = existing

    db.add(
        MetricSnapshot(
            id=str(uuid4()),
            post_id=target.id,
            views=post.views,
            likes=post.likes,
            comments=post.comments,
            shares=post.shares,
            recorded_at=now,
        )
    )
    return created


class IngestionEngine:
    """Runs refresh cycles over the clipper roster."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scrapers: dict[Platform, BaseScraper],
        *,
        cache_window: timedelta = timedelta(minutes=60),
        concurrency: int = 1,
        timeout: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.session_factory = session_factory
        self.scrapers = scrapers
        self.cache_window = cache_window
        self.concurrency = concurrency
        self.timeout = timeout
        self.clock = clock

    async def _eligible_clipper_ids(self, db: AsyncSession, force: bool) -> list[str]:
        query = select(Clipper.id).order_by(Clipper.created_at, Clipper.id)
        if not force:
            threshold = self.clock() - self.cache_window
            query = query.where(
                or_(
                    Clipper.last_refreshed_at.is_(None),
                    Clipper.last_refreshed_at < threshold,
                )
            )
        result = await db.execute(query)
        return list(result.scalars().all())

    async def _latest_refresh(self) -> Optional[datetime]:
        async with self.session_factory() as db:
            latest = await db.scalar(select(func.max(Clipper.last_refreshed_at)))
        return as_utc(latest)

    async def run(self, force: bool = False) -> RefreshSummary:
        async with self.session_factory() as db:
            clipper_ids = await self._eligible_clipper_ids(db, force)

        if not clipper_ids:
            logger.info("All clippers refreshed within the cache window, skipping")
            return RefreshSummary(cached=True, last_refreshed_at=await self._latest_refresh())

        logger.info(f"Refreshing {len(clipper_ids)} clippers (force={force})")
        summary = RefreshSummary()
        semaphore = asyncio.Semaphore(self.concurrency)

        async def worker(clipper_id: str) -> None:
            async with semaphore:
                await self.refresh_clipper(clipper_id, summary)

        tasks = [asyncio.create_task(worker(clipper_id)) for clipper_id in clipper_ids]
        done, pending = await asyncio.wait(tasks, timeout=self.timeout)

        if pending:
            logger.warning(f"Refresh timed out, skipping {len(pending)} clippers until next run")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        for task in done:
            error = task.exception()
            if error is not None:
                logger.error(f"Clipper refresh crashed: {error!r}")
            else:
                summary.clippers_processed += 1
        summary.clippers_skipped = len(pending)
        summary.last_refreshed_at = await self._latest_refresh()

        logger.info(
            f"Refresh complete: {summary.new_posts} new, {summary.updated_posts} updated, "
            f"{summary.clippers_processed} clippers, {len(summary.failures)} failures"
        )
        return summary

    async def refresh_clipper(self, clipper_id: str, summary: RefreshSummary) -> None:
        """Scrape and store every platform for one clipper."""
        async with self.session_factory() as db:
            clipper = await db.get(Clipper, clipper_id)
            if clipper is None:
                logger.info(f"Clipper {clipper_id} was deleted before refresh")
                return

            # Rollbacks expire the instance, so keep plain copies
            name = clipper.name
            previous_refresh = as_utc(clipper.last_refreshed_at)
            has_picture = bool(clipper.profile_picture)

            for platform, identifier in clipper.platform_identifiers:
                scraper = self.scrapers.get(platform)
                if scraper is None:
                    continue

                try:
                    posts = await scraper.fetch_recent_posts(identifier, raise_on_error=True)
                except Exception as e:
                    logger.warning(f"Error scraping {platform.value} for {name}: {e}")
                    summary.failures.append(
                        PlatformFailure(
                            clipper_id=clipper_id,
                            clipper_name=name,
                            platform=platform,
                            stage="fetch",
                            error=str(e),
                        )
                    )
                    continue

                picture = None
                if not has_picture:
                    picture = await self._fetch_profile_picture(scraper, identifier, name)

                now = self.clock()
                new_count = 0
                try:
                    for post in posts:
                        if await upsert_post(db, clipper_id, platform, post, now):
                            new_count += 1
                    if picture:
                        clipper.profile_picture = picture
                    await db.commit()
                except SQLAlchemyError as e:
                    await db.rollback()
                    logger.error(f"Failed to store {platform.value} posts for {name}: {e}")
                    summary.failures.append(
                        PlatformFailure(
                            clipper_id=clipper_id,
                            clipper_name=name,
                            platform=platform,
                            stage="store",
                            error=str(e),
                        )
                    )
                    return

                if picture:
                    has_picture = True
                summary.new_posts += new_count
                summary.updated_posts += len(posts) - new_count
                logger.info(
                    f"{name} {platform.value}: {new_count} new, {len(posts) - new_count} updated"
                )

            now = self.clock()
            clipper.last_refreshed_at = max(previous_refresh, now) if previous_refresh else now
            try:
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Failed to mark {name} refreshed: {e}")
                summary.failures.append(
                    PlatformFailure(
                        clipper_id=clipper_id,
                        clipper_name=name,
                        stage="store",
                        error=str(e),
                    )
                )

    async def _fetch_profile_picture(
        self, scraper: BaseScraper, identifier: str, name: str
    ) -> Optional[str]:
        try:
            profile = await scraper.fetch_profile(identifier)
        except Exception as e:
            logger.warning(f"Profile lookup failed for {name} on {scraper.platform.value}: {e}")
            return None
        if profile and profile.profile_picture:
            return profile.profile_picture
        return None


def build_ingestion_engine(
    settings: Optional[Settings] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    client=None,
) -> IngestionEngine:
    """Engine wired from settings. Raises ScrapingNotConfiguredError without a key."""
    settings = settings or get_settings()
    scrapers = build_scrapers(settings, client)

    if session_factory is None:
        from database import async_session
        session_factory = async_session

    return IngestionEngine(
        session_factory,
        scrapers,
        cache_window=timedelta(minutes=settings.refresh_cache_minutes),
        concurrency=settings.refresh_concurrency,
        timeout=settings.refresh_timeout_seconds,
    )
