"""Background scheduler for the daily refresh.

Uses APScheduler to run a non-forced ingestion once a day so the roster
stays fresh without anyone pressing the refresh button.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from config import get_settings
from services.ingestion import build_ingestion_engine
from services.scraper_base import ScrapingNotConfiguredError

logger = logging.getLogger(__name__)
settings = get_settings()

# Global scheduler instance
scheduler = AsyncIOScheduler(timezone="UTC")

REFRESH_JOB_ID = "daily_clipper_refresh"


async def run_scheduled_refresh():
    """Scheduled job: refresh every clipper outside the cache window."""
    logger.info("Starting scheduled clipper refresh...")

    try:
        engine = build_ingestion_engine(settings)
    except ScrapingNotConfiguredError:
        logger.info("RAPIDAPI_KEY not set, skipping scheduled refresh")
        return

    try:
        summary = await engine.run(force=False)
    except Exception as e:
        logger.error(f"Scheduled refresh failed: {e}")
        return

    if summary.cached:
        logger.info("Scheduled refresh skipped, all clippers within the cache window")
        return

    logger.info(
        f"Scheduled refresh done: {summary.new_posts} new posts, "
        f"{summary.updated_posts} updated, {len(summary.failures)} platform failures"
    )


def start_scheduler():
    """Start the background scheduler with the daily refresh job."""
    if scheduler.running:
        logger.info("Scheduler already running")
        return

    scheduler.add_job(
        run_scheduled_refresh,
        trigger=CronTrigger(hour=settings.refresh_cron_hour, minute=0, timezone="UTC"),
        id=REFRESH_JOB_ID,
        name="Refresh clipper posts",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(f"Background scheduler started (daily refresh at {settings.refresh_cron_hour:02d}:00 UTC)")


def stop_scheduler():
    """Stop the background scheduler."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Background scheduler stopped")
