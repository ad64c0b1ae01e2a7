"""Run one refresh cycle from the command line.

Useful for a system cron or for backfilling after adding clippers.

Usage:
    cd backend && python -m scripts.refresh_now [--force]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


async def main(force: bool) -> int:
    from database import Base, engine
    from services.ingestion import build_ingestion_engine
    from services.scraper_base import ScrapingNotConfiguredError

    try:
        ingestion = build_ingestion_engine()
    except ScrapingNotConfiguredError as e:
        logger.error(str(e))
        return 1

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    summary = await ingestion.run(force=force)
    await engine.dispose()

    if summary.cached:
        logger.info(f"Nothing to do, last refresh at {summary.last_refreshed_at}")
        return 0

    logger.info(
        f"Refresh complete: {summary.new_posts} new, {summary.updated_posts} updated, "
        f"{summary.clippers_processed} clippers processed, {summary.clippers_skipped} skipped"
    )
    for failure in summary.failures:
        platform = failure.platform.value if failure.platform else "-"
        logger.warning(
            f"  {failure.clipper_name} [{platform}] {failure.stage} failed: {failure.error}"
        )
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Refresh clipper posts now")
    parser.add_argument("--force", action="store_true", help="Ignore the refresh cache window")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.force)))
