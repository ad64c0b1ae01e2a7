"""Scraper registry - maps each Platform to its scraper class."""

from datetime import timedelta
from typing import Optional

import httpx

from config import Settings, get_settings
from models.clipper import Platform
from services.instagram_service import InstagramScraper
from services.scraper_base import BaseScraper, ScrapingNotConfiguredError
from services.tiktok_service import TikTokScraper
from services.youtube_service import YouTubeScraper

SCRAPER_CLASSES: dict[Platform, type[BaseScraper]] = {
    Platform.YOUTUBE: YouTubeScraper,
    Platform.TIKTOK: TikTokScraper,
    Platform.INSTAGRAM: InstagramScraper,
}

NOT_CONFIGURED_MESSAGE = "Scraping not configured. Set RAPIDAPI_KEY environment variable."


def is_scraping_enabled(settings: Optional[Settings] = None) -> bool:
    settings = settings or get_settings()
    return settings.scraping_enabled


def get_scraper(
    platform: Platform,
    settings: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> BaseScraper:
    settings = settings or get_settings()
    scraper_cls = SCRAPER_CLASSES[platform]
    return scraper_cls(
        settings.rapidapi_key,
        client,
        max_pages=settings.scrape_max_pages,
        cutoff=timedelta(weeks=settings.scrape_cutoff_weeks),
        page_delay=settings.scrape_page_delay_seconds,
    )


def build_scrapers(
    settings: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> dict[Platform, BaseScraper]:
    """One scraper per platform. Raises ScrapingNotConfiguredError without a key."""
    settings = settings or get_settings()
    if not is_scraping_enabled(settings):
        raise ScrapingNotConfiguredError(NOT_CONFIGURED_MESSAGE)
    return {platform: get_scraper(platform, settings, client) for platform in Platform}
