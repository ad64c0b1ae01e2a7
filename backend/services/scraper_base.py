"""Shared plumbing for the RapidAPI-backed platform scrapers.

Every scraper normalizes upstream posts into NormalizedPost and follows the
same listing policy: fetch pages one at a time until the upstream reports no
more pages, the page ceiling is hit, or a page contains a post older than the
recency cutoff. Stale posts are dropped, the rest of that page is kept. Older
posts are assumed stable and not worth re-scraping.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Optional

import httpx
from pydantic import BaseModel

from models.clipper import Platform
from services.timeutil import utcnow

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30
DEFAULT_MAX_PAGES = 10
DEFAULT_CUTOFF = timedelta(weeks=6)
DEFAULT_PAGE_DELAY = 0.2

# Exceptions raised while picking apart an unexpected response body
MALFORMED_RESPONSE_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


class ScrapingNotConfiguredError(Exception):
    """The RapidAPI key is missing, so no scraper can run."""


class PlatformFetchError(Exception):
    """An upstream call failed: transport error, bad status, or malformed body."""


class NormalizedPost(BaseModel):
    """Platform-agnostic post metrics returned by every scraper."""
    post_id: str
    post_url: str
    title: Optional[str] = None
    thumbnail: Optional[str] = None
    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    posted_at: Optional[datetime] = None


class ProfileInfo(BaseModel):
    profile_picture: Optional[str] = None


def clean_identifier(identifier: Optional[str]) -> str:
    """Trim whitespace and a leading @ from a handle."""
    if not identifier:
        return ""
    return identifier.strip().removeprefix("@")


def to_int(value) -> int:
    """Coerce an upstream counter (int, numeric string, or None) to int."""
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


# One page of results plus the cursor for the next page (None when done)
Page = tuple[list[NormalizedPost], Optional[str]]


class BaseScraper(ABC):
    """Base class for platform scrapers."""

    platform: Platform
    api_host: str

    def __init__(
        self,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
        *,
        max_pages: int = DEFAULT_MAX_PAGES,
        cutoff: timedelta = DEFAULT_CUTOFF,
        page_delay: float = DEFAULT_PAGE_DELAY,
        clock: Callable[[], datetime] = utcnow,
    ):
        if not api_key:
            raise ScrapingNotConfiguredError("RAPIDAPI_KEY environment variable is required")
        self.api_key = api_key
        self.client = client
        self.max_pages = max_pages
        self.cutoff = cutoff
        self.page_delay = page_delay
        self.clock = clock

    @property
    def headers(self) -> dict[str, str]:
        return {
            "X-RapidAPI-Key": self.api_key,
            "X-RapidAPI-Host": self.api_host,
        }

    async def _get(self, path: str, params: Optional[dict] = None) -> dict:
        """GET an endpoint on the API host and return the decoded JSON object."""
        url = f"https://{self.api_host}/{path}"
        try:
            if self.client is not None:
                response = await self.client.get(url, params=params, headers=self.headers)
            else:
                async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
                    response = await client.get(url, params=params, headers=self.headers)
        except httpx.HTTPError as e:
            raise PlatformFetchError(f"{self.platform.value} {path} request failed: {e}") from e

        if response.status_code == 429:
            raise PlatformFetchError(f"{self.platform.value} {path} rate limited")
        if response.status_code != 200:
            raise PlatformFetchError(
                f"{self.platform.value} {path} returned {response.status_code}: {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise PlatformFetchError(f"{self.platform.value} {path} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise PlatformFetchError(f"{self.platform.value} {path} returned unexpected body")
        return data

    async def _paginate(
        self,
        fetch_page: Callable[[Optional[str]], Awaitable[Page]],
        label: str,
    ) -> list[NormalizedPost]:
        """Walk pages sequentially, stopping at the page ceiling or recency cutoff.

        A failure on the first page propagates. A failure on a later page
        keeps what was collected so far.
        """
        cutoff_at = self.clock() - self.cutoff
        collected: list[NormalizedPost] = []
        cursor: Optional[str] = None
        pages = 0
        reached_cutoff = False

        while pages < self.max_pages:
            try:
                posts, cursor = await fetch_page(cursor)
            except (PlatformFetchError, *MALFORMED_RESPONSE_ERRORS) as e:
                if pages == 0:
                    if isinstance(e, PlatformFetchError):
                        raise
                    raise PlatformFetchError(f"malformed {self.platform.value} response: {e!r}") from e
                logger.warning(
                    f"{self.platform.value}: page {pages + 1} failed for {label}, "
                    f"keeping {len(collected)} posts: {e}"
                )
                break
            pages += 1

            # Pinned posts can be old, so skip stale ones but finish the page
            for post in posts:
                if post.posted_at is not None and post.posted_at < cutoff_at:
                    reached_cutoff = True
                    continue
                collected.append(post)

            if reached_cutoff or not posts or not cursor:
                break
            if pages < self.max_pages:
                await asyncio.sleep(self.page_delay)

        logger.info(
            f"{self.platform.value}: fetched {len(collected)} recent posts for {label} "
            f"({pages} pages{', stopped at cutoff' if reached_cutoff else ''})"
        )
        return collected

    async def fetch_recent_posts(
        self, identifier: str, *, raise_on_error: bool = False
    ) -> list[NormalizedPost]:
        """Fetch recent posts for a handle, profile URL, or channel ID.

        Upstream failures are logged and yield an empty list unless
        raise_on_error is set, in which case PlatformFetchError propagates.
        """
        handle = clean_identifier(identifier)
        if not handle:
            return []
        try:
            try:
                return await self._fetch_recent_posts(handle)
            except MALFORMED_RESPONSE_ERRORS as e:
                raise PlatformFetchError(f"malformed {self.platform.value} response: {e!r}") from e
        except PlatformFetchError as e:
            if raise_on_error:
                raise
            logger.warning(f"{self.platform.value} scrape failed for {handle}: {e}")
            return []

    async def fetch_post_metrics(self, post_url: str) -> Optional[NormalizedPost]:
        """Fetch current metrics for a single post URL, or None."""
        try:
            return await self._fetch_post_metrics(post_url)
        except (PlatformFetchError, *MALFORMED_RESPONSE_ERRORS) as e:
            logger.warning(f"{self.platform.value} post metrics failed for {post_url}: {e}")
            return None

    async def fetch_profile(self, identifier: str) -> Optional[ProfileInfo]:
        """Profile info for an account. Platforms without it return None."""
        return None

    @abstractmethod
    async def _fetch_recent_posts(self, identifier: str) -> list[NormalizedPost]:
        ...

    @abstractmethod
    async def _fetch_post_metrics(self, post_url: str) -> Optional[NormalizedPost]:
        ...
