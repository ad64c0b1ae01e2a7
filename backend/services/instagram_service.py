"""Instagram scraper via the RapidAPI Instagram Scraper 2025 API.

Views only exist for reels/videos (play_count); photo posts count as 0.
The API has no share count.
"""

import logging
import re
from typing import Optional

from models.clipper import Platform
from services.scraper_base import BaseScraper, NormalizedPost, clean_identifier, to_int
from services.timeutil import parse_epoch_seconds

logger = logging.getLogger(__name__)

PROFILE_URL_RE = re.compile(r"instagram\.com/([A-Za-z0-9_.]+)")
TITLE_LENGTH = 100


def extract_username(identifier: str) -> str:
    match = PROFILE_URL_RE.search(identifier)
    if match and match.group(1) not in ("p", "reel", "reels", "stories"):
        return match.group(1)
    return clean_identifier(identifier).rstrip("/")


def _caption_text(item: dict) -> Optional[str]:
    caption = item.get("caption")
    if isinstance(caption, dict):
        text = caption.get("text")
    else:
        text = caption
    if not text:
        return None
    return text[:TITLE_LENGTH]


def _media_to_post(item: dict, post_url: Optional[str] = None) -> Optional[NormalizedPost]:
    code = item.get("code")
    if not code and not post_url:
        return None
    return NormalizedPost(
        post_id=str(item.get("id") or code),
        post_url=post_url or f"https://instagram.com/p/{code}",
        title=_caption_text(item),
        thumbnail=item.get("thumbnail_url"),
        views=to_int(item.get("play_count") or item.get("video_view_count")),
        likes=to_int(item.get("like_count")),
        comments=to_int(item.get("comment_count")),
        shares=0,
        posted_at=parse_epoch_seconds(item.get("taken_at")),
    )


class InstagramScraper(BaseScraper):
    platform = Platform.INSTAGRAM
    api_host = "instagram-scraper-20251.p.rapidapi.com"

    async def _fetch_recent_posts(self, identifier: str) -> list[NormalizedPost]:
        username = extract_username(identifier)

        async def fetch_page(pagination_token: Optional[str]):
            params: dict = {"username_or_id_or_url": username}
            if pagination_token:
                params["pagination_token"] = pagination_token

            data = await self._get("v1/posts", params)
            payload = data.get("data") if isinstance(data.get("data"), dict) else {}
            items = payload.get("items") or data.get("items") or data.get("posts") or []

            posts = []
            for item in items:
                post = _media_to_post(item)
                if post:
                    posts.append(post)
            return posts, data.get("pagination_token") or payload.get("pagination_token")

        return await self._paginate(fetch_page, f"@{username}")

    async def _fetch_post_metrics(self, post_url: str) -> Optional[NormalizedPost]:
        data = await self._get("v1/post_info", {"code_or_id_or_url": post_url})
        item = data.get("data")
        if not item:
            return None
        return _media_to_post(item, post_url=post_url)
