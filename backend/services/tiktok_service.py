"""TikTok scraper via the RapidAPI tiktok-scraper7 API.

The user/posts listing pages with a cursor (35 videos per page, newest
first). This is the only platform that exposes a profile picture.
"""

import logging
import re
from typing import Optional

from models.clipper import Platform
from services.scraper_base import (
    BaseScraper,
    NormalizedPost,
    PlatformFetchError,
    ProfileInfo,
    clean_identifier,
    to_int,
)
from services.timeutil import parse_epoch_seconds

logger = logging.getLogger(__name__)

PROFILE_URL_RE = re.compile(r"tiktok\.com/@([A-Za-z0-9_.]+)")
PAGE_SIZE = 35


def extract_username(identifier: str) -> str:
    match = PROFILE_URL_RE.search(identifier)
    if match:
        return match.group(1)
    return clean_identifier(identifier)


def _video_to_post(video: dict, username: str, post_url: Optional[str] = None) -> Optional[NormalizedPost]:
    video_id = video.get("video_id") or video.get("id") or video.get("aweme_id")
    if not video_id:
        return None
    return NormalizedPost(
        post_id=str(video_id),
        post_url=post_url or f"https://tiktok.com/@{username}/video/{video_id}",
        title=video.get("title"),
        thumbnail=video.get("cover"),
        views=to_int(video.get("play_count")),
        likes=to_int(video.get("digg_count")),
        comments=to_int(video.get("comment_count")),
        shares=to_int(video.get("share_count")),
        posted_at=parse_epoch_seconds(video.get("create_time")),
    )


class TikTokScraper(BaseScraper):
    platform = Platform.TIKTOK
    api_host = "tiktok-scraper7.p.rapidapi.com"

    async def _fetch_recent_posts(self, identifier: str) -> list[NormalizedPost]:
        username = extract_username(identifier)

        async def fetch_page(cursor: Optional[str]):
            params: dict = {"unique_id": username, "count": PAGE_SIZE}
            if cursor:
                params["cursor"] = cursor

            data = await self._get("user/posts", params)
            payload = data.get("data") or {}
            posts = []
            for video in payload.get("videos") or []:
                post = _video_to_post(video, username)
                if post:
                    posts.append(post)

            next_cursor = payload.get("cursor")
            if payload.get("hasMore") is True and next_cursor is not None:
                return posts, str(next_cursor)
            return posts, None

        return await self._paginate(fetch_page, f"@{username}")

    async def fetch_profile(self, identifier: str) -> Optional[ProfileInfo]:
        username = extract_username(clean_identifier(identifier))
        if not username:
            return None
        try:
            data = await self._get("user/info", {"unique_id": username})
        except PlatformFetchError as e:
            logger.warning(f"TikTok user info failed for @{username}: {e}")
            return None

        user = (data.get("data") or {}).get("user") or {}
        avatar = user.get("avatarLarger") or user.get("avatarMedium") or user.get("avatarThumb")
        return ProfileInfo(profile_picture=avatar or None)

    async def _fetch_post_metrics(self, post_url: str) -> Optional[NormalizedPost]:
        data = await self._get("video/info", {"url": post_url})
        video = data.get("data")
        if not video:
            return None
        username = extract_username(post_url)
        return _video_to_post(video, username, post_url=post_url)
