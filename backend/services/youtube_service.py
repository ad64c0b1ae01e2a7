"""YouTube scraper via the RapidAPI YouTube v3 proxy.

Channels are listed through their hidden "uploads" playlist, which returns
every upload newest first (more reliable than the Search API). Statistics
come from a batched videos call per playlist page.
"""

import logging
import re
from typing import Optional

from models.clipper import Platform
from services.scraper_base import BaseScraper, NormalizedPost, clean_identifier, to_int
from services.timeutil import parse_iso_datetime

logger = logging.getLogger(__name__)

# Channel IDs are "UC" followed by 22 URL-safe characters
CHANNEL_ID_RE = re.compile(r"^UC[A-Za-z0-9_-]{22}$")

CHANNEL_URL_PATTERNS = [
    re.compile(r"youtube\.com/channel/([A-Za-z0-9_-]+)"),
    re.compile(r"youtube\.com/@([A-Za-z0-9_.-]+)"),
    re.compile(r"youtube\.com/c/([A-Za-z0-9_.-]+)"),
    re.compile(r"youtube\.com/user/([A-Za-z0-9_.-]+)"),
]

VIDEO_URL_PATTERNS = [
    re.compile(r"youtube\.com/watch\?(?:.*&)?v=([A-Za-z0-9_-]+)"),
    re.compile(r"youtu\.be/([A-Za-z0-9_-]+)"),
    re.compile(r"youtube\.com/shorts/([A-Za-z0-9_-]+)"),
]

PLAYLIST_PAGE_SIZE = 50


def is_channel_id(value: str) -> bool:
    return bool(CHANNEL_ID_RE.match(value))


def extract_channel_ref(identifier: str) -> str:
    """Pull the channel ID or handle out of a channel URL; bare values pass through."""
    for pattern in CHANNEL_URL_PATTERNS:
        match = pattern.search(identifier)
        if match:
            return match.group(1)
    return clean_identifier(identifier)


def extract_video_id(url: str) -> Optional[str]:
    for pattern in VIDEO_URL_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def _best_thumbnail(snippet: dict) -> Optional[str]:
    thumbnails = snippet.get("thumbnails") or {}
    return (
        thumbnails.get("high", {}).get("url")
        or thumbnails.get("medium", {}).get("url")
        or thumbnails.get("default", {}).get("url")
    )


def _video_to_post(video: dict) -> NormalizedPost:
    snippet = video.get("snippet") or {}
    statistics = video.get("statistics") or {}
    video_id = video["id"]
    return NormalizedPost(
        post_id=video_id,
        post_url=f"https://youtube.com/watch?v={video_id}",
        title=snippet.get("title"),
        thumbnail=_best_thumbnail(snippet),
        views=to_int(statistics.get("viewCount")),
        likes=to_int(statistics.get("likeCount")),
        comments=to_int(statistics.get("commentCount")),
        shares=0,  # YouTube API doesn't expose shares
        posted_at=parse_iso_datetime(snippet.get("publishedAt")),
    )


class YouTubeScraper(BaseScraper):
    platform = Platform.YOUTUBE
    api_host = "youtube-v31.p.rapidapi.com"

    async def resolve_channel_id(self, identifier: str) -> Optional[str]:
        """Return the channel ID for a channel ID, channel URL, or handle.

        Anything that isn't already a channel ID costs one search call.
        """
        ref = extract_channel_ref(identifier)
        if is_channel_id(ref):
            return ref

        data = await self._get(
            "search",
            {"part": "snippet", "q": ref, "type": "channel", "maxResults": 1},
        )
        for item in data.get("items", []):
            channel_id = (
                (item.get("id") or {}).get("channelId")
                or (item.get("snippet") or {}).get("channelId")
            )
            if channel_id:
                logger.info(f"Resolved YouTube handle {ref} to channel {channel_id}")
                return channel_id
        return None

    async def _get_uploads_playlist_id(self, channel_id: str) -> Optional[str]:
        data = await self._get("channels", {"part": "contentDetails", "id": channel_id})
        items = data.get("items") or []
        if not items:
            return None
        return (
            items[0]
            .get("contentDetails", {})
            .get("relatedPlaylists", {})
            .get("uploads")
        )

    async def _fetch_videos(self, video_ids: list[str]) -> list[NormalizedPost]:
        """Batch fetch snippet + statistics, keeping playlist order."""
        if not video_ids:
            return []
        data = await self._get(
            "videos",
            {"part": "snippet,statistics", "id": ",".join(video_ids)},
        )
        by_id = {item["id"]: item for item in data.get("items", []) if item.get("id")}
        return [_video_to_post(by_id[vid]) for vid in video_ids if vid in by_id]

    async def _fetch_recent_posts(self, identifier: str) -> list[NormalizedPost]:
        channel_id = await self.resolve_channel_id(identifier)
        if not channel_id:
            logger.warning(f"Could not resolve YouTube channel for {identifier}")
            return []

        uploads_playlist_id = await self._get_uploads_playlist_id(channel_id)
        if not uploads_playlist_id:
            logger.warning(f"Could not find uploads playlist for channel {channel_id}")
            return []

        async def fetch_page(page_token: Optional[str]):
            params: dict = {
                "part": "snippet",
                "playlistId": uploads_playlist_id,
                "maxResults": PLAYLIST_PAGE_SIZE,
            }
            if page_token:
                params["pageToken"] = page_token

            data = await self._get("playlistItems", params)
            video_ids = []
            for item in data.get("items", []):
                vid_id = (item.get("snippet") or {}).get("resourceId", {}).get("videoId")
                if vid_id:
                    video_ids.append(vid_id)

            videos = await self._fetch_videos(video_ids)
            return videos, data.get("nextPageToken")

        return await self._paginate(fetch_page, channel_id)

    async def _fetch_post_metrics(self, post_url: str) -> Optional[NormalizedPost]:
        video_id = extract_video_id(post_url)
        if not video_id:
            return None

        data = await self._get("videos", {"part": "snippet,statistics", "id": video_id})
        items = data.get("items") or []
        if not items:
            return None
        return _video_to_post(items[0]).model_copy(update={"post_url": post_url})
