"""Platform scrapers against canned upstream responses (httpx.MockTransport)."""

from datetime import timedelta

import httpx
import pytest

from config import Settings
from conftest import NOW
from models import Platform
from services.instagram_service import InstagramScraper
from services.scraper_base import PlatformFetchError, ScrapingNotConfiguredError, clean_identifier
from services.scrapers import build_scrapers, get_scraper
from services.tiktok_service import TikTokScraper
from services.youtube_service import (
    YouTubeScraper,
    extract_channel_ref,
    extract_video_id,
    is_channel_id,
)

CHANNEL_ID = "UC" + "a" * 22


def epoch(dt) -> int:
    return int(dt.timestamp())


def tiktok_video(video_id: str, age: timedelta, views: int = 1000) -> dict:
    return {
        "video_id": video_id,
        "title": f"video {video_id} #fyp",
        "cover": f"https://cdn.example.com/{video_id}.jpg",
        "play_count": views,
        "digg_count": 50,
        "comment_count": 5,
        "share_count": 2,
        "create_time": epoch(NOW - age),
    }


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def tiktok_scraper(client, **kwargs) -> TikTokScraper:
    kwargs.setdefault("page_delay", 0)
    return TikTokScraper("test-key", client, clock=lambda: NOW, **kwargs)


# ============== Identifiers ==============

def test_clean_identifier_strips_whitespace_and_at():
    assert clean_identifier("  @mike_clips ") == "mike_clips"
    assert clean_identifier("") == ""
    assert clean_identifier(None) == ""


def test_youtube_channel_id_recognition():
    assert is_channel_id(CHANNEL_ID)
    assert not is_channel_id("UCshort")
    assert not is_channel_id("mikeclips")


def test_youtube_channel_ref_from_urls():
    assert extract_channel_ref(f"https://www.youtube.com/channel/{CHANNEL_ID}") == CHANNEL_ID
    assert extract_channel_ref("https://youtube.com/@MikeClips") == "MikeClips"
    assert extract_channel_ref("@MikeClips") == "MikeClips"


def test_youtube_video_id_from_urls():
    assert extract_video_id("https://youtube.com/watch?v=abc123") == "abc123"
    assert extract_video_id("https://youtu.be/xyz789") == "xyz789"
    assert extract_video_id("https://youtube.com/shorts/s1") == "s1"
    assert extract_video_id("https://example.com") is None


# ============== TikTok ==============

async def test_tiktok_maps_fields_and_sends_rapidapi_headers():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={
            "data": {"videos": [tiktok_video("111", timedelta(days=1))], "hasMore": False}
        })

    async with mock_client(handler) as client:
        posts = await tiktok_scraper(client).fetch_recent_posts("@mike")

    assert len(posts) == 1
    post = posts[0]
    assert post.post_url == "https://tiktok.com/@mike/video/111"
    assert post.views == 1000
    assert post.likes == 50
    assert post.shares == 2
    assert post.posted_at == NOW - timedelta(days=1)

    request = seen[0]
    assert request.url.host == "tiktok-scraper7.p.rapidapi.com"
    assert request.url.params["unique_id"] == "mike"
    assert request.headers["X-RapidAPI-Key"] == "test-key"


async def test_pagination_stops_at_cutoff_and_drops_stale_post():
    pages = {
        None: {"videos": [tiktok_video("1", timedelta(days=1)), tiktok_video("2", timedelta(days=2))],
               "cursor": "35", "hasMore": True},
        "35": {"videos": [tiktok_video("3", timedelta(weeks=5)), tiktok_video("4", timedelta(weeks=7)),
                          tiktok_video("5", timedelta(weeks=8))],
               "cursor": "70", "hasMore": True},
    }
    cursors = []

    def handler(request: httpx.Request) -> httpx.Response:
        cursor = request.url.params.get("cursor")
        cursors.append(cursor)
        return httpx.Response(200, json={"data": pages[cursor]})

    async with mock_client(handler) as client:
        posts = await tiktok_scraper(client).fetch_recent_posts("mike")

    assert [p.post_id for p in posts] == ["1", "2", "3"]
    assert cursors == [None, "35"]


async def test_pagination_stops_at_page_ceiling():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        n = len(requests)
        return httpx.Response(200, json={"data": {
            "videos": [tiktok_video(str(n), timedelta(hours=n))],
            "cursor": str(n * 35),
            "hasMore": True,
        }})

    async with mock_client(handler) as client:
        posts = await tiktok_scraper(client, max_pages=3).fetch_recent_posts("mike")

    assert len(requests) == 3
    assert len(posts) == 3


async def test_first_page_failure_is_absorbed_unless_asked_to_raise():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="upstream down")

    async with mock_client(handler) as client:
        scraper = tiktok_scraper(client)
        assert await scraper.fetch_recent_posts("mike") == []
        with pytest.raises(PlatformFetchError):
            await scraper.fetch_recent_posts("mike", raise_on_error=True)


async def test_later_page_failure_keeps_partial_results():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params.get("cursor"):
            return httpx.Response(429)
        return httpx.Response(200, json={"data": {
            "videos": [tiktok_video("1", timedelta(days=1))], "cursor": "35", "hasMore": True,
        }})

    async with mock_client(handler) as client:
        posts = await tiktok_scraper(client).fetch_recent_posts("mike", raise_on_error=True)

    assert [p.post_id for p in posts] == ["1"]


async def test_malformed_body_raises_fetch_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>not json</html>")

    async with mock_client(handler) as client:
        with pytest.raises(PlatformFetchError):
            await tiktok_scraper(client).fetch_recent_posts("mike", raise_on_error=True)


async def test_tiktok_profile_picture():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/user/info"
        return httpx.Response(200, json={"data": {"user": {
            "avatarMedium": "https://cdn.example.com/medium.jpg",
            "avatarThumb": "https://cdn.example.com/thumb.jpg",
        }}})

    async with mock_client(handler) as client:
        profile = await tiktok_scraper(client).fetch_profile("@mike")

    assert profile.profile_picture == "https://cdn.example.com/medium.jpg"


# ============== YouTube ==============

def youtube_handler(calls: list):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        calls.append(path)
        if path == "/search":
            assert request.url.params["type"] == "channel"
            return httpx.Response(200, json={"items": [{"id": {"channelId": CHANNEL_ID}}]})
        if path == "/channels":
            return httpx.Response(200, json={"items": [
                {"contentDetails": {"relatedPlaylists": {"uploads": "UU123"}}}
            ]})
        if path == "/playlistItems":
            assert request.url.params["playlistId"] == "UU123"
            return httpx.Response(200, json={"items": [
                {"snippet": {"resourceId": {"videoId": "v2"}}},
                {"snippet": {"resourceId": {"videoId": "v1"}}},
            ]})
        if path == "/videos":
            return httpx.Response(200, json={"items": [
                {
                    "id": vid,
                    "snippet": {
                        "title": f"Video {vid}",
                        "publishedAt": (NOW - timedelta(days=1)).strftime("%Y-%m-%dT%H:%M:%SZ"),
                        "thumbnails": {"high": {"url": f"https://i.ytimg.com/{vid}.jpg"}},
                    },
                    "statistics": {"viewCount": "2500", "likeCount": "40", "commentCount": "4"},
                }
                for vid in request.url.params["id"].split(",")
            ]})
        return httpx.Response(404)
    return handler


async def test_youtube_resolves_handle_then_lists_uploads():
    calls = []
    async with mock_client(youtube_handler(calls)) as client:
        scraper = YouTubeScraper("test-key", client, clock=lambda: NOW, page_delay=0)
        posts = await scraper.fetch_recent_posts("@MikeClips")

    assert calls == ["/search", "/channels", "/playlistItems", "/videos"]
    assert [p.post_id for p in posts] == ["v2", "v1"]
    assert posts[0].post_url == "https://youtube.com/watch?v=v2"
    assert posts[0].views == 2500
    assert posts[0].shares == 0


async def test_youtube_channel_id_skips_search():
    calls = []
    async with mock_client(youtube_handler(calls)) as client:
        scraper = YouTubeScraper("test-key", client, clock=lambda: NOW, page_delay=0)
        await scraper.fetch_recent_posts(CHANNEL_ID)

    assert "/search" not in calls


async def test_youtube_post_metrics_keep_requested_url():
    calls = []
    url = "https://www.youtube.com/shorts/v9"
    async with mock_client(youtube_handler(calls)) as client:
        scraper = YouTubeScraper("test-key", client, clock=lambda: NOW)
        post = await scraper.fetch_post_metrics(url)

    assert post.post_id == "v9"
    assert post.post_url == url


# ============== Instagram ==============

async def test_instagram_caption_views_and_url():
    caption = "x" * 150

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["username_or_id_or_url"] == "mike.clips"
        return httpx.Response(200, json={"data": {"items": [
            {"id": "1", "code": "ABC", "caption": {"text": caption}, "play_count": 900,
             "like_count": 30, "comment_count": 2, "taken_at": epoch(NOW)},
            {"id": "2", "code": "DEF", "caption": None, "like_count": 10,
             "comment_count": 0, "taken_at": epoch(NOW)},
        ]}})

    async with mock_client(handler) as client:
        scraper = InstagramScraper("test-key", client, clock=lambda: NOW, page_delay=0)
        posts = await scraper.fetch_recent_posts("https://www.instagram.com/mike.clips/")

    assert posts[0].post_url == "https://instagram.com/p/ABC"
    assert posts[0].title == "x" * 100
    assert posts[0].views == 900
    assert posts[1].views == 0
    assert posts[1].title is None
    assert all(p.shares == 0 for p in posts)


async def test_old_pinned_post_does_not_hide_newer_posts():
    tokens = []

    def handler(request: httpx.Request) -> httpx.Response:
        tokens.append(request.url.params.get("pagination_token"))
        return httpx.Response(200, json={
            "pagination_token": "next",
            "data": {"items": [
                {"id": "0", "code": "PIN", "like_count": 1, "comment_count": 0,
                 "taken_at": epoch(NOW - timedelta(weeks=30))},
                {"id": "1", "code": "NEW1", "like_count": 1, "comment_count": 0,
                 "taken_at": epoch(NOW - timedelta(days=1))},
                {"id": "2", "code": "NEW2", "like_count": 1, "comment_count": 0,
                 "taken_at": epoch(NOW - timedelta(days=2))},
            ]},
        })

    async with mock_client(handler) as client:
        scraper = InstagramScraper("test-key", client, clock=lambda: NOW, page_delay=0)
        posts = await scraper.fetch_recent_posts("mike")

    assert [p.post_id for p in posts] == ["1", "2"]
    # The stale post still ends pagination after its page
    assert tokens == [None]


# ============== Registry ==============

def test_build_scrapers_requires_api_key():
    with pytest.raises(ScrapingNotConfiguredError, match="RAPIDAPI_KEY"):
        build_scrapers(Settings(rapidapi_key=""))


def test_build_scrapers_covers_every_platform():
    settings = Settings(rapidapi_key="k", scrape_max_pages=4, scrape_cutoff_weeks=2)
    scrapers = build_scrapers(settings)

    assert set(scrapers) == set(Platform)
    assert isinstance(scrapers[Platform.TIKTOK], TikTokScraper)
    youtube = get_scraper(Platform.YOUTUBE, settings)
    assert youtube.max_pages == 4
    assert youtube.cutoff == timedelta(weeks=2)
