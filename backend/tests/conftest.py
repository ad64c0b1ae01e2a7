"""Shared fixtures: a throwaway SQLite database, fake scrapers and an API client."""

import os
import tempfile
from datetime import datetime, timezone
from typing import Optional

# Settings are cached on first import, so configure the environment first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(
    tempfile.gettempdir(), "clipper_tracker_test.db"
)
os.environ["RAPIDAPI_KEY"] = ""
os.environ["DASHBOARD_PASSWORD"] = "test-password"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["DEBUG"] = "true"

import httpx
import pytest
import pytest_asyncio

from database import Base, create_engine, create_session_factory, get_db, get_session_factory
from models import Clipper, Platform
from services.scraper_base import BaseScraper, NormalizedPost, PlatformFetchError, ProfileInfo

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


class FakeScraper(BaseScraper):
    """Scraper returning canned posts, or failing on every call."""

    api_host = "fake.example.com"

    def __init__(
        self,
        platform: Platform,
        posts: Optional[list[NormalizedPost]] = None,
        error: Optional[Exception] = None,
        profile_picture: Optional[str] = None,
    ):
        super().__init__("test-key", page_delay=0)
        self.platform = platform
        self.posts = posts or []
        self.error = error
        self.profile_picture = profile_picture
        self.calls: list[str] = []

    async def _fetch_recent_posts(self, identifier: str) -> list[NormalizedPost]:
        self.calls.append(identifier)
        if self.error is not None:
            raise self.error
        return list(self.posts)

    async def _fetch_post_metrics(self, post_url: str) -> Optional[NormalizedPost]:
        return next((p for p in self.posts if p.post_url == post_url), None)

    async def fetch_profile(self, identifier: str) -> Optional[ProfileInfo]:
        if self.profile_picture is None:
            return None
        return ProfileInfo(profile_picture=self.profile_picture)


def make_normalized_post(post_id: str, views: int = 100, **overrides) -> NormalizedPost:
    fields = {
        "post_id": post_id,
        "post_url": f"https://tiktok.com/@clipper/video/{post_id}",
        "title": f"Clip {post_id}",
        "views": views,
        "likes": views // 10,
        "comments": 3,
        "shares": 1,
        "posted_at": NOW,
    }
    fields.update(overrides)
    return NormalizedPost(**fields)


def failing_scraper(platform: Platform) -> FakeScraper:
    return FakeScraper(platform, error=PlatformFetchError(f"{platform.value} returned 500"))


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_clipper(session_factory):
    async def _make(name: str = "Mike - TikTok", **fields) -> Clipper:
        fields.setdefault("clipper_group", name.split(" - ")[0])
        async with session_factory() as session:
            clipper = Clipper(name=name, **fields)
            session.add(clipper)
            await session.commit()
            return clipper
    return _make


@pytest_asyncio.fixture
async def client(session_factory):
    from main import app
    from middleware.rate_limit import limiter

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    limiter.enabled = False

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    limiter.enabled = True


@pytest.fixture
def auth_headers():
    from services.auth_service import AuthService

    return {"Authorization": f"Bearer {AuthService.create_session_token()}"}
