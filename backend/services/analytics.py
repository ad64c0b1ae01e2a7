"""Derived analytics over stored posts.

Every function here is pure: it takes already-loaded Post rows (with their
Clipper attached) and returns pydantic result models. Aggregation is done in
two passes, keyed accumulators first and then a stable descending sort on
the requested metric.
"""

import math
import re
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from models.clipper import Clipper
from models.post import Post
from services.timeutil import as_utc, utcnow

UNKNOWN_GROUP = "Unknown"
UNTITLED = "Untitled"
CALENDAR_POSTS_PER_DAY = 10
TREND_WINDOW = timedelta(days=7)

HashtagSort = Literal["views", "posts", "avg_views", "trend"]
FrequencyGrouping = Literal["page", "clipper"]


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


# ============== Leaderboard ==============

class ClipperTotals(BaseModel):
    total_views: int = 0
    total_payable_views: int = 0
    total_likes: int = 0
    total_comments: int = 0
    total_shares: int = 0
    post_count: int = 0

    def add_post(self, post: Post) -> None:
        self.total_views += post.views or 0
        self.total_payable_views += post.payable_views
        self.total_likes += post.likes or 0
        self.total_comments += post.comments or 0
        self.total_shares += post.shares or 0
        self.post_count += 1

    def add_totals(self, other: "ClipperTotals") -> None:
        self.total_views += other.total_views
        self.total_payable_views += other.total_payable_views
        self.total_likes += other.total_likes
        self.total_comments += other.total_comments
        self.total_shares += other.total_shares
        self.post_count += other.post_count


class ClipperRow(ClipperTotals):
    """One leaderboard row per clipper page."""
    id: str
    name: str
    clipper_group: Optional[str] = None
    youtube_channel: Optional[str] = None
    tiktok_username: Optional[str] = None
    instagram_username: Optional[str] = None
    profile_picture: Optional[str] = None
    created_at: Optional[datetime] = None
    last_refreshed_at: Optional[datetime] = None


class GroupRow(ClipperTotals):
    """Pages sharing a clipper_group rolled up into one row."""
    clipper_group: str
    pages: list[ClipperRow] = Field(default_factory=list)


def clipper_row(clipper: Clipper, posts: Iterable[Post]) -> ClipperRow:
    row = ClipperRow(
        id=clipper.id,
        name=clipper.name,
        clipper_group=clipper.clipper_group,
        youtube_channel=clipper.youtube_channel,
        tiktok_username=clipper.tiktok_username,
        instagram_username=clipper.instagram_username,
        profile_picture=clipper.profile_picture,
        created_at=as_utc(clipper.created_at),
        last_refreshed_at=as_utc(clipper.last_refreshed_at),
    )
    for post in posts:
        row.add_post(post)
    return row


def clipper_leaderboard(
    clippers: Sequence[Clipper],
    posts_by_clipper: dict[str, list[Post]],
    grouped: bool = False,
) -> Union[list[ClipperRow], list[GroupRow]]:
    """Totals per page, or per clipper group when grouped, by views descending."""
    rows = [clipper_row(c, posts_by_clipper.get(c.id, [])) for c in clippers]

    if not grouped:
        return sorted(rows, key=lambda r: r.total_views, reverse=True)

    groups: dict[str, GroupRow] = {}
    for row in rows:
        name = row.clipper_group or UNKNOWN_GROUP
        group = groups.setdefault(name, GroupRow(clipper_group=name))
        group.pages.append(row)
        group.add_totals(row)

    return sorted(groups.values(), key=lambda g: g.total_views, reverse=True)


# ============== Hashtags ==============

HASHTAG_RE = re.compile(r"#[A-Za-z0-9_]+")

HASHTAG_SYNONYMS: dict[str, list[str]] = {
    # Crypto
    "crypto": ["crypto", "cryptocurrency", "cryptotok"],
    "memecoin": ["memecoin", "memecoins", "memecointok"],
    "solana": ["solana", "sol", "solanamemecoins"],
    "bitcoin": ["bitcoin", "btc"],
    "ethereum": ["ethereum", "eth"],
    "pumpfun": ["pumpfun", "pump", "pumpanddump"],
    # Pokemon / TCG
    "pokemon": ["pokemon", "pokemontok", "pokemontiktok", "pokemoncommunity"],
    "pokemoncards": ["pokemoncards", "pokemoncard", "pokemontcg"],
    "tcg": ["tcg", "tradingcards", "tradingcardgame"],
    # Looksmaxxing
    "looksmax": ["looksmax", "looksmaxxing", "looksmaxing", "bonesmashing"],
    "mewing": ["mewing", "mew", "mewingresults"],
    # Streaming
    "streamer": ["streamer", "streamers", "streaming", "twitchstreamer"],
    "vtuber": ["vtuber", "vtubers", "vtuberen"],
    # Generic
    "fyp": ["fyp", "foryou", "foryoupage", "viral"],
}

NORMALIZE_MAP: dict[str, str] = {
    variant: canonical
    for canonical, variants in HASHTAG_SYNONYMS.items()
    for variant in variants
}

# Too generic to say anything about a topic
EXCLUDED_HASHTAGS = frozenset({"fyp", "rasmr"})


def normalize_hashtag(tag: str) -> str:
    cleaned = tag.lower().removeprefix("#")
    return NORMALIZE_MAP.get(cleaned, cleaned)


def extract_hashtags(title: Optional[str]) -> list[str]:
    """Normalized, de-duplicated hashtags in order of first appearance."""
    if not title:
        return []
    tags = [normalize_hashtag(match) for match in HASHTAG_RE.findall(title)]
    return list(dict.fromkeys(tags))


class TopPost(BaseModel):
    title: str
    views: int
    post_url: str


class GroupStats(BaseModel):
    views: int = 0
    posts: int = 0


class HashtagTrend(BaseModel):
    current_period: int
    previous_period: int
    change: float


class HashtagStats(BaseModel):
    hashtag: str
    total_views: int
    total_likes: int
    total_comments: int
    total_shares: int
    post_count: int
    avg_views: int
    top_post: Optional[TopPost] = None
    by_group: dict[str, GroupStats]
    trend: Optional[HashtagTrend] = None


class HashtagReport(BaseModel):
    hashtags: list[HashtagStats]
    total: int


def _hashtag_trend(posts: list[Post], now: datetime) -> Optional[HashtagTrend]:
    week_ago = now - TREND_WINDOW
    two_weeks_ago = now - 2 * TREND_WINDOW
    current = previous = 0
    for post in posts:
        posted_at = as_utc(post.posted_at)
        if posted_at is None:
            continue
        if week_ago <= posted_at <= now:
            current += post.views or 0
        elif two_weeks_ago <= posted_at < week_ago:
            previous += post.views or 0

    if previous <= 0:
        return None
    change = (current - previous) / previous * 100
    return HashtagTrend(
        current_period=current,
        previous_period=previous,
        change=round_half_up(change, 1),
    )


def _hashtag_stats(tag: str, posts: list[Post], now: datetime) -> HashtagStats:
    top = None
    by_group: dict[str, GroupStats] = {}
    for post in posts:
        if top is None or (post.views or 0) > (top.views or 0):
            top = post
        group_name = (post.clipper.clipper_group if post.clipper else None) or UNKNOWN_GROUP
        group = by_group.setdefault(group_name, GroupStats())
        group.views += post.views or 0
        group.posts += 1

    total_views = sum(p.views or 0 for p in posts)
    return HashtagStats(
        hashtag=f"#{tag}",
        total_views=total_views,
        total_likes=sum(p.likes or 0 for p in posts),
        total_comments=sum(p.comments or 0 for p in posts),
        total_shares=sum(p.shares or 0 for p in posts),
        post_count=len(posts),
        avg_views=int(round_half_up(total_views / len(posts))),
        top_post=TopPost(title=top.title or "", views=top.views or 0, post_url=top.post_url),
        by_group=by_group,
        trend=_hashtag_trend(posts, now),
    )


HASHTAG_SORT_KEYS = {
    "views": lambda h: h.total_views,
    "posts": lambda h: h.post_count,
    "avg_views": lambda h: h.avg_views,
    # Hashtags without a trend sort after every hashtag with one
    "trend": lambda h: (h.trend is not None, h.trend.change if h.trend else 0.0),
}


def hashtag_analytics(
    posts: Iterable[Post],
    sort_by: HashtagSort = "views",
    limit: int = 50,
    now: Optional[datetime] = None,
) -> HashtagReport:
    now = as_utc(now) or utcnow()

    posts_by_tag: dict[str, list[Post]] = {}
    for post in posts:
        for tag in extract_hashtags(post.title):
            posts_by_tag.setdefault(tag, []).append(post)

    results = [
        _hashtag_stats(tag, tagged, now)
        for tag, tagged in posts_by_tag.items()
        if tag not in EXCLUDED_HASHTAGS
    ]
    sort_key = HASHTAG_SORT_KEYS.get(sort_by, HASHTAG_SORT_KEYS["views"])
    results.sort(key=sort_key, reverse=True)

    return HashtagReport(hashtags=results[:limit], total=len(results))


# ============== Posting frequency ==============

class FrequencyRow(BaseModel):
    clipper_id: Optional[str] = None
    clipper_name: Optional[str] = None
    clipper_group: Optional[str] = None
    profile_picture: Optional[str] = None
    platform: Optional[str] = None
    total_posts: int
    total_views: int
    avg_views: int
    posts_per_week: float
    first_post_date: Optional[datetime] = None
    last_post_date: Optional[datetime] = None
    days_since_first_post: int


class FrequencyReport(BaseModel):
    frequency: list[FrequencyRow]
    group_by: FrequencyGrouping


def _frequency_stats(posts: list[Post], now: datetime) -> dict:
    dates = [as_utc(p.posted_at) for p in posts if p.posted_at is not None]
    first = min(dates) if dates else None
    last = max(dates) if dates else None

    if first is not None:
        days = max(1, math.ceil((now - first) / timedelta(days=1)))
    else:
        days = 0
    weeks = max(1, days / 7)

    total_views = sum(p.views or 0 for p in posts)
    return {
        "total_posts": len(posts),
        "total_views": total_views,
        "avg_views": int(round_half_up(total_views / len(posts))),
        "posts_per_week": round_half_up(len(posts) / weeks, 1),
        "first_post_date": first,
        "last_post_date": last,
        "days_since_first_post": days,
    }


def posting_frequency(
    posts: Iterable[Post],
    group_by: FrequencyGrouping = "page",
    now: Optional[datetime] = None,
) -> FrequencyReport:
    """Posting cadence per page (clipper x platform) or per clipper group."""
    now = as_utc(now) or utcnow()

    buckets: dict[tuple, list[Post]] = {}
    meta: dict[tuple, dict] = {}
    for post in posts:
        clipper = post.clipper
        if group_by == "clipper":
            name = (clipper.clipper_group or clipper.name) if clipper else UNKNOWN_GROUP
            key = (name,)
            info = meta.setdefault(key, {"clipper_group": name, "profile_picture": None})
        else:
            key = (post.clipper_id, post.platform)
            info = meta.setdefault(key, {
                "clipper_id": post.clipper_id,
                "clipper_name": clipper.name if clipper else UNKNOWN_GROUP,
                "clipper_group": clipper.clipper_group if clipper else None,
                "profile_picture": None,
                "platform": post.platform,
            })
        # First clipper in the bucket with a picture wins
        if not info["profile_picture"] and clipper is not None and clipper.profile_picture:
            info["profile_picture"] = clipper.profile_picture
        buckets.setdefault(key, []).append(post)

    rows = [
        FrequencyRow(**meta[key], **_frequency_stats(bucket, now))
        for key, bucket in buckets.items()
    ]
    rows.sort(key=lambda r: r.total_views, reverse=True)
    return FrequencyReport(frequency=rows, group_by=group_by)


# ============== Calendar activity ==============

class ActivityPost(BaseModel):
    title: str
    views: int
    clipper_name: str
    platform: str


class ActivityBucket(BaseModel):
    date: str
    count: int = 0
    views: int = 0
    posts: list[ActivityPost] = Field(default_factory=list)


class CalendarReport(BaseModel):
    activity: dict[str, ActivityBucket]
    total_posts: int


def one_year_before(day: date) -> date:
    try:
        return day.replace(year=day.year - 1)
    except ValueError:
        # Feb 29 has no counterpart in the previous year
        return day.replace(year=day.year - 1, day=28)


def calendar_activity(
    posts: Iterable[Post],
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> CalendarReport:
    """Posts bucketed by UTC day, with every day in [start, end] present."""
    today = (as_utc(now) or utcnow()).date()
    end = end or max(today, start or today)
    start = start or min(one_year_before(today), end)

    buckets: dict[date, ActivityBucket] = {}
    total = 0
    for post in posts:
        posted_at = as_utc(post.posted_at)
        if posted_at is None:
            continue
        day = posted_at.date()
        if day < start or day > end:
            continue

        bucket = buckets.setdefault(day, ActivityBucket(date=day.isoformat()))
        bucket.count += 1
        bucket.views += post.views or 0
        bucket.posts.append(
            ActivityPost(
                title=post.title or UNTITLED,
                views=post.views or 0,
                clipper_name=post.clipper.name if post.clipper else UNKNOWN_GROUP,
                platform=post.platform,
            )
        )
        total += 1

    activity: dict[str, ActivityBucket] = {}
    day = start
    while day <= end:
        bucket = buckets.get(day) or ActivityBucket(date=day.isoformat())
        bucket.posts = sorted(bucket.posts, key=lambda p: p.views, reverse=True)[:CALENDAR_POSTS_PER_DAY]
        activity[bucket.date] = bucket
        day += timedelta(days=1)

    return CalendarReport(activity=activity, total_posts=total)
