"""UTC datetime helpers shared by scrapers, ingestion and analytics."""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso_datetime(val: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 datetime string, returning None on failure."""
    if not val:
        return None
    try:
        # Handle YouTube ISO format (may have trailing Z)
        val = val.replace("Z", "+00:00")
        return as_utc(datetime.fromisoformat(val))
    except (ValueError, TypeError):
        return None


def parse_epoch_seconds(val) -> Optional[datetime]:
    """Parse a seconds epoch timestamp (TikTok create_time, Instagram taken_at)."""
    if not val:
        return None
    try:
        return datetime.fromtimestamp(int(val), tz=timezone.utc)
    except (ValueError, TypeError, OSError, OverflowError):
        return None
