"""Clipper model - a tracked creator account spanning one or more platform pages."""

import enum
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base
from services.timeutil import utcnow


class Platform(str, enum.Enum):
    """Platforms a clipper can be scraped on."""
    YOUTUBE = "youtube"
    TIKTOK = "tiktok"
    INSTAGRAM = "instagram"


# Clipper column holding the identifier for each platform
PLATFORM_IDENTIFIER_FIELDS: dict[Platform, str] = {
    Platform.YOUTUBE: "youtube_channel",
    Platform.TIKTOK: "tiktok_username",
    Platform.INSTAGRAM: "instagram_username",
}


def derive_clipper_group(name: str) -> str:
    """Derive the group from the "<Group> - <Page>" naming convention."""
    return name.split(" - ")[0].strip() or name


class Clipper(Base):
    """A tracked content account.

    Several clippers can share a clipper_group, e.g. "Mike - TikTok 2" and
    "Mike - Shorts" both roll up under "Mike".
    """

    __tablename__ = "clippers"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    clipper_group: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    # Platform identifiers (handle, profile URL, or YouTube channel ID)
    youtube_channel: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    tiktok_username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    instagram_username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    profile_picture: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    # Cache control for the refresh job
    last_refreshed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now()
    )

    posts: Mapped[list["Post"]] = relationship(
        "Post",
        back_populates="clipper",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def identifier_for(self, platform: Platform) -> Optional[str]:
        """Return the configured identifier for a platform, or None if blank."""
        value = getattr(self, PLATFORM_IDENTIFIER_FIELDS[platform])
        if value and value.strip():
            return value.strip()
        return None

    @property
    def platform_identifiers(self) -> list[tuple[Platform, str]]:
        """(platform, identifier) pairs for every configured platform."""
        pairs = []
        for platform in Platform:
            identifier = self.identifier_for(platform)
            if identifier:
                pairs.append((platform, identifier))
        return pairs

    def __repr__(self) -> str:
        return f"<Clipper {self.name}>"


# Import at bottom to avoid circular imports
from models.post import Post
