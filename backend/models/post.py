"""Post model - one piece of content on one platform, identified by its URL.

View/like/comment/share counts hold the latest observation and are
overwritten on every refresh. The history lives in MetricSnapshot.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base
from services.timeutil import utcnow

# Views above this per post are not paid out
PAYABLE_VIEW_CAP = 1_000_000


class Post(Base):
    """Platform post with its latest engagement metrics."""

    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    clipper_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("clippers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    platform: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    # Natural identity key used for upserts
    post_url: Mapped[str] = mapped_column(String(500), nullable=False, unique=True)
    post_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    thumbnail: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Engagement metrics (latest observation)
    views: Mapped[int] = mapped_column(BigInteger, default=0)
    likes: Mapped[int] = mapped_column(Integer, default=0)
    comments: Mapped[int] = mapped_column(Integer, default=0)
    shares: Mapped[int] = mapped_column(Integer, default=0)

    posted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow
    )

    # Relationships
    clipper: Mapped["Clipper"] = relationship("Clipper", back_populates="posts")
    snapshots: Mapped[list["MetricSnapshot"]] = relationship(
        "MetricSnapshot",
        back_populates="post",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def payable_views(self) -> int:
        return min(self.views or 0, PAYABLE_VIEW_CAP)

    def __repr__(self) -> str:
        return f"<Post {self.id}: {self.platform} - {self.views} views>"


# Import at bottom to avoid circular imports
from models.clipper import Clipper
from models.metric_snapshot import MetricSnapshot
