"""MetricSnapshot model - stores per-post metrics over time for growth charts."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base
from services.timeutil import utcnow


class MetricSnapshot(Base):
    """Point-in-time observation of a post's counters.

    Append-only table. One row per post per refresh that touched it.
    """

    __tablename__ = "metric_snapshots"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    post_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    views: Mapped[int] = mapped_column(BigInteger, default=0)
    likes: Mapped[int] = mapped_column(Integer, default=0)
    comments: Mapped[int] = mapped_column(Integer, default=0)
    shares: Mapped[int] = mapped_column(Integer, default=0)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True
    )

    post: Mapped["Post"] = relationship("Post", back_populates="snapshots")

    def __repr__(self) -> str:
        return f"<MetricSnapshot {self.post_id} views={self.views}>"


from models.post import Post
