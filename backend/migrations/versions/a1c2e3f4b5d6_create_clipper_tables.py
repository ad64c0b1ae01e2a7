"""create clippers, posts and metric_snapshots

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2026-03-02

"""
from typing import Union

from alembic import op
import sqlalchemy as sa

revision: str = "a1c2e3f4b5d6"
down_revision: Union[str, None] = None
branch_labels: Union[str, None] = None
depends_on: Union[str, None] = None


def upgrade() -> None:
    op.create_table(
        "clippers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("clipper_group", sa.String(100), nullable=True),
        sa.Column("youtube_channel", sa.String(200), nullable=True),
        sa.Column("tiktok_username", sa.String(100), nullable=True),
        sa.Column("instagram_username", sa.String(100), nullable=True),
        sa.Column("profile_picture", sa.String(1000), nullable=True),
        sa.Column("last_refreshed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_clippers_clipper_group", "clippers", ["clipper_group"])

    op.create_table(
        "posts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "clipper_id",
            sa.String(36),
            sa.ForeignKey("clippers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("platform", sa.String(20), nullable=False),
        sa.Column("post_url", sa.String(500), nullable=False, unique=True),
        sa.Column("post_id", sa.String(255), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("thumbnail", sa.Text(), nullable=True),
        sa.Column("views", sa.BigInteger(), nullable=False),
        sa.Column("likes", sa.Integer(), nullable=False),
        sa.Column("comments", sa.Integer(), nullable=False),
        sa.Column("shares", sa.Integer(), nullable=False),
        sa.Column("posted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_posts_clipper_id", "posts", ["clipper_id"])
    op.create_index("ix_posts_platform", "posts", ["platform"])
    op.create_index("ix_posts_posted_at", "posts", ["posted_at"])

    op.create_table(
        "metric_snapshots",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "post_id",
            sa.String(36),
            sa.ForeignKey("posts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("views", sa.BigInteger(), nullable=False),
        sa.Column("likes", sa.Integer(), nullable=False),
        sa.Column("comments", sa.Integer(), nullable=False),
        sa.Column("shares", sa.Integer(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_metric_snapshots_post_id", "metric_snapshots", ["post_id"])
    op.create_index("ix_metric_snapshots_recorded_at", "metric_snapshots", ["recorded_at"])


def downgrade() -> None:
    op.drop_index("ix_metric_snapshots_recorded_at", table_name="metric_snapshots")
    op.drop_index("ix_metric_snapshots_post_id", table_name="metric_snapshots")
    op.drop_table("metric_snapshots")

    op.drop_index("ix_posts_posted_at", table_name="posts")
    op.drop_index("ix_posts_platform", table_name="posts")
    op.drop_index("ix_posts_clipper_id", table_name="posts")
    op.drop_table("posts")

    op.drop_index("ix_clippers_clipper_group", table_name="clippers")
    op.drop_table("clippers")
