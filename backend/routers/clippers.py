"""Clipper API routes - roster CRUD and the views leaderboard."""

import logging
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from middleware.auth import require_auth
from models.clipper import Clipper, derive_clipper_group
from routers.filters import get_date_range
from services.analytics import (
    ClipperTotals,
    clipper_leaderboard,
    clipper_row,
)
from services.post_queries import (
    ClipperNotFoundError,
    DateRange,
    get_clipper,
    get_clipper_detail,
    load_clippers,
    load_posts,
)
from services.timeutil import as_utc

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/clippers",
    tags=["clippers"],
    dependencies=[Depends(require_auth)],
)


# ============== Schemas ==============

def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class ClipperCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    clipper_group: Optional[str] = Field(
        None, max_length=100, validation_alias=AliasChoices("clipper_group", "clipperGroup")
    )
    youtube_channel: Optional[str] = Field(
        None, max_length=200, validation_alias=AliasChoices("youtube_channel", "youtubeChannel")
    )
    tiktok_username: Optional[str] = Field(
        None, max_length=100, validation_alias=AliasChoices("tiktok_username", "tiktokUsername")
    )
    instagram_username: Optional[str] = Field(
        None, max_length=100, validation_alias=AliasChoices("instagram_username", "instagramUsername")
    )

    @field_validator("clipper_group", "youtube_channel", "tiktok_username", "instagram_username")
    @classmethod
    def blank_as_none(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class ClipperUpdate(ClipperCreate):
    """Partial update. Only fields present in the body are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)


class ClipperResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    clipper_group: Optional[str] = None
    youtube_channel: Optional[str] = None
    tiktok_username: Optional[str] = None
    instagram_username: Optional[str] = None
    profile_picture: Optional[str] = None
    last_refreshed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class SnapshotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    views: int
    likes: int
    comments: int
    shares: int
    recorded_at: datetime


class PostResponse(BaseModel):
    id: str
    platform: str
    post_url: str
    post_id: str
    title: Optional[str] = None
    thumbnail: Optional[str] = None
    views: int
    payable_views: int
    likes: int
    comments: int
    shares: int
    posted_at: Optional[datetime] = None
    snapshots: list[SnapshotResponse]


class ClipperDetailResponse(ClipperResponse, ClipperTotals):
    posts: list[PostResponse]


class MessageResponse(BaseModel):
    message: str


# ============== Endpoints ==============

@router.get("", response_model=None)
async def list_clippers(
    db: Annotated[AsyncSession, Depends(get_db)],
    date_range: Annotated[DateRange, Depends(get_date_range)],
    grouped: bool = Query(False, description="Consolidate pages by clipper group"),
    clipper_group: Optional[str] = Query(None, alias="clipperGroup"),
):
    """Every clipper with post totals in the date range, by views descending."""
    clippers = await load_clippers(db, clipper_group=clipper_group)
    posts = await load_posts(db, date_range=date_range, clipper_group=clipper_group)

    posts_by_clipper: dict[str, list] = {}
    for post in posts:
        posts_by_clipper.setdefault(post.clipper_id, []).append(post)

    return clipper_leaderboard(clippers, posts_by_clipper, grouped=grouped)


@router.post("", response_model=ClipperResponse, status_code=status.HTTP_201_CREATED)
async def create_clipper(
    data: ClipperCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Add a clipper. The group defaults to the part of the name before " - "."""
    clipper = Clipper(
        name=data.name,
        clipper_group=data.clipper_group or derive_clipper_group(data.name),
        youtube_channel=data.youtube_channel,
        tiktok_username=data.tiktok_username,
        instagram_username=data.instagram_username,
    )
    db.add(clipper)
    await db.commit()
    await db.refresh(clipper)

    logger.info(f"Created clipper {clipper.name} ({clipper.id})")
    return clipper


@router.get("/{clipper_id}", response_model=ClipperDetailResponse)
async def get_clipper_details(
    clipper_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    date_range: Annotated[DateRange, Depends(get_date_range)],
):
    """A clipper with its posts, payable views and recent snapshots."""
    try:
        detail = await get_clipper_detail(db, clipper_id, date_range)
    except ClipperNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Clipper not found",
        )

    totals = clipper_row(detail.clipper, detail.posts)
    posts = [
        PostResponse(
            id=post.id,
            platform=post.platform,
            post_url=post.post_url,
            post_id=post.post_id,
            title=post.title,
            thumbnail=post.thumbnail,
            views=post.views,
            payable_views=post.payable_views,
            likes=post.likes,
            comments=post.comments,
            shares=post.shares,
            posted_at=as_utc(post.posted_at),
            snapshots=[
                SnapshotResponse.model_validate(s).model_copy(
                    update={"recorded_at": as_utc(s.recorded_at)}
                )
                for s in detail.snapshots.get(post.id, [])
            ],
        )
        for post in detail.posts
    ]
    return ClipperDetailResponse(**totals.model_dump(), posts=posts)


@router.put("/{clipper_id}", response_model=ClipperResponse)
async def update_clipper(
    clipper_id: str,
    data: ClipperUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Update only the fields sent. Blank identifiers clear the platform."""
    try:
        clipper = await get_clipper(db, clipper_id)
    except ClipperNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Clipper not found",
        )

    for field, value in data.model_dump(exclude_unset=True).items():
        if field == "name" and value is None:
            continue
        setattr(clipper, field, value)

    await db.commit()
    await db.refresh(clipper)
    return clipper


@router.delete("/{clipper_id}", response_model=MessageResponse)
async def delete_clipper(
    clipper_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Delete a clipper with all of its posts and snapshots."""
    try:
        clipper = await get_clipper(db, clipper_id)
    except ClipperNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Clipper not found",
        )

    await db.delete(clipper)
    await db.commit()

    logger.info(f"Deleted clipper {clipper_id}")
    return MessageResponse(message="Clipper deleted")
