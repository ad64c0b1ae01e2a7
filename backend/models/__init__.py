"""Database models."""

from database import Base

from models.clipper import Clipper, Platform, PLATFORM_IDENTIFIER_FIELDS, derive_clipper_group
from models.post import Post, PAYABLE_VIEW_CAP
from models.metric_snapshot import MetricSnapshot

__all__ = [
    # Base
    "Base",
    # Roster
    "Clipper",
    "Platform",
    "PLATFORM_IDENTIFIER_FIELDS",
    "derive_clipper_group",
    # Content
    "Post",
    "PAYABLE_VIEW_CAP",
    "MetricSnapshot",
]
