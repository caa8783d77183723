"""ORM models for the technique library.

Column types are kept portable so the same models run on PostgreSQL in
production and SQLite in the test suite.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    false,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from whbjj.db.base import Base


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


ROLES = ("member", "admin")
MEMBERSHIP_STATUSES = ("active", "expired", "cancelled")
MEMBERSHIP_TYPES = ("monthly", "quarterly", "annual")
DIFFICULTY_LEVELS = ("beginner", "intermediate", "advanced")
PROGRESS_STATUSES = ("not_started", "in_progress", "completed")
TAG_NAME_MAX_LENGTH = 50


# ---------------------------------------------------------------------------
# Users & memberships
# ---------------------------------------------------------------------------


class User(Base):
    """A registered member or administrator."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    profile_picture: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="member", server_default="member")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    membership: Mapped[Membership | None] = relationship("Membership", uselist=False, lazy="selectin")


class Membership(Base):
    """Time-bounded entitlement gating technique content. One per user."""

    __tablename__ = "memberships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", server_default="active")
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    membership_type: Mapped[str] = mapped_column(String(16), nullable=False)
    payment_info: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


class Category(Base):
    """Technique category (e.g. Guard, Submissions)."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class BeltLevel(Base):
    """Belt rank; ``order_rank`` drives display ordering."""

    __tablename__ = "belt_levels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    order_rank: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Tag(Base):
    """Free-form label, unique by trimmed name."""

    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(TAG_NAME_MAX_LENGTH), unique=True, nullable=False)


technique_tags = Table(
    "technique_tags",
    Base.metadata,
    Column("technique_id", Integer, ForeignKey("techniques.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


# ---------------------------------------------------------------------------
# Techniques
# ---------------------------------------------------------------------------


class Technique(Base):
    """An instructional video with its metadata."""

    __tablename__ = "techniques"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_url: Mapped[str] = mapped_column(String(255), nullable=False)
    thumbnail_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=True, index=True
    )
    belt_level_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("belt_levels.id"), nullable=True, index=True
    )
    position: Mapped[str | None] = mapped_column(String(100), nullable=True)
    instructor: Mapped[str | None] = mapped_column(String(100), nullable=True)
    difficulty_level: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false(), index=True)
    is_published: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true(), index=True)
    view_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    category: Mapped[Category | None] = relationship("Category", lazy="selectin")
    belt_level: Mapped[BeltLevel | None] = relationship("BeltLevel", lazy="selectin")
    tags: Mapped[list[Tag]] = relationship("Tag", secondary=technique_tags, lazy="selectin", order_by=Tag.name)


# ---------------------------------------------------------------------------
# Engagement
# ---------------------------------------------------------------------------


class UserFavorite(Base):
    """Bookmark; presence of the row means favorited."""

    __tablename__ = "user_favorites"

    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    technique_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("techniques.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    technique: Mapped[Technique] = relationship("Technique", lazy="selectin")


class UserProgress(Base):
    """Completion tracking for one (user, technique) pair."""

    __tablename__ = "user_progress"
    __table_args__ = (UniqueConstraint("user_id", "technique_id", name="uq_user_progress_user_technique"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    technique_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("techniques.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="not_started")
    progress_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_viewed: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    technique: Mapped[Technique] = relationship("Technique", lazy="selectin")


class UserNote(Base):
    """Free-text note; at most one per (user, technique) pair."""

    __tablename__ = "user_notes"
    __table_args__ = (UniqueConstraint("user_id", "technique_id", name="uq_user_notes_user_technique"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    technique_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("techniques.id", ondelete="CASCADE"), nullable=False
    )
    note: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    technique: Mapped[Technique] = relationship("Technique", lazy="selectin")
