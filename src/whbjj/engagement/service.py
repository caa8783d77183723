"""Per-user engagement: favorites, progress and notes."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, func, select

from whbjj.db.inserts import insert_or_reload
from whbjj.db.models import PROGRESS_STATUSES, Technique, UserFavorite, UserNote, UserProgress, utcnow
from whbjj.errors import NotFound, ValidationError
from whbjj.memberships.service import as_utc
from whbjj.pagination import clamp_page

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def ensure_technique_exists(db: AsyncSession, technique_id: int) -> None:
    """Raise NotFound for an unknown technique id."""
    found = (await db.execute(select(Technique.id).where(Technique.id == technique_id))).scalar_one_or_none()
    if found is None:
        msg = "Technique not found"
        raise NotFound(msg)


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------


async def toggle_favorite(db: AsyncSession, user_id: int, technique_id: int) -> bool:
    """
    Flip the favorite state of a technique for a user.

    Returns:
        True if the technique is now a favorite, False if it was removed.
    """
    await ensure_technique_exists(db, technique_id)

    removed = await db.execute(
        delete(UserFavorite).where(UserFavorite.user_id == user_id, UserFavorite.technique_id == technique_id)
    )
    if removed.rowcount:
        logger.info("favorite_removed", user_id=user_id, technique_id=technique_id)
        return False

    _, inserted = await insert_or_reload(
        db,
        UserFavorite(user_id=user_id, technique_id=technique_id),
        lambda: db.get(UserFavorite, (user_id, technique_id)),
    )
    # A concurrent toggle that inserted first leaves the same end state.
    logger.info("favorite_added", user_id=user_id, technique_id=technique_id, raced=not inserted)
    return True


async def list_favorites(
    db: AsyncSession, user_id: int, limit: int | None = None, offset: int | None = None
) -> tuple[list[UserFavorite], int]:
    """User's favorites, newest first."""
    limit, offset = clamp_page(limit, offset)
    total = (
        await db.execute(select(func.count()).select_from(UserFavorite).where(UserFavorite.user_id == user_id))
    ).scalar() or 0
    result = await db.execute(
        select(UserFavorite)
        .where(UserFavorite.user_id == user_id)
        .order_by(UserFavorite.created_at.desc(), UserFavorite.technique_id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


async def _get_progress(db: AsyncSession, user_id: int, technique_id: int) -> UserProgress | None:
    result = await db.execute(
        select(UserProgress).where(UserProgress.user_id == user_id, UserProgress.technique_id == technique_id)
    )
    return result.scalar_one_or_none()


async def _progress_row(db: AsyncSession, user_id: int, technique_id: int) -> UserProgress:
    """Existing progress row for the pair, or a new not_started/0 row."""
    progress = await _get_progress(db, user_id, technique_id)
    if progress is not None:
        return progress
    progress, _ = await insert_or_reload(
        db,
        UserProgress(user_id=user_id, technique_id=technique_id, status="not_started", progress_percentage=0),
        lambda: _get_progress(db, user_id, technique_id),
    )
    return progress


def _touch(progress: UserProgress, now: datetime) -> None:
    """Move last_viewed forward to ``now``; never backwards."""
    previous = as_utc(progress.last_viewed) if progress.last_viewed is not None else None
    if previous is None or now > previous:
        progress.last_viewed = now


async def update_progress(
    db: AsyncSession,
    user_id: int,
    technique_id: int,
    status: str | None = None,
    progress_percentage: int | None = None,
    now: datetime | None = None,
) -> UserProgress:
    """
    Find-or-create the progress row and apply the provided fields.

    New rows default to ``not_started``/0; on existing rows absent fields keep
    their stored values. ``last_viewed`` is refreshed on every call.
    """
    if status is not None and status not in PROGRESS_STATUSES:
        msg = f"Invalid status: {status}"
        raise ValidationError(msg)
    if progress_percentage is not None and not 0 <= progress_percentage <= 100:
        msg = "progress_percentage must be between 0 and 100"
        raise ValidationError(msg)
    await ensure_technique_exists(db, technique_id)

    now = now or utcnow()
    progress = await _progress_row(db, user_id, technique_id)
    if status is not None:
        progress.status = status
    if progress_percentage is not None:
        progress.progress_percentage = progress_percentage
    _touch(progress, now)

    await db.flush()
    logger.info(
        "progress_updated",
        user_id=user_id,
        technique_id=technique_id,
        status=progress.status,
        progress_percentage=progress.progress_percentage,
    )
    return progress


async def record_view(db: AsyncSession, user_id: int, technique_id: int, now: datetime | None = None) -> UserProgress:
    """Touch ``last_viewed`` for the pair, creating a not_started row if needed."""
    now = now or utcnow()
    progress = await _progress_row(db, user_id, technique_id)
    _touch(progress, now)
    await db.flush()
    return progress


async def list_progress(
    db: AsyncSession,
    user_id: int,
    status: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
) -> tuple[list[UserProgress], int]:
    """User's progress rows, most recently viewed first."""
    limit, offset = clamp_page(limit, offset)
    conditions = [UserProgress.user_id == user_id]
    if status:
        conditions.append(UserProgress.status == status)

    total = (await db.execute(select(func.count(UserProgress.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(UserProgress)
        .where(*conditions)
        .order_by(UserProgress.last_viewed.desc(), UserProgress.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


async def upsert_note(db: AsyncSession, user_id: int, technique_id: int, text: str) -> tuple[UserNote, bool]:
    """
    Create or replace the user's note on a technique.

    Returns:
        Tuple of (note, created).
    """
    await ensure_technique_exists(db, technique_id)

    async def load() -> UserNote | None:
        result = await db.execute(
            select(UserNote).where(UserNote.user_id == user_id, UserNote.technique_id == technique_id)
        )
        return result.scalar_one_or_none()

    note = await load()
    created = False
    if note is None:
        note, created = await insert_or_reload(db, UserNote(user_id=user_id, technique_id=technique_id, note=text), load)
    if not created:
        note.note = text
        note.updated_at = utcnow()
    await db.flush()
    return note, created


async def delete_note(db: AsyncSession, user_id: int, technique_id: int) -> None:
    """Delete the user's note on a technique; NotFound when there is none."""
    result = await db.execute(
        delete(UserNote).where(UserNote.user_id == user_id, UserNote.technique_id == technique_id)
    )
    if result.rowcount == 0:
        msg = "Note not found"
        raise NotFound(msg)


async def list_notes(
    db: AsyncSession, user_id: int, limit: int | None = None, offset: int | None = None
) -> tuple[list[UserNote], int]:
    """User's notes, most recently updated first."""
    limit, offset = clamp_page(limit, offset)
    total = (await db.execute(select(func.count(UserNote.id)).where(UserNote.user_id == user_id))).scalar() or 0
    result = await db.execute(
        select(UserNote)
        .where(UserNote.user_id == user_id)
        .order_by(UserNote.updated_at.desc(), UserNote.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total
