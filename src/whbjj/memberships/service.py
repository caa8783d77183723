"""Membership validity and administration.

Expiry is lazy: nothing flips ``status`` when ``end_date`` passes. Validity is
derived at read time from ``status == "active" and end_date >= now``.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select

from whbjj.db.models import MEMBERSHIP_STATUSES, MEMBERSHIP_TYPES, Membership
from whbjj.errors import ValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

TERM_MONTHS = {"monthly": 1, "quarterly": 3, "annual": 12}


def as_utc(dt: datetime) -> datetime:
    """Normalise to an aware UTC datetime. Naive values are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def add_months(dt: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def is_membership_valid(membership: Membership | None, now: datetime | None = None) -> bool:
    """In-memory form of the validity predicate."""
    if membership is None or membership.status != "active":
        return False
    if now is None:
        now = datetime.now(timezone.utc)
    return as_utc(membership.end_date) >= as_utc(now)


def effective_status(membership: Membership, now: datetime | None = None) -> str:
    """Stored status with lazy expiry applied (an active row past its end reads as expired)."""
    if membership.status == "active" and not is_membership_valid(membership, now):
        return "expired"
    return membership.status


async def has_active_membership(db: AsyncSession, user_id: int, now: datetime | None = None) -> bool:
    """Live check against the store."""
    if now is None:
        now = datetime.now(timezone.utc)
    result = await db.execute(
        select(Membership.id)
        .where(Membership.user_id == user_id)
        .where(Membership.status == "active")
        .where(Membership.end_date >= now)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def count_active_members(db: AsyncSession, now: datetime | None = None) -> int:
    """Number of memberships valid right now."""
    if now is None:
        now = datetime.now(timezone.utc)
    result = await db.execute(
        select(func.count(Membership.id))
        .where(Membership.status == "active")
        .where(Membership.end_date >= now)
    )
    return result.scalar() or 0


async def get_membership(db: AsyncSession, user_id: int) -> Membership | None:
    """Fetch a user's membership row, if any."""
    result = await db.execute(select(Membership).where(Membership.user_id == user_id))
    return result.scalar_one_or_none()


async def upsert_membership(
    db: AsyncSession,
    user_id: int,
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    membership_type: str | None = None,
) -> tuple[Membership, bool]:
    """
    Create or update a user's membership.

    On create, absent fields default to an active monthly membership starting
    now and ending one term later. On update, only provided fields change.

    Returns:
        Tuple of (membership, created).
    """
    if status is not None and status not in MEMBERSHIP_STATUSES:
        msg = f"Invalid membership status: {status}"
        raise ValidationError(msg)
    if membership_type is not None and membership_type not in MEMBERSHIP_TYPES:
        msg = f"Invalid membership type: {membership_type}"
        raise ValidationError(msg)

    membership = await get_membership(db, user_id)
    created = membership is None

    if membership is None:
        kind = membership_type or "monthly"
        start = as_utc(start_date) if start_date else datetime.now(timezone.utc)
        end = as_utc(end_date) if end_date else add_months(start, TERM_MONTHS[kind])
        membership = Membership(
            user_id=user_id,
            status=status or "active",
            start_date=start,
            end_date=end,
            membership_type=kind,
        )
        db.add(membership)
    else:
        if status is not None:
            membership.status = status
        if start_date is not None:
            membership.start_date = as_utc(start_date)
        if end_date is not None:
            membership.end_date = as_utc(end_date)
        if membership_type is not None:
            membership.membership_type = membership_type

    if as_utc(membership.end_date) < as_utc(membership.start_date):
        msg = "Membership end date must not precede its start date"
        raise ValidationError(msg)

    await db.flush()
    logger.info(
        "membership_updated",
        user_id=user_id,
        created=created,
        status=membership.status,
        membership_type=membership.membership_type,
    )
    return membership, created
