"""Admin reporting and user management."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_, select

from whbjj.db.models import Category, Technique, User
from whbjj.memberships.service import add_months, count_active_members
from whbjj.pagination import clamp_page

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

USER_SORTS = {
    "newest": (User.created_at.desc(), User.id.desc()),
    "oldest": (User.created_at.asc(), User.id.asc()),
    "username": (User.username.asc(),),
}


async def _count(db: AsyncSession, model: Any) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar() or 0


async def registrations_by_month(db: AsyncSession, months: int = 12, now: datetime | None = None) -> list[dict[str, Any]]:
    """
    New users per calendar month for the latest ``months`` months, oldest first.

    Months without registrations are included with a zero count.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    since = add_months(month_start, -(months - 1))

    year_col = func.extract("year", User.created_at)
    month_col = func.extract("month", User.created_at)
    result = await db.execute(
        select(year_col.label("year"), month_col.label("month"), func.count(User.id))
        .where(User.created_at >= since)
        .group_by(year_col, month_col)
    )
    counts = {(int(year), int(month)): count for year, month, count in result.all()}

    series = []
    for offset in range(months):
        point = add_months(since, offset)
        series.append(
            {"month": f"{point.year:04d}-{point.month:02d}", "count": counts.get((point.year, point.month), 0)}
        )
    return series


async def dashboard_stats(db: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
    """Totals, recent users, popular techniques and monthly registrations."""
    recent_users = (
        await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()).limit(5))
    ).scalars().all()
    popular = (
        await db.execute(select(Technique).order_by(Technique.view_count.desc(), Technique.id.desc()).limit(5))
    ).scalars().all()

    return {
        "total_users": await _count(db, User),
        "active_members": await count_active_members(db, now),
        "total_techniques": await _count(db, Technique),
        "total_categories": await _count(db, Category),
        "recent_users": list(recent_users),
        "popular_techniques": list(popular),
        "registrations_by_month": await registrations_by_month(db, now=now),
    }


async def list_users(
    db: AsyncSession,
    search: str | None = None,
    role: str | None = None,
    sort: str = "newest",
    limit: int | None = None,
    offset: int | None = None,
) -> tuple[list[User], int]:
    """Users matching the search and role filters, with memberships loaded."""
    conditions = []
    if role:
        conditions.append(User.role == role)
    if search:
        term = search.strip()
        conditions.append(
            or_(
                User.username.icontains(term, autoescape=True),
                User.email.icontains(term, autoescape=True),
                User.first_name.icontains(term, autoescape=True),
                User.last_name.icontains(term, autoescape=True),
            )
        )
    limit, offset = clamp_page(limit, offset)

    total = (await db.execute(select(func.count(User.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(User).where(*conditions).order_by(*USER_SORTS.get(sort, USER_SORTS["newest"])).limit(limit).offset(offset)
    )
    return list(result.scalars().all()), total
