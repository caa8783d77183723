"""Insert-if-absent for rows guarded by a unique constraint."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

from sqlalchemy.exc import IntegrityError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

RowT = TypeVar("RowT")


async def insert_or_reload(
    db: AsyncSession,
    row: RowT,
    reload: Callable[[], Awaitable[RowT | None]],
) -> tuple[RowT, bool]:
    """
    Insert ``row`` inside a savepoint.

    When a concurrent request committed the same key first, the savepoint is
    rolled back (the caller's transaction survives) and the winner's row is
    loaded with ``reload``.

    Returns:
        Tuple of (row, inserted).
    """
    try:
        async with db.begin_nested():
            db.add(row)
    except IntegrityError:
        existing = await reload()
        if existing is None:
            raise
        return existing, False
    return row, True
