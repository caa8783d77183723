"""User profile business logic."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from whbjj.db.models import ROLES, User
from whbjj.errors import ValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def update_profile(
    db: AsyncSession,
    user: User,
    username: str | None = None,
    email: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    profile_picture: str | None = None,
    role: str | None = None,
) -> User:
    """
    Update user profile fields. ``None`` leaves a field unchanged.

    Raises:
        ValidationError: If the new username or email belongs to another
            account, or the role is unknown.
    """
    if username is not None and username != user.username:
        result = await db.execute(select(User.id).where(User.username == username).where(User.id != user.id))
        if result.scalar_one_or_none() is not None:
            msg = "Username already exists"
            raise ValidationError(msg)
        user.username = username

    if email is not None:
        normalized = email.lower().strip()
        if normalized != user.email:
            result = await db.execute(
                select(User.id).where(func.lower(User.email) == normalized).where(User.id != user.id)
            )
            if result.scalar_one_or_none() is not None:
                msg = "Email already exists"
                raise ValidationError(msg)
            user.email = normalized

    if role is not None:
        if role not in ROLES:
            msg = f"Invalid role: {role}"
            raise ValidationError(msg)
        if role != user.role:
            logger.info("user_role_changed", user_id=user.id, old_role=user.role, new_role=role)
        user.role = role

    if first_name is not None:
        user.first_name = first_name
    if last_name is not None:
        user.last_name = last_name
    if profile_picture is not None:
        user.profile_picture = profile_picture

    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        msg = "Username or email already exists"
        raise ValidationError(msg) from e
    return user
