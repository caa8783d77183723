"""
Authentication business logic.

Handles user creation, credential checks and token issuance.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError

from whbjj.auth.jwt import create_access_token
from whbjj.auth.password import (
    PasswordStrengthError,
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from whbjj.db.models import User
from whbjj.errors import DuplicateIdentity, InvalidCredentials, ValidationError
from whbjj.memberships.service import has_active_membership

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower().strip()))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    """Fetch a user by exact username."""
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def identity_taken(db: AsyncSession, username: str, email: str) -> bool:
    """True if any account already uses this username or email."""
    result = await db.execute(
        select(User.id)
        .where(or_(User.username == username, func.lower(User.email) == email.lower().strip()))
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


# ---------------------------------------------------------------------------
# Registration & login
# ---------------------------------------------------------------------------


async def register_user(
    db: AsyncSession,
    username: str,
    email: str,
    password: str,
    first_name: str | None = None,
    last_name: str | None = None,
    role: str = "member",
) -> User:
    """
    Register a new user.

    Raises:
        ValidationError: If the password is too weak.
        DuplicateIdentity: If the username or email is already in use, including
            when a concurrent registration wins the race to the unique index.
    """
    try:
        validate_password_strength(password)
    except PasswordStrengthError as e:
        raise ValidationError(str(e)) from e

    if await identity_taken(db, username, email):
        raise DuplicateIdentity()

    user = User(
        username=username,
        email=email.lower().strip(),
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateIdentity() from e

    logger.info("user_registered", user_id=user.id, username=username)
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User:
    """
    Authenticate a user with email + password.

    Raises:
        InvalidCredentials: Unknown email or wrong password (same message for both).
    """
    user = await get_user_by_email(db, email)
    if user is None:
        raise InvalidCredentials()

    if not verify_password(password, user.password_hash):
        logger.info("login_failed", user_id=user.id)
        raise InvalidCredentials()

    if check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        await db.flush()
        logger.info("password_rehashed", user_id=user.id)

    return user


async def issue_token(db: AsyncSession, user: User) -> tuple[str, bool]:
    """
    Create an access token with a membership snapshot.

    Returns:
        Tuple of (token, has_membership).
    """
    has_membership = await has_active_membership(db, user.id)
    return create_access_token(user.id, user.role, has_membership), has_membership


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
    """
    Replace a user's password after checking the current one.

    Raises:
        ValidationError: Wrong current password or weak new password.
    """
    if not verify_password(current_password, user.password_hash):
        msg = "Current password is incorrect"
        raise ValidationError(msg)
    try:
        validate_password_strength(new_password)
    except PasswordStrengthError as e:
        raise ValidationError(str(e)) from e

    user.password_hash = hash_password(new_password)
    await db.flush()
    logger.info("password_changed", user_id=user.id)
