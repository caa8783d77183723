"""FastAPI authentication dependencies (the access gate).

Three stages, composed per route:

1. ``get_identity`` validates the bearer token and resolves the user.
2. ``require_admin`` enforces the admin role.
3. ``require_membership`` lets admins through, trusts a true membership flag in
   the token, and otherwise re-checks membership live so a stale token issued
   before activation still gets in.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from whbjj.auth.jwt import verify_token
from whbjj.auth.service import get_user_by_id
from whbjj.database import get_session
from whbjj.db.models import User
from whbjj.errors import Forbidden, InvalidToken, MembershipRequired, Unauthenticated
from whbjj.memberships.service import has_active_membership

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller attached to a request."""

    user: User
    role: str
    has_membership: bool

    @property
    def id(self) -> int:
        return self.user.id

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


async def get_identity(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> Identity:
    """Extract and verify the bearer token, return the caller's identity."""
    if credentials is None:
        raise Unauthenticated()
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise InvalidToken(str(e) or None) from e

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidToken() from e

    user = await get_user_by_id(db, user_id)
    if user is None:
        msg = "Invalid token"
        raise InvalidToken(msg)
    return Identity(user=user, role=user.role, has_membership=bool(payload.get("has_membership")))


async def get_current_user(identity: Identity = Depends(get_identity)) -> User:
    """Shortcut for routes that only need the User row."""
    return identity.user


async def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    """Reject non-admin callers."""
    if not identity.is_admin:
        msg = "Requires admin privileges"
        raise Forbidden(msg)
    return identity


async def require_membership(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> Identity:
    """Reject non-admin callers without a valid membership."""
    if identity.is_admin or identity.has_membership:
        return identity
    if await has_active_membership(db, identity.id):
        return replace(identity, has_membership=True)
    raise MembershipRequired()
