"""Authentication router for all /api/auth/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from whbjj.auth.dependencies import Identity, get_identity
from whbjj.auth.jwt import token_lifetime_seconds
from whbjj.auth.schemas import AuthResponse, LoginRequest, RegisterRequest, UserResponse, user_response
from whbjj.auth.service import authenticate_user, issue_token, register_user
from whbjj.database import get_session
from whbjj.memberships.service import has_active_membership

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_session),
) -> AuthResponse:
    """Create a member account and return a token."""
    user = await register_user(
        db,
        username=body.username,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    token, has_membership = await issue_token(db, user)
    await db.commit()
    return AuthResponse(
        token=token,
        expires_in=token_lifetime_seconds(),
        user=user_response(user, has_membership),
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),
) -> AuthResponse:
    """Login with email + password."""
    user = await authenticate_user(db, body.email, body.password)
    token, has_membership = await issue_token(db, user)
    await db.commit()
    logger.info("user_logged_in", user_id=user.id, has_membership=has_membership)
    return AuthResponse(
        token=token,
        expires_in=token_lifetime_seconds(),
        user=user_response(user, has_membership),
    )


@router.get("/me", response_model=UserResponse)
async def me(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Current user with a live membership check."""
    has_membership = await has_active_membership(db, identity.id)
    return user_response(identity.user, has_membership)
