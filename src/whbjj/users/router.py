"""User router for all /api/users/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from whbjj.auth.dependencies import Identity, get_identity
from whbjj.auth.schemas import (
    ChangePasswordRequest,
    MessageResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    ProfileUpdateResponse,
    user_response,
)
from whbjj.auth.service import change_password
from whbjj.content.schemas import TechniqueListResponse, TechniqueResponse
from whbjj.content.service import favorite_ids
from whbjj.database import get_session
from whbjj.db.models import User
from whbjj.engagement.schemas import (
    NoteListResponse,
    NoteRequest,
    NoteResponse,
    NoteUpsertResponse,
    NoteWithTechnique,
    ProgressListResponse,
    ProgressResponse,
    ProgressStatus,
    ProgressWithTechnique,
)
from whbjj.engagement.service import delete_note, list_favorites, list_notes, list_progress, upsert_note
from whbjj.memberships.schemas import MembershipResponse
from whbjj.memberships.service import is_membership_valid
from whbjj.users.service import update_profile

router = APIRouter(prefix="/api/users", tags=["Users"])


def profile_response(user: User) -> ProfileResponse:
    """Own profile with the membership row and the live membership flag."""
    membership = user.membership
    return ProfileResponse(
        **user_response(user, is_membership_valid(membership)).model_dump(),
        membership=MembershipResponse.from_model(membership) if membership else None,
    )


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(identity: Identity = Depends(get_identity)) -> ProfileResponse:
    """Get own profile."""
    return profile_response(identity.user)


@router.put("/profile", response_model=ProfileUpdateResponse)
async def put_profile(
    body: ProfileUpdateRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> ProfileUpdateResponse:
    """Update own profile."""
    user = await update_profile(
        db,
        identity.user,
        username=body.username,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        profile_picture=body.profile_picture,
    )
    await db.commit()
    return ProfileUpdateResponse(
        message="Profile updated successfully",
        user=user_response(user, is_membership_valid(user.membership)),
    )


@router.put("/password", response_model=MessageResponse)
async def put_password(
    body: ChangePasswordRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Change own password."""
    await change_password(db, identity.user, body.current_password, body.new_password)
    await db.commit()
    return MessageResponse(message="Password updated successfully")


# ---------------------------------------------------------------------------
# Engagement
# ---------------------------------------------------------------------------


@router.get("/progress", response_model=ProgressListResponse)
async def get_progress(
    status: ProgressStatus | None = Query(None),
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> ProgressListResponse:
    """Own progress rows, most recently viewed first."""
    rows, total = await list_progress(db, identity.id, status, limit, offset)
    favorites = await favorite_ids(db, identity.id, (p.technique_id for p in rows))
    return ProgressListResponse(
        count=total,
        rows=[
            ProgressWithTechnique(
                **ProgressResponse.model_validate(p).model_dump(),
                technique=TechniqueResponse.from_model(p.technique, is_favorite=p.technique_id in favorites),
            )
            for p in rows
        ],
    )


@router.get("/favorites", response_model=TechniqueListResponse)
async def get_favorites(
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> TechniqueListResponse:
    """Own favorites, newest first."""
    rows, total = await list_favorites(db, identity.id, limit, offset)
    return TechniqueListResponse(
        count=total,
        rows=[TechniqueResponse.from_model(f.technique, is_favorite=True) for f in rows],
    )


@router.get("/notes", response_model=NoteListResponse)
async def get_notes(
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> NoteListResponse:
    """Own notes, most recently updated first."""
    rows, total = await list_notes(db, identity.id, limit, offset)
    favorites = await favorite_ids(db, identity.id, (n.technique_id for n in rows))
    return NoteListResponse(
        count=total,
        rows=[
            NoteWithTechnique(
                **NoteResponse.model_validate(n).model_dump(),
                technique=TechniqueResponse.from_model(n.technique, is_favorite=n.technique_id in favorites),
            )
            for n in rows
        ],
    )


@router.post("/notes/{technique_id}", response_model=NoteUpsertResponse)
async def post_note(
    technique_id: int,
    body: NoteRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> NoteUpsertResponse:
    """Create or replace own note on a technique."""
    note, created = await upsert_note(db, identity.id, technique_id, body.note)
    await db.commit()
    return NoteUpsertResponse(
        message="Note created successfully" if created else "Note updated successfully",
        note=NoteResponse.model_validate(note),
    )


@router.delete("/notes/{technique_id}", response_model=MessageResponse)
async def remove_note(
    technique_id: int,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Delete own note on a technique."""
    await delete_note(db, identity.id, technique_id)
    await db.commit()
    return MessageResponse(message="Note deleted successfully")
