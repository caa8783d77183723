"""Admin router for all /api/admin/* endpoints (admin role required)."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from whbjj.admin.schemas import (
    AdminUserListResponse,
    AdminUserUpdateRequest,
    AdminUserUpdateResponse,
    DashboardResponse,
    MonthlyCount,
    UploadResponse,
    UserSort,
)
from whbjj.admin.service import dashboard_stats, list_users
from whbjj.auth.dependencies import require_admin
from whbjj.auth.schemas import MessageResponse, user_response
from whbjj.auth.service import get_user_by_id
from whbjj.content import service as content
from whbjj.content.schemas import (
    AdminSort,
    BeltLevelCreateRequest,
    BeltLevelResponse,
    BeltLevelUpdateRequest,
    CategoryCreateRequest,
    CategoryResponse,
    CategoryUpdateRequest,
    TechniqueCreateRequest,
    TechniqueListResponse,
    TechniqueResponse,
    TechniqueUpdateRequest,
)
from whbjj.database import get_session
from whbjj.db.models import User
from whbjj.errors import NotFound, ValidationError
from whbjj.media.storage import MediaStorage, get_storage
from whbjj.memberships.schemas import MembershipResponse, MembershipUpdateRequest, MembershipUpdateResponse
from whbjj.memberships.service import upsert_membership
from whbjj.users.router import profile_response
from whbjj.users.service import update_profile

logger = structlog.get_logger()

router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


async def _require_user(db: AsyncSession, user_id: int) -> User:
    user = await get_user_by_id(db, user_id)
    if user is None:
        msg = "User not found"
        raise NotFound(msg)
    return user


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(db: AsyncSession = Depends(get_session)) -> DashboardResponse:
    """Site totals, recent users, popular techniques and monthly registrations."""
    stats = await dashboard_stats(db)
    return DashboardResponse(
        total_users=stats["total_users"],
        active_members=stats["active_members"],
        total_techniques=stats["total_techniques"],
        total_categories=stats["total_categories"],
        recent_users=[user_response(u) for u in stats["recent_users"]],
        popular_techniques=[TechniqueResponse.from_model(t) for t in stats["popular_techniques"]],
        registrations_by_month=[MonthlyCount(**point) for point in stats["registrations_by_month"]],
    )


# ---------------------------------------------------------------------------
# Users & memberships
# ---------------------------------------------------------------------------


@router.get("/users", response_model=AdminUserListResponse)
async def get_users(
    search: str | None = Query(None),
    role: str | None = Query(None),
    sort: UserSort = Query("newest"),
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
) -> AdminUserListResponse:
    """Users with their memberships."""
    rows, total = await list_users(db, search=search, role=role, sort=sort, limit=limit, offset=offset)
    return AdminUserListResponse(count=total, rows=[profile_response(u) for u in rows])


@router.put("/users/{user_id}", response_model=AdminUserUpdateResponse)
async def put_user(
    user_id: int,
    body: AdminUserUpdateRequest,
    db: AsyncSession = Depends(get_session),
) -> AdminUserUpdateResponse:
    """Update a user's profile fields or role."""
    user = await _require_user(db, user_id)
    user = await update_profile(
        db,
        user,
        username=body.username,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        role=body.role,
    )
    await db.commit()
    return AdminUserUpdateResponse(message="User updated successfully", user=profile_response(user))


@router.put("/users/{user_id}/membership", response_model=MembershipUpdateResponse)
async def put_membership(
    user_id: int,
    body: MembershipUpdateRequest,
    db: AsyncSession = Depends(get_session),
) -> MembershipUpdateResponse:
    """Create or update a user's membership."""
    await _require_user(db, user_id)
    membership, created = await upsert_membership(
        db,
        user_id,
        status=body.status,
        start_date=body.start_date,
        end_date=body.end_date,
        membership_type=body.membership_type,
    )
    await db.commit()
    return MembershipUpdateResponse(
        message="Membership created successfully" if created else "Membership updated successfully",
        created=created,
        membership=MembershipResponse.from_model(membership),
    )


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


@router.get("/categories", response_model=list[CategoryResponse])
async def get_categories(db: AsyncSession = Depends(get_session)) -> list[CategoryResponse]:
    return [CategoryResponse.model_validate(c) for c in await content.list_categories(db)]


@router.post("/categories", response_model=CategoryResponse, status_code=201)
async def post_category(
    body: CategoryCreateRequest,
    db: AsyncSession = Depends(get_session),
) -> CategoryResponse:
    category = await content.create_category(db, body.name.strip(), body.description)
    await db.commit()
    return CategoryResponse.model_validate(category)


@router.put("/categories/{category_id}", response_model=CategoryResponse)
async def put_category(
    category_id: int,
    body: CategoryUpdateRequest,
    db: AsyncSession = Depends(get_session),
) -> CategoryResponse:
    name = body.name.strip() if body.name is not None else None
    category = await content.update_category(db, category_id, name, body.description)
    await db.commit()
    return CategoryResponse.model_validate(category)


@router.delete("/categories/{category_id}", response_model=MessageResponse)
async def remove_category(category_id: int, db: AsyncSession = Depends(get_session)) -> MessageResponse:
    """Delete a category; 409 while techniques still use it."""
    await content.delete_category(db, category_id)
    await db.commit()
    return MessageResponse(message="Category deleted successfully")


# ---------------------------------------------------------------------------
# Belt levels
# ---------------------------------------------------------------------------


@router.get("/belt-levels", response_model=list[BeltLevelResponse])
async def get_belt_levels(db: AsyncSession = Depends(get_session)) -> list[BeltLevelResponse]:
    return [BeltLevelResponse.model_validate(b) for b in await content.list_belt_levels(db)]


@router.post("/belt-levels", response_model=BeltLevelResponse, status_code=201)
async def post_belt_level(
    body: BeltLevelCreateRequest,
    db: AsyncSession = Depends(get_session),
) -> BeltLevelResponse:
    belt = await content.create_belt_level(db, body.name.strip(), body.order_rank)
    await db.commit()
    return BeltLevelResponse.model_validate(belt)


@router.put("/belt-levels/{belt_level_id}", response_model=BeltLevelResponse)
async def put_belt_level(
    belt_level_id: int,
    body: BeltLevelUpdateRequest,
    db: AsyncSession = Depends(get_session),
) -> BeltLevelResponse:
    name = body.name.strip() if body.name is not None else None
    belt = await content.update_belt_level(db, belt_level_id, name, body.order_rank)
    await db.commit()
    return BeltLevelResponse.model_validate(belt)


@router.delete("/belt-levels/{belt_level_id}", response_model=MessageResponse)
async def remove_belt_level(belt_level_id: int, db: AsyncSession = Depends(get_session)) -> MessageResponse:
    """Delete a belt level; 409 while techniques still use it."""
    await content.delete_belt_level(db, belt_level_id)
    await db.commit()
    return MessageResponse(message="Belt level deleted successfully")


# ---------------------------------------------------------------------------
# Techniques
# ---------------------------------------------------------------------------


@router.get("/techniques", response_model=TechniqueListResponse)
async def get_techniques(
    search: str | None = Query(None),
    category: int | None = Query(None),
    belt: int | None = Query(None),
    published: bool | None = Query(None),
    sort: AdminSort = Query("newest"),
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
) -> TechniqueListResponse:
    """All techniques, published or not."""
    filters = content.TechniqueFilters(
        search=search,
        category_id=category,
        belt_level_id=belt,
        published=published,
        sort=sort,
        limit=limit,
        offset=offset,
    )
    rows, total = await content.list_techniques(db, filters)
    return TechniqueListResponse(count=total, rows=[TechniqueResponse.from_model(t) for t in rows])


@router.get("/techniques/{technique_id}", response_model=TechniqueResponse)
async def get_technique(technique_id: int, db: AsyncSession = Depends(get_session)) -> TechniqueResponse:
    return TechniqueResponse.from_model(await content.require_technique(db, technique_id))


@router.post("/techniques", response_model=TechniqueResponse, status_code=201)
async def post_technique(
    body: TechniqueCreateRequest,
    db: AsyncSession = Depends(get_session),
) -> TechniqueResponse:
    """Create a technique with its tags."""
    technique = await content.create_technique(db, body.model_dump(exclude={"tags"}), body.tags)
    await db.commit()
    return TechniqueResponse.from_model(technique)


@router.put("/techniques/{technique_id}", response_model=TechniqueResponse)
async def put_technique(
    technique_id: int,
    body: TechniqueUpdateRequest,
    db: AsyncSession = Depends(get_session),
) -> TechniqueResponse:
    """Update a technique. ``tags`` replaces the whole tag set when present."""
    technique = await content.require_technique(db, technique_id)
    fields = body.model_dump(exclude_unset=True, exclude={"tags"})
    technique = await content.update_technique(db, technique, fields, body.tags)
    await db.commit()
    return TechniqueResponse.from_model(technique)


@router.delete("/techniques/{technique_id}", response_model=MessageResponse)
async def remove_technique(technique_id: int, db: AsyncSession = Depends(get_session)) -> MessageResponse:
    technique = await content.require_technique(db, technique_id)
    await content.delete_technique(db, technique)
    await db.commit()
    return MessageResponse(message="Technique deleted successfully")


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------


async def _store_upload(storage: MediaStorage, kind: str, upload: UploadFile | None, label: str) -> UploadResponse:
    if upload is None or not upload.filename:
        msg = f"No {label} file uploaded"
        raise ValidationError(msg)
    data = await upload.read()
    key, url = await storage.save(kind, upload.filename, data)
    return UploadResponse(message=f"{label.capitalize()} uploaded successfully", url=url, filename=key)


@router.post("/upload/video", response_model=UploadResponse)
async def upload_video(
    video: UploadFile | None = File(None),
    storage: MediaStorage = Depends(get_storage),
) -> UploadResponse:
    return await _store_upload(storage, "videos", video, "video")


@router.post("/upload/thumbnail", response_model=UploadResponse)
async def upload_thumbnail(
    thumbnail: UploadFile | None = File(None),
    storage: MediaStorage = Depends(get_storage),
) -> UploadResponse:
    return await _store_upload(storage, "thumbnails", thumbnail, "thumbnail")
