"""Technique library router for all /api/techniques/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from whbjj.auth.dependencies import Identity, get_identity, require_membership
from whbjj.content.schemas import (
    BeltLevelResponse,
    CategoryResponse,
    Difficulty,
    FilterOptionsResponse,
    MemberSort,
    ProgressSummary,
    TechniqueDetailResponse,
    TechniqueListResponse,
    TechniqueResponse,
)
from whbjj.content.service import (
    TechniqueFilters,
    favorite_ids,
    filter_options,
    increment_view_count,
    list_techniques,
    related_techniques,
    require_technique,
)
from whbjj.database import get_session
from whbjj.engagement.schemas import (
    FavoriteToggleResponse,
    ProgressResponse,
    ProgressUpdateRequest,
    ProgressUpdateResponse,
)
from whbjj.engagement.service import list_favorites, record_view, toggle_favorite, update_progress
from whbjj.errors import Forbidden

router = APIRouter(prefix="/api/techniques", tags=["Techniques"])


@router.get("", response_model=TechniqueListResponse)
async def get_techniques(
    category: int | None = Query(None),
    belt: int | None = Query(None),
    difficulty: Difficulty | None = Query(None),
    position: str | None = Query(None),
    search: str | None = Query(None),
    featured: bool = Query(False),
    sort: MemberSort = Query("newest"),
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(require_membership),
    db: AsyncSession = Depends(get_session),
) -> TechniqueListResponse:
    """Published techniques, filtered and sorted, flagged with the caller's favorites."""
    filters = TechniqueFilters(
        search=search,
        category_id=category,
        belt_level_id=belt,
        difficulty=difficulty,
        position=position,
        featured=featured,
        published=True,
        sort=sort,
        limit=limit,
        offset=offset,
    )
    rows, total = await list_techniques(db, filters)
    favorites = await favorite_ids(db, identity.id, (t.id for t in rows))
    return TechniqueListResponse(
        count=total,
        rows=[TechniqueResponse.from_model(t, is_favorite=t.id in favorites) for t in rows],
    )


@router.get("/filter-options", response_model=FilterOptionsResponse)
async def get_filter_options(db: AsyncSession = Depends(get_session)) -> FilterOptionsResponse:
    """Public: categories, belt levels, positions and difficulty levels."""
    options = await filter_options(db)
    return FilterOptionsResponse(
        categories=[CategoryResponse.model_validate(c) for c in options["categories"]],
        belt_levels=[BeltLevelResponse.model_validate(b) for b in options["belt_levels"]],
        positions=options["positions"],
        difficulty_levels=options["difficulty_levels"],
    )


@router.get("/favorites", response_model=TechniqueListResponse)
async def get_favorites(
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> TechniqueListResponse:
    """Caller's favorited techniques, newest favorite first."""
    rows, total = await list_favorites(db, identity.id, limit, offset)
    return TechniqueListResponse(
        count=total,
        rows=[TechniqueResponse.from_model(f.technique, is_favorite=True) for f in rows],
    )


@router.get("/{technique_id}", response_model=TechniqueDetailResponse)
async def get_technique(
    technique_id: int,
    identity: Identity = Depends(require_membership),
    db: AsyncSession = Depends(get_session),
) -> TechniqueDetailResponse:
    """Technique detail. Counts a view and touches the caller's progress."""
    technique = await require_technique(db, technique_id)
    if not technique.is_published and not identity.is_admin:
        raise Forbidden()

    await increment_view_count(db, technique)
    progress = await record_view(db, identity.id, technique.id)
    is_favorite = technique.id in await favorite_ids(db, identity.id, [technique.id])
    await db.commit()

    response = TechniqueResponse.from_model(technique, is_favorite=is_favorite)
    return TechniqueDetailResponse(
        **response.model_dump(),
        user_progress=ProgressSummary.model_validate(progress),
    )


@router.get("/{technique_id}/related", response_model=list[TechniqueResponse])
async def get_related(
    technique_id: int,
    limit: int = Query(4, ge=1, le=20),
    identity: Identity = Depends(require_membership),
    db: AsyncSession = Depends(get_session),
) -> list[TechniqueResponse]:
    """Published techniques sharing category, belt level or position."""
    technique = await require_technique(db, technique_id)
    if not technique.is_published and not identity.is_admin:
        raise Forbidden()
    rows = await related_techniques(db, technique, limit)
    favorites = await favorite_ids(db, identity.id, (t.id for t in rows))
    return [TechniqueResponse.from_model(t, is_favorite=t.id in favorites) for t in rows]


@router.post("/{technique_id}/favorite", response_model=FavoriteToggleResponse)
async def post_favorite(
    technique_id: int,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> FavoriteToggleResponse:
    """Toggle the caller's favorite on a technique."""
    added = await toggle_favorite(db, identity.id, technique_id)
    await db.commit()
    return FavoriteToggleResponse(
        is_favorite=added,
        message="Added to favorites" if added else "Removed from favorites",
    )


@router.post("/{technique_id}/progress", response_model=ProgressUpdateResponse)
async def post_progress(
    technique_id: int,
    body: ProgressUpdateRequest,
    identity: Identity = Depends(require_membership),
    db: AsyncSession = Depends(get_session),
) -> ProgressUpdateResponse:
    """Update the caller's progress on a technique."""
    progress = await update_progress(
        db,
        identity.id,
        technique_id,
        status=body.status,
        progress_percentage=body.progress_percentage,
    )
    await db.commit()
    return ProgressUpdateResponse(
        message="Progress updated",
        user_progress=ProgressResponse.model_validate(progress),
    )
