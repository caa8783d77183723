"""Request/response schemas for techniques and reference data."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field, StringConstraints

from whbjj.db.models import TAG_NAME_MAX_LENGTH, Technique

Difficulty = Literal["beginner", "intermediate", "advanced"]
MemberSort = Literal["newest", "oldest", "title_asc", "title_desc", "popular"]
AdminSort = Literal["newest", "oldest", "title", "popular"]
TagName = Annotated[str, StringConstraints(strip_whitespace=True, max_length=TAG_NAME_MAX_LENGTH)]


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


class CategoryResponse(BaseModel):
    id: int
    name: str
    description: str | None = None

    model_config = {"from_attributes": True}


class BeltLevelResponse(BaseModel):
    id: int
    name: str
    order_rank: int

    model_config = {"from_attributes": True}


class CategoryCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None


class CategoryUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None


class BeltLevelCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    order_rank: int = Field(..., ge=0)


class BeltLevelUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=50)
    order_rank: int | None = Field(None, ge=0)


class FilterOptionsResponse(BaseModel):
    """Values offered by the technique filters."""

    categories: list[CategoryResponse]
    belt_levels: list[BeltLevelResponse]
    positions: list[str]
    difficulty_levels: list[str]


# ---------------------------------------------------------------------------
# Techniques
# ---------------------------------------------------------------------------


class ProgressSummary(BaseModel):
    status: str
    progress_percentage: int
    last_viewed: datetime | None = None

    model_config = {"from_attributes": True}


class TechniqueResponse(BaseModel):
    """Technique with its reference data flattened in."""

    id: int
    title: str
    description: str | None = None
    video_url: str
    thumbnail_url: str | None = None
    category: CategoryResponse | None = None
    belt_level: BeltLevelResponse | None = None
    position: str | None = None
    instructor: str | None = None
    difficulty_level: str
    is_featured: bool
    is_published: bool
    view_count: int
    tags: list[str] = []
    is_favorite: bool = False
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, technique: Technique, is_favorite: bool = False) -> TechniqueResponse:
        return cls(
            id=technique.id,
            title=technique.title,
            description=technique.description,
            video_url=technique.video_url,
            thumbnail_url=technique.thumbnail_url,
            category=CategoryResponse.model_validate(technique.category) if technique.category else None,
            belt_level=BeltLevelResponse.model_validate(technique.belt_level) if technique.belt_level else None,
            position=technique.position,
            instructor=technique.instructor,
            difficulty_level=technique.difficulty_level,
            is_featured=bool(technique.is_featured),
            is_published=bool(technique.is_published),
            view_count=technique.view_count or 0,
            tags=[tag.name for tag in technique.tags],
            is_favorite=is_favorite,
            created_at=technique.created_at,
            updated_at=technique.updated_at,
        )


class TechniqueDetailResponse(TechniqueResponse):
    user_progress: ProgressSummary | None = None


class TechniqueListResponse(BaseModel):
    count: int
    rows: list[TechniqueResponse]


class TechniqueCreateRequest(BaseModel):
    """Admin technique creation."""

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    video_url: str = Field(..., min_length=1, max_length=255)
    thumbnail_url: str | None = Field(None, max_length=255)
    category_id: int | None = None
    belt_level_id: int | None = None
    position: str | None = Field(None, max_length=100)
    instructor: str | None = Field(None, max_length=100)
    difficulty_level: Difficulty
    is_featured: bool = False
    is_published: bool = True
    tags: list[TagName] | None = None


class TechniqueUpdateRequest(BaseModel):
    """Admin technique update. Omitted fields are kept; ``tags: []`` clears tags."""

    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    video_url: str | None = Field(None, min_length=1, max_length=255)
    thumbnail_url: str | None = Field(None, max_length=255)
    category_id: int | None = None
    belt_level_id: int | None = None
    position: str | None = Field(None, max_length=100)
    instructor: str | None = Field(None, max_length=100)
    difficulty_level: Difficulty | None = None
    is_featured: bool | None = None
    is_published: bool | None = None
    tags: list[TagName] | None = None
