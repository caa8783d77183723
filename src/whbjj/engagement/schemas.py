"""Request/response schemas for favorites, progress and notes."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from whbjj.content.schemas import TechniqueResponse

ProgressStatus = Literal["not_started", "in_progress", "completed"]


class FavoriteToggleResponse(BaseModel):
    is_favorite: bool
    message: str


class ProgressUpdateRequest(BaseModel):
    """Omitted fields keep their stored values."""

    status: ProgressStatus | None = None
    progress_percentage: int | None = Field(None, ge=0, le=100)


class ProgressResponse(BaseModel):
    id: int
    technique_id: int
    status: str
    progress_percentage: int
    last_viewed: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ProgressUpdateResponse(BaseModel):
    message: str
    user_progress: ProgressResponse


class ProgressWithTechnique(ProgressResponse):
    technique: TechniqueResponse


class ProgressListResponse(BaseModel):
    count: int
    rows: list[ProgressWithTechnique]


class NoteRequest(BaseModel):
    note: str = Field(..., min_length=1)


class NoteResponse(BaseModel):
    id: int
    technique_id: int
    note: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class NoteUpsertResponse(BaseModel):
    message: str
    note: NoteResponse


class NoteWithTechnique(NoteResponse):
    technique: TechniqueResponse


class NoteListResponse(BaseModel):
    count: int
    rows: list[NoteWithTechnique]
