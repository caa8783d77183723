"""Request/response schemas for admin endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, EmailStr, Field

from whbjj.auth.schemas import ProfileResponse, UserResponse
from whbjj.content.schemas import TechniqueResponse

UserSort = Literal["newest", "oldest", "username"]


class MonthlyCount(BaseModel):
    month: str
    count: int


class DashboardResponse(BaseModel):
    total_users: int
    active_members: int
    total_techniques: int
    total_categories: int
    recent_users: list[UserResponse]
    popular_techniques: list[TechniqueResponse]
    registrations_by_month: list[MonthlyCount]


class AdminUserListResponse(BaseModel):
    count: int
    rows: list[ProfileResponse]


class AdminUserUpdateRequest(BaseModel):
    """Omitted fields are kept."""

    username: str | None = Field(None, min_length=3, max_length=50)
    email: EmailStr | None = None
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    role: Literal["member", "admin"] | None = None


class AdminUserUpdateResponse(BaseModel):
    message: str
    user: ProfileResponse


class UploadResponse(BaseModel):
    message: str
    url: str
    filename: str
