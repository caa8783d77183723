"""Request/response schemas for authentication and user profile endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from whbjj.db.models import User
from whbjj.memberships.schemas import MembershipResponse

# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Registration request."""

    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        return v.strip()


class LoginRequest(BaseModel):
    """Login with email + password."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """User profile (never includes the password hash)."""

    id: int
    username: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    profile_picture: str | None = None
    role: str
    has_membership: bool = False
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    """Token response returned after registration or login."""

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class ProfileResponse(UserResponse):
    """Own profile with the membership row."""

    membership: MembershipResponse | None = None


class ProfileUpdateRequest(BaseModel):
    """Update own profile; omitted fields are kept."""

    username: str | None = Field(None, min_length=3, max_length=50)
    email: EmailStr | None = None
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    profile_picture: str | None = Field(None, max_length=255)


class ProfileUpdateResponse(BaseModel):
    message: str
    user: UserResponse


class ChangePasswordRequest(BaseModel):
    """Change password (requires current password)."""

    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=1, max_length=128)


class MessageResponse(BaseModel):
    message: str


def user_response(user: User, has_membership: bool = False) -> UserResponse:
    """Build a UserResponse from a User model."""
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        profile_picture=user.profile_picture,
        role=user.role,
        has_membership=has_membership,
        created_at=user.created_at,
    )
