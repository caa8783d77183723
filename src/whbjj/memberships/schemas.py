"""Request/response schemas for memberships."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from whbjj.db.models import Membership
from whbjj.memberships.service import effective_status


class MembershipResponse(BaseModel):
    """Membership row plus its lazily derived state."""

    id: int
    user_id: int
    status: str
    effective_status: str
    start_date: datetime
    end_date: datetime
    membership_type: str

    @classmethod
    def from_model(cls, membership: Membership) -> MembershipResponse:
        return cls(
            id=membership.id,
            user_id=membership.user_id,
            status=membership.status,
            effective_status=effective_status(membership),
            start_date=membership.start_date,
            end_date=membership.end_date,
            membership_type=membership.membership_type,
        )


class MembershipUpdateRequest(BaseModel):
    """Admin membership upsert; every field optional."""

    status: Literal["active", "expired", "cancelled"] | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    membership_type: Literal["monthly", "quarterly", "annual"] | None = None


class MembershipUpdateResponse(BaseModel):
    message: str
    created: bool
    membership: MembershipResponse
