"""Pydantic schemas for member API endpoints."""

from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

from homefence.api.schemas.base import CamelModel
from homefence.core.time_utils import ensure_utc
from homefence.models import MemberStatus

if TYPE_CHECKING:
    from homefence.models import Member

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class MemberCreate(BaseModel):
    """Schema for registering a new member."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "name": "Asha",
                "email": "asha@example.com",
                "phone": "+91 98100 00000",
                "relation": "Daughter",
            }
        },
    )

    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    email: str = Field(..., min_length=3, max_length=320, description="Contact email")
    phone: str | None = Field(None, max_length=50, description="Contact phone number")
    relation: str | None = Field(
        None, max_length=100, description="Relation to the account owner (e.g. Son, Employee)"
    )

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v):
            raise ValueError("must be a valid email address")
        return v

    @field_validator("phone", "relation")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        return v or None


class MemberResponse(CamelModel):
    """Schema for a member as seen by the account admin.

    The admin view includes the tracking token and the ready-made tracking
    link to hand to the member's device.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "name": "Asha",
                "email": "asha@example.com",
                "phone": None,
                "relation": "Daughter",
                "status": "inside",
                "trackingToken": "q3Zb...",
                "trackingUrl": "http://localhost:3000/track.html?id=550e...&token=q3Zb...",
                "lastLat": 28.614,
                "lastLng": 77.2091,
                "lastSeenAt": "2026-01-01T08:10:00Z",
                "statusChangedAt": "2026-01-01T07:55:00Z",
                "createdAt": "2025-12-30T18:00:00Z",
            }
        },
    )

    id: str
    name: str
    email: str
    phone: str | None = None
    relation: str | None = None
    status: MemberStatus
    tracking_token: str
    tracking_url: str
    last_lat: float | None = None
    last_lng: float | None = None
    last_seen_at: datetime | None = None
    status_changed_at: datetime | None = None
    created_at: datetime

    @field_validator("last_seen_at", "status_changed_at", "created_at")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v) if v is not None else None

    @classmethod
    def from_member(cls, member: Member, tracking_url: str) -> MemberResponse:
        return cls(
            id=member.id,
            name=member.name,
            email=member.email,
            phone=member.phone,
            relation=member.relation,
            status=member.status,
            tracking_token=member.tracking_token,
            tracking_url=tracking_url,
            last_lat=member.last_lat,
            last_lng=member.last_lng,
            last_seen_at=member.last_seen_at,
            status_changed_at=member.status_changed_at,
            created_at=member.created_at,
        )


class MemberStatsResponse(BaseModel):
    """Member counts per zone status, for the dashboard monitor."""

    total: int = Field(..., ge=0)
    inside: int = Field(..., ge=0)
    outside: int = Field(..., ge=0)
    unknown: int = Field(..., ge=0)
