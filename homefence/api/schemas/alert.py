"""Pydantic schemas for alert API endpoints."""

from datetime import datetime

from pydantic import ConfigDict, Field, field_validator

from homefence.api.schemas.base import CamelModel
from homefence.core.time_utils import ensure_utc
from homefence.models import AlertType


class AlertResponse(CamelModel):
    """Schema for a geofence entry/exit alert."""

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "7f3c2b1e-1d2c-4b5a-9e8f-0a1b2c3d4e5f",
                "memberId": "550e8400-e29b-41d4-a716-446655440000",
                "memberName": "Asha",
                "type": "exited",
                "timestamp": "2026-01-01T08:15:00Z",
                "emailSent": True,
                "lat": 28.62,
                "lng": 77.22,
                "distanceM": 1268.4,
            }
        },
    )

    id: str = Field(..., description="Alert ID")
    member_id: str = Field(..., description="ID of the member that crossed the boundary")
    member_name: str = Field(..., description="Member name at the time of the alert")
    type: AlertType = Field(..., description="Transition direction: entered or exited")
    timestamp: datetime = Field(..., description="Time of the position fix causing the alert")
    email_sent: bool = Field(..., description="Whether the email notification was delivered")
    lat: float | None = Field(None, description="Latitude of the triggering position")
    lng: float | None = Field(None, description="Longitude of the triggering position")
    distance_m: float | None = Field(None, description="Distance from home in meters")

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)
