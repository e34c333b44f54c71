"""Pydantic schemas for the home location endpoints.

Coordinates and radius are accepted as plain numbers here. Range
checks happen in the registry so they surface as 400 validation errors.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

from homefence.api.schemas.base import CamelModel
from homefence.core.time_utils import ensure_utc

if TYPE_CHECKING:
    from homefence.models import HomeLocation


class HomeLocationUpdate(BaseModel):
    """Schema for setting the home geofence."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "lat": 28.6139,
                "lng": 77.2090,
                "address": "Connaught Place, New Delhi",
                "radius": 500,
            }
        }
    )

    lat: float = Field(..., description="Latitude of the geofence center")
    lng: float = Field(..., description="Longitude of the geofence center")
    address: str | None = Field(None, max_length=500, description="Human-readable address")
    radius: float | None = Field(
        None, description="Geofence radius in meters (defaults to the configured radius)"
    )


class HomeLocationResponse(CamelModel):
    """Schema for the current home geofence."""

    lat: float
    lng: float
    address: str
    radius: float = Field(..., description="Geofence radius in meters")
    updated_at: datetime

    @field_validator("updated_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @classmethod
    def from_home(cls, home: HomeLocation) -> HomeLocationResponse:
        return cls(
            lat=home.lat,
            lng=home.lng,
            address=home.address,
            radius=home.radius_m,
            updated_at=home.updated_at,
        )
