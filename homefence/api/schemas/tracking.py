"""Pydantic schemas for the member position submission endpoint."""

from pydantic import BaseModel, ConfigDict, Field

from homefence.api.schemas.base import CamelModel
from homefence.models import AlertType, MemberStatus


class PositionUpdateRequest(BaseModel):
    """Position reported by a member's tracking client."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"token": "q3Zb...", "lat": 28.6140, "lng": 77.2091}}
    )

    token: str = Field(..., min_length=1, max_length=256, description="Member tracking token")
    lat: float = Field(..., description="Latitude in degrees")
    lng: float = Field(..., description="Longitude in degrees")


class PositionUpdateResponse(CamelModel):
    """Outcome of a position update."""

    member_id: str
    status: MemberStatus
    distance_m: float | None = Field(
        None, description="Distance from home in meters, null when no home is set"
    )
    transition: AlertType | None = Field(
        None, description="Transition that produced an alert, if any"
    )
    alert_id: str | None = None
