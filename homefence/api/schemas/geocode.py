"""Pydantic schemas for geocoding endpoints."""

from pydantic import BaseModel, Field


class GeocodeResult(BaseModel):
    """A candidate match for an address search."""

    lat: float
    lng: float
    address: str = Field(..., description="Display name reported by the provider")


class ReverseGeocodeResponse(BaseModel):
    """Address found for a coordinate pair."""

    address: str
