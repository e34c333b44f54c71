"""API routes for address search and reverse geocoding.

Failures of the upstream provider are returned as 503 GEOCODE_UNAVAILABLE so
the dashboard can fall back to manual coordinate entry.
"""

from fastapi import APIRouter, Depends, Query

from homefence.api.dependencies import get_geocoder_dep, require_admin_account
from homefence.api.schemas.geocode import GeocodeResult, ReverseGeocodeResponse
from homefence.models import Account
from homefence.services.geocoder import GeocoderClient

router = APIRouter(prefix="/api/geocode", tags=["geocode"])


@router.get("/search", response_model=list[GeocodeResult])
async def search(
    q: str = Query(..., description="Free-text address or place name"),
    _account: Account = Depends(require_admin_account),
    geocoder: GeocoderClient = Depends(get_geocoder_dep),
) -> list[GeocodeResult]:
    """Find candidate coordinates for an address."""
    matches = await geocoder.search(q)
    return [GeocodeResult(lat=m.lat, lng=m.lng, address=m.address) for m in matches]


@router.get("/reverse", response_model=ReverseGeocodeResponse)
async def reverse(
    lat: float = Query(..., description="Latitude in degrees"),
    lng: float = Query(..., description="Longitude in degrees"),
    _account: Account = Depends(require_admin_account),
    geocoder: GeocoderClient = Depends(get_geocoder_dep),
) -> ReverseGeocodeResponse:
    """Find the address of a coordinate pair."""
    return ReverseGeocodeResponse(address=await geocoder.reverse(lat, lng))
