"""API routes for the account's home geofence."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from homefence.api.dependencies import get_member_registry_dep, require_admin_account
from homefence.api.schemas.location import HomeLocationResponse, HomeLocationUpdate
from homefence.core.database import get_db
from homefence.models import Account
from homefence.services.member_registry import MemberRegistry

router = APIRouter(prefix="/api/location", tags=["location"])


@router.get("", response_model=HomeLocationResponse)
async def get_location(
    account: Account = Depends(require_admin_account),
    registry: MemberRegistry = Depends(get_member_registry_dep),
    db: AsyncSession = Depends(get_db),
) -> HomeLocationResponse:
    """Get the home location, or 404 HOME_LOCATION_NOT_SET."""
    home = await registry.get_home_location(db, account.id)
    return HomeLocationResponse.from_home(home)


@router.put("", response_model=HomeLocationResponse)
async def set_location(
    location: HomeLocationUpdate,
    account: Account = Depends(require_admin_account),
    registry: MemberRegistry = Depends(get_member_registry_dep),
    db: AsyncSession = Depends(get_db),
) -> HomeLocationResponse:
    """Set the home location and radius.

    Coordinates must be in range and the radius within the configured
    bounds (100 to 2000 m by default), otherwise 400. A missing radius uses
    the configured default; a missing address becomes
    "Custom Location at <lat>, <lng>".
    """
    home = await registry.set_home_location(
        db,
        account.id,
        lat=location.lat,
        lng=location.lng,
        address=location.address,
        radius_m=location.radius,
    )
    await db.commit()
    return HomeLocationResponse.from_home(home)
