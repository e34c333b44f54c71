"""API routes for member management.

All routes require the admin bearer token and are scoped to the caller's
account.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from homefence.api.dependencies import get_member_registry_dep, require_admin_account
from homefence.api.schemas.location import HomeLocationResponse, HomeLocationUpdate
from homefence.api.schemas.member import MemberCreate, MemberResponse, MemberStatsResponse
from homefence.core.database import get_db
from homefence.core.exceptions import NotFoundError
from homefence.models import Account
from homefence.services.member_registry import MemberRegistry

router = APIRouter(prefix="/api/members", tags=["members"])


@router.get("", response_model=list[MemberResponse])
async def list_members(
    account: Account = Depends(require_admin_account),
    registry: MemberRegistry = Depends(get_member_registry_dep),
    db: AsyncSession = Depends(get_db),
) -> list[MemberResponse]:
    """List the account's members, oldest first, with their tracking links."""
    members = await registry.list_members(db, account.id)
    return [MemberResponse.from_member(m, registry.tracking_url(m)) for m in members]


@router.post("", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def create_member(
    member_data: MemberCreate,
    account: Account = Depends(require_admin_account),
    registry: MemberRegistry = Depends(get_member_registry_dep),
    db: AsyncSession = Depends(get_db),
) -> MemberResponse:
    """Register a member and issue its tracking token.

    The new member starts with status ``unknown`` until its device reports
    a first position.
    """
    member = await registry.create_member(
        db,
        account.id,
        name=member_data.name,
        email=member_data.email,
        phone=member_data.phone,
        relation=member_data.relation,
    )
    await db.commit()
    return MemberResponse.from_member(member, registry.tracking_url(member))


@router.get("/stats", response_model=MemberStatsResponse)
async def get_member_stats(
    account: Account = Depends(require_admin_account),
    registry: MemberRegistry = Depends(get_member_registry_dep),
    db: AsyncSession = Depends(get_db),
) -> MemberStatsResponse:
    """Count the account's members per zone status."""
    stats = await registry.stats(db, account.id)
    return MemberStatsResponse(
        total=stats.total,
        inside=stats.inside,
        outside=stats.outside,
        unknown=stats.unknown,
    )


@router.get("/{member_id}", response_model=MemberResponse)
async def get_member(
    member_id: str,
    account: Account = Depends(require_admin_account),
    registry: MemberRegistry = Depends(get_member_registry_dep),
    db: AsyncSession = Depends(get_db),
) -> MemberResponse:
    member = await registry.get_member(db, account.id, member_id)
    return MemberResponse.from_member(member, registry.tracking_url(member))


@router.delete("/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_member(
    member_id: str,
    account: Account = Depends(require_admin_account),
    registry: MemberRegistry = Depends(get_member_registry_dep),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Delete a member and revoke its tracking token for good.

    Alerts already raised for the member stay in the history.
    """
    await registry.delete_member(db, account.id, member_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{owner_id}/location", response_model=HomeLocationResponse)
async def set_location_compat(
    owner_id: str,
    location: HomeLocationUpdate,
    account: Account = Depends(require_admin_account),
    registry: MemberRegistry = Depends(get_member_registry_dep),
    db: AsyncSession = Depends(get_db),
) -> HomeLocationResponse:
    """Set the account's home location through the dashboard's legacy path.

    The dashboard sends its own user id here, which is the account id. The
    home location is account-wide; any other id is not found.
    """
    if owner_id != account.id:
        raise NotFoundError(
            f"No home location owner with id '{owner_id}'",
            details={"owner_id": owner_id},
        )
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
