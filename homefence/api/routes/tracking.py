"""Position submission endpoint for members' tracking clients.

Authenticated by the member's tracking token in the request body, not by the
admin bearer token. The token grants nothing but submitting that member's
own position.
"""

from fastapi import APIRouter, Depends

from homefence.api.dependencies import get_member_registry_dep
from homefence.api.schemas.tracking import PositionUpdateRequest, PositionUpdateResponse
from homefence.services.member_registry import MemberRegistry

router = APIRouter(prefix="/api", tags=["tracking"])


@router.post("/track", response_model=PositionUpdateResponse)
async def submit_position(
    update: PositionUpdateRequest,
    registry: MemberRegistry = Depends(get_member_registry_dep),
) -> PositionUpdateResponse:
    """Report the member's current position.

    Returns the resulting zone status. When the update moved the member
    across the boundary, ``transition`` and ``alertId`` identify the alert
    raised; its email notification is sent in the background.

    Errors:
        400 INVALID_COORDINATES: lat/lng out of range, nothing stored
        404 TRACKING_TOKEN_NOT_FOUND: unknown or revoked token
    """
    result = await registry.update_position(update.token, update.lat, update.lng)
    return PositionUpdateResponse(
        member_id=result.member_id,
        status=result.status,
        distance_m=result.distance_m,
        transition=result.transition,
        alert_id=result.alert_id,
    )
