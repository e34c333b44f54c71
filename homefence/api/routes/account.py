"""API routes for the authenticated admin account."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from homefence.api.dependencies import require_admin_account
from homefence.api.schemas.account import AccountResponse, AccountUpdate
from homefence.api.schemas.location import HomeLocationResponse
from homefence.core.database import get_db
from homefence.models import Account
from homefence.repositories import AccountRepository
from homefence.services.accounts import update_account

router = APIRouter(prefix="/api/account", tags=["account"])


async def _account_response(db: AsyncSession, account: Account) -> AccountResponse:
    home = await AccountRepository(db).get_home_location(account.id)
    return AccountResponse(
        id=account.id,
        name=account.name,
        notification_email=account.notification_email,
        home_location=HomeLocationResponse.from_home(home) if home is not None else None,
        created_at=account.created_at,
    )


@router.get("", response_model=AccountResponse)
async def get_account(
    account: Account = Depends(require_admin_account),
    db: AsyncSession = Depends(get_db),
) -> AccountResponse:
    """Get the caller's account, including its home location if set."""
    return await _account_response(db, account)


@router.patch("", response_model=AccountResponse)
async def patch_account(
    update: AccountUpdate,
    account: Account = Depends(require_admin_account),
    db: AsyncSession = Depends(get_db),
) -> AccountResponse:
    """Update the account name or the address alert emails go to.

    Sending an empty ``notificationEmail`` clears it.
    """
    await update_account(
        db,
        account,
        name=update.name,
        notification_email=update.notification_email or None,
        clear_notification_email=update.notification_email == "",
    )
    await db.commit()
    return await _account_response(db, account)
