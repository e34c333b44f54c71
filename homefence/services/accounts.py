"""Admin accounts: provisioning from configuration and bearer authentication.

Each configured admin API key owns one account. Only the SHA-256 hash of a
key is stored, so rotating a key in the configuration creates a new, empty
account rather than silently re-keying an existing one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from homefence.core.exceptions import AuthenticationError
from homefence.core.logging import get_logger
from homefence.core.security import hash_secret
from homefence.models import Account
from homefence.repositories import AccountRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from homefence.core.config import Settings

logger = get_logger(__name__)


async def ensure_admin_accounts(session: AsyncSession, settings: Settings) -> list[Account]:
    """Create an account for every configured admin key that has none yet.

    Idempotent: keys that already own an account are left untouched.

    Returns:
        The accounts of all configured keys, in configuration order.
    """
    repo = AccountRepository(session)
    accounts = []
    created = 0
    keys = [key for key in dict.fromkeys(settings.admin_api_keys) if key]
    for index, key in enumerate(keys, start=1):
        key_hash = hash_secret(key)
        account = await repo.get_by_api_key_hash(key_hash)
        if account is None:
            name = settings.admin_account_name
            if len(keys) > 1:
                name = f"{name} {index}"
            account = await repo.create(Account(name=name, api_key_hash=key_hash))
            created += 1
        accounts.append(account)

    if not keys:
        logger.warning("No admin API keys configured; admin endpoints will reject all requests")
    else:
        logger.info(f"Admin accounts ready: {len(accounts)} configured, {created} created")
    return accounts


async def authenticate(session: AsyncSession, api_key: str | None) -> Account:
    """Resolve a bearer key to its account.

    Raises:
        AuthenticationError: If the key is missing or matches no account.
    """
    if not api_key:
        raise AuthenticationError("Missing bearer token")
    account = await AccountRepository(session).get_by_api_key_hash(hash_secret(api_key))
    if account is None:
        raise AuthenticationError("Invalid bearer token")
    return account


async def update_account(
    session: AsyncSession,
    account: Account,
    *,
    name: str | None = None,
    notification_email: str | None = None,
    clear_notification_email: bool = False,
) -> Account:
    """Apply a partial update to an account."""
    if name is not None:
        account.name = name
    if clear_notification_email:
        account.notification_email = None
    elif notification_email is not None:
        account.notification_email = notification_email
    await session.flush()
    return account
