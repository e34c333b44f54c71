"""Repository for Account and HomeLocation database operations."""

from __future__ import annotations

from sqlalchemy import select

from homefence.models import Account, HomeLocation
from homefence.repositories.base import Repository


class AccountRepository(Repository[Account]):
    """Repository for Account entity database operations.

    Example:
        async with get_session() as session:
            repo = AccountRepository(session)
            account = await repo.get_by_api_key_hash(key_hash)
            home = await repo.get_home_location(account.id)
    """

    model_class = Account

    async def get_by_api_key_hash(self, api_key_hash: str) -> Account | None:
        """Find the account whose admin key hashes to ``api_key_hash``."""
        stmt = select(Account).where(Account.api_key_hash == api_key_hash)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_home_location(self, account_id: str) -> HomeLocation | None:
        """Get the geofence center and radius of an account, if set."""
        return await self.session.get(HomeLocation, account_id)

    async def set_home_location(
        self,
        account_id: str,
        *,
        lat: float,
        lng: float,
        address: str,
        radius_m: float,
    ) -> HomeLocation:
        """Create or replace the account's home location.

        Returns:
            The persisted HomeLocation.
        """
        home = await self.get_home_location(account_id)
        if home is None:
            home = HomeLocation(account_id=account_id)
            self.session.add(home)
        home.lat = lat
        home.lng = lng
        home.address = address
        home.radius_m = radius_m
        await self.session.flush()
        await self.session.refresh(home)
        return home
