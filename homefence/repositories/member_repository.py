"""Repository for Member database operations.

Besides account-scoped listing this repository owns the tracking-token
lookups: live tokens are matched against ``members.tracking_token`` and
revoked tokens are remembered by hash in ``revoked_tracking_tokens``.
"""

from __future__ import annotations

from sqlalchemy import func, select

from homefence.models import Member, MemberStatus, RevokedTrackingToken
from homefence.repositories.base import Repository


class MemberRepository(Repository[Member]):
    """Repository for Member entity database operations.

    Example:
        async with get_session() as session:
            repo = MemberRepository(session)
            member = await repo.get_by_token_for_update(token)
            if member is not None:
                member.status = MemberStatus.INSIDE
    """

    model_class = Member

    async def list_by_account(self, account_id: str) -> list[Member]:
        """Get all members of an account, oldest first."""
        stmt = (
            select(Member)
            .where(Member.account_id == account_id)
            .order_by(Member.created_at, Member.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_positioned_by_account(self, account_id: str) -> list[Member]:
        """Get the members of an account that have reported at least one position."""
        stmt = select(Member).where(
            Member.account_id == account_id,
            Member.last_lat.is_not(None),
            Member.last_lng.is_not(None),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_for_account(self, account_id: str, member_id: str) -> Member | None:
        """Get a member by id, only if it belongs to the given account."""
        stmt = select(Member).where(Member.id == member_id, Member.account_id == account_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_token(self, token: str) -> Member | None:
        """Look up a member by its live tracking token."""
        stmt = select(Member).where(Member.tracking_token == token)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_token_for_update(self, token: str) -> Member | None:
        """Look up a member by tracking token and lock its row.

        Uses SELECT ... FOR UPDATE so concurrent writers to the same member
        wait for this transaction. SQLite ignores the clause; there the
        writer lock of the database file serializes instead.
        """
        stmt = select(Member).where(Member.tracking_token == token).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def token_exists(self, token: str, token_hash: str) -> bool:
        """Check whether a token is live or has been revoked.

        Args:
            token: Candidate token value
            token_hash: SHA-256 hex digest of ``token``

        Returns:
            True if the token may not be issued.
        """
        live = await self.session.execute(
            select(Member.id).where(Member.tracking_token == token).limit(1)
        )
        if live.first() is not None:
            return True
        revoked = await self.session.get(RevokedTrackingToken, token_hash)
        return revoked is not None

    async def is_token_revoked(self, token_hash: str) -> bool:
        """Check whether a token hash belongs to a deleted member."""
        return await self.session.get(RevokedTrackingToken, token_hash) is not None

    async def revoke_token(self, token_hash: str) -> None:
        """Remember a token hash so the token is never issued again."""
        if await self.is_token_revoked(token_hash):
            return
        self.session.add(RevokedTrackingToken(token_hash=token_hash))
        await self.session.flush()

    async def count_by_status(self, account_id: str) -> dict[MemberStatus, int]:
        """Count an account's members per zone status.

        Returns:
            Mapping with an entry for every MemberStatus, zero when absent.
        """
        stmt = (
            select(Member.status, func.count())
            .where(Member.account_id == account_id)
            .group_by(Member.status)
        )
        result = await self.session.execute(stmt)
        counts = dict.fromkeys(MemberStatus, 0)
        for status, count in result.all():
            counts[MemberStatus(status)] = count
        return counts
