"""Repository for Alert database operations."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select, update

from homefence.models import Alert
from homefence.repositories.base import MAX_LIMIT, Repository


class AlertRepository(Repository[Alert]):
    """Repository for the append-only alert log.

    Example:
        async with get_session() as session:
            repo = AlertRepository(session)
            recent = await repo.list_recent(account_id, limit=10)
    """

    model_class = Alert

    async def get_by_id(self, entity_id: Any) -> Alert | None:
        """Look up an alert by its public id."""
        return await self.session.scalar(select(Alert).where(Alert.id == entity_id))

    async def list_recent(
        self,
        account_id: str,
        *,
        limit: int,
        member_id: str | None = None,
    ) -> list[Alert]:
        """Get an account's alerts, newest first.

        Args:
            account_id: Owning account
            limit: Maximum number of alerts to return
            member_id: Only return alerts of this member when given

        Returns:
            Alerts ordered by timestamp descending, then by insertion order
            descending.
        """
        limit = min(limit, MAX_LIMIT)
        stmt = select(Alert).where(Alert.account_id == account_id)
        if member_id is not None:
            stmt = stmt.where(Alert.member_id == member_id)
        stmt = stmt.order_by(Alert.timestamp.desc(), Alert.seq.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_email_sent(self, alert_id: str) -> bool:
        """Flag an alert as delivered by email.

        Returns:
            True if a row was updated.
        """
        stmt = update(Alert).where(Alert.id == alert_id).values(email_sent=True)
        result = await self.session.execute(stmt)
        return bool(result.rowcount)
