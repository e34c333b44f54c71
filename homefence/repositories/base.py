"""Shared async repository operations.

Repositories never commit. They add, flush and query within the session they
are given, and the caller's ``get_session()`` block decides whether the whole
unit of work is committed or rolled back. This is what lets a position
update write the member status and its alert atomically.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import func, select

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from homefence.core.database import Base

T = TypeVar("T", bound="Base")

# Upper bound for unfiltered listings
MAX_LIMIT = 1000


class Repository(Generic[T]):  # noqa: UP046
    """Primary-key lookup, listing, create, delete and count for one model.

    Subclasses set ``model_class`` and add the queries their service needs.
    """

    model_class: type[T]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, entity_id: Any) -> T | None:
        return await self.session.get(self.model_class, entity_id)

    async def get_all(self, limit: int = MAX_LIMIT) -> list[T]:
        """Return up to ``limit`` rows (never more than MAX_LIMIT), unordered."""
        stmt = select(self.model_class).limit(min(limit, MAX_LIMIT))
        return list((await self.session.scalars(stmt)).all())

    async def create(self, entity: T) -> T:
        """Add ``entity`` and flush so column defaults and server values are loaded."""
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def delete(self, entity: T) -> None:
        await self.session.delete(entity)
        await self.session.flush()

    async def count(self) -> int:
        stmt = select(func.count()).select_from(self.model_class)
        return (await self.session.execute(stmt)).scalar_one()
