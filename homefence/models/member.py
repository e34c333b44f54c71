"""Member model for tracked family members or employees.

Each member carries an opaque tracking token that authorizes their device to
submit its own position, and nothing else. The member's zone status is only
changed by those position updates (or re-classified when the home location
moves).
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import DateTime, Enum, Float, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from homefence.core.database import Base
from homefence.core.time_utils import utc_now

if TYPE_CHECKING:
    from .account import Account


class MemberStatus(str, enum.Enum):
    """Zone classification of a member."""

    INSIDE = "inside"
    OUTSIDE = "outside"
    UNKNOWN = "unknown"


class Member(Base):
    """A person whose device reports positions against the account's geofence."""

    __tablename__ = "members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    relation: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tracking_token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    status: Mapped[MemberStatus] = mapped_column(
        Enum(
            MemberStatus,
            name="member_status_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        default=MemberStatus.UNKNOWN,
        nullable=False,
    )
    last_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    account: Mapped[Account] = relationship("Account", back_populates="members")

    __table_args__ = (
        Index("idx_members_account_id", "account_id"),
        Index("idx_members_account_status", "account_id", "status"),
    )

    @property
    def has_position(self) -> bool:
        return self.last_lat is not None and self.last_lng is not None

    def __repr__(self) -> str:
        return f"<Member(id={self.id!r}, name={self.name!r}, status={self.status!r})>"
