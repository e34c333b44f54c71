"""Alert model for geofence entry/exit transitions.

Alerts form an append-only log. One alert is written for every change of a
member's classification between inside and outside. The member name is
copied onto the alert so the history survives member deletion; for the same
reason member_id is not a foreign key.

Listings order by ``timestamp`` and then by ``seq``, the insertion order, so
alerts sharing a timestamp keep the order they were recorded in. The public
``id`` is a UUID.

The only column written after creation is ``email_sent``, which the
background notification task flips once delivery succeeded.
"""

from __future__ import annotations

import enum
from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from homefence.core.database import Base
from homefence.core.time_utils import utc_now


class AlertType(str, enum.Enum):
    """Direction of a geofence transition."""

    ENTERED = "entered"
    EXITED = "exited"


class Alert(Base):
    """Record of a member entering or leaving the home geofence."""

    __tablename__ = "alerts"

    # Insertion order. Breaks ties between alerts with the same timestamp.
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(
        String(36), unique=True, nullable=False, default=lambda: str(uuid4())
    )
    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    member_id: Mapped[str] = mapped_column(String(36), nullable=False)
    member_name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[AlertType] = mapped_column(
        Enum(
            AlertType,
            name="alert_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    email_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    distance_m: Mapped[float | None] = mapped_column(Float, nullable=True)

    __table_args__ = (
        Index("idx_alerts_account_timestamp", "account_id", "timestamp"),
        Index("idx_alerts_member_id", "member_id"),
        # Never reuse the sequence number of a deleted row
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return (
            f"<Alert(id={self.id!r}, member_id={self.member_id!r}, "
            f"type={self.type!r}, timestamp={self.timestamp!r})>"
        )
