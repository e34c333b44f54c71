"""Account and HomeLocation models.

An account is the administrative owner of one geofence: it has a single
HomeLocation (center point plus radius) and owns the registry of members and
their alerts. Admins authenticate with a bearer key whose SHA-256 hash is
stored on the account.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from homefence.core.database import Base
from homefence.core.time_utils import utc_now

if TYPE_CHECKING:
    from .member import Member


class Account(Base):
    """Administrative account owning a home geofence and its members."""

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    api_key_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    notification_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    home_location: Mapped[HomeLocation | None] = relationship(
        "HomeLocation",
        back_populates="account",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    members: Mapped[list[Member]] = relationship(
        "Member",
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Account(id={self.id!r}, name={self.name!r})>"


class HomeLocation(Base):
    """The geofence center and radius of an account.

    One row per account; replaced whenever the admin re-sets location or
    radius. Coordinates are WGS84 degrees, radius is in meters.
    """

    __tablename__ = "home_locations"

    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True
    )
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)
    address: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    radius_m: Mapped[float] = mapped_column(Float, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    account: Mapped[Account] = relationship("Account", back_populates="home_location")

    __table_args__ = (
        CheckConstraint("lat >= -90 AND lat <= 90", name="ck_home_locations_lat_range"),
        CheckConstraint("lng >= -180 AND lng <= 180", name="ck_home_locations_lng_range"),
        CheckConstraint("radius_m > 0", name="ck_home_locations_radius_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<HomeLocation(account_id={self.account_id!r}, lat={self.lat}, "
            f"lng={self.lng}, radius_m={self.radius_m})>"
        )
