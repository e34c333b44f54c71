"""Revoked tracking tokens.

When a member is deleted the SHA-256 hash of their tracking token is kept
here so that the same token value is never issued again.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from homefence.core.database import Base
from homefence.core.time_utils import utc_now


class RevokedTrackingToken(Base):
    """Hash of a tracking token that belonged to a deleted member."""

    __tablename__ = "revoked_tracking_tokens"

    token_hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    revoked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<RevokedTrackingToken(token_hash={self.token_hash[:8]!r}...)>"
