"""SQLAlchemy models for Homefence."""

from homefence.core.database import Base

from .account import Account, HomeLocation
from .alert import Alert, AlertType
from .member import Member, MemberStatus
from .revoked_token import RevokedTrackingToken

__all__ = [
    "Account",
    "Alert",
    "AlertType",
    "Base",
    "HomeLocation",
    "Member",
    "MemberStatus",
    "RevokedTrackingToken",
]
