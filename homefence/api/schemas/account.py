"""Pydantic schemas for the account endpoints."""

from datetime import datetime

from pydantic import ConfigDict, Field, field_validator

from homefence.api.schemas.base import CamelModel
from homefence.api.schemas.location import HomeLocationResponse
from homefence.api.schemas.member import EMAIL_PATTERN
from homefence.core.time_utils import ensure_utc


class AccountResponse(CamelModel):
    """The authenticated admin account."""

    id: str = Field(..., description="Account ID (the dashboard's user id)")
    name: str
    notification_email: str | None = None
    home_location: HomeLocationResponse | None = None
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class AccountUpdate(CamelModel):
    """Partial update of the admin account.

    An empty ``notificationEmail`` clears it, so alerts go to the default
    recipients.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(None, min_length=1, max_length=255)
    notification_email: str | None = Field(None, max_length=320)

    @field_validator("notification_email")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        if v and not EMAIL_PATTERN.match(v):
            raise ValueError("must be a valid email address")
        return v
