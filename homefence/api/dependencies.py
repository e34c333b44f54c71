"""Reusable dependencies for FastAPI routes.

This module provides:

1. Authentication - ``require_admin_account`` resolves the
   ``Authorization: Bearer <key>`` header to the admin's Account.
2. Service dependencies - thin wrappers around the service singletons so
   tests can swap them through ``app.dependency_overrides``.

Usage:
    @router.get("/members")
    async def list_members(
        account: Account = Depends(require_admin_account),
        registry: MemberRegistry = Depends(get_member_registry_dep),
        db: AsyncSession = Depends(get_db),
    ) -> list[MemberResponse]:
        ...
"""

from __future__ import annotations

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from homefence.core.config import Settings, get_settings
from homefence.core.database import get_db
from homefence.models import Account
from homefence.services.accounts import authenticate
from homefence.services.alert_broadcaster import AlertBroadcaster, get_alert_broadcaster
from homefence.services.geocoder import GeocoderClient, get_geocoder_client
from homefence.services.member_registry import MemberRegistry, get_member_registry

bearer_scheme = HTTPBearer(auto_error=False, description="Admin API key")


async def require_admin_account(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Account:
    """Authenticate the request with its bearer token.

    Raises:
        AuthenticationError: If the header is missing or the key is unknown.
    """
    api_key = credentials.credentials if credentials is not None else None
    return await authenticate(db, api_key)


def get_settings_dep() -> Settings:
    return get_settings()


def get_member_registry_dep() -> MemberRegistry:
    return get_member_registry()


def get_geocoder_dep(settings: Settings = Depends(get_settings_dep)) -> GeocoderClient:
    return get_geocoder_client(settings)


def get_alert_broadcaster_dep() -> AlertBroadcaster:
    return get_alert_broadcaster()
