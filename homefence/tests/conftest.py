"""Pytest configuration and shared fixtures.

This module provides shared test fixtures for all Homefence tests:
- test_env (autouse): isolated settings pointing at a per-test SQLite file
- db: initialized database engine for service-level tests
- admin_account: the account provisioned for the test admin key
- client: TestClient running the full application lifespan
- auth_headers: Authorization header for the test admin key

Tests never touch a developer's .env or data/ directory: every test runs
from its own tmp_path with all service singletons reset.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from fastapi.testclient import TestClient

from homefence.core.config import get_settings
from homefence.core.database import close_db, get_session, init_db
from homefence.services.accounts import ensure_admin_accounts
from homefence.services.alert_broadcaster import reset_alert_broadcaster
from homefence.services.alert_emitter import reset_alert_emitter
from homefence.services.geocoder import reset_geocoder_client
from homefence.services.member_registry import reset_member_registry
from homefence.services.notification import reset_notification_service
from homefence.tests.factories import TEST_ADMIN_KEY

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Generator
    from pathlib import Path

    from homefence.models import Account

_CLEARED_ENV_VARS = (
    "SMTP_HOST",
    "SMTP_FROM_ADDRESS",
    "SMTP_USER",
    "SMTP_PASSWORD",
    "DEFAULT_WEBHOOK_URL",
    "DEFAULT_EMAIL_RECIPIENTS",
    "NOTIFICATION_ENABLED",
    "TRACKING_PAGE_BASE_URL",
    "GEOFENCE_DEFAULT_RADIUS_M",
    "GEOFENCE_MIN_RADIUS_M",
    "GEOFENCE_MAX_RADIUS_M",
    "ALERT_LIST_DEFAULT_LIMIT",
    "ALERT_LIST_MAX_LIMIT",
    "LOG_FORMAT",
    "LOG_LEVEL",
)


def _reset_singletons() -> None:
    get_settings.cache_clear()
    reset_notification_service()
    reset_alert_broadcaster()
    reset_alert_emitter()
    reset_member_registry()
    reset_geocoder_client()


@pytest.fixture(autouse=True)
def test_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path]:
    """Point settings at a fresh SQLite database and log file for each test."""
    monkeypatch.chdir(tmp_path)
    for var in _CLEARED_ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'homefence.db'}")
    monkeypatch.setenv("ADMIN_API_KEYS", json.dumps([TEST_ADMIN_KEY]))
    monkeypatch.setenv("LOG_FILE_PATH", str(tmp_path / "logs" / "homefence.log"))
    monkeypatch.setenv("HOMEFENCE_RUNTIME_ENV_PATH", str(tmp_path / "runtime.env"))

    _reset_singletons()
    yield tmp_path
    _reset_singletons()


@pytest.fixture
async def db() -> AsyncGenerator[None]:
    """Initialize the database engine for the test and dispose it afterwards."""
    await init_db()
    try:
        yield
    finally:
        await close_db()


@pytest.fixture
async def admin_account(db: None) -> Account:
    """Provision and return the account owned by TEST_ADMIN_KEY."""
    async with get_session() as session:
        accounts = await ensure_admin_accounts(session, get_settings())
    return accounts[0]


@pytest.fixture
def client() -> Generator[TestClient]:
    """Create a TestClient for the full app; the lifespan runs on enter."""
    from homefence.main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {TEST_ADMIN_KEY}"}
