"""Unit tests for the member registry against a SQLite database.

Each step opens and commits its own session: position updates manage their
own transaction, and SQLite allows a single writer at a time.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from homefence.core.config import get_settings
from homefence.core.database import get_session
from homefence.core.exceptions import (
    HomeLocationNotSetError,
    InvalidCoordinatesError,
    InvalidRadiusError,
    MemberNotFoundError,
    TrackingTokenNotFoundError,
)
from homefence.core.security import hash_secret
from homefence.models import Account, AlertType, Member, MemberStatus
from homefence.repositories import AlertRepository, MemberRepository
from homefence.services.accounts import update_account
from homefence.services.alert_broadcaster import AlertBroadcaster
from homefence.services.alert_emitter import AlertEmitter
from homefence.services.member_registry import MemberLocks, MemberRegistry
from homefence.services.notification import DeliveryResult, NotificationService
from homefence.tests.factories import (
    FAR_LAT,
    FAR_LNG,
    HOME_LAT,
    HOME_LNG,
    NEAR_LAT,
    NEAR_LNG,
)

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def notifications() -> MagicMock:
    """Notification service stub that reports nothing delivered."""
    service = MagicMock(spec=NotificationService)
    service.deliver_alert = AsyncMock(
        side_effect=lambda alert, **_kwargs: DeliveryResult(alert_id=alert.id, all_successful=True)
    )
    return service


@pytest.fixture
def broadcaster() -> AlertBroadcaster:
    return AlertBroadcaster()


@pytest.fixture
def emitter(notifications: MagicMock, broadcaster: AlertBroadcaster) -> AlertEmitter:
    return AlertEmitter(notifications, broadcaster)


@pytest.fixture
def registry(emitter: AlertEmitter) -> MemberRegistry:
    return MemberRegistry(get_settings(), emitter)


async def _create_member(registry: MemberRegistry, account: Account, name: str = "Asha") -> Member:
    async with get_session() as session:
        return await registry.create_member(
            session, account.id, name=name, email=f"{name.lower()}@example.com"
        )


async def _set_home(registry: MemberRegistry, account: Account, **kwargs) -> None:
    kwargs.setdefault("lat", HOME_LAT)
    kwargs.setdefault("lng", HOME_LNG)
    kwargs.setdefault("radius_m", 500)
    async with get_session() as session:
        await registry.set_home_location(session, account.id, **kwargs)


async def _reload(member_id: str) -> Member:
    async with get_session() as session:
        member = await MemberRepository(session).get_by_id(member_id)
    assert member is not None
    return member


async def _alerts(account: Account, member_id: str | None = None) -> list:
    async with get_session() as session:
        return await AlertRepository(session).list_recent(
            account.id, limit=100, member_id=member_id
        )


# =============================================================================
# Member management
# =============================================================================


class TestCreateMember:
    """Tests for registering members."""

    async def test_new_member_starts_unknown(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        member = await _create_member(registry, admin_account)

        assert member.status == MemberStatus.UNKNOWN
        assert member.account_id == admin_account.id
        assert member.last_lat is None
        assert member.last_seen_at is None

    async def test_tracking_tokens_are_unique_and_long(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        first = await _create_member(registry, admin_account, "Asha")
        second = await _create_member(registry, admin_account, "Ravi")

        assert first.tracking_token != second.tracking_token
        # 32 random bytes, base64url encoded
        assert len(first.tracking_token) >= 43

    async def test_token_collision_is_regenerated(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        existing = await _create_member(registry, admin_account, "Asha")

        with patch(
            "homefence.services.member_registry.secrets.token_urlsafe",
            side_effect=[existing.tracking_token, "fresh-token"],
        ):
            member = await _create_member(registry, admin_account, "Ravi")

        assert member.tracking_token == "fresh-token"

    async def test_revoked_token_is_never_reissued(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        deleted = await _create_member(registry, admin_account, "Asha")
        async with get_session() as session:
            await registry.delete_member(session, admin_account.id, deleted.id)

        with patch(
            "homefence.services.member_registry.secrets.token_urlsafe",
            side_effect=[deleted.tracking_token, "fresh-token"],
        ):
            member = await _create_member(registry, admin_account, "Ravi")

        assert member.tracking_token == "fresh-token"

    async def test_gives_up_after_repeated_collisions(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        existing = await _create_member(registry, admin_account, "Asha")

        with (
            patch(
                "homefence.services.member_registry.secrets.token_urlsafe",
                return_value=existing.tracking_token,
            ),
            pytest.raises(RuntimeError, match="unique tracking token"),
        ):
            await _create_member(registry, admin_account, "Ravi")


class TestTrackingUrl:
    """Tests for tracking link construction."""

    def test_link_carries_member_id_and_token(self, registry: MemberRegistry) -> None:
        member = Member(id="m-1", tracking_token="abc_DEF-123")
        assert (
            registry.tracking_url(member)
            == "http://localhost:3000/track.html?id=m-1&token=abc_DEF-123"
        )

    def test_trailing_slash_in_base_url_is_ignored(
        self, emitter: AlertEmitter, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TRACKING_PAGE_BASE_URL", "https://home.example.com/")
        get_settings.cache_clear()
        registry = MemberRegistry(get_settings(), emitter)

        member = Member(id="m-1", tracking_token="tok")
        assert registry.tracking_url(member).startswith("https://home.example.com/track.html?")


class TestGetAndDeleteMember:
    """Tests for lookup and deletion scoped to an account."""

    async def test_get_member_of_other_account_is_not_found(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        member = await _create_member(registry, admin_account)

        async with get_session() as session:
            with pytest.raises(MemberNotFoundError):
                await registry.get_member(session, "other-account", member.id)

    async def test_delete_unknown_member(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        async with get_session() as session:
            with pytest.raises(MemberNotFoundError) as exc_info:
                await registry.delete_member(session, admin_account.id, "missing")
        assert exc_info.value.details == {"member_id": "missing"}

    async def test_delete_revokes_token(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        member = await _create_member(registry, admin_account)
        async with get_session() as session:
            await registry.delete_member(session, admin_account.id, member.id)

        async with get_session() as session:
            members = MemberRepository(session)
            assert await members.get_by_id(member.id) is None
            assert await members.is_token_revoked(hash_secret(member.tracking_token))

    async def test_list_members_in_creation_order(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        for name in ("Asha", "Ravi", "Meera"):
            await _create_member(registry, admin_account, name)

        async with get_session() as session:
            members = await registry.list_members(session, admin_account.id)
        assert [m.name for m in members] == ["Asha", "Ravi", "Meera"]


# =============================================================================
# Home location
# =============================================================================


class TestHomeLocation:
    """Tests for setting the home geofence."""

    async def test_not_set(self, registry: MemberRegistry, admin_account: Account) -> None:
        async with get_session() as session:
            with pytest.raises(HomeLocationNotSetError):
                await registry.get_home_location(session, admin_account.id)

    async def test_defaults_for_radius_and_address(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        async with get_session() as session:
            home = await registry.set_home_location(
                session, admin_account.id, lat=HOME_LAT, lng=HOME_LNG
            )

        assert home.radius_m == 500.0
        assert home.address == "Custom Location at 28.6139, 77.2090"

    async def test_replaces_previous_location(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        await _set_home(registry, admin_account, address="Old place")
        await _set_home(registry, admin_account, lat=FAR_LAT, lng=FAR_LNG, radius_m=1000)

        async with get_session() as session:
            home = await registry.get_home_location(session, admin_account.id)
        assert (home.lat, home.lng, home.radius_m) == (FAR_LAT, FAR_LNG, 1000.0)

    @pytest.mark.parametrize("radius", [50, 2500])
    async def test_radius_out_of_bounds(
        self, registry: MemberRegistry, admin_account: Account, radius: float
    ) -> None:
        async with get_session() as session:
            with pytest.raises(InvalidRadiusError):
                await registry.set_home_location(
                    session, admin_account.id, lat=HOME_LAT, lng=HOME_LNG, radius_m=radius
                )

    async def test_invalid_coordinates(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        async with get_session() as session:
            with pytest.raises(InvalidCoordinatesError):
                await registry.set_home_location(session, admin_account.id, lat=95.0, lng=0.0)

    async def test_moving_home_reclassifies_without_alerts(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        await _set_home(registry, admin_account)
        member = await _create_member(registry, admin_account)
        await registry.update_position(member.tracking_token, NEAR_LAT, NEAR_LNG)

        # Move the fence so the member's last position is now outside
        await _set_home(registry, admin_account, lat=FAR_LAT, lng=FAR_LNG, radius_m=100)

        reloaded = await _reload(member.id)
        assert reloaded.status == MemberStatus.OUTSIDE
        assert await _alerts(admin_account) == []

    async def test_members_without_position_stay_unknown(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        member = await _create_member(registry, admin_account)
        await _set_home(registry, admin_account)

        assert (await _reload(member.id)).status == MemberStatus.UNKNOWN


# =============================================================================
# Position updates
# =============================================================================


class TestUpdatePosition:
    """Tests for position evaluation and transitions."""

    async def test_first_fix_sets_status_without_alert(
        self, registry: MemberRegistry, admin_account: Account, notifications: MagicMock
    ) -> None:
        await _set_home(registry, admin_account)
        member = await _create_member(registry, admin_account)

        result = await registry.update_position(member.tracking_token, NEAR_LAT, NEAR_LNG)

        assert result.status == MemberStatus.INSIDE
        assert result.transition is None
        assert result.alert_id is None
        assert result.distance_m is not None and result.distance_m < 20
        assert await _alerts(admin_account) == []
        notifications.deliver_alert.assert_not_called()

        reloaded = await _reload(member.id)
        assert reloaded.last_lat == NEAR_LAT
        assert reloaded.last_lng == NEAR_LNG
        assert reloaded.last_seen_at is not None
        assert reloaded.status_changed_at is not None

    async def test_exit_then_enter_creates_two_alerts(
        self,
        registry: MemberRegistry,
        emitter: AlertEmitter,
        admin_account: Account,
    ) -> None:
        await _set_home(registry, admin_account)
        member = await _create_member(registry, admin_account)
        await registry.update_position(member.tracking_token, NEAR_LAT, NEAR_LNG)

        exited = await registry.update_position(member.tracking_token, FAR_LAT, FAR_LNG)
        assert exited.status == MemberStatus.OUTSIDE
        assert exited.transition == AlertType.EXITED
        assert exited.alert_id is not None
        assert 1250 < exited.distance_m < 1290  # type: ignore[operator]

        entered = await registry.update_position(member.tracking_token, NEAR_LAT, NEAR_LNG)
        assert entered.transition == AlertType.ENTERED

        await emitter.drain()
        alerts = await _alerts(admin_account)
        assert [a.type for a in alerts] == [AlertType.ENTERED, AlertType.EXITED]
        assert alerts[1].id == exited.alert_id
        assert alerts[1].member_name == "Asha"
        assert alerts[1].lat == FAR_LAT
        assert all(a.email_sent is False for a in alerts)

    async def test_repeated_position_on_same_side_is_silent(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        await _set_home(registry, admin_account)
        member = await _create_member(registry, admin_account)
        await registry.update_position(member.tracking_token, NEAR_LAT, NEAR_LNG)
        await registry.update_position(member.tracking_token, FAR_LAT, FAR_LNG)
        changed_at = (await _reload(member.id)).status_changed_at

        result = await registry.update_position(member.tracking_token, FAR_LAT + 0.001, FAR_LNG)

        assert result.transition is None
        assert len(await _alerts(admin_account)) == 1
        assert (await _reload(member.id)).status_changed_at == changed_at

    async def test_without_home_position_is_stored_and_status_unknown(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        member = await _create_member(registry, admin_account)

        result = await registry.update_position(member.tracking_token, NEAR_LAT, NEAR_LNG)

        assert result.status == MemberStatus.UNKNOWN
        assert result.distance_m is None
        reloaded = await _reload(member.id)
        assert reloaded.last_lat == NEAR_LAT
        assert reloaded.status == MemberStatus.UNKNOWN

    async def test_invalid_coordinates_store_nothing(
        self, registry: MemberRegistry, admin_account: Account
    ) -> None:
        await _set_home(registry, admin_account)
        member = await _create_member(registry, admin_account)

        with pytest.raises(InvalidCoordinatesError):
            await registry.update_position(member.tracking_token, 91.0, 0.0)

        reloaded = await _reload(member.id)
        assert reloaded.last_lat is None
        assert reloaded.status == MemberStatus.UNKNOWN

    @pytest.mark.parametrize("token", ["", "not-a-real-token"])
    async def test_unknown_token(
        self, registry: MemberRegistry, admin_account: Account, token: str
    ) -> None:
        with pytest.raises(TrackingTokenNotFoundError):
            await registry.update_position(token, NEAR_LAT, NEAR_LNG)

    async def test_deleted_member_token_rejected_and_alerts_kept(
        self, registry: MemberRegistry, emitter: AlertEmitter, admin_account: Account
    ) -> None:
        await _set_home(registry, admin_account)
        member = await _create_member(registry, admin_account)
        await registry.update_position(member.tracking_token, NEAR_LAT, NEAR_LNG)
        await registry.update_position(member.tracking_token, FAR_LAT, FAR_LNG)
        await emitter.drain()

        async with get_session() as session:
            await registry.delete_member(session, admin_account.id, member.id)

        with pytest.raises(TrackingTokenNotFoundError):
            await registry.update_position(member.tracking_token, NEAR_LAT, NEAR_LNG)
        assert len(await _alerts(admin_account, member_id=member.id)) == 1

    async def test_alert_email_goes_to_account_notification_email(
        self,
        registry: MemberRegistry,
        emitter: AlertEmitter,
        admin_account: Account,
        notifications: MagicMock,
    ) -> None:
        async with get_session() as session:
            account = await session.get(Account, admin_account.id)
            assert account is not None
            await update_account(session, account, notification_email="owner@example.com")
        await _set_home(registry, admin_account)
        member = await _create_member(registry, admin_account)
        await registry.update_position(member.tracking_token, NEAR_LAT, NEAR_LNG)

        await registry.update_position(member.tracking_token, FAR_LAT, FAR_LNG)
        await emitter.drain()

        notifications.deliver_alert.assert_awaited_once()
        kwargs = notifications.deliver_alert.await_args.kwargs
        assert kwargs["email_recipients"] == ["owner@example.com"]

    async def test_alert_is_published_to_subscribers(
        self,
        registry: MemberRegistry,
        emitter: AlertEmitter,
        broadcaster: AlertBroadcaster,
        admin_account: Account,
    ) -> None:
        await _set_home(registry, admin_account)
        member = await _create_member(registry, admin_account)
        await registry.update_position(member.tracking_token, NEAR_LAT, NEAR_LNG)
        queue = broadcaster.subscribe(admin_account.id)

        result = await registry.update_position(member.tracking_token, FAR_LAT, FAR_LNG)
        await emitter.drain()

        payload = queue.get_nowait()
        assert payload["id"] == result.alert_id
        assert payload["type"] == "exited"
        assert payload["memberId"] == member.id


class TestConcurrentUpdates:
    """Updates for one member are applied one at a time, in arrival order."""

    async def test_double_crossing_yields_both_alerts_in_order(
        self, registry: MemberRegistry, emitter: AlertEmitter, admin_account: Account
    ) -> None:
        await _set_home(registry, admin_account)
        member = await _create_member(registry, admin_account)
        await registry.update_position(member.tracking_token, NEAR_LAT, NEAR_LNG)

        exit_result, enter_result = await asyncio.gather(
            registry.update_position(member.tracking_token, FAR_LAT, FAR_LNG),
            registry.update_position(member.tracking_token, NEAR_LAT, NEAR_LNG),
        )
        await emitter.drain()

        assert exit_result.transition == AlertType.EXITED
        assert enter_result.transition == AlertType.ENTERED
        alerts = await _alerts(admin_account)
        assert [a.type for a in alerts] == [AlertType.ENTERED, AlertType.EXITED]
        assert (await _reload(member.id)).status == MemberStatus.INSIDE

    async def test_burst_of_alternating_updates(
        self, registry: MemberRegistry, emitter: AlertEmitter, admin_account: Account
    ) -> None:
        await _set_home(registry, admin_account)
        member = await _create_member(registry, admin_account)
        await registry.update_position(member.tracking_token, NEAR_LAT, NEAR_LNG)

        positions = [(FAR_LAT, FAR_LNG), (NEAR_LAT, NEAR_LNG)] * 3
        results = await asyncio.gather(
            *(registry.update_position(member.tracking_token, lat, lng) for lat, lng in positions)
        )
        await emitter.drain()

        assert [r.transition for r in results] == [AlertType.EXITED, AlertType.ENTERED] * 3
        assert len(await _alerts(admin_account)) == 6
        # Idle locks are released
        assert len(registry._locks) == 0


class TestMemberLocks:
    """Tests for the per-member lock table."""

    async def test_lock_is_dropped_when_idle(self) -> None:
        locks = MemberLocks()
        async with locks.hold("a"):
            assert len(locks) == 1
        assert len(locks) == 0

    async def test_waiters_run_in_arrival_order(self) -> None:
        locks = MemberLocks()
        order: list[int] = []

        async def worker(n: int) -> None:
            async with locks.hold("a"):
                await asyncio.sleep(0)
                order.append(n)

        await asyncio.gather(*(worker(n) for n in range(5)))
        assert order == [0, 1, 2, 3, 4]

    async def test_different_keys_do_not_block_each_other(self) -> None:
        locks = MemberLocks()
        async with locks.hold("a"):
            await asyncio.wait_for(_hold_briefly(locks, "b"), timeout=1)
        assert len(locks) == 0


async def _hold_briefly(locks: MemberLocks, key: str) -> None:
    async with locks.hold(key):
        await asyncio.sleep(0)


class TestStats:
    """Tests for member counts per status."""

    async def test_counts(self, registry: MemberRegistry, admin_account: Account) -> None:
        await _set_home(registry, admin_account)
        inside = await _create_member(registry, admin_account, "Asha")
        outside = await _create_member(registry, admin_account, "Ravi")
        await _create_member(registry, admin_account, "Meera")
        await registry.update_position(inside.tracking_token, NEAR_LAT, NEAR_LNG)
        await registry.update_position(outside.tracking_token, FAR_LAT, FAR_LNG)

        async with get_session() as session:
            stats = await registry.stats(session, admin_account.id)

        assert (stats.total, stats.inside, stats.outside, stats.unknown) == (3, 1, 1, 1)
