"""Member registry: members, tracking tokens, home location and position updates.

Position updates are the only writers of a member's zone status. They are
serialized per member in two layers:

- An in-process FIFO ``asyncio.Lock`` per tracking token. ``asyncio.Lock``
  hands the lock to waiters in the order they started waiting, so updates
  from one device are evaluated in arrival order. Updates for different
  members never share a lock.
- A ``SELECT ... FOR UPDATE`` row lock inside the update transaction, which
  serializes writers across processes on PostgreSQL.

The status comparison, the status write and the alert row are committed in a
single transaction; either all of them apply or none does. Notification
delivery is dispatched only after that commit.

Tracking tokens are ``secrets.token_urlsafe`` values, unique across live
members. When a member is deleted the SHA-256 hash of its token is recorded
as revoked and that value is never issued again.
"""

from __future__ import annotations

import asyncio
import secrets
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from homefence.core.database import get_session
from homefence.core.exceptions import (
    HomeLocationNotSetError,
    InvalidCoordinatesError,
    MemberNotFoundError,
    TrackingTokenNotFoundError,
)
from homefence.core.logging import get_logger
from homefence.core.metrics import record_position_update
from homefence.core.security import hash_secret
from homefence.core.time_utils import utc_now
from homefence.models import Account, AlertType, HomeLocation, Member, MemberStatus
from homefence.repositories import AccountRepository, MemberRepository
from homefence.services.alert_emitter import AlertEmitter, get_alert_emitter
from homefence.services.geofence import (
    GeoPoint,
    classify,
    default_address,
    distance_from_home,
    evaluate,
    validate_coordinates,
    validate_radius,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from homefence.core.config import Settings
    from homefence.models import Alert

logger = get_logger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager["AsyncSession"]]

MAX_TOKEN_ATTEMPTS = 5


@dataclass(frozen=True, slots=True)
class PositionUpdate:
    """Outcome of one position update."""

    member_id: str
    status: MemberStatus
    distance_m: float | None = None
    transition: AlertType | None = None
    alert_id: str | None = None


@dataclass(frozen=True, slots=True)
class MemberStats:
    """Member counts per zone status."""

    total: int
    inside: int
    outside: int
    unknown: int


class MemberLocks:
    """Per-key FIFO locks that are dropped once nobody holds or awaits them."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class MemberRegistry:
    """Account-scoped member management and position evaluation."""

    def __init__(
        self,
        settings: Settings,
        emitter: AlertEmitter,
        session_factory: SessionFactory = get_session,
    ) -> None:
        self.settings = settings
        self._emitter = emitter
        self._session_factory = session_factory
        self._locks = MemberLocks()

    # ------------------------------------------------------------------
    # Tracking tokens
    # ------------------------------------------------------------------

    def tracking_url(self, member: Member) -> str:
        """Build the link that opens the tracking page for a member's device."""
        base = self.settings.tracking_page_base_url.rstrip("/")
        query = urlencode({"id": member.id, "token": member.tracking_token})
        return f"{base}/track.html?{query}"

    async def _generate_token(self, members: MemberRepository) -> str:
        for _ in range(MAX_TOKEN_ATTEMPTS):
            token = secrets.token_urlsafe(self.settings.tracking_token_bytes)
            if not await members.token_exists(token, hash_secret(token)):
                return token
            logger.warning("Generated tracking token collided, regenerating")
        raise RuntimeError(
            f"Could not generate a unique tracking token in {MAX_TOKEN_ATTEMPTS} attempts"
        )

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    async def create_member(
        self,
        session: AsyncSession,
        account_id: str,
        *,
        name: str,
        email: str,
        phone: str | None = None,
        relation: str | None = None,
    ) -> Member:
        """Register a member with a fresh tracking token and unknown status."""
        members = MemberRepository(session)
        member = Member(
            account_id=account_id,
            name=name,
            email=email,
            phone=phone,
            relation=relation,
            tracking_token=await self._generate_token(members),
            status=MemberStatus.UNKNOWN,
        )
        member = await members.create(member)
        logger.info(
            f"Member {member.id} created for account {account_id}",
            extra={"member_id": member.id, "account_id": account_id},
        )
        return member

    async def list_members(self, session: AsyncSession, account_id: str) -> list[Member]:
        return await MemberRepository(session).list_by_account(account_id)

    async def get_member(self, session: AsyncSession, account_id: str, member_id: str) -> Member:
        """Get one of the account's members.

        Raises:
            MemberNotFoundError: If no such member belongs to the account.
        """
        member = await MemberRepository(session).get_for_account(account_id, member_id)
        if member is None:
            raise MemberNotFoundError(member_id)
        return member

    async def delete_member(self, session: AsyncSession, account_id: str, member_id: str) -> None:
        """Delete a member and permanently revoke its tracking token.

        Alerts already raised for the member are kept.

        Raises:
            MemberNotFoundError: If no such member belongs to the account.
        """
        members = MemberRepository(session)
        member = await members.get_for_account(account_id, member_id)
        if member is None:
            raise MemberNotFoundError(member_id)

        await members.revoke_token(hash_secret(member.tracking_token))
        await members.delete(member)
        logger.info(
            f"Member {member_id} deleted, tracking token revoked",
            extra={"member_id": member_id, "account_id": account_id},
        )

    async def stats(self, session: AsyncSession, account_id: str) -> MemberStats:
        counts = await MemberRepository(session).count_by_status(account_id)
        return MemberStats(
            total=sum(counts.values()),
            inside=counts[MemberStatus.INSIDE],
            outside=counts[MemberStatus.OUTSIDE],
            unknown=counts[MemberStatus.UNKNOWN],
        )

    # ------------------------------------------------------------------
    # Home location
    # ------------------------------------------------------------------

    async def get_home_location(self, session: AsyncSession, account_id: str) -> HomeLocation:
        """Get the account's geofence.

        Raises:
            HomeLocationNotSetError: If the admin never set one.
        """
        home = await AccountRepository(session).get_home_location(account_id)
        if home is None:
            raise HomeLocationNotSetError()
        return home

    async def set_home_location(
        self,
        session: AsyncSession,
        account_id: str,
        *,
        lat: float,
        lng: float,
        address: str | None = None,
        radius_m: float | None = None,
    ) -> HomeLocation:
        """Set the account's geofence and re-classify positioned members.

        Members whose last position now falls on the other side of the
        boundary get their status updated without raising alerts: moving the
        fence is not a member crossing it.

        Raises:
            InvalidCoordinatesError: If lat/lng are out of range.
            InvalidRadiusError: If the radius is outside the configured bounds.
        """
        point = validate_coordinates(lat, lng)
        radius = validate_radius(
            radius_m if radius_m is not None else self.settings.geofence_default_radius_m,
            min_radius=self.settings.geofence_min_radius_m,
            max_radius=self.settings.geofence_max_radius_m,
        )
        address = (address or "").strip() or default_address(point)

        home = await AccountRepository(session).set_home_location(
            account_id, lat=point.lat, lng=point.lng, address=address, radius_m=radius
        )

        now = utc_now()
        reclassified = 0
        for member in await MemberRepository(session).list_positioned_by_account(account_id):
            point = GeoPoint(member.last_lat, member.last_lng)  # type: ignore[arg-type]
            status = evaluate(home, point)
            if status != member.status:
                member.status = status
                member.status_changed_at = now
                reclassified += 1
        await session.flush()

        logger.info(
            f"Home location set for account {account_id} (radius {radius:g} m), "
            f"{reclassified} members re-classified",
            extra={"account_id": account_id},
        )
        return home

    # ------------------------------------------------------------------
    # Position updates
    # ------------------------------------------------------------------

    async def update_position(self, token: str, lat: float, lng: float) -> PositionUpdate:
        """Apply a position reported by a member's device.

        Args:
            token: The member's tracking token
            lat: Latitude in degrees
            lng: Longitude in degrees

        Returns:
            The member's resulting status, distance and any alert raised.

        Raises:
            InvalidCoordinatesError: If lat/lng are out of range. Nothing is stored.
            TrackingTokenNotFoundError: If the token is unknown or revoked.
        """
        try:
            position = validate_coordinates(lat, lng)
        except InvalidCoordinatesError:
            record_position_update("rejected")
            raise
        if not token:
            record_position_update("rejected")
            raise TrackingTokenNotFoundError()

        async with self._locks.hold(hash_secret(token)):
            result, alert, recipients = await self._apply_position(token, position)
            if alert is not None:
                self._emitter.dispatch(alert, email_recipients=recipients)
        return result

    async def _apply_position(
        self, token: str, position: GeoPoint
    ) -> tuple[PositionUpdate, Alert | None, list[str] | None]:
        alert: Alert | None = None
        recipients: list[str] | None = None

        async with self._session_factory() as session:
            member = await MemberRepository(session).get_by_token_for_update(token)
            if member is None:
                record_position_update("rejected")
                raise TrackingTokenNotFoundError()

            now = utc_now()
            member.last_lat = position.lat
            member.last_lng = position.lng
            member.last_seen_at = now

            home = await AccountRepository(session).get_home_location(member.account_id)
            if home is None:
                record_position_update("no_home")
                return PositionUpdate(member_id=member.id, status=member.status), None, None

            distance = distance_from_home(home, position)
            new_status = classify(distance, home.radius_m)
            previous = member.status

            if new_status == previous:
                outcome = "unchanged"
            else:
                member.status = new_status
                member.status_changed_at = now
                if previous == MemberStatus.UNKNOWN:
                    outcome = "first_fix"
                else:
                    outcome = "transition"
                    alert = await self._emitter.record_transition(
                        session, member, new_status, now, distance_m=distance
                    )
                    account = await session.get(Account, member.account_id)
                    if account is not None and account.notification_email:
                        recipients = [account.notification_email]

            result = PositionUpdate(
                member_id=member.id,
                status=member.status,
                distance_m=distance,
                transition=alert.type if alert is not None else None,
                alert_id=alert.id if alert is not None else None,
            )

        record_position_update(outcome)
        if outcome != "unchanged":
            logger.info(
                f"Member {result.member_id} {previous.value} -> {new_status.value} "
                f"({distance:.0f} m from home)",
                extra={"member_id": result.member_id, "outcome": outcome},
            )
        return result, alert, recipients


class _MemberRegistrySingleton:
    """Singleton holder for MemberRegistry instance."""

    _instance: MemberRegistry | None = None

    @classmethod
    def get(cls) -> MemberRegistry:
        if cls._instance is None:
            from homefence.core.config import get_settings

            cls._instance = MemberRegistry(get_settings(), get_alert_emitter())
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (for testing)."""
        cls._instance = None


def get_member_registry() -> MemberRegistry:
    """Get the process-wide MemberRegistry."""
    return _MemberRegistrySingleton.get()


def reset_member_registry() -> None:
    """Reset the member registry singleton (for testing)."""
    _MemberRegistrySingleton.reset()
