"""Alert emitter for geofence transitions.

The emitter has two halves:

1. ``record_transition`` runs inside the position update transaction and
   appends the Alert row. If that transaction rolls back, no alert exists.
2. ``dispatch`` runs after the commit. It publishes the alert to live
   subscribers and schedules notification delivery as a background task, so
   the position update response never waits on SMTP or webhooks. Once the
   email is delivered the task flips ``email_sent`` on the stored alert.

Delivery failures are logged and counted; they never propagate to the
position update that produced the alert.

Usage:
    async with get_session() as session:
        alert = await emitter.record_transition(session, member, MemberStatus.OUTSIDE, now)
    emitter.dispatch(alert, email_recipients=["admin@example.com"])
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import TYPE_CHECKING

from homefence.api.schemas.alert import AlertResponse
from homefence.core.database import get_session
from homefence.core.logging import get_logger, sanitize_error
from homefence.core.metrics import PENDING_NOTIFICATIONS, record_alert_created
from homefence.models import Alert, AlertType, MemberStatus
from homefence.repositories import AlertRepository
from homefence.services.alert_broadcaster import AlertBroadcaster, get_alert_broadcaster
from homefence.services.notification import NotificationService, get_notification_service

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from homefence.models import Member

logger = get_logger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager["AsyncSession"]]

_ALERT_TYPE_BY_STATUS = {
    MemberStatus.INSIDE: AlertType.ENTERED,
    MemberStatus.OUTSIDE: AlertType.EXITED,
}


class AlertEmitter:
    """Creates alerts for status transitions and delivers their notifications."""

    def __init__(
        self,
        notification_service: NotificationService,
        broadcaster: AlertBroadcaster,
        session_factory: SessionFactory = get_session,
    ) -> None:
        self._notifications = notification_service
        self._broadcaster = broadcaster
        self._session_factory = session_factory
        self._tasks: set[asyncio.Task[None]] = set()

    async def record_transition(
        self,
        session: AsyncSession,
        member: Member,
        new_status: MemberStatus,
        timestamp: datetime,
        *,
        distance_m: float | None = None,
    ) -> Alert:
        """Append the alert for a member's transition to ``new_status``.

        Args:
            session: Session of the enclosing position update transaction
            member: The member whose classification changed
            new_status: MemberStatus.INSIDE (entered) or MemberStatus.OUTSIDE (exited)
            timestamp: Time of the position fix that caused the transition
            distance_m: Distance from home at that fix

        Returns:
            The new Alert, flushed but not committed.

        Raises:
            ValueError: If ``new_status`` is not inside or outside.
        """
        alert_type = _ALERT_TYPE_BY_STATUS.get(new_status)
        if alert_type is None:
            raise ValueError(f"No alert type for transition to {new_status.value}")

        alert = Alert(
            account_id=member.account_id,
            member_id=member.id,
            member_name=member.name,
            type=alert_type,
            timestamp=timestamp,
            email_sent=False,
            lat=member.last_lat,
            lng=member.last_lng,
            distance_m=distance_m,
        )
        session.add(alert)
        await session.flush()

        record_alert_created(alert_type.value)
        logger.info(
            f"Alert {alert.id}: member {member.id} {alert_type.value}",
            extra={"alert_id": alert.id, "member_id": member.id, "alert_type": alert_type.value},
        )
        return alert

    def dispatch(
        self,
        alert: Alert,
        email_recipients: list[str] | None = None,
    ) -> asyncio.Task[None]:
        """Publish a committed alert and schedule its notification delivery.

        Returns immediately; delivery happens in a background task.
        """
        payload = AlertResponse.model_validate(alert).model_dump(mode="json", by_alias=True)
        self._broadcaster.publish(alert.account_id, payload)

        task = asyncio.create_task(self._deliver(alert, email_recipients))
        self._tasks.add(task)
        PENDING_NOTIFICATIONS.inc()
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        PENDING_NOTIFICATIONS.dec()

    async def _deliver(self, alert: Alert, email_recipients: list[str] | None) -> None:
        try:
            result = await self._notifications.deliver_alert(
                alert, email_recipients=email_recipients
            )
            if result.email_delivered:
                async with self._session_factory() as session:
                    await AlertRepository(session).mark_email_sent(alert.id)
                alert.email_sent = True
        except Exception as e:
            logger.error(
                f"Notification delivery for alert {alert.id} failed: {sanitize_error(e)}",
                extra={"alert_id": alert.id},
            )

    @property
    def pending(self) -> int:
        """Number of notification deliveries still in flight."""
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for all in-flight notification deliveries to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class _AlertEmitterSingleton:
    """Singleton holder for AlertEmitter instance."""

    _instance: AlertEmitter | None = None

    @classmethod
    def get(cls) -> AlertEmitter:
        if cls._instance is None:
            from homefence.core.config import get_settings

            cls._instance = AlertEmitter(
                get_notification_service(get_settings()),
                get_alert_broadcaster(),
            )
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (for testing)."""
        cls._instance = None


def get_alert_emitter() -> AlertEmitter:
    """Get the process-wide AlertEmitter."""
    return _AlertEmitterSingleton.get()


def reset_alert_emitter() -> None:
    """Reset the alert emitter singleton (for testing)."""
    _AlertEmitterSingleton.reset()
