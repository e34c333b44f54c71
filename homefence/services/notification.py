"""Delivery of geofence alerts to people and systems outside the service.

Two channels exist:

- email: one SMTP message per alert ("Asha left home") to the account's
  notification address, or to ``DEFAULT_EMAIL_RECIPIENTS``
- webhook: a JSON POST of the alert to ``DEFAULT_WEBHOOK_URL``

A channel is used only when its settings are present. ``deliver_alert`` never
raises: every channel outcome, failures included, comes back in the
DeliveryResult, and the alert emitter decides what to persist from it
(``email_sent``).

smtplib is blocking, so the SMTP session runs in the loop's default executor.
"""

from __future__ import annotations

import asyncio
import html
import smtplib
import ssl
from dataclasses import dataclass, field
from datetime import datetime
from email.message import EmailMessage
from enum import Enum
from typing import TYPE_CHECKING, Any

import httpx

from homefence.core.exceptions import EmailDeliveryError
from homefence.core.logging import get_logger, sanitize_error
from homefence.core.metrics import record_notification
from homefence.core.time_utils import ensure_utc, utc_now
from homefence.models import AlertType

if TYPE_CHECKING:
    from homefence.core.config import Settings
    from homefence.models import Alert

logger = get_logger(__name__)

_WHEN_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


class NotificationChannel(str, Enum):
    EMAIL = "email"
    WEBHOOK = "webhook"


@dataclass
class NotificationDelivery:
    """Outcome of one channel for one alert."""

    channel: NotificationChannel
    success: bool
    error: str | None = None
    delivered_at: datetime | None = None
    recipient: str | None = None

    @classmethod
    def ok(cls, channel: NotificationChannel, recipient: str) -> NotificationDelivery:
        return cls(channel=channel, success=True, delivered_at=utc_now(), recipient=recipient)

    @classmethod
    def failed(
        cls, channel: NotificationChannel, error: str, recipient: str | None = None
    ) -> NotificationDelivery:
        return cls(channel=channel, success=False, error=error, recipient=recipient)

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel.value,
            "success": self.success,
            "error": self.error,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "recipient": self.recipient,
        }


@dataclass
class DeliveryResult:
    """Outcomes of every channel attempted for an alert."""

    alert_id: str
    deliveries: list[NotificationDelivery] = field(default_factory=list)
    all_successful: bool = False

    @property
    def successful_count(self) -> int:
        return sum(d.success for d in self.deliveries)

    @property
    def failed_count(self) -> int:
        return len(self.deliveries) - self.successful_count

    @property
    def email_delivered(self) -> bool:
        """Whether an email for the alert reached the SMTP server."""
        return any(
            d.success for d in self.deliveries if d.channel == NotificationChannel.EMAIL
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "alert_id": self.alert_id,
            "deliveries": [d.to_dict() for d in self.deliveries],
            "all_successful": self.all_successful,
            "successful_count": self.successful_count,
            "failed_count": self.failed_count,
        }


def _headline(alert: Alert) -> str:
    verb = "arrived home" if alert.type == AlertType.ENTERED else "left home"
    return f"{alert.member_name} {verb}"


def _describe_position(alert: Alert) -> tuple[str, str]:
    if alert.lat is None or alert.lng is None:
        position = "Unknown"
    else:
        position = f"{alert.lat:.5f}, {alert.lng:.5f}"
    distance = "Unknown" if alert.distance_m is None else f"{alert.distance_m:.0f} m"
    return position, distance


class NotificationService:
    """Sends alert notifications over the configured channels.

    Args:
        settings: Application settings (SMTP, webhook, app name)
        http_client: Client for webhook requests; created lazily when omitted
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None):
        self.settings = settings
        self._http_client = http_client

    async def close(self) -> None:
        """Close the webhook HTTP client, if one was opened."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def get_available_channels(self) -> list[NotificationChannel]:
        """Channels whose settings are complete, email first."""
        channels = []
        if self.settings.smtp_host and self.settings.smtp_from_address:
            channels.append(NotificationChannel.EMAIL)
        if self.settings.default_webhook_url:
            channels.append(NotificationChannel.WEBHOOK)
        return channels

    # ------------------------------------------------------------------
    # Email
    # ------------------------------------------------------------------

    async def send_email(
        self,
        alert: Alert,
        recipients: list[str] | None = None,
    ) -> NotificationDelivery:
        """Email an alert.

        Args:
            alert: The alert to announce
            recipients: Addresses to send to; DEFAULT_EMAIL_RECIPIENTS when empty

        Returns:
            A successful delivery, or a failed one when SMTP is not configured
            or nobody is left to send to.

        Raises:
            EmailDeliveryError: If the SMTP session fails.
        """
        if NotificationChannel.EMAIL not in self.get_available_channels():
            return NotificationDelivery.failed(
                NotificationChannel.EMAIL, "Email is not configured (SMTP host or sender missing)"
            )

        to = recipients or self.settings.default_email_recipients
        if not to:
            return NotificationDelivery.failed(
                NotificationChannel.EMAIL, "No email recipients for this account"
            )

        message = self._compose_email(alert, to)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._send_email_sync, message, to)
        except smtplib.SMTPAuthenticationError as e:
            raise EmailDeliveryError(f"SMTP login rejected: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError(f"SMTP error: {e}") from e

        logger.info(f"Alert {alert.id} emailed to {len(to)} recipient(s)")
        return NotificationDelivery.ok(NotificationChannel.EMAIL, ", ".join(to))

    def _compose_email(self, alert: Alert, recipients: list[str]) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = f"{_headline(alert)} - {self.settings.app_name}"
        message["From"] = self.settings.smtp_from_address or ""
        message["To"] = ", ".join(recipients)

        when = ensure_utc(alert.timestamp).strftime(_WHEN_FORMAT)
        position, distance = _describe_position(alert)
        message.set_content(
            f"{_headline(alert)} at {when}.\n"
            f"Position: {position}\n"
            f"Distance from home: {distance}\n"
        )
        message.add_alternative(self._build_email_body(alert), subtype="html")
        return message

    def _send_email_sync(self, message: EmailMessage, recipients: list[str]) -> None:
        sender = self.settings.smtp_from_address or ""
        with smtplib.SMTP(
            self.settings.smtp_host or "",
            self.settings.smtp_port,
            timeout=self.settings.smtp_timeout_seconds,
        ) as smtp:
            if self.settings.smtp_use_tls:
                smtp.starttls(context=ssl.create_default_context())
            if self.settings.smtp_user and self.settings.smtp_password:
                smtp.login(self.settings.smtp_user, self.settings.smtp_password)
            smtp.sendmail(sender, recipients, message.as_string())

    def _build_email_body(self, alert: Alert) -> str:
        """HTML part of the alert email. Member names are user input and escaped."""
        accent = "#2e7d32" if alert.type == AlertType.ENTERED else "#e65100"
        when = ensure_utc(alert.timestamp).strftime(_WHEN_FORMAT)
        position, distance = _describe_position(alert)
        rows = "".join(
            f'<tr><td style="color:#666;padding:4px 12px 4px 0">{label}</td>'
            f"<td>{html.escape(value)}</td></tr>"
            for label, value in (
                ("Time", when),
                ("Position", position),
                ("Distance from home", distance),
            )
        )
        return (
            '<!DOCTYPE html><html><body style="font-family:sans-serif">'
            f'<h2 style="color:{accent}">{html.escape(_headline(alert))}</h2>'
            f"<table>{rows}</table>"
            f'<p style="color:#999;font-size:12px">Sent by '
            f"{html.escape(self.settings.app_name)}.</p>"
            "</body></html>"
        )

    # ------------------------------------------------------------------
    # Webhook
    # ------------------------------------------------------------------

    async def send_webhook(
        self,
        alert: Alert,
        webhook_url: str | None = None,
    ) -> NotificationDelivery:
        """POST the alert as JSON. Failures are returned, not raised."""
        url = webhook_url or self.settings.default_webhook_url
        if not url:
            return NotificationDelivery.failed(
                NotificationChannel.WEBHOOK, "No webhook URL configured"
            )

        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.webhook_timeout_seconds)
            )

        try:
            response = await self._http_client.post(url, json=self._webhook_payload(alert))
        except httpx.TimeoutException:
            error = f"Webhook timed out after {self.settings.webhook_timeout_seconds}s"
            logger.warning(f"Alert {alert.id}: {error}")
            return NotificationDelivery.failed(NotificationChannel.WEBHOOK, error, url)
        except httpx.RequestError as e:
            error = f"Webhook request failed: {sanitize_error(e)}"
            logger.warning(f"Alert {alert.id}: {error}")
            return NotificationDelivery.failed(NotificationChannel.WEBHOOK, error, url)

        if not response.is_success:
            # Response bodies stay out of the log
            logger.warning(f"Alert {alert.id}: webhook answered {response.status_code}")
            return NotificationDelivery.failed(
                NotificationChannel.WEBHOOK,
                f"Webhook returned status {response.status_code}",
                url,
            )

        logger.info(f"Alert {alert.id} posted to webhook")
        return NotificationDelivery.ok(NotificationChannel.WEBHOOK, url)

    def _webhook_payload(self, alert: Alert) -> dict[str, Any]:
        return {
            "type": "geofence_alert",
            "source": "homefence",
            "sent_at": utc_now().isoformat(),
            "alert": {
                "id": alert.id,
                "member_id": alert.member_id,
                "member_name": alert.member_name,
                "type": alert.type.value,
                "timestamp": ensure_utc(alert.timestamp).isoformat(),
                "lat": alert.lat,
                "lng": alert.lng,
                "distance_m": alert.distance_m,
            },
        }

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def deliver_alert(
        self,
        alert: Alert,
        channels: list[NotificationChannel] | None = None,
        email_recipients: list[str] | None = None,
        webhook_url: str | None = None,
    ) -> DeliveryResult:
        """Send an alert over ``channels`` (every configured channel by default).

        Channels are tried one after another. An SMTP failure becomes a failed
        email delivery in the result; nothing is raised.
        """
        if not self.settings.notification_enabled:
            logger.debug(f"Notifications disabled, alert {alert.id} not delivered")
            return DeliveryResult(alert_id=alert.id, all_successful=True)

        if channels is None:
            channels = self.get_available_channels()
        if not channels:
            logger.debug(f"No notification channel configured for alert {alert.id}")
            return DeliveryResult(alert_id=alert.id, all_successful=True)

        deliveries = []
        for channel in channels:
            if channel == NotificationChannel.EMAIL:
                try:
                    delivery = await self.send_email(alert, email_recipients)
                except EmailDeliveryError as e:
                    logger.error(f"Alert {alert.id} email failed: {sanitize_error(e)}")
                    delivery = NotificationDelivery.failed(channel, e.message)
            else:
                delivery = await self.send_webhook(alert, webhook_url)
            record_notification(channel.value, delivery.success)
            deliveries.append(delivery)

        result = DeliveryResult(
            alert_id=alert.id,
            deliveries=deliveries,
            all_successful=all(d.success for d in deliveries),
        )
        if result.failed_count:
            logger.warning(
                f"Alert {alert.id}: {result.failed_count} of {len(deliveries)} "
                "notification(s) failed"
            )
        return result


class _NotificationServiceSingleton:
    """Singleton holder for NotificationService instance."""

    _instance: NotificationService | None = None

    @classmethod
    def get(cls, settings: Settings) -> NotificationService:
        if cls._instance is None:
            cls._instance = NotificationService(settings)
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (for testing)."""
        cls._instance = None


def get_notification_service(settings: Settings) -> NotificationService:
    """Get or create the process-wide NotificationService."""
    return _NotificationServiceSingleton.get(settings)


def reset_notification_service() -> None:
    """Reset the notification service singleton (for testing)."""
    _NotificationServiceSingleton.reset()
