"""In-process alert broadcaster for real-time subscribers.

Keeps, per account, the set of subscriber queues interested in new alerts.
Dashboards subscribe over a WebSocket and receive every alert created for
their account; polling ``GET /api/alerts`` remains the fallback.

A slow subscriber never blocks publishing: when its queue is full the alert
is dropped for that subscriber only and a warning is logged.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any

from homefence.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_QUEUE_SIZE = 100


class AlertBroadcaster:
    """Registry of alert subscribers grouped by account id."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[str, set[asyncio.Queue[dict[str, Any]]]] = defaultdict(set)

    def subscribe(self, account_id: str) -> asyncio.Queue[dict[str, Any]]:
        """Register a new subscriber for an account's alerts.

        Returns:
            The queue that will receive alert payloads.
        """
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[account_id].add(queue)
        logger.debug(
            f"Alert subscriber added for account {account_id}. "
            f"Subscribers: {len(self._subscribers[account_id])}"
        )
        return queue

    def unsubscribe(self, account_id: str, queue: asyncio.Queue[dict[str, Any]]) -> None:
        """Remove a subscriber; unknown queues are ignored."""
        queues = self._subscribers.get(account_id)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[account_id]

    def subscriber_count(self, account_id: str) -> int:
        return len(self._subscribers.get(account_id, ()))

    def publish(self, account_id: str, payload: dict[str, Any]) -> int:
        """Deliver an alert payload to every subscriber of the account.

        Returns:
            Number of subscribers the payload was queued for.
        """
        delivered = 0
        for queue in list(self._subscribers.get(account_id, ())):
            try:
                queue.put_nowait(payload)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(f"Alert subscriber queue full for account {account_id}, dropping")
        return delivered


class _AlertBroadcasterSingleton:
    """Singleton holder for AlertBroadcaster instance."""

    _instance: AlertBroadcaster | None = None

    @classmethod
    def get(cls) -> AlertBroadcaster:
        if cls._instance is None:
            cls._instance = AlertBroadcaster()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (for testing)."""
        cls._instance = None


def get_alert_broadcaster() -> AlertBroadcaster:
    """Get the process-wide AlertBroadcaster."""
    return _AlertBroadcasterSingleton.get()


def reset_alert_broadcaster() -> None:
    """Reset the alert broadcaster singleton (for testing)."""
    _AlertBroadcasterSingleton.reset()
