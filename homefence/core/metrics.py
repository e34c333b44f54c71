"""Prometheus metrics definitions and utilities for observability.

Metric Naming Conventions:
- All metrics are prefixed with 'homefence_'
- Counters end with '_total'
- Histograms/durations end with '_seconds'

Usage:
    from homefence.core.metrics import record_position_update, record_alert_created

    record_position_update("transition")
    record_alert_created("entered")
"""

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from homefence.core.logging import get_logger

logger = get_logger(__name__)

_registry = REGISTRY

# =============================================================================
# Position Update Counters
# =============================================================================

# result: "unchanged", "transition", "first_fix", "no_home", "rejected"
POSITION_UPDATES_TOTAL = Counter(
    "homefence_position_updates_total",
    "Total number of member position updates by outcome",
    labelnames=["result"],
    registry=_registry,
)

POSITION_UPDATE_RESULTS = ("unchanged", "transition", "first_fix", "no_home", "rejected")

# =============================================================================
# Alert / Notification Counters
# =============================================================================

ALERTS_CREATED_TOTAL = Counter(
    "homefence_alerts_created_total",
    "Total number of geofence alerts created by type",
    labelnames=["alert_type"],
    registry=_registry,
)

NOTIFICATIONS_TOTAL = Counter(
    "homefence_notifications_total",
    "Notification delivery attempts by channel and outcome",
    labelnames=["channel", "outcome"],
    registry=_registry,
)

PENDING_NOTIFICATIONS = Gauge(
    "homefence_pending_notifications",
    "Number of notification deliveries currently in flight",
    registry=_registry,
)

# =============================================================================
# Geocoder
# =============================================================================

GEOCODE_REQUESTS_TOTAL = Counter(
    "homefence_geocode_requests_total",
    "Geocoder requests by operation and outcome",
    labelnames=["operation", "outcome"],
    registry=_registry,
)

GEOCODE_REQUEST_DURATION_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

GEOCODE_REQUEST_DURATION = Histogram(
    "homefence_geocode_request_duration_seconds",
    "Duration of geocoder requests",
    labelnames=["operation"],
    buckets=GEOCODE_REQUEST_DURATION_BUCKETS,
    registry=_registry,
)

# =============================================================================
# Helper Functions
# =============================================================================


def record_position_update(result: str) -> None:
    """Increment the position update counter.

    Args:
        result: Outcome of the update (see POSITION_UPDATE_RESULTS)
    """
    if result not in POSITION_UPDATE_RESULTS:
        logger.warning(f"Unknown position update result for metrics: {result}")
        return
    POSITION_UPDATES_TOTAL.labels(result=result).inc()


def record_alert_created(alert_type: str) -> None:
    """Increment the alerts created counter."""
    ALERTS_CREATED_TOTAL.labels(alert_type=alert_type).inc()


def record_notification(channel: str, success: bool) -> None:
    """Record the outcome of one notification delivery attempt."""
    NOTIFICATIONS_TOTAL.labels(channel=channel, outcome="sent" if success else "failed").inc()


def record_geocode_request(operation: str, outcome: str, duration_seconds: float) -> None:
    """Record a geocoder request.

    Args:
        operation: "search" or "reverse"
        outcome: "ok", "empty" or "unavailable"
        duration_seconds: Wall-clock duration of the request
    """
    GEOCODE_REQUESTS_TOTAL.labels(operation=operation, outcome=outcome).inc()
    GEOCODE_REQUEST_DURATION.labels(operation=operation).observe(duration_seconds)


def get_metrics_response() -> bytes:
    """Generate the Prometheus metrics response.

    Returns:
        Bytes containing the metrics in Prometheus exposition format
    """
    return generate_latest(_registry)  # type: ignore[no-any-return]
