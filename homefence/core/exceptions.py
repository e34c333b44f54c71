"""Errors raised by the Homefence service layer.

Each class carries the HTTP status and machine-readable code it is reported
with; the handlers in ``homefence.api.exception_handlers`` turn them into the
error envelope. Services raise these instead of FastAPI HTTPExceptions, so
the same code paths work outside a request (startup, background delivery).
"""

from __future__ import annotations

from typing import Any


class HomefenceError(Exception):
    """Base exception for all application-specific errors."""

    default_message: str = "An unexpected error occurred"
    default_error_code: str = "INTERNAL_ERROR"
    default_status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.status_code = status_code or self.default_status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# Validation Errors (400)
class ValidationError(HomefenceError):
    default_message = "Validation failed"
    default_error_code = "VALIDATION_ERROR"
    default_status_code = 400


class InvalidCoordinatesError(ValidationError):
    """Raised when a latitude/longitude pair is missing, not finite or out of range."""

    default_message = "Invalid coordinates"
    default_error_code = "INVALID_COORDINATES"

    def __init__(
        self,
        message: str | None = None,
        *,
        lat: Any = None,
        lng: Any = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if lat is not None:
            details["lat"] = str(lat)
        if lng is not None:
            details["lng"] = str(lng)
        super().__init__(message, details=details, **kwargs)


class InvalidRadiusError(ValidationError):
    default_message = "Geofence radius out of range"
    default_error_code = "INVALID_RADIUS"

    def __init__(
        self,
        radius: float,
        *,
        min_radius: float,
        max_radius: float,
        message: str | None = None,
        **kwargs: Any,
    ) -> None:
        if message is None:
            message = (
                f"Geofence radius must be between {min_radius:g} and {max_radius:g} meters, "
                f"got {radius:g}"
            )
        details = kwargs.pop("details", {}) or {}
        details.update({"radius": radius, "min_radius": min_radius, "max_radius": max_radius})
        super().__init__(message, details=details, **kwargs)


# Auth Errors
class AuthenticationError(HomefenceError):
    default_message = "Authentication required"
    default_error_code = "AUTHENTICATION_REQUIRED"
    default_status_code = 401


# Not Found Errors (404)
class NotFoundError(HomefenceError):
    default_message = "Resource not found"
    default_error_code = "NOT_FOUND"
    default_status_code = 404


class MemberNotFoundError(NotFoundError):
    default_error_code = "MEMBER_NOT_FOUND"

    def __init__(self, member_id: str, message: str | None = None, **kwargs: Any) -> None:
        if message is None:
            message = f"Member with id '{member_id}' not found"
        details = kwargs.pop("details", {}) or {}
        details["member_id"] = member_id
        super().__init__(message, details=details, **kwargs)


class TrackingTokenNotFoundError(NotFoundError):
    """Raised when a position update carries an unknown or revoked tracking token.

    The token itself is never echoed back or logged.
    """

    default_message = "Unknown or revoked tracking token"
    default_error_code = "TRACKING_TOKEN_NOT_FOUND"


class HomeLocationNotSetError(NotFoundError):
    default_message = "Home location has not been set for this account"
    default_error_code = "HOME_LOCATION_NOT_SET"


# External Service Errors (503)
class ExternalServiceError(HomefenceError):
    default_message = "External service temporarily unavailable"
    default_error_code = "SERVICE_UNAVAILABLE"
    default_status_code = 503

    def __init__(
        self,
        message: str | None = None,
        *,
        service_name: str | None = None,
        **kwargs: Any,
    ) -> None:
        self.service_name = service_name
        details = kwargs.pop("details", {}) or {}
        if service_name:
            details["service"] = service_name
        super().__init__(message, details=details, **kwargs)


class GeocodeUnavailableError(ExternalServiceError):
    """Raised when the geocoding provider cannot answer.

    Callers fall back to manual coordinate entry; no retry happens here.
    """

    default_message = "Geocoding service unavailable"
    default_error_code = "GEOCODE_UNAVAILABLE"

    def __init__(
        self,
        message: str | None = None,
        *,
        original_error: Exception | None = None,
        **kwargs: Any,
    ) -> None:
        self.original_error = original_error
        kwargs.setdefault("service_name", "geocoder")
        super().__init__(message, **kwargs)


class EmailDeliveryError(ExternalServiceError):
    """Raised by the email channel when a notification could not be sent.

    The alert emitter records it as ``email_sent=False``; it never fails the
    transition that produced the alert.
    """

    default_message = "Email delivery failed"
    default_error_code = "EMAIL_DELIVERY_FAILED"

    def __init__(self, message: str | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("service_name", "smtp")
        super().__init__(message, **kwargs)
