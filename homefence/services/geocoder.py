"""Geocoder client over an OpenStreetMap Nominatim-compatible HTTP API.

Resolves free-text addresses to coordinates (``search``) and coordinates to
an address (``reverse``). The provider is treated as an unreliable,
rate-limited collaborator: every failure to get an answer is raised as
GeocodeUnavailableError and nothing is retried here. The dashboard falls
back to manual coordinate entry.

Error Handling:
    - Connection errors: Raise GeocodeUnavailableError
    - Timeouts: Raise GeocodeUnavailableError
    - HTTP non-2xx responses: Raise GeocodeUnavailableError
    - Invalid JSON or unexpected shape: Raise GeocodeUnavailableError

A reverse lookup the provider answers without an address (open sea, for
example) is not a failure; it yields the "Custom Location at ..." address.

Usage:
    client = GeocoderClient(settings)
    matches = await client.search("Connaught Place, New Delhi")
    address = await client.reverse(28.6139, 77.2090)
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from homefence.core.exceptions import GeocodeUnavailableError, ValidationError
from homefence.core.logging import get_logger, sanitize_error
from homefence.core.metrics import record_geocode_request
from homefence.services.geofence import default_address, validate_coordinates

if TYPE_CHECKING:
    from homefence.core.config import Settings

logger = get_logger(__name__)

MAX_QUERY_LENGTH = 300


@dataclass(frozen=True, slots=True)
class GeocodeMatch:
    """A candidate location for an address query."""

    lat: float
    lng: float
    address: str


class GeocoderClient:
    """Client for a Nominatim-compatible geocoding service.

    Args:
        settings: Application settings (URL, user agent, timeout, result limit)
        transport: Optional httpx transport, used by tests to stub the provider
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = settings.geocoder_url.rstrip("/")
        self._limit = settings.geocoder_result_limit
        self._timeout = httpx.Timeout(settings.geocoder_timeout_seconds)
        # Nominatim's usage policy requires an identifying User-Agent
        self._headers = {
            "User-Agent": settings.geocoder_user_agent,
            "Accept": "application/json",
        }
        self._transport = transport

    async def search(self, query: str) -> list[GeocodeMatch]:
        """Find candidate locations for a free-text address.

        Args:
            query: Address or place name

        Returns:
            Matches in provider order, possibly empty.

        Raises:
            ValidationError: If the query is blank or too long.
            GeocodeUnavailableError: If the provider cannot answer.
        """
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query must not be empty")
        if len(query) > MAX_QUERY_LENGTH:
            raise ValidationError(f"Search query must be at most {MAX_QUERY_LENGTH} characters")

        started = time.monotonic()
        body = await self._get(
            "search",
            "/search",
            {"q": query, "format": "jsonv2", "limit": self._limit},
            started,
        )
        if not isinstance(body, list):
            raise self._malformed("search", "expected a list", started)

        matches = []
        for item in body:
            try:
                matches.append(
                    GeocodeMatch(
                        lat=float(item["lat"]),
                        lng=float(item["lon"]),
                        address=str(item["display_name"]),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                raise self._malformed("search", "bad result entry", started) from e

        record_geocode_request("search", "ok" if matches else "empty", time.monotonic() - started)
        return matches

    async def reverse(self, lat: float, lng: float) -> str:
        """Find the address of a coordinate pair.

        Raises:
            InvalidCoordinatesError: If lat/lng are out of range.
            GeocodeUnavailableError: If the provider cannot answer.
        """
        point = validate_coordinates(lat, lng)

        started = time.monotonic()
        body = await self._get(
            "reverse",
            "/reverse",
            {"lat": point.lat, "lon": point.lng, "format": "jsonv2"},
            started,
        )
        if not isinstance(body, dict):
            raise self._malformed("reverse", "expected an object", started)

        address = body.get("display_name")
        if not address:
            # Provider answered but knows no address for this spot
            record_geocode_request("reverse", "empty", time.monotonic() - started)
            return default_address(point)

        record_geocode_request("reverse", "ok", time.monotonic() - started)
        return str(address)

    async def _get(
        self, operation: str, path: str, params: dict[str, Any], started: float
    ) -> Any:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                headers=self._headers,
                transport=self._transport,
            ) as client:
                response = await client.get(f"{self._base_url}{path}", params=params)
                response.raise_for_status()
            return response.json()

        except httpx.TimeoutException as e:
            raise self._unavailable(operation, "Geocoding request timed out", e, started) from e

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            raise self._unavailable(
                operation, f"Geocoding service returned status {status_code}", e, started
            ) from e

        except httpx.RequestError as e:
            raise self._unavailable(
                operation, "Failed to connect to geocoding service", e, started
            ) from e

        except ValueError as e:
            raise self._unavailable(
                operation, "Geocoding service returned invalid JSON", e, started
            ) from e

    def _unavailable(
        self, operation: str, message: str, error: Exception, started: float
    ) -> GeocodeUnavailableError:
        duration = time.monotonic() - started
        record_geocode_request(operation, "unavailable", duration)
        logger.warning(
            f"{message}: {sanitize_error(error)}",
            extra={"operation": operation, "duration_ms": int(duration * 1000)},
        )
        return GeocodeUnavailableError(message, original_error=error)

    def _malformed(self, operation: str, reason: str, started: float) -> GeocodeUnavailableError:
        record_geocode_request(operation, "unavailable", time.monotonic() - started)
        logger.warning(f"Malformed {operation} response from geocoding service: {reason}")
        return GeocodeUnavailableError("Malformed response from geocoding service")


class _GeocoderClientSingleton:
    """Singleton holder for GeocoderClient instance."""

    _instance: GeocoderClient | None = None

    @classmethod
    def get(cls, settings: Settings) -> GeocoderClient:
        if cls._instance is None:
            cls._instance = GeocoderClient(settings)
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (for testing)."""
        cls._instance = None


def get_geocoder_client(settings: Settings) -> GeocoderClient:
    """Get the process-wide GeocoderClient."""
    return _GeocoderClientSingleton.get(settings)


def reset_geocoder_client() -> None:
    """Reset the geocoder client singleton (for testing)."""
    _GeocoderClientSingleton.reset()
