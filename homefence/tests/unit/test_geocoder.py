"""Unit tests for the Nominatim geocoder client.

The provider is replaced by an httpx.MockTransport; no network access.
"""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from homefence.core.config import Settings
from homefence.core.exceptions import (
    GeocodeUnavailableError,
    InvalidCoordinatesError,
    ValidationError,
)
from homefence.services.geocoder import MAX_QUERY_LENGTH, GeocodeMatch, GeocoderClient

Handler = Callable[[httpx.Request], httpx.Response]

CONNAUGHT_PLACE = {
    "lat": "28.6314022",
    "lon": "77.2193791",
    "display_name": "Connaught Place, New Delhi, Delhi, 110001, India",
}


def _client(handler: Handler) -> GeocoderClient:
    return GeocoderClient(Settings(), transport=httpx.MockTransport(handler))


class TestSearch:
    """Tests for address search."""

    async def test_returns_matches(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=[CONNAUGHT_PLACE])

        matches = await _client(handler).search("  Connaught Place  ")

        assert matches == [
            GeocodeMatch(
                lat=28.6314022,
                lng=77.2193791,
                address="Connaught Place, New Delhi, Delhi, 110001, India",
            )
        ]
        request = requests[0]
        assert request.url.host == "nominatim.openstreetmap.org"
        assert request.url.path == "/search"
        assert request.url.params["q"] == "Connaught Place"
        assert request.url.params["format"] == "jsonv2"
        assert request.url.params["limit"] == "5"
        assert request.headers["User-Agent"] == "homefence/0.1"

    async def test_no_matches(self) -> None:
        matches = await _client(lambda request: httpx.Response(200, json=[])).search("nowhere")
        assert matches == []

    @pytest.mark.parametrize("query", ["", "   "])
    async def test_blank_query_rejected(self, query: str) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("provider must not be called")

        with pytest.raises(ValidationError):
            await _client(handler).search(query)

    async def test_overlong_query_rejected(self) -> None:
        with pytest.raises(ValidationError):
            await _client(lambda request: httpx.Response(200, json=[])).search(
                "x" * (MAX_QUERY_LENGTH + 1)
            )

    async def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(GeocodeUnavailableError) as exc_info:
            await _client(handler).search("Connaught Place")

        assert exc_info.value.status_code == 503
        assert exc_info.value.error_code == "GEOCODE_UNAVAILABLE"
        assert isinstance(exc_info.value.original_error, httpx.ReadTimeout)

    async def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GeocodeUnavailableError, match="Failed to connect"):
            await _client(handler).search("Connaught Place")

    @pytest.mark.parametrize("status_code", [429, 500, 503])
    async def test_error_status(self, status_code: int) -> None:
        with pytest.raises(GeocodeUnavailableError, match=str(status_code)):
            await _client(lambda request: httpx.Response(status_code)).search("Connaught Place")

    async def test_invalid_json(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>not json</html>")

        with pytest.raises(GeocodeUnavailableError, match="invalid JSON"):
            await _client(handler).search("Connaught Place")

    @pytest.mark.parametrize(
        "body",
        [{"error": "oops"}, [{"lat": "28.6"}], [{"lat": "north", "lon": "1", "display_name": "x"}]],
    )
    async def test_malformed_response(self, body: object) -> None:
        with pytest.raises(GeocodeUnavailableError, match="Malformed"):
            await _client(lambda request: httpx.Response(200, json=body)).search("Connaught")


class TestReverse:
    """Tests for reverse geocoding."""

    async def test_returns_address(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=CONNAUGHT_PLACE)

        address = await _client(handler).reverse(28.6314, 77.2194)

        assert address == CONNAUGHT_PLACE["display_name"]
        assert requests[0].url.path == "/reverse"
        assert requests[0].url.params["lat"] == "28.6314"
        assert requests[0].url.params["lon"] == "77.2194"

    async def test_no_address_falls_back_to_coordinates(self) -> None:
        client = _client(lambda request: httpx.Response(200, json={"error": "Unable to geocode"}))

        address = await client.reverse(0.0, -30.0)

        assert address == "Custom Location at 0.0000, -30.0000"

    async def test_invalid_coordinates(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("provider must not be called")

        with pytest.raises(InvalidCoordinatesError):
            await _client(handler).reverse(100.0, 0.0)

    async def test_list_response_is_malformed(self) -> None:
        with pytest.raises(GeocodeUnavailableError):
            await _client(lambda request: httpx.Response(200, json=[])).reverse(0.0, 0.0)

    async def test_error_status(self) -> None:
        with pytest.raises(GeocodeUnavailableError):
            await _client(lambda request: httpx.Response(502)).reverse(28.6, 77.2)
