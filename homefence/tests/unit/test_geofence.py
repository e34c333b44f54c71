"""Unit tests for geofence distance and classification."""

import math

import pytest

from homefence.core.exceptions import InvalidCoordinatesError, InvalidRadiusError
from homefence.models import MemberStatus
from homefence.services.geofence import (
    EARTH_RADIUS_M,
    GeoPoint,
    classify,
    default_address,
    distance_from_home,
    evaluate,
    haversine_distance,
    validate_coordinates,
    validate_radius,
)
from homefence.tests.factories import (
    FAR_LAT,
    FAR_LNG,
    HOME_LAT,
    HOME_LNG,
    NEAR_LAT,
    NEAR_LNG,
    HomeLocationFactory,
)

HOME = GeoPoint(HOME_LAT, HOME_LNG)


class TestHaversineDistance:
    """Tests for great-circle distance."""

    def test_same_point_is_zero(self) -> None:
        assert haversine_distance(HOME, HOME) == 0.0

    def test_one_degree_of_longitude_on_equator(self) -> None:
        expected = 2 * math.pi * EARTH_RADIUS_M / 360
        distance = haversine_distance(GeoPoint(0.0, 0.0), GeoPoint(0.0, 1.0))
        assert distance == pytest.approx(expected, rel=1e-9)

    def test_antipodal_points(self) -> None:
        """Antipodal points are half the circumference apart without a math domain error."""
        distance = haversine_distance(GeoPoint(0.0, 0.0), GeoPoint(0.0, 180.0))
        assert distance == pytest.approx(math.pi * EARTH_RADIUS_M, rel=1e-9)

    def test_symmetric(self) -> None:
        far = GeoPoint(FAR_LAT, FAR_LNG)
        assert haversine_distance(HOME, far) == pytest.approx(haversine_distance(far, HOME))

    def test_nearby_point_is_a_few_meters_away(self) -> None:
        distance = haversine_distance(HOME, GeoPoint(NEAR_LAT, NEAR_LNG))
        assert 10 < distance < 20

    def test_far_point_is_over_a_kilometer_away(self) -> None:
        distance = haversine_distance(HOME, GeoPoint(FAR_LAT, FAR_LNG))
        assert 1250 < distance < 1290


class TestClassify:
    """Tests for inside/outside classification."""

    def test_inside(self) -> None:
        assert classify(13.0, 500.0) == MemberStatus.INSIDE

    def test_outside(self) -> None:
        assert classify(1270.0, 500.0) == MemberStatus.OUTSIDE

    def test_boundary_is_inside(self) -> None:
        assert classify(500.0, 500.0) == MemberStatus.INSIDE

    def test_just_beyond_boundary_is_outside(self) -> None:
        assert classify(math.nextafter(500.0, math.inf), 500.0) == MemberStatus.OUTSIDE


class TestEvaluate:
    """Tests for evaluating a position against a HomeLocation."""

    def test_near_position_is_inside(self) -> None:
        home = HomeLocationFactory()
        assert evaluate(home, GeoPoint(NEAR_LAT, NEAR_LNG)) == MemberStatus.INSIDE

    def test_far_position_is_outside(self) -> None:
        home = HomeLocationFactory()
        assert evaluate(home, GeoPoint(FAR_LAT, FAR_LNG)) == MemberStatus.OUTSIDE

    def test_far_position_inside_a_large_radius(self) -> None:
        home = HomeLocationFactory(radius_m=2000)
        assert evaluate(home, GeoPoint(FAR_LAT, FAR_LNG)) == MemberStatus.INSIDE

    def test_position_exactly_on_the_circle_is_inside(self) -> None:
        position = GeoPoint(FAR_LAT, FAR_LNG)
        home = HomeLocationFactory()
        home.radius_m = distance_from_home(home, position)
        assert evaluate(home, position) == MemberStatus.INSIDE


class TestValidateCoordinates:
    """Tests for latitude/longitude validation."""

    def test_valid_coordinates(self) -> None:
        assert validate_coordinates(HOME_LAT, HOME_LNG) == HOME

    @pytest.mark.parametrize(
        ("lat", "lng"),
        [(90.0, 180.0), (-90.0, -180.0), (0, 0)],
    )
    def test_range_limits_are_accepted(self, lat: float, lng: float) -> None:
        point = validate_coordinates(lat, lng)
        assert point == GeoPoint(float(lat), float(lng))

    @pytest.mark.parametrize(
        ("lat", "lng"),
        [
            (90.0001, 0.0),
            (-91.0, 0.0),
            (0.0, 180.5),
            (0.0, -181.0),
            (math.nan, 0.0),
            (0.0, math.inf),
        ],
    )
    def test_out_of_range_rejected(self, lat: float, lng: float) -> None:
        with pytest.raises(InvalidCoordinatesError) as exc_info:
            validate_coordinates(lat, lng)
        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == "INVALID_COORDINATES"

    def test_non_numeric_rejected(self) -> None:
        with pytest.raises(InvalidCoordinatesError):
            validate_coordinates("north", 0.0)  # type: ignore[arg-type]

    def test_missing_value_rejected(self) -> None:
        with pytest.raises(InvalidCoordinatesError):
            validate_coordinates(None, 0.0)  # type: ignore[arg-type]


class TestValidateRadius:
    """Tests for radius bounds."""

    def test_bounds_are_inclusive(self) -> None:
        assert validate_radius(100, min_radius=100, max_radius=2000) == 100.0
        assert validate_radius(2000, min_radius=100, max_radius=2000) == 2000.0

    @pytest.mark.parametrize("radius", [99.9, 2000.1, 0, -5, math.nan])
    def test_out_of_bounds_rejected(self, radius: float) -> None:
        with pytest.raises(InvalidRadiusError) as exc_info:
            validate_radius(radius, min_radius=100, max_radius=2000)
        assert exc_info.value.error_code == "INVALID_RADIUS"
        assert exc_info.value.details["min_radius"] == 100
        assert exc_info.value.details["max_radius"] == 2000


def test_default_address_rounds_to_four_decimals() -> None:
    assert default_address(GeoPoint(28.61394, 77.20902)) == "Custom Location at 28.6139, 77.2090"
