"""Geofence evaluation.

Pure functions classifying a reported position against a circular geofence.
Distances are great-circle (haversine) distances on a sphere of mean Earth
radius. The boundary is closed: a position exactly ``radius_m`` away from the
center is inside.

Example:
    home = HomeLocation(lat=28.6139, lng=77.2090, radius_m=500)
    evaluate(home, GeoPoint(28.6140, 77.2091))  # MemberStatus.INSIDE
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from homefence.core.exceptions import InvalidCoordinatesError, InvalidRadiusError
from homefence.models import MemberStatus

if TYPE_CHECKING:
    from homefence.models import HomeLocation

EARTH_RADIUS_M = 6_371_000.0


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """A WGS84 position in degrees."""

    lat: float
    lng: float


def validate_coordinates(lat: float, lng: float) -> GeoPoint:
    """Validate a latitude/longitude pair.

    Args:
        lat: Latitude in degrees, [-90, 90]
        lng: Longitude in degrees, [-180, 180]

    Returns:
        The validated position.

    Raises:
        InvalidCoordinatesError: If either value is not finite or out of range.
    """
    try:
        lat_f = float(lat)
        lng_f = float(lng)
    except (TypeError, ValueError) as e:
        raise InvalidCoordinatesError("Coordinates must be numbers", lat=lat, lng=lng) from e

    if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
        raise InvalidCoordinatesError("Coordinates must be finite", lat=lat, lng=lng)
    if not -90.0 <= lat_f <= 90.0:
        raise InvalidCoordinatesError(
            f"Latitude must be between -90 and 90, got {lat_f:g}", lat=lat, lng=lng
        )
    if not -180.0 <= lng_f <= 180.0:
        raise InvalidCoordinatesError(
            f"Longitude must be between -180 and 180, got {lng_f:g}", lat=lat, lng=lng
        )
    return GeoPoint(lat_f, lng_f)


def validate_radius(radius_m: float, *, min_radius: float, max_radius: float) -> float:
    """Check a geofence radius against the configured bounds (inclusive).

    Raises:
        InvalidRadiusError: If the radius is not finite or outside the bounds.
    """
    radius = float(radius_m)
    if not math.isfinite(radius) or not min_radius <= radius <= max_radius:
        raise InvalidRadiusError(radius, min_radius=min_radius, max_radius=max_radius)
    return radius


def haversine_distance(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in meters."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dphi = math.radians(b.lat - a.lat)
    dlambda = math.radians(b.lng - a.lng)

    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # Rounding can push h marginally above 1 for antipodal points
    h = min(1.0, h)
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def classify(distance_m: float, radius_m: float) -> MemberStatus:
    """Classify a distance against a radius; the boundary counts as inside."""
    return MemberStatus.INSIDE if distance_m <= radius_m else MemberStatus.OUTSIDE


def distance_from_home(home: HomeLocation, position: GeoPoint) -> float:
    """Distance in meters between a position and the geofence center."""
    return haversine_distance(GeoPoint(home.lat, home.lng), position)


def evaluate(home: HomeLocation, position: GeoPoint) -> MemberStatus:
    """Classify a position as inside or outside the home geofence.

    Args:
        home: Geofence center and radius
        position: Reported position

    Returns:
        MemberStatus.INSIDE or MemberStatus.OUTSIDE
    """
    return classify(distance_from_home(home, position), home.radius_m)


def default_address(point: GeoPoint) -> str:
    """Address used for a location that has none, e.g. a manually entered point."""
    return f"Custom Location at {point.lat:.4f}, {point.lng:.4f}"
