"""Geospatial helpers for comparing observation locations.

All angles are decimal degrees and all distances are metres unless a
parameter name says otherwise. The earth is modelled as a sphere of radius
6 371 km.
"""

import math
from typing import Any, NamedTuple, Optional, Sequence

import structlog

from .constants import EARTH_RADIUS_M, KM_PER_DEGREE_LAT, KM_PER_DEGREE_LNG_EQUATOR

logger = structlog.get_logger(__name__)


class Coordinate(NamedTuple):
    """A (latitude, longitude) pair in decimal degrees."""

    lat: float
    lng: float


class BoundingBox(NamedTuple):
    """Axis-aligned box in degrees.

    Longitudes are not normalised across the antimeridian, so a box that
    straddles +/-180 will have ``west > east`` and contain nothing.
    """

    north: float
    south: float
    east: float
    west: float


def validate_coordinates(lat: float, lng: float) -> bool:
    """Return True if both values are within the valid degree ranges."""
    return -90 <= lat <= 90 and -180 <= lng <= 180


def to_coordinate(value: Sequence[float]) -> Coordinate:
    """Coerce a Coordinate or a two-element sequence into a Coordinate."""
    if isinstance(value, Coordinate):
        return value
    return Coordinate(float(value[0]), float(value[1]))


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Great-circle distance between two points using the haversine formula.

    Args:
        a: First point as (lat, lng)
        b: Second point as (lat, lng)

    Returns:
        Distance in metres
    """
    a, b = to_coordinate(a), to_coordinate(b)
    lat1, lng1, lat2, lng2 = map(math.radians, [a.lat, a.lng, b.lat, b.lng])

    dlat = lat2 - lat1
    dlng = lng2 - lng1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_M * c


def bearing(a: Sequence[float], b: Sequence[float]) -> float:
    """Initial compass bearing from ``a`` to ``b`` in degrees [0, 360)."""
    a, b = to_coordinate(a), to_coordinate(b)
    lat1, lng1, lat2, lng2 = map(math.radians, [a.lat, a.lng, b.lat, b.lng])

    y = math.sin(lng2 - lng1) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(lng2 - lng1)

    result = (math.degrees(math.atan2(y, x)) + 360) % 360
    # (x + 360) % 360 can round up to exactly 360.0 for tiny negative angles
    return 0.0 if result >= 360 else result


def destination(origin: Sequence[float], distance_m: float, bearing_deg: float) -> Coordinate:
    """Project a point ``distance_m`` metres from ``origin`` along ``bearing_deg``.

    Args:
        origin: Starting point as (lat, lng)
        distance_m: Distance to travel in metres
        bearing_deg: Initial bearing in degrees

    Returns:
        The destination Coordinate; longitude is wrapped into [-180, 180)
    """
    origin = to_coordinate(origin)
    delta = distance_m / EARTH_RADIUS_M
    theta = math.radians(bearing_deg)
    lat1 = math.radians(origin.lat)
    lng1 = math.radians(origin.lng)

    lat2 = math.asin(
        math.sin(lat1) * math.cos(delta) + math.cos(lat1) * math.sin(delta) * math.cos(theta)
    )
    lng2 = lng1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(lat1),
        math.cos(delta) - math.sin(lat1) * math.sin(lat2),
    )

    lng_deg = (math.degrees(lng2) + 540) % 360 - 180
    return Coordinate(math.degrees(lat2), lng_deg)


def bounding_box(center: Sequence[float], radius_km: float) -> BoundingBox:
    """Approximate square box of half-width ``radius_km`` around ``center``.

    Longitude degrees are scaled by cos(latitude), so the east/west span
    grows without bound as the centre approaches a pole. That inaccuracy is
    accepted; callers working near the poles should not rely on this box.
    """
    center = to_coordinate(center)
    lat_offset = radius_km / KM_PER_DEGREE_LAT
    lng_offset = radius_km / (KM_PER_DEGREE_LNG_EQUATOR * math.cos(math.radians(center.lat)))

    return BoundingBox(
        north=center.lat + lat_offset,
        south=center.lat - lat_offset,
        east=center.lng + lng_offset,
        west=center.lng - lng_offset,
    )


def point_in_bounds(point: Optional[Sequence[float]], box: Optional[BoundingBox]) -> bool:
    """Inclusive containment test. Never raises; bad input is simply outside."""
    if not point or len(point) < 2 or not box:
        return False

    try:
        lat, lng = float(point[0]), float(point[1])
        north, south, east, west = box
    except (TypeError, ValueError):
        return False

    return south <= lat <= north and west <= lng <= east


def point_in_radius(
    point: Optional[Sequence[float]], center: Sequence[float], radius_km: float
) -> bool:
    """Return True if ``point`` lies within ``radius_km`` of ``center``."""
    if not point or len(point) < 2:
        return False
    return distance(point, center) <= radius_km * 1000


def _parse_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(result) else result


def parse_coordinates(value: Any) -> Optional[Coordinate]:
    """Parse a location into a Coordinate.

    Accepts an ordered sequence of at least two numeric-parseable values,
    or a ``"lat, lng"`` string. Returns None for anything else.
    """
    if value is None or value == "":
        return None

    if isinstance(value, str):
        parts = [part.strip() for part in value.split(",")]
    elif isinstance(value, (list, tuple)):
        parts = list(value)
    else:
        logger.warning("coordinate_parse_failed", value=repr(value), reason="unsupported type")
        return None

    if len(parts) < 2:
        logger.warning("coordinate_parse_failed", value=repr(value), reason="too few components")
        return None

    lat, lng = _parse_float(parts[0]), _parse_float(parts[1])
    if lat is None or lng is None:
        logger.warning("coordinate_parse_failed", value=repr(value), reason="not numeric")
        return None

    if not validate_coordinates(lat, lng):
        logger.warning("coordinate_parse_failed", value=repr(value), reason="out of range")
        return None

    return Coordinate(lat, lng)
