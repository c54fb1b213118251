"""Tests for geospatial helpers."""

import math

import pytest

from fusioncore.geo import (
    BoundingBox,
    Coordinate,
    bearing,
    bounding_box,
    destination,
    distance,
    parse_coordinates,
    point_in_bounds,
    point_in_radius,
    validate_coordinates,
)


LONDON = Coordinate(51.5074, -0.1278)
PARIS = Coordinate(48.8566, 2.3522)


class TestDistance:
    """Test great-circle distance."""

    def test_zero_for_same_point(self):
        assert distance(LONDON, LONDON) == 0

    def test_symmetric(self):
        assert distance(LONDON, PARIS) == pytest.approx(distance(PARIS, LONDON))

    def test_one_degree_of_longitude_at_equator(self):
        expected = 6371e3 * math.pi / 180
        assert distance((0, 0), (0, 1)) == pytest.approx(expected, rel=1e-9)

    def test_london_to_paris(self):
        assert distance(LONDON, PARIS) == pytest.approx(343_500, rel=0.01)

    def test_accepts_plain_sequences(self):
        assert distance([0, 0], (0, 1)) == pytest.approx(distance(Coordinate(0, 0), Coordinate(0, 1)))


class TestBearing:
    """Test initial bearing."""

    def test_cardinal_directions(self):
        assert bearing((0, 0), (1, 0)) == pytest.approx(0)
        assert bearing((0, 0), (0, 1)) == pytest.approx(90)
        assert bearing((0, 0), (-1, 0)) == pytest.approx(180)
        assert bearing((0, 0), (0, -1)) == pytest.approx(270)

    def test_result_in_range(self):
        for target in [(1, 1), (-1, 1), (-1, -1), (1, -1), (0, 1e-12)]:
            result = bearing((0, 0), target)
            assert 0 <= result < 360


class TestDestination:
    """Test forward projection."""

    @pytest.mark.parametrize("distance_m", [1, 1_000, 100_000, 1_000_000])
    @pytest.mark.parametrize("bearing_deg", [0, 45, 180, 300])
    def test_round_trip_distance(self, distance_m, bearing_deg):
        end = destination(LONDON, distance_m, bearing_deg)
        assert distance(LONDON, end) == pytest.approx(distance_m, abs=1)

    def test_zero_distance_returns_origin(self):
        end = destination(LONDON, 0, 123)
        assert end.lat == pytest.approx(LONDON.lat)
        assert end.lng == pytest.approx(LONDON.lng)

    def test_longitude_wraps_across_antimeridian(self):
        end = destination((0, 179.9), 100_000, 90)
        assert -180 <= end.lng < -179

    def test_returns_coordinate(self):
        assert isinstance(destination(PARIS, 10, 10), Coordinate)


class TestBoundingBox:
    """Test bounding boxes and containment."""

    def test_box_at_equator(self):
        box = bounding_box((0, 0), 110.574)
        assert box.north == pytest.approx(1.0)
        assert box.south == pytest.approx(-1.0)
        assert box.east == pytest.approx(110.574 / 111.320)
        assert box.west == pytest.approx(-110.574 / 111.320)

    def test_longitude_span_grows_with_latitude(self):
        equator = bounding_box((0, 0), 10)
        north = bounding_box((60, 0), 10)
        assert (north.east - north.west) > (equator.east - equator.west)

    def test_point_in_bounds_is_inclusive(self):
        box = BoundingBox(north=10, south=0, east=10, west=0)
        assert point_in_bounds((5, 5), box)
        assert point_in_bounds((10, 10), box)
        assert point_in_bounds((0, 0), box)
        assert not point_in_bounds((10.0001, 5), box)

    def test_point_in_bounds_never_raises(self):
        box = BoundingBox(north=10, south=0, east=10, west=0)
        assert not point_in_bounds(None, box)
        assert not point_in_bounds((5,), box)
        assert not point_in_bounds(("a", "b"), box)
        assert not point_in_bounds((5, 5), None)

    def test_point_in_radius(self):
        nearby = destination(LONDON, 900, 45)
        assert point_in_radius(nearby, LONDON, 1)
        assert not point_in_radius(nearby, LONDON, 0.5)
        assert not point_in_radius(None, LONDON, 1)


class TestParseCoordinates:
    """Test coordinate parsing."""

    def test_validate_coordinates(self):
        assert validate_coordinates(90, 180)
        assert validate_coordinates(-90, -180)
        assert not validate_coordinates(90.1, 0)
        assert not validate_coordinates(0, -180.1)

    def test_string(self):
        assert parse_coordinates("34.5, 69.2") == Coordinate(34.5, 69.2)

    def test_sequence_of_numeric_strings(self):
        assert parse_coordinates(["34.5", "69.2", "ignored"]) == Coordinate(34.5, 69.2)

    @pytest.mark.parametrize(
        "value",
        [None, "", "34.5", "north, east", [34.5], {"lat": 1, "lng": 2}, [True, False], [95, 0]],
    )
    def test_unreadable_values(self, value):
        assert parse_coordinates(value) is None
