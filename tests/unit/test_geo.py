"""Tests for distance and radius filtering."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from servers.event_feed.errors import InvalidArgument
from servers.event_feed.geo import (
    distance_miles,
    haversine_distance_meters,
    is_within,
    validate_radius,
    within_radius,
)
from servers.event_feed.models import CanonicalEvent, GeoPoint, Provenance
from servers.event_feed.taxonomy import HIKING


def make_event(latitude: float, longitude: float, title: str = "Hike") -> CanonicalEvent:
    return CanonicalEvent(
        source_id=title,
        title=title,
        description="",
        activity_type=HIKING,
        location=GeoPoint(latitude=latitude, longitude=longitude),
        start_time=datetime.now(timezone.utc) + timedelta(days=1),
        organizer_name="Club",
        provenance=Provenance.COMMUNITY,
    )


class TestHaversine:
    """Tests for great-circle distance."""

    def test_same_point_is_zero(self):
        point = GeoPoint(latitude=34.05, longitude=-118.25)
        assert haversine_distance_meters(point, point) == 0

    def test_los_angeles_to_san_francisco(self):
        la = GeoPoint(latitude=34.0522, longitude=-118.2437)
        sf = GeoPoint(latitude=37.7749, longitude=-122.4194)

        assert distance_miles(la, sf) == pytest.approx(347, abs=3)

    def test_symmetric(self):
        a = GeoPoint(latitude=10, longitude=20)
        b = GeoPoint(latitude=-30, longitude=100)
        assert haversine_distance_meters(a, b) == pytest.approx(haversine_distance_meters(b, a))

    def test_one_degree_latitude(self):
        a = GeoPoint(latitude=0, longitude=0)
        b = GeoPoint(latitude=1, longitude=0)
        assert haversine_distance_meters(a, b) == pytest.approx(111_195, rel=1e-3)


class TestValidateRadius:
    """Tests for radius validation."""

    def test_zero_allowed(self):
        assert validate_radius(0) == 0

    def test_negative_rejected(self):
        with pytest.raises(InvalidArgument):
            validate_radius(-1)

    def test_nan_rejected(self):
        with pytest.raises(InvalidArgument):
            validate_radius(math.nan)

    def test_invalid_argument_is_value_error(self):
        with pytest.raises(ValueError):
            validate_radius(-0.5)


class TestWithinRadius:
    """Tests for within_radius filtering."""

    @pytest.fixture
    def center(self) -> GeoPoint:
        return GeoPoint(latitude=34.05, longitude=-118.25)

    def test_keeps_nearby_drops_far(self, center):
        near = make_event(34.06, -118.24, "near")
        far = make_event(37.77, -122.42, "far")

        result = within_radius(center, 50, [near, far])

        assert result == [near]

    def test_preserves_order(self, center):
        events = [make_event(34.05 + i * 0.01, -118.25, f"e{i}") for i in range(5)]
        assert within_radius(center, 50, events) == events

    def test_zero_radius_keeps_exact_match_only(self, center):
        exact = make_event(34.05, -118.25, "exact")
        nearby = make_event(34.051, -118.25, "nearby")

        assert within_radius(center, 0, [exact, nearby]) == [exact]

    def test_empty_input(self, center):
        assert within_radius(center, 10, []) == []

    def test_negative_radius_raises(self, center):
        with pytest.raises(InvalidArgument):
            within_radius(center, -5, [make_event(34.05, -118.25)])

    def test_larger_radius_is_superset(self, center):
        events = [make_event(34.05 + i * 0.2, -118.25, f"e{i}") for i in range(10)]

        small = within_radius(center, 20, events)
        large = within_radius(center, 60, events)

        assert set(e.id for e in small) <= set(e.id for e in large)
        assert len(small) < len(large)

    def test_is_within_boundary_inclusive(self, center):
        point = GeoPoint(latitude=34.1, longitude=-118.25)
        exact = distance_miles(center, point)
        assert is_within(center, point, exact)
