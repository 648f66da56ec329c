"""Tests for the provider event cache."""

from datetime import datetime, timedelta, timezone

import pytest

from servers.event_feed.errors import InvalidArgument
from servers.event_feed.models import GeoPoint, RawProviderEvent
from servers.event_feed.sources.cache import ProviderEventCache

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
CENTER = GeoPoint(latitude=34.05, longitude=-118.25)


def listing(source_id: str, hours_ahead: float, latitude: float = 34.06, retrieved_hours_ago: float = 1) -> RawProviderEvent:
    return RawProviderEvent(
        source_id=source_id,
        name=f"Show {source_id}",
        category="Music",
        location=GeoPoint(latitude=latitude, longitude=-118.24),
        start_time=NOW + timedelta(hours=hours_ahead),
        retrieved_at=NOW - timedelta(hours=retrieved_hours_ago),
    )


class TestProviderEventCache:
    """Tests for ProviderEventCache class."""

    @pytest.fixture
    def cache(self) -> ProviderEventCache:
        return ProviderEventCache(clock=lambda: NOW)

    def test_store_replaces_same_listing(self, cache):
        cache.store([listing("a", 5)])
        cache.store([listing("a", 5, retrieved_hours_ago=0)])

        assert len(cache) == 1

    def test_upcoming_within_sorted(self, cache):
        cache.store([listing("late", 10), listing("early", 2), listing("past", -1)])

        result = cache.upcoming_within(CENTER, 25)

        assert [e.source_id for e in result] == ["early", "late"]

    def test_upcoming_within_excludes_far_and_unlocated(self, cache):
        unlocated = listing("nowhere", 3).model_copy(update={"location": None})
        cache.store([listing("far", 3, latitude=37.0), unlocated, listing("near", 3)])

        assert [e.source_id for e in cache.upcoming_within(CENTER, 25)] == ["near"]

    def test_fresh_within_respects_age(self, cache):
        cache.store([listing("fresh", 3, retrieved_hours_ago=2), listing("stale", 4, retrieved_hours_ago=30)])

        fresh = cache.fresh_within(CENTER, 25, max_age=timedelta(hours=24))

        assert [e.source_id for e in fresh] == ["fresh"]

    def test_fresh_within_none_when_empty(self, cache):
        cache.store([listing("stale", 4, retrieved_hours_ago=30)])
        assert cache.fresh_within(CENTER, 25, max_age=timedelta(hours=24)) is None

    def test_prune_drops_started_events(self, cache):
        cache.store([listing("past", -2), listing("now", 0), listing("future", 2)])

        removed = cache.prune()

        assert removed == 2
        assert len(cache) == 1

    def test_negative_radius(self, cache):
        with pytest.raises(InvalidArgument):
            cache.upcoming_within(CENTER, -1)
