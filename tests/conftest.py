"""Shared pytest fixtures for event feed tests."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from servers.event_feed.engine import AggregationEngine
from servers.event_feed.errors import FetchError, RateLimitExceeded
from servers.event_feed.models import GeoPoint, JoinStatus, RawCommunityEvent, RawProviderEvent
from servers.event_feed.sources import InMemoryAttendanceSink, InMemoryCommunityClient, StaticIdentity


def in_days(days: float) -> datetime:
    """An aware UTC time ``days`` from now."""
    return datetime.now(timezone.utc) + timedelta(days=days)


class FakeProvider:
    """Scriptable provider client.

    Set ``events`` for successful fetches, ``error`` to raise from
    fetch_events, ``can_call`` for the quota answer and ``cached`` for
    what fetch_cached_events returns. When ``hold`` is set, the next
    fetch waits on it before returning.
    """

    def __init__(self, events: Optional[list[RawProviderEvent]] = None):
        self.events = events or []
        self.error: Optional[Exception] = None
        self.can_call = True
        self.cached: list[RawProviderEvent] = []
        self.hold: Optional[asyncio.Event] = None
        self.fetch_calls: list[dict] = []
        self.check_calls = 0

    async def fetch_events(self, user_id, location, radius_miles, force_refresh=False):
        self.fetch_calls.append({
            "user_id": user_id,
            "location": location,
            "radius_miles": radius_miles,
            "force_refresh": force_refresh,
        })
        error, events = self.error, list(self.events)
        if self.hold is not None:
            hold, self.hold = self.hold, None
            await hold.wait()
        if error is not None:
            raise error
        return events

    async def check_can_call(self, user_id):
        self.check_calls += 1
        return self.can_call

    async def fetch_cached_events(self, location, radius_miles):
        return list(self.cached)


class FakeCommunity:
    """Scriptable community client.

    RSVPs land in ``joins`` keyed by (user_id, event_id); ``join_error``
    makes join_event and leave_event raise. attendee_count reports the
    number of "going" RSVPs.
    """

    def __init__(self, events: Optional[list[RawCommunityEvent]] = None):
        self.events = events or []
        self.error: Optional[Exception] = None
        self.join_error: Optional[Exception] = None
        self.joins: dict[tuple[str, str], JoinStatus] = {}
        self.fetch_calls = 0

    async def fetch_nearby(self, location, radius_miles):
        self.fetch_calls += 1
        if self.error is not None:
            raise self.error
        return list(self.events)

    async def join_event(self, user_id, event_id, status=JoinStatus.GOING):
        if self.join_error is not None:
            raise self.join_error
        self.joins[(user_id, event_id)] = status

    async def leave_event(self, user_id, event_id):
        if self.join_error is not None:
            raise self.join_error
        self.joins.pop((user_id, event_id), None)

    async def has_joined(self, user_id, event_id):
        return (user_id, event_id) in self.joins

    async def attendee_count(self, event_id):
        return sum(1 for (_, joined), status in self.joins.items() if joined == event_id and status == JoinStatus.GOING)


@pytest.fixture
def los_angeles() -> GeoPoint:
    """Provide the Los Angeles reference point."""
    return GeoPoint(latitude=34.05, longitude=-118.25, name="Los Angeles")


@pytest.fixture
def nba_event(los_angeles: GeoPoint) -> RawProviderEvent:
    """Provide a basketball game 2 miles from the reference point."""
    return RawProviderEvent(
        source_id="tm-nba-1",
        name="NBA Game",
        category="Sports",
        genre="Basketball",
        venue_name="Crypto.com Arena",
        city="Los Angeles",
        location=GeoPoint(latitude=34.043, longitude=-118.267),
        start_time=in_days(2),
        image_url="https://example.com/nba.jpg",
    )


@pytest.fixture
def obscure_event() -> RawProviderEvent:
    """Provide a provider event whose category maps to nothing."""
    return RawProviderEvent(
        source_id="tm-obscure-1",
        name="Obscure Topic Meetup",
        category="Obscure Topic",
        venue_name="Convention Center",
        location=GeoPoint(latitude=34.04, longitude=-118.27),
        start_time=in_days(1),
    )


@pytest.fixture
def trail_run() -> RawCommunityEvent:
    """Provide a community run starting in three days."""
    return RawCommunityEvent(
        id="c-run-1",
        name="Morning Trail Run",
        description="5K trail run, all levels welcome",
        activity_type_id=1,
        location=GeoPoint(latitude=34.06, longitude=-118.24),
        start_time=in_days(3),
        venue_name="Griffith Park",
        organizer_name="LA Trail Runners",
        attendee_count=12,
    )


@pytest.fixture
def fake_provider(nba_event: RawProviderEvent) -> FakeProvider:
    return FakeProvider([nba_event])


@pytest.fixture
def fake_community(trail_run: RawCommunityEvent) -> FakeCommunity:
    return FakeCommunity([trail_run])


@pytest.fixture
def identity() -> StaticIdentity:
    return StaticIdentity("user-1")


@pytest.fixture
def attendance() -> InMemoryAttendanceSink:
    return InMemoryAttendanceSink()


@pytest.fixture
def engine(identity, fake_provider, fake_community, attendance, los_angeles) -> AggregationEngine:
    """Provide an engine with a location set and a short debounce."""
    feed = AggregationEngine(
        identity=identity,
        provider=fake_provider,
        community=fake_community,
        attendance=attendance,
        radius_miles=50,
        debounce_seconds=0.05,
    )
    feed.set_location(los_angeles)
    return feed


@pytest.fixture
def rate_limit_error() -> RateLimitExceeded:
    return RateLimitExceeded()


@pytest.fixture
def network_error() -> FetchError:
    return FetchError("ticketmaster", "Network error: connection reset")


@pytest.fixture
def community_client(trail_run: RawCommunityEvent) -> InMemoryCommunityClient:
    client = InMemoryCommunityClient()
    client.add(trail_run)
    return client
