"""In-memory store of previously retrieved provider events."""

from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from ..geo import is_within, validate_radius
from ..models import GeoPoint, RawProviderEvent, utcnow

logger = structlog.get_logger()


class ProviderEventCache:
    """Keeps the latest copy of each provider listing, keyed by content hash.

    Serves as the fallback when the provider cannot be called.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock
        self.events: dict[str, RawProviderEvent] = {}

    def store(self, events: list[RawProviderEvent]) -> None:
        for event in events:
            self.events[event.content_hash] = event
        logger.debug("provider_events_cached", stored=len(events), total=len(self.events))

    def upcoming_within(self, location: GeoPoint, radius_miles: float) -> list[RawProviderEvent]:
        """Cached events that have not started and lie within the radius."""
        validate_radius(radius_miles)
        now = self.clock()
        matches = [
            event for event in self.events.values()
            if event.start_time > now
            and event.location is not None
            and is_within(location, event.location, radius_miles)
        ]
        return sorted(matches, key=lambda e: e.start_time)

    def fresh_within(
        self,
        location: GeoPoint,
        radius_miles: float,
        max_age: timedelta,
    ) -> Optional[list[RawProviderEvent]]:
        """Upcoming events retrieved less than ``max_age`` ago, or None if there are none."""
        cutoff = self.clock() - max_age
        fresh = [
            event for event in self.upcoming_within(location, radius_miles)
            if event.retrieved_at >= cutoff
        ]
        return fresh or None

    def prune(self) -> int:
        """Drop events that have already started. Returns the number removed."""
        now = self.clock()
        stale = [key for key, event in self.events.items() if event.start_time <= now]
        for key in stale:
            del self.events[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self.events)
