"""
Aggregation engine for the event feed.

Owns FeedState and coordinates one fetch cycle:
1. Ask the rate-limit gate whether the provider may be called
2. Fetch provider and community events concurrently
3. Normalize, merge, drop past events, order community-first
4. Apply the radius and activity-type filters and publish

Each source failure is contained at its fetch boundary. The feed is only
ever replaced wholesale, and results from a superseded load are discarded.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

import structlog

from .debounce import Debouncer
from .dedup import collapse_provider_duplicates
from .errors import EventNotFound, FeedError, NotAuthenticated, RateLimitExceeded
from .geo import validate_radius, within_radius
from .models import ActivityType, CanonicalEvent, ErrorKind, FeedState, GeoPoint, JoinStatus, utcnow
from .normalizer import normalize_community_event, normalize_provider_events
from .resilience import HealthMonitor, RateLimitGate, cached_or_none, with_default
from .sources.base import AttendanceSink, CommunityEventsClient, IdentityProvider, ProviderEventsClient

logger = structlog.get_logger()

PROVIDER_SOURCE = "ticketmaster"
COMMUNITY_SOURCE = "community"

DEFAULT_RADIUS_MILES = 50.0
DEFAULT_DEBOUNCE_SECONDS = 0.5

RATE_LIMITED_WITH_CACHE = "You've reached your daily search limit. Showing saved events."
RATE_LIMITED_NO_CACHE = (
    "No cached events available for this location. "
    "You've reached your daily search limit. Try again tomorrow!"
)
COMMUNITY_UNAVAILABLE = "Community events are unavailable right now."

FeedSubscriber = Callable[[FeedState], None]


@dataclass
class SourceOutcome:
    """Result of one source fetch after failures were contained.

    ``events`` is None when the source produced nothing usable and the
    existing feed should be kept. ``fresh`` marks provider events retrieved
    by this load (live or from the cache), as opposed to the remembered
    result of an earlier load.
    """

    events: Optional[list[CanonicalEvent]]
    error: Optional[str] = None
    rate_limited: bool = False
    from_cache: bool = False
    fresh: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class _LoadContext:
    seq: int
    user_id: str
    location: GeoPoint
    radius_miles: float
    force_refresh: bool
    started_at: datetime = field(default_factory=utcnow)


class AggregationEngine:
    """Merge provider and community events into one filtered, ordered feed."""

    def __init__(
        self,
        identity: IdentityProvider,
        provider: ProviderEventsClient,
        community: CommunityEventsClient,
        attendance: Optional[AttendanceSink] = None,
        radius_miles: float = DEFAULT_RADIUS_MILES,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize engine with its collaborators.

        Args:
            identity: Source of the signed-in user
            provider: Rate-limited third-party events client
            community: User-created events client
            attendance: Sink for join_event, optional
            radius_miles: Initial search radius
            debounce_seconds: Quiet period before a radius change reloads
            clock: Returns the current aware UTC time
        """
        self.identity = identity
        self.provider = provider
        self.community = community
        self.attendance = attendance
        self.clock = clock

        self.gate = RateLimitGate(provider, name=PROVIDER_SOURCE)
        self.health = HealthMonitor()
        self.debouncer = Debouncer(debounce_seconds, name="radius")

        self.location: Optional[GeoPoint] = None
        self.radius_miles = validate_radius(radius_miles)
        self.activity_type_filter: Optional[ActivityType] = None

        self._state = FeedState()
        self._subscribers: list[FeedSubscriber] = []
        self._last_provider_events: list[CanonicalEvent] = []
        self._seq = 0
        self._applied_seq = 0
        self._in_flight = 0

    # State and subscriptions

    @property
    def state(self) -> FeedState:
        """Read-only snapshot of the feed."""
        return self._state.model_copy(deep=True)

    def subscribe(self, callback: FeedSubscriber) -> Callable[[], None]:
        """Register a callback for every state transition. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self) -> None:
        snapshot = self.state
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                logger.error("feed_subscriber_failed", subscriber=repr(callback), error=str(e))

    # Selection changes

    def set_location(self, point: Optional[GeoPoint]) -> None:
        """Replace the reference location. Does not fetch."""
        self.location = point
        logger.info(
            "location_selected",
            name=point.name if point else None,
            latitude=point.latitude if point else None,
            longitude=point.longitude if point else None,
        )
        self._refilter()

    def set_radius(self, radius_miles: float) -> None:
        """Change the radius and schedule a debounced reload."""
        self.radius_miles = validate_radius(radius_miles)
        self._refilter()
        self.debouncer.schedule(self.load)

    def set_activity_type_filter(self, activity_type: Optional[ActivityType]) -> None:
        """Filter by activity type (None shows all). No network fetch."""
        self.activity_type_filter = activity_type
        self._refilter()

    def dismiss_alert(self) -> None:
        self._state.show_alert = False
        self._publish()

    # Loading

    async def load(self) -> None:
        """Fetch both sources and replace the feed."""
        await self._load(force_refresh=False)

    async def refresh(self, force_refresh: bool = True) -> None:
        """Reload, bypassing the rate-limit pre-check when ``force_refresh`` is set."""
        await self._load(force_refresh=force_refresh)

    async def _load(self, force_refresh: bool) -> None:
        self._seq += 1
        seq = self._seq

        user_id = self.identity.current_user_id()
        if user_id is None:
            logger.info("feed_cleared", reason="no_identity")
            self._applied_seq = seq
            self._state = FeedState()
            self._last_provider_events = []
            self._publish()
            return

        if self.location is None:
            logger.info("load_skipped", reason="no_location")
            return

        ctx = _LoadContext(
            seq=seq,
            user_id=user_id,
            location=self.location,
            radius_miles=self.radius_miles,
            force_refresh=force_refresh,
        )
        logger.info(
            "load_started",
            seq=seq,
            location=ctx.location.name,
            radius_miles=ctx.radius_miles,
            force_refresh=force_refresh,
        )

        self._in_flight += 1
        self._state.is_loading = True
        self._publish()

        try:
            provider_outcome, community_outcome = await asyncio.gather(
                self._fetch_provider(ctx),
                self._fetch_community(ctx),
            )
        finally:
            self._in_flight -= 1
            self._state.is_loading = self._in_flight > 0

        duration_ms = int((utcnow() - ctx.started_at).total_seconds() * 1000)
        logger.debug("load_fetched", seq=seq, duration_ms=duration_ms)

        if seq < self._applied_seq:
            logger.info("stale_load_discarded", seq=seq, applied_seq=self._applied_seq)
            self._publish()
            return

        self._applied_seq = seq
        self._apply(provider_outcome, community_outcome)
        self._publish()

    async def _fetch_provider(self, ctx: _LoadContext) -> SourceOutcome:
        if not ctx.force_refresh:
            allowed = await self.gate.check_can_call(ctx.user_id)
            if not allowed:
                return await self._provider_fallback(ctx, "daily quota exhausted", rate_limited=True)

        try:
            raws = await self.provider.fetch_events(
                ctx.user_id, ctx.location, ctx.radius_miles, ctx.force_refresh
            )
        except RateLimitExceeded as e:
            self.gate.mark_exhausted()
            return await self._provider_fallback(ctx, str(e), rate_limited=True)
        except Exception as e:
            logger.warning("provider_fetch_failed", seq=ctx.seq, error=str(e))
            return await self._provider_fallback(ctx, str(e))

        self.gate.mark_allowed()
        try:
            events = normalize_provider_events(list(raws))
        except Exception as e:
            logger.warning("provider_normalization_failed", seq=ctx.seq, error=str(e))
            return await self._provider_fallback(ctx, str(e))

        self.health.record_success(PROVIDER_SOURCE, len(events))
        return SourceOutcome(events=events, fresh=True)

    async def _provider_fallback(self, ctx: _LoadContext, error: str, rate_limited: bool = False) -> SourceOutcome:
        """Serve cached provider events, or the last in-memory result for non-quota failures."""
        loader = getattr(self.provider, "fetch_cached_events", None)
        cached = await cached_or_none(loader, ctx.location, ctx.radius_miles)

        if cached:
            events = normalize_provider_events(list(cached))
            self.health.record_success(PROVIDER_SOURCE, len(events), cached=True)
            logger.info("provider_cache_fallback", seq=ctx.seq, count=len(events), rate_limited=rate_limited)
            return SourceOutcome(
                events=events, error=error, rate_limited=rate_limited, from_cache=True, fresh=True
            )

        self.health.record_failure(PROVIDER_SOURCE, error, rate_limited=rate_limited)
        if rate_limited:
            return SourceOutcome(events=None, error=error, rate_limited=True)
        return SourceOutcome(events=list(self._last_provider_events), error=error)

    async def _fetch_community(self, ctx: _LoadContext) -> SourceOutcome:
        try:
            raws = await self.community.fetch_nearby(ctx.location, ctx.radius_miles)
            events = [normalize_community_event(raw) for raw in raws]
        except Exception as e:
            self.health.record_failure(COMMUNITY_SOURCE, str(e))
            return SourceOutcome(events=[], error=str(e))

        self.health.record_success(COMMUNITY_SOURCE, len(events))
        return SourceOutcome(events=events)

    # Merge and filter

    def _apply(self, provider: SourceOutcome, community: SourceOutcome) -> None:
        """Write one load's outcome into the state. All-or-nothing for the event lists."""
        if provider.fresh:
            self._last_provider_events = list(provider.events or [])

        state = self._state
        state.rate_limited = provider.rate_limited
        state.show_alert = provider.rate_limited

        keep_existing = provider.events is None or (provider.failed and community.failed and not provider.from_cache)

        if keep_existing:
            logger.info(
                "feed_kept",
                rate_limited=provider.rate_limited,
                provider_error=provider.error,
                community_error=community.error,
            )
        else:
            now = self.clock()
            events = merge_events(provider.events or [], community.events or [], now)
            state.events = events
            state.filtered_events = self._filter(events)
            state.last_fetch_time = now
            logger.info(
                "feed_merged",
                events=len(state.events),
                filtered=len(state.filtered_events),
                from_cache=provider.from_cache,
            )

        state.last_error, state.status_message = _status_for(provider, community)

    def _filter(self, events: list[CanonicalEvent]) -> list[CanonicalEvent]:
        filtered = events
        if self.location is not None:
            filtered = within_radius(self.location, self.radius_miles, filtered)
        if self.activity_type_filter is not None:
            filtered = [e for e in filtered if e.activity_type == self.activity_type_filter]
        return filtered

    def _refilter(self) -> None:
        self._state.filtered_events = self._filter(self._state.events)
        self._publish()

    # Attendance and RSVPs

    async def join_event(self, event: CanonicalEvent, status: JoinStatus = JoinStatus.GOING) -> None:
        """Join an event in the feed as the current user.

        Provider events are marked attended through the attendance sink.
        Community events get an RSVP with ``status``, after which their
        attendee count in the feed is refreshed.

        Raises:
            NotAuthenticated: No user is signed in
            EventNotFound: The event is not in the feed
            FeedError: A provider event was joined with no attendance sink configured
        """
        user_id = self._require_user("You must be logged in to attend events")
        self._require_in_feed(event)

        if event.is_community:
            status = JoinStatus(status)
            await self._rsvp(
                self.community.join_event(user_id, event.source_id, status),
                event,
                failure="Failed to join event",
            )
            logger.info("event_joined", user_id=user_id, community_event_id=event.source_id, status=status.value)
            return

        if self.attendance is None:
            raise FeedError("Attendance tracking is not configured")

        try:
            await self.attendance.mark_attended(user_id, event.source_id)
        except Exception as e:
            self._state.status_message = f"Failed to mark event as attended: {e}"
            self._publish()
            raise

        logger.info("event_joined", user_id=user_id, provider_event_id=event.source_id)
        self._state.status_message = None
        self._publish()

    async def leave_event(self, event: CanonicalEvent) -> None:
        """Withdraw the current user's RSVP for a community event in the feed."""
        user_id = self._require_user("You must be logged in to leave events")
        self._require_in_feed(event)
        if not event.is_community:
            raise EventNotFound(event.id)

        await self._rsvp(
            self.community.leave_event(user_id, event.source_id),
            event,
            failure="Failed to leave event",
        )
        logger.info("event_left", user_id=user_id, community_event_id=event.source_id)

    def _require_user(self, message: str) -> str:
        user_id = self.identity.current_user_id()
        if user_id is None:
            raise NotAuthenticated(message)
        return user_id

    def _require_in_feed(self, event: CanonicalEvent) -> None:
        if not any(e.id == event.id for e in self._state.events):
            raise EventNotFound(event.id)

    async def _rsvp(self, call: Awaitable[None], event: CanonicalEvent, failure: str) -> None:
        """Await a community RSVP call, then refresh the event's attendee count."""
        try:
            await call
        except Exception as e:
            self._state.status_message = f"{failure}: {e}"
            self._publish()
            raise

        count = await with_default(self.community.attendee_count, None, event.source_id, source=COMMUNITY_SOURCE)
        if count is not None:
            self._state.events = [
                e.model_copy(update={"attendee_count": count}) if e.id == event.id else e
                for e in self._state.events
            ]
            self._state.filtered_events = self._filter(self._state.events)
        self._state.status_message = None
        self._publish()

    # Lifecycle

    def get_health(self) -> dict[str, Any]:
        return {
            "gate": self.gate.get_status(),
            "sources": self.health.get_status(),
            "unhealthy": [s.name for s in self.health.unhealthy_sources()],
        }

    async def close(self) -> None:
        """Cancel any pending reload and wait for running ones, then drop subscribers."""
        self.debouncer.cancel()
        await self.debouncer.wait()
        self._subscribers.clear()


def merge_events(
    provider_events: list[CanonicalEvent],
    community_events: list[CanonicalEvent],
    now: datetime,
) -> list[CanonicalEvent]:
    """Combine both sources into the feed order.

    Past events (start_time <= now) are dropped, repeated community ids and
    repeated provider listings collapse, community events come first, and
    each group is ordered by start time. The sort is stable.
    """
    seen: set[str] = set()
    community: list[CanonicalEvent] = []
    for event in community_events:
        if event.source_id in seen:
            continue
        seen.add(event.source_id)
        community.append(event)

    provider = collapse_provider_duplicates(provider_events)

    upcoming = [e for e in community + provider if e.start_time > now]
    return sorted(upcoming, key=lambda e: (0 if e.is_community else 1, e.start_time))


def _status_for(provider: SourceOutcome, community: SourceOutcome) -> tuple[Optional[ErrorKind], Optional[str]]:
    """Error kind and banner text for a finished load."""
    messages = []
    if provider.rate_limited:
        messages.append(RATE_LIMITED_WITH_CACHE if provider.from_cache else RATE_LIMITED_NO_CACHE)
    elif provider.failed:
        messages.append(f"Failed to fetch events: {provider.error}")
    if community.failed:
        messages.append(COMMUNITY_UNAVAILABLE)

    message = " ".join(messages) if messages else None

    if provider.rate_limited:
        return ErrorKind.RATE_LIMIT_EXCEEDED, message
    if provider.failed and community.failed:
        return ErrorKind.FETCH_ERROR, message
    if provider.failed or community.failed:
        return ErrorKind.PARTIAL_SOURCE_FAILURE, message
    return None, None
