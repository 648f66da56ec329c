"""
Community (user-created) event sources.

SupabaseCommunityClient reads the `user_events` table through the
PostgREST endpoint; InMemoryCommunityClient keeps events in process for
local runs and tests. Both return only public, non-cancelled, upcoming
events within the requested radius, ordered by start time, and both record
RSVPs (going, maybe, not going) for the signed-in user.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

import httpx
import structlog
from dateutil import parser

from ..config import FeedSettings
from ..errors import EventNotFound, FeedError, FetchError
from ..geo import is_within, validate_radius
from ..models import GeoPoint, JoinStatus, RawCommunityEvent, utcnow
from ..resilience.retry import retry_with_backoff

logger = structlog.get_logger()

SOURCE = "community"


class SupabaseCommunityClient:
    """Community events client backed by Supabase REST."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        timeout: float = 30.0,
        clock: Callable[[], datetime] = utcnow,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout
        self.clock = clock
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: FeedSettings, **kwargs) -> "SupabaseCommunityClient":
        if not settings.has_supabase:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")
        return cls(
            url=settings.supabase_url,
            anon_key=settings.supabase_anon_key,
            timeout=settings.http_timeout,
            **kwargs,
        )

    async def fetch_nearby(self, location: GeoPoint, radius_miles: float) -> list[RawCommunityEvent]:
        validate_radius(radius_miles)

        response = await self._send(
            "GET",
            "user_events",
            params={
                "select": "*",
                "visibility": "eq.public",
                "is_cancelled": "eq.false",
                "start_date": f"gte.{self.clock().isoformat()}",
                "order": "start_date.asc",
            },
        )

        try:
            rows = response.json()
        except ValueError as e:
            raise FetchError(SOURCE, f"Failed to decode response: {e}") from e

        events = []
        for row in rows:
            event = parse_user_event_row(row)
            if event and is_within(location, event.location, radius_miles):
                events.append(event)

        logger.info(
            "community_fetch_complete",
            fetched=len(rows),
            nearby=len(events),
            radius_miles=radius_miles,
        )
        return events

    # RSVPs

    async def join_event(self, user_id: str, event_id: str, status: JoinStatus = JoinStatus.GOING) -> None:
        await self._rpc("join_user_event", {
            "p_user_id": user_id,
            "p_event_id": event_id,
            "p_status": JoinStatus(status).value,
        })
        logger.info("community_event_joined", user_id=user_id, event_id=event_id, status=JoinStatus(status).value)

    async def leave_event(self, user_id: str, event_id: str) -> None:
        await self._send(
            "DELETE",
            "user_event_joins",
            params={"user_id": f"eq.{user_id}", "event_id": f"eq.{event_id}"},
        )
        logger.info("community_event_left", user_id=user_id, event_id=event_id)

    async def has_joined(self, user_id: str, event_id: str) -> bool:
        result = await self._rpc("has_user_joined_event", {"p_user_id": user_id, "p_event_id": event_id})
        if not isinstance(result, bool):
            raise FetchError(SOURCE, f"Unexpected has_user_joined_event result: {result!r}")
        return result

    async def attendee_count(self, event_id: str) -> int:
        result = await self._rpc("get_user_event_attendee_count", {"p_event_id": event_id})
        try:
            return int(result)
        except (TypeError, ValueError) as e:
            raise FetchError(SOURCE, f"Unexpected attendee count: {result!r}") from e

    async def _rpc(self, function: str, params: dict[str, Any]) -> Any:
        """Call a Postgres function and return its decoded result."""
        response = await self._send("POST", f"rpc/{function}", json=params)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(SOURCE, f"Failed to decode {function} result: {e}") from e

    async def _send(
        self,
        method: str,
        table: str,
        params: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """Issue a REST request, mapping transport and HTTP failures to FetchError."""
        try:
            response = await self._request(method, f"{self.url}/rest/v1/{table}", params=params, json=json)
        except httpx.TransportError as e:
            raise FetchError(SOURCE, f"Network error: {e}") from e

        if response.status_code not in (200, 201, 204):
            raise FetchError(SOURCE, f"HTTP error: {response.status_code}")
        return response

    @retry_with_backoff(max_attempts=3, retryable_exceptions=(httpx.TransportError,))
    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.anon_key}",
            "Accept": "application/json",
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            return await client.request(method, url, params=params, json=json, headers=headers)


def parse_user_event_row(row: dict) -> Optional[RawCommunityEvent]:
    """Parse a `user_events` row. Rows missing required columns are skipped."""
    try:
        location = GeoPoint(
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            name=row.get("venue_name") or row.get("city"),
        )
        return RawCommunityEvent(
            id=str(row["id"]),
            name=row["name"],
            description=row.get("description") or "",
            activity_type_id=int(row["activity_type_id"]),
            location=location,
            start_time=parser.isoparse(row["start_date"]),
            venue_name=row.get("venue_name"),
            city=row.get("city"),
            organizer_name=row.get("organizer_name"),
            attendee_count=int(row.get("attendee_count") or 0),
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("community_row_skipped", row_id=row.get("id"), error=str(e))
        return None


@dataclass
class _StoredEvent:
    event: RawCommunityEvent
    public: bool = True
    cancelled: bool = False
    cancellation_reason: Optional[str] = None
    joins: dict[str, JoinStatus] = field(default_factory=dict)


@dataclass
class InMemoryCommunityClient:
    """Community events held in process."""

    clock: Callable[[], datetime] = utcnow
    stored: dict[str, _StoredEvent] = field(default_factory=dict)

    def add(self, event: RawCommunityEvent, public: bool = True) -> None:
        self.stored[event.id] = _StoredEvent(event=event, public=public)

    def cancel(self, event_id: str, reason: Optional[str] = None) -> None:
        stored = self.stored.get(event_id)
        if stored is None:
            raise KeyError(event_id)
        stored.cancelled = True
        stored.cancellation_reason = reason

    async def fetch_nearby(self, location: GeoPoint, radius_miles: float) -> list[RawCommunityEvent]:
        validate_radius(radius_miles)
        now = self.clock()
        nearby = [
            s.event for s in self.stored.values()
            if s.public
            and not s.cancelled
            and s.event.start_time >= now
            and is_within(location, s.event.location, radius_miles)
        ]
        return sorted(nearby, key=lambda e: e.start_time)

    async def join_event(self, user_id: str, event_id: str, status: JoinStatus = JoinStatus.GOING) -> None:
        stored = self._joinable(event_id)
        stored.joins[user_id] = JoinStatus(status)
        logger.info("community_event_joined", user_id=user_id, event_id=event_id, status=JoinStatus(status).value)

    async def leave_event(self, user_id: str, event_id: str) -> None:
        stored = self.stored.get(event_id)
        if stored is not None:
            stored.joins.pop(user_id, None)
        logger.info("community_event_left", user_id=user_id, event_id=event_id)

    async def has_joined(self, user_id: str, event_id: str) -> bool:
        stored = self.stored.get(event_id)
        return stored is not None and user_id in stored.joins

    async def attendee_count(self, event_id: str) -> int:
        """Seeded attendee count plus users currently marked going."""
        stored = self.stored.get(event_id)
        if stored is None:
            raise EventNotFound(event_id)
        going = sum(1 for status in stored.joins.values() if status == JoinStatus.GOING)
        return stored.event.attendee_count + going

    def _joinable(self, event_id: str) -> _StoredEvent:
        stored = self.stored.get(event_id)
        if stored is None:
            raise EventNotFound(event_id)
        if stored.cancelled:
            raise FeedError(f"Event has been cancelled: {stored.cancellation_reason or event_id}")
        return stored
