"""
Ticketmaster Discovery API integration.

Free tier: 5000 calls/day per API key, 5 requests/second.
The app allows each user one search per day (see DailyQuota) and serves
the cached results in between.
"""

from datetime import datetime, timedelta
from typing import Optional

import httpx
import structlog
from dateutil import parser

from ..config import FeedSettings
from ..errors import FetchError, RateLimitExceeded
from ..geo import validate_radius
from ..models import GeoPoint, RawProviderEvent
from ..resilience.retry import retry_with_backoff
from .cache import ProviderEventCache
from .quota import DailyQuota

logger = structlog.get_logger()

SOURCE = "ticketmaster"
PAGE_SIZE = 100  # Max results per page


class TicketmasterClient:
    """Provider events client backed by the Discovery API."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        quota: Optional[DailyQuota] = None,
        cache: Optional[ProviderEventCache] = None,
        timeout: float = 30.0,
        cache_max_age: timedelta = timedelta(hours=24),
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.quota = quota or DailyQuota()
        self.cache = cache or ProviderEventCache()
        self.timeout = timeout
        self.cache_max_age = cache_max_age
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: FeedSettings, **kwargs) -> "TicketmasterClient":
        return cls(
            api_key=settings.ticketmaster_api_key,
            base_url=settings.ticketmaster_base_url,
            timeout=settings.http_timeout,
            cache_max_age=timedelta(hours=settings.cache_max_age_hours),
            **kwargs,
        )

    async def check_can_call(self, user_id: str) -> bool:
        return await self.quota.can_call(user_id)

    async def fetch_events(
        self,
        user_id: str,
        location: GeoPoint,
        radius_miles: float,
        force_refresh: bool = False,
    ) -> list[RawProviderEvent]:
        """
        Fetch events around a location, reusing recent results when possible.

        Args:
            user_id: User the call is charged to
            location: Search center
            radius_miles: Search radius in miles
            force_refresh: Skip recent cached results and call the API

        Returns:
            Raw provider events

        Raises:
            RateLimitExceeded: The user's daily quota is used up or the API returned 429
            FetchError: Any other failure
        """
        validate_radius(radius_miles)

        if not force_refresh:
            recent = self.cache.fresh_within(location, radius_miles, self.cache_max_age)
            if recent is not None:
                logger.info("provider_cache_hit", user_id=user_id, count=len(recent))
                return recent

        if not await self.quota.can_call(user_id):
            raise RateLimitExceeded(SOURCE)

        if not self.api_key:
            raise FetchError(SOURCE, "TICKETMASTER_API_KEY not configured")

        start_time = datetime.now()
        try:
            data = await self._search(location, radius_miles)
        except FetchError as e:
            await self.quota.record_call(
                user_id, 0, success=False, location=location,
                radius_miles=radius_miles, error_message=e.message,
            )
            raise

        events = parse_search_response(data)
        self.cache.store(events)
        await self.quota.record_call(
            user_id, len(events), success=True, location=location, radius_miles=radius_miles,
        )

        duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
        logger.info(
            "provider_fetch_complete",
            user_id=user_id,
            count=len(events),
            duration_ms=duration_ms,
            location=location.name,
        )
        return events

    async def fetch_cached_events(
        self,
        location: GeoPoint,
        radius_miles: float,
    ) -> list[RawProviderEvent]:
        return self.cache.upcoming_within(location, radius_miles)

    async def _search(self, location: GeoPoint, radius_miles: float) -> dict:
        try:
            response = await self._get(
                f"{self.base_url}/events.json",
                params={
                    "apikey": self.api_key,
                    "latlong": f"{location.latitude},{location.longitude}",
                    "radius": str(int(radius_miles)),
                    "unit": "miles",
                    "sort": "date,asc",
                    "size": str(PAGE_SIZE),
                },
            )
        except httpx.TransportError as e:
            raise FetchError(SOURCE, f"Network error: {e}") from e

        if response.status_code == 429:
            raise RateLimitExceeded(SOURCE, "Ticketmaster API rate limit exceeded")
        if response.status_code != 200:
            raise FetchError(SOURCE, f"HTTP error: {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise FetchError(SOURCE, f"Failed to decode response: {e}") from e

    @retry_with_backoff(max_attempts=3, retryable_exceptions=(httpx.TransportError,))
    async def _get(self, url: str, params: dict[str, str]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            return await client.get(url, params=params, headers={"Accept": "application/json"})


def parse_search_response(data: dict) -> list[RawProviderEvent]:
    """Parse a Discovery API search response into raw provider events."""
    items = (data.get("_embedded") or {}).get("events") or []

    events = []
    for item in items:
        event = parse_ticketmaster_event(item)
        if event:
            events.append(event)

    if len(events) < len(items):
        logger.info("provider_events_unparseable", skipped=len(items) - len(events))
    return events


def parse_ticketmaster_event(item: dict) -> Optional[RawProviderEvent]:
    """Parse one Discovery API event into our RawProviderEvent model."""
    source_id = item.get("id")
    name = item.get("name")
    if not source_id or not name:
        return None

    start_time = _parse_start(item.get("dates") or {})
    if start_time is None:
        return None

    venues = (item.get("_embedded") or {}).get("venues") or [{}]
    venue = venues[0] or {}

    classifications = item.get("classifications") or [{}]
    classification = classifications[0] or {}

    images = item.get("images") or [{}]

    return RawProviderEvent(
        source_id=source_id,
        name=name,
        description=item.get("description") or item.get("info"),
        event_url=item.get("url"),
        category=_name_of(classification.get("segment")),
        genre=_name_of(classification.get("genre")),
        venue_name=venue.get("name"),
        city=_name_of(venue.get("city")),
        location=_parse_venue_location(venue),
        start_time=start_time,
        image_url=(images[0] or {}).get("url"),
    )


def _name_of(info: Optional[dict]) -> Optional[str]:
    if not info:
        return None
    return info.get("name") or None


def _parse_start(dates: dict) -> Optional[datetime]:
    """Prefer the UTC dateTime, fall back to localDate (+ localTime)."""
    start = dates.get("start") or {}

    date_time = start.get("dateTime")
    if date_time:
        try:
            return parser.isoparse(date_time)
        except (ValueError, OverflowError):
            pass

    local_date = start.get("localDate")
    if local_date:
        local_time = start.get("localTime") or "00:00:00"
        try:
            return parser.parse(f"{local_date} {local_time}")
        except (ValueError, OverflowError):
            pass

    return None


def _parse_venue_location(venue: dict) -> Optional[GeoPoint]:
    location = venue.get("location") or {}
    try:
        latitude = float(location["latitude"])
        longitude = float(location["longitude"])
    except (KeyError, TypeError, ValueError):
        return None

    try:
        return GeoPoint(
            latitude=latitude,
            longitude=longitude,
            name=venue.get("name") or _name_of(venue.get("city")),
        )
    except ValueError:
        # Out-of-range coordinates
        return None
