"""
Collaborator contracts consumed by the aggregation engine.

The engine never talks to HTTP or storage directly; it is handed objects
satisfying these protocols at construction time.
"""

from typing import Optional, Protocol, Sequence

from ..models import GeoPoint, JoinStatus, RawCommunityEvent, RawProviderEvent


class IdentityProvider(Protocol):
    """Source of the signed-in user."""

    def current_user_id(self) -> Optional[str]:
        """Return the current user id, or None when signed out."""
        ...


class ProviderEventsClient(Protocol):
    """Contract for the rate-limited third-party events API."""

    async def fetch_events(
        self,
        user_id: str,
        location: GeoPoint,
        radius_miles: float,
        force_refresh: bool = False,
    ) -> Sequence[RawProviderEvent]:
        """Fetch fresh events. Raises RateLimitExceeded or FetchError."""
        ...

    async def check_can_call(self, user_id: str) -> bool:
        """Return True if ``user_id`` has provider quota left."""
        ...

    async def fetch_cached_events(
        self,
        location: GeoPoint,
        radius_miles: float,
    ) -> Sequence[RawProviderEvent]:
        """Return previously retrieved events still upcoming within the radius."""
        ...


class CommunityEventsClient(Protocol):
    """Contract for user-created events."""

    async def fetch_nearby(
        self,
        location: GeoPoint,
        radius_miles: float,
    ) -> Sequence[RawCommunityEvent]:
        """Return public upcoming events near ``location``. Raises FetchError."""
        ...

    async def join_event(self, user_id: str, event_id: str, status: JoinStatus = JoinStatus.GOING) -> None:
        """Record or replace the user's RSVP for ``event_id``."""
        ...

    async def leave_event(self, user_id: str, event_id: str) -> None:
        ...

    async def has_joined(self, user_id: str, event_id: str) -> bool:
        ...

    async def attendee_count(self, event_id: str) -> int:
        ...


class AttendanceSink(Protocol):
    """Records provider events a user attended."""

    async def mark_attended(self, user_id: str, provider_event_id: str) -> None:
        ...


class StaticIdentity:
    """Identity provider returning a fixed user id (or None)."""

    def __init__(self, user_id: Optional[str] = None):
        self.user_id = user_id

    def current_user_id(self) -> Optional[str]:
        return self.user_id

    def sign_out(self) -> None:
        self.user_id = None
