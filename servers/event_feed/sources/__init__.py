"""
Event source adapters.

Each provider client implements the ProviderEventsClient protocol:
- fetch_events(user_id, location, radius_miles, force_refresh)
- check_can_call(user_id)
- fetch_cached_events(location, radius_miles)

Community clients implement fetch_nearby(location, radius_miles) and the
RSVP calls join_event, leave_event, has_joined and attendee_count.
"""

from .attendance import InMemoryAttendanceSink
from .base import (
    AttendanceSink,
    CommunityEventsClient,
    IdentityProvider,
    ProviderEventsClient,
    StaticIdentity,
)
from .cache import ProviderEventCache
from .community import InMemoryCommunityClient, SupabaseCommunityClient
from .quota import DailyQuota
from .ticketmaster import TicketmasterClient

__all__ = [
    "AttendanceSink",
    "CommunityEventsClient",
    "IdentityProvider",
    "ProviderEventsClient",
    "StaticIdentity",
    "TicketmasterClient",
    "DailyQuota",
    "ProviderEventCache",
    "SupabaseCommunityClient",
    "InMemoryCommunityClient",
    "InMemoryAttendanceSink",
]
