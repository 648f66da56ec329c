"""
Conversion of source payloads into CanonicalEvent.

Provider events fail closed: events without coordinates or with an
unrecognized category are dropped. Community events always convert.
"""

from typing import Optional

import structlog

from .models import CanonicalEvent, GeoPoint, Provenance, RawCommunityEvent, RawProviderEvent
from .taxonomy import is_recognized, map_community_activity_type, map_provider_category

logger = structlog.get_logger()

DEFAULT_DESCRIPTION = "Event details coming soon"
DEFAULT_PROVIDER_ORGANIZER = "Unknown Organizer"
DEFAULT_COMMUNITY_ORGANIZER = "Community Organizer"


def describe_provider_event(raw: RawProviderEvent) -> str:
    """Return the source description, or one built from the listing details."""
    if raw.description and raw.description.strip():
        return raw.description

    parts = []
    if raw.category:
        parts.append(raw.category)
    if raw.genre:
        parts.append(raw.genre)
    if raw.venue_name:
        parts.append(f"at {raw.venue_name}")
    if raw.city:
        parts.append(f"in {raw.city}")

    return " ".join(parts) if parts else DEFAULT_DESCRIPTION


def _named_location(point: GeoPoint, venue_name: Optional[str], city: Optional[str]) -> GeoPoint:
    if point.name:
        return point
    return point.model_copy(update={"name": venue_name or city})


def normalize_provider_event(raw: RawProviderEvent) -> Optional[CanonicalEvent]:
    """Convert a provider event, or return None if it cannot be shown."""
    if raw.location is None:
        logger.debug("provider_event_dropped", source_id=raw.source_id, reason="no_location")
        return None

    activity_type = map_provider_category(raw.category, raw.genre)
    if not is_recognized(activity_type):
        logger.debug(
            "provider_event_dropped",
            source_id=raw.source_id,
            reason="unrecognized_category",
            category=raw.category,
            genre=raw.genre,
        )
        return None

    return CanonicalEvent(
        source_id=raw.source_id,
        title=raw.name,
        description=describe_provider_event(raw),
        activity_type=activity_type,
        location=_named_location(raw.location, raw.venue_name, raw.city),
        start_time=raw.start_time,
        image_url=raw.image_url,
        organizer_name=raw.venue_name or DEFAULT_PROVIDER_ORGANIZER,
        attendee_count=0,
        provenance=Provenance.PROVIDER,
    )


def normalize_community_event(raw: RawCommunityEvent) -> CanonicalEvent:
    """Convert a community event. Never filters."""
    return CanonicalEvent(
        id=raw.id,
        source_id=raw.id,
        title=raw.name,
        description=raw.description,
        activity_type=map_community_activity_type(raw.activity_type_id),
        location=_named_location(raw.location, raw.venue_name, raw.city),
        start_time=raw.start_time,
        organizer_name=raw.organizer_name or DEFAULT_COMMUNITY_ORGANIZER,
        attendee_count=raw.attendee_count,
        provenance=Provenance.COMMUNITY,
    )


def normalize_provider_events(raws: list[RawProviderEvent]) -> list[CanonicalEvent]:
    events = []
    for raw in raws:
        event = normalize_provider_event(raw)
        if event is not None:
            events.append(event)

    dropped = len(raws) - len(events)
    if dropped:
        logger.info("provider_events_dropped", dropped=dropped, kept=len(events))
    return events
