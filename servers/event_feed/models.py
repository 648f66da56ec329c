"""
Pydantic models for event feed data structures.

These models define the core data types used throughout the feed:
- GeoPoint: A coordinate with an optional display name
- ActivityType: Entry of the closed activity taxonomy
- RawProviderEvent / RawCommunityEvent: Source payloads before normalization
- CanonicalEvent: The single event type exposed to consumers
- FeedState: The published feed plus its status fields
"""

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import hashlib
import uuid


def ensure_aware(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are local time."""
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GeoPoint(BaseModel):
    """A point on the globe, optionally with a display name."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    name: Optional[str] = None


class ActivityType(BaseModel):
    """An activity category shown to users."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    icon: str


class Provenance(str, Enum):
    """Where a canonical event came from."""

    PROVIDER = "provider"
    COMMUNITY = "community"


class JoinStatus(str, Enum):
    """RSVP answer for a community event."""

    GOING = "going"
    MAYBE = "maybe"
    NOT_GOING = "not_going"


class ErrorKind(str, Enum):
    """Status categories surfaced on the feed."""

    NO_IDENTITY = "no_identity"
    NO_LOCATION = "no_location"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    PARTIAL_SOURCE_FAILURE = "partial_source_failure"
    NORMALIZATION_DROP = "normalization_drop"
    INVALID_ARGUMENT = "invalid_argument"
    FETCH_ERROR = "fetch_error"


class RawProviderEvent(BaseModel):
    """Event as returned by the third-party events API."""

    source_id: str
    name: str
    description: Optional[str] = None
    event_url: Optional[str] = None

    # Classification
    category: Optional[str] = None  # Ticketmaster segment, e.g. "Sports"
    genre: Optional[str] = None  # e.g. "Basketball"

    # Venue
    venue_name: Optional[str] = None
    city: Optional[str] = None
    location: Optional[GeoPoint] = None

    start_time: datetime
    image_url: Optional[str] = None

    retrieved_at: datetime = Field(default_factory=utcnow)

    @field_validator("start_time", "retrieved_at")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @computed_field
    @property
    def content_hash(self) -> str:
        """Stable hash used to recognize the same listing across fetches."""
        key_string = f"ticketmaster:{self.source_id}:{self.name}:{self.start_time.timestamp()}"
        return hashlib.sha256(key_string.encode()).hexdigest()


class RawCommunityEvent(BaseModel):
    """Event created by a user of the app."""

    id: str
    name: str
    description: str = ""
    activity_type_id: int
    location: GeoPoint
    start_time: datetime
    venue_name: Optional[str] = None
    city: Optional[str] = None
    organizer_name: Optional[str] = None
    attendee_count: int = 0

    @field_validator("start_time")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        return ensure_aware(value)


class CanonicalEvent(BaseModel):
    """Unified event representation for display."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    source_id: str  # Upstream identifier, used for attendance
    title: str
    description: str
    activity_type: ActivityType
    location: GeoPoint
    start_time: datetime
    image_url: Optional[str] = None
    organizer_name: str
    attendee_count: int = 0
    provenance: Provenance

    @field_validator("start_time")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @property
    def is_community(self) -> bool:
        return self.provenance == Provenance.COMMUNITY


class FeedState(BaseModel):
    """Feed contents and user-facing status."""

    events: list[CanonicalEvent] = Field(default_factory=list)
    filtered_events: list[CanonicalEvent] = Field(default_factory=list)
    is_loading: bool = False
    last_error: Optional[ErrorKind] = None
    rate_limited: bool = False
    last_fetch_time: Optional[datetime] = None

    # Human-readable banner and whether it should be shown as an alert
    status_message: Optional[str] = None
    show_alert: bool = False


