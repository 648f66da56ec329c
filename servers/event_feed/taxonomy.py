"""
Activity taxonomy and category mapping.

Provider events carry free-text segment/genre strings which are matched
against five keyword sets in priority order (first match wins):
Sports, Concert, Arts & Theatre, Family Event, Festival.

Anything else maps to UNRECOGNIZED and is dropped before it reaches the feed.
Community events carry a numeric activity type id instead.
"""

from typing import Optional

from .models import ActivityType


# Community activity types
RUNNING = ActivityType(id=1, name="Running", icon="figure.run")
WALKING = ActivityType(id=2, name="Walking", icon="figure.walk")
HIKING = ActivityType(id=3, name="Hiking", icon="figure.hiking")
BIKING = ActivityType(id=4, name="Biking", icon="bicycle")
KAYAKING = ActivityType(id=5, name="Kayaking", icon="figure.kayaking")
CLIMBING = ActivityType(id=6, name="Climbing", icon="figure.climbing")
SWIMMING = ActivityType(id=7, name="Swimming", icon="figure.pool.swim")
OTHER = ActivityType(id=8, name="Other", icon="figure.outdoor.cycle")

# Provider activity types
SPORTS = ActivityType(id=9, name="Sports", icon="sportscourt.fill")
CONCERT = ActivityType(id=10, name="Concert", icon="music.note")
ARTS_THEATRE = ActivityType(id=11, name="Arts & Theatre", icon="theatermasks.fill")
FAMILY = ActivityType(id=12, name="Family Event", icon="figure.2.and.child.holdinghands")
FESTIVAL = ActivityType(id=13, name="Festival", icon="party.popper.fill")

# Never shown to users
UNRECOGNIZED = ActivityType(id=0, name="Event", icon="calendar")


COMMUNITY_TYPES: dict[int, ActivityType] = {
    t.id: t for t in (RUNNING, WALKING, HIKING, BIKING, KAYAKING, CLIMBING, SWIMMING)
}

# (activity type, category keywords, genre keywords), evaluated in order
PROVIDER_RULES: list[tuple[ActivityType, tuple[str, ...], tuple[str, ...]]] = [
    (
        SPORTS,
        ("sports",),
        (
            "sports", "basketball", "football", "baseball", "soccer", "hockey",
            "tennis", "golf", "racing", "mma", "wrestling",
        ),
    ),
    (
        CONCERT,
        ("music",),
        (
            "music", "concert", "rock", "pop", "jazz", "classical", "hip-hop",
            "country", "r&b", "electronic", "indie",
        ),
    ),
    (
        ARTS_THEATRE,
        ("arts", "theatre"),
        (
            "theatre", "theater", "musical", "comedy", "dance", "ballet",
            "opera", "circus",
        ),
    ),
    (
        FAMILY,
        ("family",),
        ("family", "children", "kids"),
    ),
    (
        FESTIVAL,
        ("festival",),
        ("festival", "fair"),
    ),
]

ALL_TYPES: list[ActivityType] = [
    *COMMUNITY_TYPES.values(), OTHER, *(rule[0] for rule in PROVIDER_RULES)
]


def map_provider_category(category: Optional[str], genre: Optional[str]) -> ActivityType:
    """Map a provider's segment and genre strings to an activity type.

    Returns UNRECOGNIZED when no keyword set matches; callers must drop
    such events rather than display them.
    """
    category_lower = (category or "").lower()
    genre_lower = (genre or "").lower()

    for activity_type, category_keywords, genre_keywords in PROVIDER_RULES:
        if any(kw in category_lower for kw in category_keywords):
            return activity_type
        if any(kw in genre_lower for kw in genre_keywords):
            return activity_type

    return UNRECOGNIZED


def map_community_activity_type(type_id: int) -> ActivityType:
    """Look up a community activity type id, falling back to Other."""
    return COMMUNITY_TYPES.get(type_id, OTHER)


def is_recognized(activity_type: ActivityType) -> bool:
    return activity_type != UNRECOGNIZED


def find_activity_type(name: str) -> Optional[ActivityType]:
    """Resolve a displayable activity type by case-insensitive name."""
    wanted = name.strip().lower()
    for activity_type in ALL_TYPES:
        if activity_type.name.lower() == wanted:
            return activity_type
    return None
