"""
Collapse repeated provider listings.

Ticketmaster often lists one performance several times (VIP packages,
parking passes, resale listings). Two provider events are the same
performance when they share a source id, or when they start at the same
moment at the same venue and their titles are near-identical.

Community events are never collapsed here.
"""

import re

from rapidfuzz import fuzz

from .models import CanonicalEvent


# Title similarity threshold (0-1) for same-time, same-venue listings
TITLE_THRESHOLD = 0.90

# Listing decorations stripped before comparing titles
DECORATIONS = [
    "vip package", "vip packages", "premium seating", "parking", "resale",
    "suite", "suites", "hospitality",
]


def normalize_title(title: str) -> str:
    """Lowercase, strip listing decorations and punctuation."""
    text = title.lower().strip()
    for decoration in DECORATIONS:
        text = text.replace(decoration, " ")
    text = re.sub(r"[^\w\s&]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def title_similarity(e1: CanonicalEvent, e2: CanonicalEvent) -> float:
    """Word-order independent title similarity (0-1)."""
    t1 = normalize_title(e1.title)
    t2 = normalize_title(e2.title)
    if not t1 or not t2:
        return 0.0
    return fuzz.token_sort_ratio(t1, t2) / 100


def is_same_listing(e1: CanonicalEvent, e2: CanonicalEvent, threshold: float = TITLE_THRESHOLD) -> bool:
    if e1.source_id == e2.source_id:
        return True
    if e1.start_time != e2.start_time:
        return False
    if (e1.location.name or "").lower() != (e2.location.name or "").lower():
        return False
    return title_similarity(e1, e2) >= threshold


def completeness_score(event: CanonicalEvent) -> tuple[bool, int]:
    return (bool(event.image_url), len(event.description))


def collapse_provider_duplicates(
    events: list[CanonicalEvent],
    threshold: float = TITLE_THRESHOLD,
) -> list[CanonicalEvent]:
    """Keep one event per performance, preferring the most complete listing.

    The kept event takes the position of the first listing seen.
    """
    kept: list[CanonicalEvent] = []

    for event in events:
        for i, existing in enumerate(kept):
            if is_same_listing(existing, event, threshold):
                if completeness_score(event) > completeness_score(existing):
                    kept[i] = event
                break
        else:
            kept.append(event)

    return kept
