"""Great-circle distance and radius filtering."""

import math
from typing import Sequence

from .errors import InvalidArgument
from .models import CanonicalEvent, GeoPoint

EARTH_RADIUS_METERS = 6_371_000
METERS_PER_MILE = 1609.34


def haversine_distance_meters(start: GeoPoint, end: GeoPoint) -> float:
    start_lat = math.radians(start.latitude)
    end_lat = math.radians(end.latitude)
    delta_lat = math.radians(end.latitude - start.latitude)
    delta_lng = math.radians(end.longitude - start.longitude)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(start_lat) * math.cos(end_lat) * math.sin(delta_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def distance_miles(start: GeoPoint, end: GeoPoint) -> float:
    return haversine_distance_meters(start, end) / METERS_PER_MILE


def is_within(reference: GeoPoint, point: GeoPoint, radius_miles: float) -> bool:
    return distance_miles(reference, point) <= radius_miles


def validate_radius(radius_miles: float) -> float:
    """Reject negative (or NaN) radii."""
    if math.isnan(radius_miles) or radius_miles < 0:
        raise InvalidArgument(f"radius must be non-negative, got {radius_miles}")
    return radius_miles


def within_radius(
    reference: GeoPoint,
    radius_miles: float,
    candidates: Sequence[CanonicalEvent],
) -> list[CanonicalEvent]:
    """Return the candidates located within ``radius_miles`` of ``reference``.

    Order of the input is preserved.
    """
    validate_radius(radius_miles)
    return [
        event for event in candidates
        if is_within(reference, event.location, radius_miles)
    ]
