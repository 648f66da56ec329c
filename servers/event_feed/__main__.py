"""
Command-line entry point for the event feed.

Loads the feed once for a location and prints it.

Run with:
    python -m servers.event_feed --lat 34.05 --lon -118.25 --name "Los Angeles"
    python -m servers.event_feed --demo            # sample data, no API keys needed
"""

import argparse
import asyncio
import sys
from datetime import timedelta
from typing import Optional

import structlog

from .config import FeedSettings
from .engine import AggregationEngine
from .logging_setup import configure_logging
from .models import FeedState, GeoPoint, RawCommunityEvent, RawProviderEvent, utcnow
from .sources import (
    InMemoryAttendanceSink,
    InMemoryCommunityClient,
    ProviderEventCache,
    StaticIdentity,
    SupabaseCommunityClient,
    TicketmasterClient,
)
from .taxonomy import find_activity_type

logger = structlog.get_logger()

DEMO_LOCATION = GeoPoint(latitude=34.05, longitude=-118.25, name="Los Angeles")


def sample_community_events() -> list[RawCommunityEvent]:
    """Community events around Los Angeles starting over the coming week."""
    now = utcnow()
    rows = [
        ("demo-c1", "Morning Trail Run", "Join us for a 5K trail run. All fitness levels welcome!",
         1, 34.05, -118.25, "Griffith Park Trails", 1, "LA Trail Runners", 15),
        ("demo-c2", "Community Hike & Picnic", "Family-friendly hike followed by a potluck picnic.",
         3, 34.18, -118.35, "Runyon Canyon", 4, "LA Hiking Club", 31),
        ("demo-c3", "Sunrise Kayaking Tour", "Paddle through calm waters as the sun rises.",
         5, 33.68, -118.01, "Newport Back Bay", 8, "Paddle Paradise", 14),
        ("demo-c4", "Sunset Beach Yoga", "Bring your own mat!",
         42, 33.97, -118.45, "Santa Monica Beach", 2, "Beachside Wellness", 23),
    ]
    return [
        RawCommunityEvent(
            id=event_id,
            name=name,
            description=description,
            activity_type_id=type_id,
            location=GeoPoint(latitude=lat, longitude=lon, name=venue),
            start_time=now + timedelta(days=days),
            venue_name=venue,
            organizer_name=organizer,
            attendee_count=attendees,
        )
        for event_id, name, description, type_id, lat, lon, venue, days, organizer, attendees in rows
    ]


def sample_provider_events() -> list[RawProviderEvent]:
    """Ticketmaster-style listings, including one the taxonomy does not recognize."""
    now = utcnow()
    return [
        RawProviderEvent(
            source_id="demo-tm1", name="Lakers vs. Celtics", category="Sports", genre="Basketball",
            venue_name="Crypto.com Arena", city="Los Angeles",
            location=GeoPoint(latitude=34.043, longitude=-118.267),
            start_time=now + timedelta(days=3),
        ),
        RawProviderEvent(
            source_id="demo-tm2", name="Hollywood Bowl Jazz Night", category="Music", genre="Jazz",
            venue_name="Hollywood Bowl", city="Los Angeles",
            location=GeoPoint(latitude=34.112, longitude=-118.339),
            start_time=now + timedelta(days=2),
        ),
        RawProviderEvent(
            source_id="demo-tm3", name="Timeshare Seminar", category="Miscellaneous",
            venue_name="Airport Marriott", city="Los Angeles",
            location=GeoPoint(latitude=33.946, longitude=-118.383),
            start_time=now + timedelta(days=1),
        ),
    ]


def build_engine(settings: FeedSettings, user_id: Optional[str], demo: bool) -> AggregationEngine:
    """Wire the engine with HTTP clients, or with sample data in demo mode."""
    if demo:
        cache = ProviderEventCache()
        cache.store(sample_provider_events())
        provider = TicketmasterClient(api_key=None, base_url=settings.ticketmaster_base_url, cache=cache)
        community = InMemoryCommunityClient()
        for event in sample_community_events():
            community.add(event)
    else:
        provider = TicketmasterClient.from_settings(settings)
        if settings.has_supabase:
            community = SupabaseCommunityClient.from_settings(settings)
        else:
            logger.warning("community_source_unconfigured", hint="set SUPABASE_URL and SUPABASE_ANON_KEY")
            community = InMemoryCommunityClient()

    return AggregationEngine(
        identity=StaticIdentity(user_id),
        provider=provider,
        community=community,
        attendance=InMemoryAttendanceSink(),
        radius_miles=settings.radius_miles,
        debounce_seconds=settings.debounce_seconds,
    )


def print_feed(state: FeedState) -> None:
    if state.status_message:
        print(f"! {state.status_message}")

    print(f"{len(state.filtered_events)} of {len(state.events)} events shown")
    for event in state.filtered_events:
        when = event.start_time.astimezone().strftime("%a %b %d %I:%M %p")
        print(f"  [{event.provenance.value:9}] {when}  {event.title}")
        print(f"      {event.activity_type.name} - {event.location.name or 'Unknown location'}")


async def run(args: argparse.Namespace) -> int:
    settings = FeedSettings.from_env()
    if args.radius is not None:
        settings = settings.model_copy(update={"radius_miles": args.radius})

    engine = build_engine(settings, user_id=args.user, demo=args.demo)

    if args.demo and args.lat is None:
        location = DEMO_LOCATION
    elif args.lat is not None and args.lon is not None:
        location = GeoPoint(latitude=args.lat, longitude=args.lon, name=args.name)
    else:
        print("Provide --lat and --lon (or --demo)", file=sys.stderr)
        return 2

    if args.type:
        activity_type = find_activity_type(args.type)
        if activity_type is None:
            print(f"Unknown activity type: {args.type}", file=sys.stderr)
            return 2
        engine.set_activity_type_filter(activity_type)

    engine.set_location(location)
    if args.refresh:
        await engine.refresh(force_refresh=True)
    else:
        await engine.load()

    print_feed(engine.state)
    for source in engine.health.unhealthy_sources():
        print(f"! {source.describe()}", file=sys.stderr)
    await engine.close()
    return 0


def main() -> None:
    """Main entry point."""
    arg_parser = argparse.ArgumentParser(description="Print the nearby events feed")
    arg_parser.add_argument("--lat", type=float, help="Latitude of the search center")
    arg_parser.add_argument("--lon", type=float, help="Longitude of the search center")
    arg_parser.add_argument("--name", help="Display name for the location")
    arg_parser.add_argument("--radius", type=float, help="Search radius in miles")
    arg_parser.add_argument("--type", help="Only show this activity type, e.g. Sports")
    arg_parser.add_argument("--user", default="cli-user", help="User id the provider call is charged to")
    arg_parser.add_argument("--refresh", action="store_true", help="Bypass the rate-limit pre-check")
    arg_parser.add_argument("--demo", action="store_true", help="Use built-in sample events")
    arg_parser.add_argument("--log-level", default="WARNING")
    args = arg_parser.parse_args()

    configure_logging(args.log_level)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
