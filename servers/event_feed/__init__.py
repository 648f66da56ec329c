"""
Event Feed Aggregator

Builds the nearby-events feed for the Go Touch Grass app:
- Fetching events from Ticketmaster (rate limited, cached) and the community
- Normalizing both into one event model with a closed activity taxonomy
- Filtering by radius and activity type, ordered community-first by date

Run with: python -m servers.event_feed --demo
"""

__version__ = "1.0.0"
