"""Runtime settings read from the environment."""

import os
from typing import Optional

from pydantic import BaseModel, Field


TICKETMASTER_BASE_URL = "https://app.ticketmaster.com/discovery/v2"


class FeedSettings(BaseModel):
    """Settings for the event feed and its HTTP clients."""

    ticketmaster_api_key: Optional[str] = None
    ticketmaster_base_url: str = TICKETMASTER_BASE_URL

    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None

    radius_miles: float = Field(default=50.0, ge=0)
    debounce_ms: int = Field(default=500, ge=0)
    http_timeout: float = Field(default=30.0, gt=0)

    # Provider results younger than this are served without a new API call
    cache_max_age_hours: float = Field(default=24.0, ge=0)

    @classmethod
    def from_env(cls) -> "FeedSettings":
        """Build settings from environment variables, keeping defaults for unset ones."""
        env = {
            "ticketmaster_api_key": os.environ.get("TICKETMASTER_API_KEY"),
            "ticketmaster_base_url": os.environ.get("TICKETMASTER_BASE_URL"),
            "supabase_url": os.environ.get("SUPABASE_URL"),
            "supabase_anon_key": os.environ.get("SUPABASE_ANON_KEY"),
            "radius_miles": os.environ.get("EVENT_FEED_RADIUS_MILES"),
            "debounce_ms": os.environ.get("EVENT_FEED_DEBOUNCE_MS"),
            "http_timeout": os.environ.get("EVENT_FEED_HTTP_TIMEOUT"),
            "cache_max_age_hours": os.environ.get("EVENT_FEED_CACHE_MAX_AGE_HOURS"),
        }
        return cls(**{key: value for key, value in env.items() if value})

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)
