"""Per-source health for the feed's status report."""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Callable, Optional

import structlog

from ..models import utcnow

logger = structlog.get_logger()


@dataclass
class SourceHealth:
    """Last observed outcome of one source."""

    name: str
    healthy: bool = True
    last_check: Optional[datetime] = None
    event_count: int = 0
    cached: bool = False
    rate_limited: bool = False
    consecutive_failures: int = 0
    last_error: Optional[str] = None

    def describe(self) -> str:
        """One-line summary for people reading the CLI output."""
        if self.healthy:
            origin = "cache" if self.cached else "live"
            return f"{self.name}: ok, {self.event_count} events ({origin})"
        reason = "rate limited" if self.rate_limited else (self.last_error or "unknown error")
        return f"{self.name}: unavailable after {self.consecutive_failures} attempt(s), {reason}"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["last_check"] = self.last_check.isoformat() if self.last_check else None
        return data


class HealthMonitor:
    """Track fetch outcomes for the provider and community sources.

    A success replaces the record; a failure keeps counting the streak
    until the next success.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock
        self.sources: dict[str, SourceHealth] = {}

    def record_success(self, source: str, event_count: int, cached: bool = False) -> None:
        """Record a fetch that produced events.

        Args:
            source: Name of the event source
            event_count: Number of events returned
            cached: True when the events came from the fallback cache
        """
        self.sources[source] = SourceHealth(
            name=source,
            last_check=self.clock(),
            event_count=event_count,
            cached=cached,
        )
        logger.debug("source_healthy", source=source, event_count=event_count, cached=cached)

    def record_failure(self, source: str, error: str, rate_limited: bool = False) -> None:
        previous = self.sources.get(source)
        streak = (previous.consecutive_failures if previous else 0) + 1

        self.sources[source] = SourceHealth(
            name=source,
            healthy=False,
            last_check=self.clock(),
            rate_limited=rate_limited,
            consecutive_failures=streak,
            last_error=error,
        )
        logger.warning(
            "source_unhealthy",
            source=source,
            consecutive_failures=streak,
            rate_limited=rate_limited,
            error=error,
        )

    def unhealthy_sources(self) -> list[SourceHealth]:
        return [s for s in self.sources.values() if not s.healthy]

    def get_status(self) -> dict[str, Any]:
        unhealthy = len(self.unhealthy_sources())
        return {
            "timestamp": self.clock().isoformat(),
            "summary": {
                "healthy": len(self.sources) - unhealthy,
                "unhealthy": unhealthy,
                "total": len(self.sources),
            },
            "sources": {name: s.to_dict() for name, s in self.sources.items()},
        }
