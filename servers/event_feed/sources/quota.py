"""Per-user daily quota for provider API calls."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from ..models import GeoPoint, utcnow

logger = structlog.get_logger()

# One provider search per user per day
DEFAULT_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class ApiCallRecord:
    user_id: str
    called_at: datetime
    events_retrieved: int
    success: bool
    location: Optional[GeoPoint] = None
    radius_miles: Optional[float] = None
    error_message: Optional[str] = None


class DailyQuota:
    """Allow a user one provider call per rolling window.

    Only successful calls count against the quota, so a failed request can
    be retried straight away.
    """

    def __init__(
        self,
        window: timedelta = DEFAULT_WINDOW,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.window = window
        self.clock = clock
        self.calls: list[ApiCallRecord] = []

    def _last_successful_call(self, user_id: str) -> Optional[ApiCallRecord]:
        for record in reversed(self.calls):
            if record.user_id == user_id and record.success:
                return record
        return None

    async def can_call(self, user_id: str) -> bool:
        last = self._last_successful_call(user_id)
        if last is None:
            return True
        return last.called_at < self.clock() - self.window

    def next_allowed_at(self, user_id: str) -> Optional[datetime]:
        """When the user may call again, or None if they may call now."""
        last = self._last_successful_call(user_id)
        if last is None:
            return None
        allowed_at = last.called_at + self.window
        return allowed_at if allowed_at > self.clock() else None

    async def record_call(
        self,
        user_id: str,
        events_retrieved: int,
        success: bool,
        location: Optional[GeoPoint] = None,
        radius_miles: Optional[float] = None,
        error_message: Optional[str] = None,
    ) -> None:
        self.calls.append(ApiCallRecord(
            user_id=user_id,
            called_at=self.clock(),
            events_retrieved=events_retrieved,
            success=success,
            location=location,
            radius_miles=radius_miles,
            error_message=error_message,
        ))
        logger.info(
            "provider_call_recorded",
            user_id=user_id,
            events_retrieved=events_retrieved,
            success=success,
        )

    def reset(self, user_id: Optional[str] = None) -> None:
        if user_id is None:
            self.calls.clear()
        else:
            self.calls = [c for c in self.calls if c.user_id != user_id]
