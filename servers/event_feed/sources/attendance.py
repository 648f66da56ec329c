"""Attendance records for provider events."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import structlog

from ..models import utcnow

logger = structlog.get_logger()


@dataclass(frozen=True)
class AttendanceRecord:
    user_id: str
    provider_event_id: str
    attended_at: datetime
    notes: Optional[str] = None
    rating: Optional[int] = None


@dataclass
class InMemoryAttendanceSink:
    """Attendance sink keeping records in process; re-marking is a no-op."""

    records: list[AttendanceRecord] = field(default_factory=list)

    async def mark_attended(
        self,
        user_id: str,
        provider_event_id: str,
        notes: Optional[str] = None,
        rating: Optional[int] = None,
    ) -> None:
        if await self.has_attended(user_id, provider_event_id):
            return
        if rating is not None and not 1 <= rating <= 5:
            raise ValueError(f"rating must be between 1 and 5, got {rating}")

        self.records.append(AttendanceRecord(
            user_id=user_id,
            provider_event_id=provider_event_id,
            attended_at=utcnow(),
            notes=notes,
            rating=rating,
        ))
        logger.info("event_attended", user_id=user_id, provider_event_id=provider_event_id)

    async def has_attended(self, user_id: str, provider_event_id: str) -> bool:
        return any(
            r.user_id == user_id and r.provider_event_id == provider_event_id
            for r in self.records
        )

    async def attended_count(self, user_id: str) -> int:
        return sum(1 for r in self.records if r.user_id == user_id)

    async def attended_events(self, user_id: str) -> list[AttendanceRecord]:
        """Records for ``user_id``, most recently attended first."""
        mine = [r for r in self.records if r.user_id == user_id]
        return sorted(mine, key=lambda r: r.attended_at, reverse=True)
