"""Rate-limit gate in front of the provider events API."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

import structlog

if TYPE_CHECKING:
    from ..sources.base import ProviderEventsClient

logger = structlog.get_logger()


class GateState(Enum):
    """States for the rate-limit gate."""

    ALLOWED = "allowed"  # Provider calls permitted
    BLOCKED = "blocked"  # Daily quota exhausted, serve cached data


class RateLimitGate:
    """Tracks whether the current identity may call the provider now.

    The quota policy itself belongs to the provider client; the gate only
    remembers the last answer so the engine can fall back to cached data
    without attempting a call that is known to fail.
    """

    def __init__(self, provider: "ProviderEventsClient", name: str = "ticketmaster"):
        """Initialize gate.

        Args:
            provider: Client whose quota check is consulted
            name: Name for logging and identification
        """
        self.provider = provider
        self.name = name
        self.state = GateState.ALLOWED
        self.last_check_time: Optional[datetime] = None
        self.blocked_count = 0

    async def check_can_call(self, user_id: str) -> bool:
        """Ask the provider whether ``user_id`` has quota left.

        A failing quota check counts as "cannot call".
        """
        self.last_check_time = datetime.now()
        try:
            allowed = await self.provider.check_can_call(user_id)
        except Exception as e:
            logger.warning("rate_limit_check_failed", gate=self.name, error=str(e))
            allowed = False

        if allowed:
            self._allow()
        else:
            self._block(reason="quota_exhausted")
        return allowed

    def mark_exhausted(self) -> None:
        """Record that a provider call itself reported quota exhaustion."""
        self._block(reason="provider_reported")

    def mark_allowed(self) -> None:
        """Record that a provider call went through."""
        self._allow()

    def _allow(self) -> None:
        if self.state == GateState.BLOCKED:
            logger.info("rate_limit_cleared", gate=self.name)
        self.state = GateState.ALLOWED

    def _block(self, reason: str) -> None:
        if self.state == GateState.ALLOWED:
            self.blocked_count += 1
            logger.warning("rate_limit_blocked", gate=self.name, reason=reason)
        self.state = GateState.BLOCKED

    def reset(self) -> None:
        """Manually reset the gate to allowed."""
        self.state = GateState.ALLOWED
        self.last_check_time = None

    @property
    def is_blocked(self) -> bool:
        return self.state == GateState.BLOCKED

    def get_status(self) -> dict[str, Any]:
        """Get current gate status."""
        return {
            "name": self.name,
            "state": self.state.value,
            "blocked_count": self.blocked_count,
            "last_check": (
                self.last_check_time.isoformat() if self.last_check_time else None
            ),
        }
