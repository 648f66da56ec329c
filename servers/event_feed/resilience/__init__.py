"""Resilience patterns for degrading gracefully when sources misbehave."""

from .fallback import cached_or_none, with_default
from .health import HealthMonitor, SourceHealth
from .rate_limit import GateState, RateLimitGate
from .retry import retry_with_backoff

__all__ = [
    "retry_with_backoff",
    "RateLimitGate",
    "GateState",
    "HealthMonitor",
    "SourceHealth",
    "with_default",
    "cached_or_none",
]
