"""Tests for the provider rate-limit gate."""

import pytest

from servers.event_feed.resilience.rate_limit import GateState, RateLimitGate


class QuotaStub:
    def __init__(self, allowed=True, error=None):
        self.allowed = allowed
        self.error = error
        self.calls = []

    async def check_can_call(self, user_id):
        self.calls.append(user_id)
        if self.error is not None:
            raise self.error
        return self.allowed


class TestRateLimitGate:
    """Tests for RateLimitGate class."""

    @pytest.mark.asyncio
    async def test_initial_state(self):
        gate = RateLimitGate(QuotaStub())
        assert gate.state == GateState.ALLOWED
        assert gate.is_blocked is False

    @pytest.mark.asyncio
    async def test_allowed(self):
        stub = QuotaStub(allowed=True)
        gate = RateLimitGate(stub)

        assert await gate.check_can_call("user-1") is True
        assert stub.calls == ["user-1"]
        assert gate.last_check_time is not None

    @pytest.mark.asyncio
    async def test_blocked_when_quota_exhausted(self):
        gate = RateLimitGate(QuotaStub(allowed=False))

        assert await gate.check_can_call("user-1") is False
        assert gate.is_blocked is True
        assert gate.blocked_count == 1

    @pytest.mark.asyncio
    async def test_failing_check_counts_as_blocked(self):
        gate = RateLimitGate(QuotaStub(error=ConnectionError("quota store down")))

        assert await gate.check_can_call("user-1") is False
        assert gate.is_blocked is True

    @pytest.mark.asyncio
    async def test_unblocks_when_quota_returns(self):
        stub = QuotaStub(allowed=False)
        gate = RateLimitGate(stub)
        await gate.check_can_call("user-1")

        stub.allowed = True
        await gate.check_can_call("user-1")

        assert gate.state == GateState.ALLOWED

    def test_blocked_count_counts_transitions(self):
        gate = RateLimitGate(QuotaStub())

        gate.mark_exhausted()
        gate.mark_exhausted()
        gate.mark_allowed()
        gate.mark_exhausted()

        assert gate.blocked_count == 2
        assert gate.is_blocked is True

    def test_reset(self):
        gate = RateLimitGate(QuotaStub())
        gate.mark_exhausted()

        gate.reset()

        assert gate.state == GateState.ALLOWED
        assert gate.last_check_time is None

    def test_get_status(self):
        gate = RateLimitGate(QuotaStub(), name="ticketmaster")
        gate.mark_exhausted()

        status = gate.get_status()

        assert status == {
            "name": "ticketmaster",
            "state": "blocked",
            "blocked_count": 1,
            "last_check": None,
        }
