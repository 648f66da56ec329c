"""Tests for retry with backoff pattern."""

from unittest.mock import patch

import httpx
import pytest

from servers.event_feed.resilience.retry import retry_with_backoff


class TestRetryWithBackoff:
    """Tests for retry_with_backoff decorator."""

    @pytest.mark.asyncio
    async def test_returns_on_success(self):
        """Should return result on successful call."""

        @retry_with_backoff(max_attempts=3)
        async def success():
            return "ok"

        assert await success() == "ok"

    @pytest.mark.asyncio
    async def test_retries_on_failure(self):
        """Should retry on failure."""
        call_count = 0

        @retry_with_backoff(max_attempts=3, base_delay=0.01)
        async def fail_then_succeed():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ValueError("retry me")
            return "ok"

        assert await fail_then_succeed() == "ok"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_raises_after_max_attempts(self):
        """Should raise after max attempts exhausted."""
        call_count = 0

        @retry_with_backoff(max_attempts=3, base_delay=0.01)
        async def always_fail():
            nonlocal call_count
            call_count += 1
            raise ValueError("always fails")

        with pytest.raises(ValueError) as exc_info:
            await always_fail()

        assert "always fails" in str(exc_info.value)
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_respects_retryable_exceptions(self):
        """Should only retry specified exception types."""
        call_count = 0

        @retry_with_backoff(
            max_attempts=3, base_delay=0.01, retryable_exceptions=(httpx.TransportError,)
        )
        async def bad_request():
            nonlocal call_count
            call_count += 1
            raise TypeError("not retryable")

        with pytest.raises(TypeError):
            await bad_request()
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_retries_transport_errors(self):
        call_count = 0

        @retry_with_backoff(
            max_attempts=2, base_delay=0.01, retryable_exceptions=(httpx.TransportError,)
        )
        async def flaky():
            nonlocal call_count
            call_count += 1
            if call_count == 1:
                raise httpx.ConnectTimeout("timed out")
            return "ok"

        assert await flaky() == "ok"

    @pytest.mark.asyncio
    async def test_exponential_delay(self):
        """Should use exponential backoff."""
        delays = []

        async def mock_sleep(delay):
            delays.append(delay)

        @retry_with_backoff(max_attempts=4, base_delay=0.1, jitter=False)
        async def fail():
            raise ValueError("fail")

        with patch("servers.event_feed.resilience.retry.asyncio.sleep", mock_sleep):
            with pytest.raises(ValueError):
                await fail()

        # No delay after the final failure
        assert delays == pytest.approx([0.1, 0.2, 0.4])

    @pytest.mark.asyncio
    async def test_max_delay_cap(self):
        """Should cap delay at max_delay."""
        delays = []

        async def mock_sleep(delay):
            delays.append(delay)

        @retry_with_backoff(max_attempts=5, base_delay=10.0, max_delay=1.0, jitter=False)
        async def fail():
            raise ValueError("fail")

        with patch("servers.event_feed.resilience.retry.asyncio.sleep", mock_sleep):
            with pytest.raises(ValueError):
                await fail()

        assert delays == [1.0, 1.0, 1.0, 1.0]

    @pytest.mark.asyncio
    async def test_jitter_stays_within_bounds(self):
        delays = []

        async def mock_sleep(delay):
            delays.append(delay)

        @retry_with_backoff(max_attempts=2, base_delay=1.0, jitter=True)
        async def fail():
            raise ValueError("fail")

        with patch("servers.event_feed.resilience.retry.asyncio.sleep", mock_sleep):
            with pytest.raises(ValueError):
                await fail()

        assert 0.5 <= delays[0] <= 1.5
