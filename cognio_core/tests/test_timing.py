"""Tests for the timeout race, retry delays and run identifiers."""

import asyncio
import re

import pytest

from cognio_core.errors import AgentError, ErrorCode
from cognio_core.timing import calculate_retry_delay, generate_context_id, run_with_timeout
from cognio_core.types import RetryConfig


class TestCalculateRetryDelay:
    """Test cases for backoff delay calculation."""

    def test_exponential_doubles(self):
        """Test that exponential delays double per attempt."""
        retry = RetryConfig(delay=0.1, backoff="exponential")
        delays = [calculate_retry_delay(attempt, retry) for attempt in (1, 2, 3, 4)]
        assert delays == pytest.approx([0.1, 0.2, 0.4, 0.8])

    def test_exponential_is_clamped_to_max_delay(self):
        """Test that max_delay caps the exponential growth."""
        retry = RetryConfig(delay=1.0, backoff="exponential", max_delay=3.0)
        assert calculate_retry_delay(1, retry) == 1.0
        assert calculate_retry_delay(2, retry) == 2.0
        assert calculate_retry_delay(3, retry) == 3.0
        assert calculate_retry_delay(10, retry) == 3.0

    @pytest.mark.parametrize("backoff", ["linear", "none"])
    def test_constant_strategies(self, backoff):
        """Test that linear and none use the base delay for every attempt."""
        retry = RetryConfig(delay=0.5, backoff=backoff)
        assert [calculate_retry_delay(attempt, retry) for attempt in (1, 2, 5)] == [0.5, 0.5, 0.5]


class TestRunWithTimeout:
    """Test cases for the timeout race."""

    @pytest.mark.asyncio
    async def test_returns_result_unmodified(self):
        """Test that the work result is returned when it finishes first."""
        payload = {"value": [1, 2]}

        async def work():
            return payload

        assert await run_with_timeout(work(), 1.0) is payload

    @pytest.mark.asyncio
    async def test_propagates_work_exception(self):
        """Test that the work's own exception wins the race unchanged."""
        error = ValueError("bad input")

        async def work():
            raise error

        with pytest.raises(ValueError) as exc_info:
            await run_with_timeout(work(), 1.0)
        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_timeout_raises_agent_error(self):
        """Test that a slow awaitable yields a TIMEOUT error."""
        with pytest.raises(AgentError) as exc_info:
            await run_with_timeout(asyncio.sleep(1.0), 0.05, "Workflow timeout")

        assert exc_info.value.code == ErrorCode.TIMEOUT
        assert exc_info.value.message == "Workflow timeout"
        assert exc_info.value.details == {"timeout": 0.05}

    @pytest.mark.asyncio
    async def test_timed_out_work_keeps_running(self):
        """Test that the losing work is abandoned rather than cancelled."""
        finished = asyncio.Event()

        async def work():
            await asyncio.sleep(0.1)
            finished.set()
            raise RuntimeError("late failure")

        with pytest.raises(AgentError):
            await run_with_timeout(work(), 0.01)

        await asyncio.wait_for(finished.wait(), timeout=1.0)
        # Give the done callback a chance to retrieve the late exception
        await asyncio.sleep(0)
        assert finished.is_set()

    @pytest.mark.asyncio
    async def test_none_timeout_waits(self):
        """Test that no timeout means waiting for completion."""

        async def work():
            await asyncio.sleep(0.01)
            return "done"

        assert await run_with_timeout(work(), None) == "done"

    @pytest.mark.asyncio
    async def test_cancellation_cancels_work(self):
        """Test that cancelling the race cancels the in-flight work."""
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def work():
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        race = asyncio.ensure_future(run_with_timeout(work(), 5.0))
        await started.wait()
        race.cancel()

        with pytest.raises(asyncio.CancelledError):
            await race
        await asyncio.wait_for(cancelled.wait(), timeout=1.0)


class TestGenerateContextId:
    """Test cases for run identifiers."""

    def test_format(self):
        """Test the name-millis-random layout."""
        context_id = generate_context_id("lead-agent")
        assert re.fullmatch(r"lead-agent-\d{13}-[0-9a-f]{9}", context_id)

    def test_unique(self):
        """Test that identifiers do not repeat."""
        ids = {generate_context_id("agent") for _ in range(200)}
        assert len(ids) == 200
