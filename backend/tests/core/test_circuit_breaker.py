"""Tests for the circuit breaker guarding Claude calls.

- starts CLOSED and opens at failure_threshold
- refuses calls while OPEN until recovery_timeout elapses
- HALF_OPEN closes on success and reopens on failure
"""

from unittest.mock import patch

import pytest

from brandkit.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState

MONOTONIC = "brandkit.core.circuit_breaker.time.monotonic"


def _breaker(threshold: int = 3, timeout: float = 30.0) -> CircuitBreaker:
    return CircuitBreaker(
        CircuitBreakerConfig(failure_threshold=threshold, recovery_timeout=timeout),
        name="claude",
    )


async def _open(cb: CircuitBreaker, now: float = 1000.0) -> None:
    with patch(MONOTONIC, return_value=now):
        for _ in range(cb._config.failure_threshold):
            await cb.record_failure()


class TestClosedState:
    def test_starts_closed(self) -> None:
        cb = _breaker()

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0
        assert cb.name == "claude"

    @pytest.mark.asyncio
    async def test_opens_at_threshold(self) -> None:
        cb = _breaker(threshold=3)

        await cb.record_failure()
        await cb.record_failure()
        assert cb.is_closed

        await cb.record_failure()
        assert cb.is_open

    @pytest.mark.asyncio
    async def test_success_resets_failures(self) -> None:
        cb = _breaker(threshold=3)

        await cb.record_failure()
        await cb.record_failure()
        await cb.record_success()
        await cb.record_failure()

        assert cb.failure_count == 1
        assert cb.is_closed


class TestOpenState:
    @pytest.mark.asyncio
    async def test_refuses_calls_before_timeout(self) -> None:
        cb = _breaker(timeout=30.0)
        await _open(cb, now=1000.0)

        with patch(MONOTONIC, return_value=1010.0):
            assert await cb.can_execute() is False
        assert cb.is_open

    @pytest.mark.asyncio
    async def test_half_opens_after_timeout(self) -> None:
        cb = _breaker(timeout=30.0)
        await _open(cb, now=1000.0)

        with patch(MONOTONIC, return_value=1031.0):
            assert await cb.can_execute() is True
        assert cb.is_half_open


class TestHalfOpenState:
    @pytest.mark.asyncio
    async def test_success_closes(self) -> None:
        cb = _breaker()
        await _open(cb, now=1000.0)
        with patch(MONOTONIC, return_value=2000.0):
            await cb.can_execute()

        await cb.record_success()

        assert cb.is_closed
        assert cb.failure_count == 0

    @pytest.mark.asyncio
    async def test_failure_reopens(self) -> None:
        cb = _breaker(threshold=5)
        await _open(cb, now=1000.0)
        with patch(MONOTONIC, return_value=2000.0):
            await cb.can_execute()
            await cb.record_failure()

        assert cb.is_open
        with patch(MONOTONIC, return_value=2010.0):
            assert await cb.can_execute() is False


class TestLogging:
    @pytest.mark.asyncio
    async def test_logs_open_and_close(self) -> None:
        cb = _breaker(threshold=1)

        with patch("brandkit.core.circuit_breaker.logger") as mock_logger:
            with patch(MONOTONIC, return_value=1000.0):
                await cb.record_failure()
            with patch(MONOTONIC, return_value=2000.0):
                await cb.can_execute()
            await cb.record_success()

        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args[0][0] == "Circuit breaker opened"
        assert mock_logger.warning.call_args[1]["extra"]["circuit_name"] == "claude"
        info_messages = [c[0][0] for c in mock_logger.info.call_args_list]
        assert info_messages == [
            "Circuit breaker attempting recovery",
            "Circuit breaker closed",
        ]
