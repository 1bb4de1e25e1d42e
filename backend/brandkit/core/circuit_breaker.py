"""Circuit breaker guarding calls to the text-generation API.

CLOSED lets calls through and counts consecutive failures. Reaching
failure_threshold moves to OPEN, which refuses calls until
recovery_timeout has elapsed. The first call after that runs in HALF_OPEN:
success closes the circuit, failure opens it again.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum

from brandkit.core.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration."""

    failure_threshold: int
    recovery_timeout: float


class CircuitBreaker:
    """Async-safe circuit breaker keyed by a service name."""

    def __init__(self, config: CircuitBreakerConfig, name: str = "default") -> None:
        self._config = config
        self._name = name
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def is_closed(self) -> bool:
        return self._state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    @property
    def is_half_open(self) -> bool:
        return self._state == CircuitState.HALF_OPEN

    def _transition(self, new_state: CircuitState) -> None:
        previous = self._state
        self._state = new_state
        extra = {
            "circuit_name": self._name,
            "previous_state": previous.value,
            "new_state": new_state.value,
            "failure_count": self._failure_count,
        }
        if new_state == CircuitState.OPEN:
            self._opened_at = time.monotonic()
            extra["recovery_timeout"] = self._config.recovery_timeout
            logger.warning("Circuit breaker opened", extra=extra)
        elif new_state == CircuitState.CLOSED:
            self._opened_at = None
            logger.info("Circuit breaker closed", extra=extra)
        else:
            logger.info("Circuit breaker attempting recovery", extra=extra)

    async def can_execute(self) -> bool:
        """Return True when a call may be attempted now."""
        async with self._lock:
            if self._state != CircuitState.OPEN:
                return True
            elapsed = time.monotonic() - (self._opened_at or 0.0)
            if elapsed < self._config.recovery_timeout:
                return False
            self._transition(CircuitState.HALF_OPEN)
            return True

    async def record_success(self) -> None:
        async with self._lock:
            self._failure_count = 0
            if self._state != CircuitState.CLOSED:
                self._transition(CircuitState.CLOSED)

    async def record_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self._config.failure_threshold
            ):
                self._transition(CircuitState.OPEN)
