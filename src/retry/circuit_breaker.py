# src/retry/circuit_breaker.py — v1
"""Failure-latching circuit breaker.

Counts consecutive failures; once the threshold is reached every further call
raises CircuitOpenError without invoking the operation. By default the latch
is permanent until reset() is called. A reset_timeout_s turns on a half-open
trial call: after the timeout one call is let through, and its outcome closes or
re-opens the circuit.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable, Literal, TypeVar

from reviewpipe.core.errors import CircuitOpenError, ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CircuitState = Literal["closed", "open", "half_open"]


class CircuitBreaker:
    """Binary latch guarding an async operation.

    Args:
        threshold: Consecutive failures that open the circuit (>= 1).
        name: Label used in errors and logs.
        reset_timeout_s: Optional delay before a half-open trial call. None keeps
            the circuit open until reset().
        clock: Monotonic clock in seconds (injectable for tests).
    """

    def __init__(
        self,
        threshold: int = 5,
        name: str = "default",
        reset_timeout_s: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if threshold < 1:
            raise ConfigurationError(f"Circuit breaker threshold must be >= 1, got {threshold}")
        if reset_timeout_s is not None and reset_timeout_s <= 0:
            raise ConfigurationError("reset_timeout_s must be > 0 when set")
        self._threshold = threshold
        self._name = name
        self._reset_timeout_s = reset_timeout_s
        self._clock = clock
        self._failures = 0
        self._opened_at: float | None = None
        self._probing = False

    @property
    def threshold(self) -> int:
        return self._threshold

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    @property
    def state(self) -> CircuitState:
        if self._opened_at is None:
            return "closed"
        if self._trial_due():
            return "half_open"
        return "open"

    @property
    def is_open(self) -> bool:
        return self.state == "open"

    def reset(self) -> None:
        """Close the circuit and clear the failure counter."""
        if self._opened_at is not None:
            logger.info("Circuit '%s' reset", self._name)
        self._failures = 0
        self._opened_at = None
        self._probing = False

    def record_success(self) -> None:
        if self._opened_at is not None:
            logger.info("Circuit '%s' closed after successful trial call", self._name)
        self._failures = 0
        self._opened_at = None
        self._probing = False

    def record_failure(self) -> None:
        self._failures += 1
        if self._probing or (self._opened_at is None and self._failures >= self._threshold):
            self._opened_at = self._clock()
            self._probing = False
            logger.warning(
                "Circuit '%s' opened after %d consecutive failures",
                self._name, self._failures,
            )

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Invoke operation unless the circuit is open."""
        state = self.state
        if state == "open" or (state == "half_open" and self._probing):
            raise CircuitOpenError(self._name, self._failures, self._threshold)
        if state == "half_open":
            self._probing = True
            logger.debug("Circuit '%s' half-open, probing", self._name)

        try:
            result = await operation()
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result

    def _trial_due(self) -> bool:
        if self._reset_timeout_s is None or self._opened_at is None:
            return False
        return self._clock() - self._opened_at >= self._reset_timeout_s
