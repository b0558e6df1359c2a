# src/retry/policy.py — v1
"""Retry policy with exponential backoff, jitter, and batch execution.

Delay before attempt n+1 (n is 1-based):
    min(max_delay_ms, base_delay_ms * backoff_multiplier ** (n - 1)) + U(0, jitter_ms)

Attempt 1 has no preceding delay. Retrying stops after max_attempts attempts
or immediately on a non-retryable error; the last error is re-raised.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

from reviewpipe.core.errors import ConfigurationError
from reviewpipe.retry.classifier import classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryConfig:
    """Backoff parameters. Validated on construction."""

    max_attempts: int = 3
    base_delay_ms: float = 1000.0
    max_delay_ms: float = 30000.0
    backoff_multiplier: float = 2.0
    jitter_ms: float = 100.0

    def __post_init__(self) -> None:
        errors: list[str] = []
        if self.max_attempts < 1:
            errors.append("max_attempts must be >= 1")
        if self.base_delay_ms <= 0:
            errors.append("base_delay_ms must be > 0")
        if self.max_delay_ms <= 0:
            errors.append("max_delay_ms must be > 0")
        if self.backoff_multiplier <= 0:
            errors.append("backoff_multiplier must be > 0")
        if self.jitter_ms < 0:
            errors.append("jitter_ms must be >= 0")
        if errors:
            raise ConfigurationError("Invalid RetryConfig: " + "; ".join(errors))

    def merged(self, **overrides: Any) -> RetryConfig:
        """Return a validated copy with the given non-None fields replaced."""
        updates = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **updates) if updates else self


def compute_delay_ms(
    config: RetryConfig,
    attempt: int,
    rng: random.Random | None = None,
) -> float:
    """Delay to wait after failed attempt `attempt` (1-based)."""
    exponential = config.base_delay_ms * (config.backoff_multiplier ** (attempt - 1))
    capped = min(exponential, config.max_delay_ms)
    if config.jitter_ms:
        source = rng or random
        capped += source.uniform(0, config.jitter_ms)
    return capped


@dataclass
class RetryOutcome(Generic[T]):
    """Result of running an operation under the policy."""

    success: bool
    value: T | None = None
    error: BaseException | None = None
    attempts: int = 0
    total_delay_ms: float = 0.0
    skipped: bool = False


@dataclass
class BatchOperation(Generic[T]):
    """One entry for RetryPolicy.execute_many."""

    operation: Callable[[], Awaitable[T]]
    name: str = "operation"
    file_path: str | None = None
    config: RetryConfig | None = None


async def _asyncio_sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


class RetryPolicy:
    """Run async operations with classification-aware retries.

    Args:
        config: Default RetryConfig; per-call configs replace it wholesale.
        sleep: Awaitable sleep taking seconds (injectable for tests).
        rng: Random source for jitter.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: SleepFn | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config or RetryConfig()
        self._sleep = sleep or _asyncio_sleep
        self._rng = rng

    @property
    def config(self) -> RetryConfig:
        return self._config

    def delay_for(self, attempt: int, config: RetryConfig | None = None) -> float:
        return compute_delay_ms(config or self._config, attempt, self._rng)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        name: str = "operation",
        file_path: str | None = None,
        config: RetryConfig | None = None,
    ) -> RetryOutcome[T]:
        """Run operation with retries and report the outcome without raising."""
        cfg = config or self._config
        total_delay = 0.0
        last_error: BaseException | None = None

        for attempt in range(1, cfg.max_attempts + 1):
            try:
                started = time.monotonic()
                value = await operation()
                logger.debug(
                    "%s%s succeeded on attempt %d/%d (%.0fms)",
                    name, _suffix(file_path), attempt, cfg.max_attempts,
                    (time.monotonic() - started) * 1000,
                )
                return RetryOutcome(
                    success=True, value=value, attempts=attempt, total_delay_ms=total_delay,
                )
            except Exception as exc:
                last_error = exc
                classification = classify_error(exc)

                if attempt >= cfg.max_attempts:
                    logger.warning(
                        "%s%s failed after %d attempts (%s): %s",
                        name, _suffix(file_path), attempt, classification.category.value, exc,
                    )
                    return RetryOutcome(
                        success=False, error=exc, attempts=attempt, total_delay_ms=total_delay,
                    )

                if not classification.retryable:
                    logger.info(
                        "%s%s: %s error is not retryable, stopping after attempt %d",
                        name, _suffix(file_path), classification.category.value, attempt,
                    )
                    return RetryOutcome(
                        success=False, error=exc, attempts=attempt, total_delay_ms=total_delay,
                    )

                delay = compute_delay_ms(cfg, attempt, self._rng)
                total_delay += delay
                logger.warning(
                    "%s%s: %s (attempt %d/%d), retrying in %.0fms",
                    name, _suffix(file_path), classification.category.value,
                    attempt, cfg.max_attempts, delay,
                )
                await self._sleep(delay / 1000.0)

        # max_attempts >= 1 guarantees the loop returned
        return RetryOutcome(success=False, error=last_error, attempts=cfg.max_attempts)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        name: str = "operation",
        file_path: str | None = None,
        config: RetryConfig | None = None,
    ) -> T:
        """Run operation with retries, re-raising the last error on failure."""
        outcome = await self.run(operation, name=name, file_path=file_path, config=config)
        if outcome.error is not None:
            raise outcome.error
        return outcome.value  # type: ignore[return-value]

    async def execute_many(
        self,
        operations: Sequence[BatchOperation[T] | Callable[[], Awaitable[T]]],
        parallel: bool = False,
        fail_fast: bool = False,
    ) -> list[RetryOutcome[T]]:
        """Run several operations, returning one outcome per input in order.

        Sequential mode continues past failures unless fail_fast is set, in
        which case operations after the first failure are marked skipped.
        Parallel mode runs everything concurrently and ignores fail_fast.
        """
        entries = [op if isinstance(op, BatchOperation) else BatchOperation(op) for op in operations]

        if parallel:
            return list(await asyncio.gather(*(
                self.run(e.operation, name=e.name, file_path=e.file_path, config=e.config)
                for e in entries
            )))

        outcomes: list[RetryOutcome[T]] = []
        stopped = False
        for entry in entries:
            if stopped:
                outcomes.append(RetryOutcome(success=False, skipped=True))
                continue
            outcome = await self.run(
                entry.operation, name=entry.name, file_path=entry.file_path, config=entry.config,
            )
            outcomes.append(outcome)
            if fail_fast and not outcome.success:
                logger.error("Fail-fast: skipping %d remaining operations", len(entries) - len(outcomes))
                stopped = True
        return outcomes


def _suffix(file_path: str | None) -> str:
    return f" [{file_path}]" if file_path else ""
