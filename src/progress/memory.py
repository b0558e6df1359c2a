# src/progress/memory.py — v1
"""Memory monitoring for long sequential runs.

Memory figures come from an injected MemoryStatsProvider; the default one
reads the current process through psutil.
"""

from __future__ import annotations

import gc
import logging
import os
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Literal, Protocol

import psutil

from reviewpipe.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

MB = 1024 * 1024

MemoryLevel = Literal["ok", "warning", "critical", "maximum"]


@dataclass(frozen=True)
class MemoryStats:
    rss_bytes: int
    vms_bytes: int = 0

    @property
    def rss_mb(self) -> float:
        return self.rss_bytes / MB


class MemoryStatsProvider(Protocol):
    def current(self) -> MemoryStats: ...


class PsutilMemoryProvider:
    """Reads resident and virtual memory of one process via psutil."""

    def __init__(self, pid: int | None = None) -> None:
        self._process = psutil.Process(pid or os.getpid())

    def current(self) -> MemoryStats:
        info = self._process.memory_info()
        return MemoryStats(rss_bytes=info.rss, vms_bytes=info.vms)


@dataclass(frozen=True)
class MemoryThresholds:
    warning_mb: float = 500.0
    critical_mb: float = 750.0
    maximum_mb: float = 1024.0

    def __post_init__(self) -> None:
        if not 0 < self.warning_mb <= self.critical_mb <= self.maximum_mb:
            raise ConfigurationError(
                "Memory thresholds must satisfy 0 < warning <= critical <= maximum"
            )


class MemoryMonitor:
    """Classify current memory use against thresholds.

    Args:
        provider: Source of memory figures (psutil-backed if None).
        thresholds: Warning / critical / maximum levels in MB.
        gc_enabled: Run gc.collect() when the critical level is reached.
        gc_cooldown_s: Minimum spacing between forced collections.
        history_size: Number of samples kept for peak reporting.
    """

    def __init__(
        self,
        provider: MemoryStatsProvider | None = None,
        thresholds: MemoryThresholds | None = None,
        gc_enabled: bool = True,
        gc_cooldown_s: float = 5.0,
        history_size: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider or PsutilMemoryProvider()
        self._thresholds = thresholds or MemoryThresholds()
        self._gc_enabled = gc_enabled
        self._gc_cooldown_s = gc_cooldown_s
        self._clock = clock
        self._last_gc: float | None = None
        self._history: deque[MemoryStats] = deque(maxlen=history_size)

    @property
    def thresholds(self) -> MemoryThresholds:
        return self._thresholds

    @property
    def peak_mb(self) -> float:
        return max((s.rss_mb for s in self._history), default=0.0)

    def level_for(self, stats: MemoryStats) -> MemoryLevel:
        mb = stats.rss_mb
        if mb >= self._thresholds.maximum_mb:
            return "maximum"
        if mb >= self._thresholds.critical_mb:
            return "critical"
        if mb >= self._thresholds.warning_mb:
            return "warning"
        return "ok"

    def check(self) -> MemoryLevel:
        """Sample memory, log above-normal levels, collect garbage if critical."""
        stats = self._provider.current()
        self._history.append(stats)
        level = self.level_for(stats)

        if level == "warning":
            logger.warning("Memory usage high: %.0fMB", stats.rss_mb)
        elif level == "critical":
            logger.warning("Memory usage critical: %.0fMB", stats.rss_mb)
            self._maybe_collect()
        elif level == "maximum":
            logger.error(
                "Memory usage %.0fMB exceeds maximum %.0fMB",
                stats.rss_mb, self._thresholds.maximum_mb,
            )
        return level

    def _maybe_collect(self) -> bool:
        if not self._gc_enabled:
            return False
        now = self._clock()
        if self._last_gc is not None and now - self._last_gc < self._gc_cooldown_s:
            return False
        self._last_gc = now
        collected = gc.collect()
        logger.debug("Forced garbage collection freed %d objects", collected)
        return True
