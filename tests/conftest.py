# tests/conftest.py — v1
"""Shared test fixtures for all unit tests.

Provides a controllable clock, a recording sleep for retry tests, an
in-memory output sink for renderers, and a recording renderer.
No real delays, terminals or processes are involved.
"""

from __future__ import annotations

import pytest

from reviewpipe.core.models import FileStatus
from reviewpipe.progress.base_renderer import BaseProgressRenderer


# === Helpers ===


class FakeClock:
    """Monotonic clock advanced manually (seconds)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


class RecordingSleep:
    """Async sleep replacement that records requested delays (seconds)."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def delays_ms(self) -> list[float]:
        return [round(s * 1000, 6) for s in self.calls]


class MemorySink:
    """OutputSink collecting everything written."""

    def __init__(self) -> None:
        self.chunks: list[str] = []
        self.flushes = 0

    def write(self, text: str) -> None:
        self.chunks.append(text)

    def flush(self) -> None:
        self.flushes += 1

    @property
    def text(self) -> str:
        return "".join(self.chunks)

    @property
    def lines(self) -> list[str]:
        return [line for line in self.text.split("\n") if line]


class RecordingRenderer(BaseProgressRenderer):
    """Renderer that records every call; optionally fails on chosen methods."""

    def __init__(self, fail_on: tuple[str, ...] = (), error: Exception | None = None) -> None:
        self.calls: list[tuple] = []
        self._fail_on = fail_on
        self._error = error or RuntimeError("render failure")

    @property
    def name(self) -> str:
        return "recording"

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        if method in self._fail_on:
            raise self._error

    def start(self, total_files: int) -> None:
        self._record("start", total_files)

    def update_progress(self, current_file: str, completed: int, total: int) -> None:
        self._record("update_progress", current_file, completed, total)

    def update_file_status(self, file: str, status: FileStatus) -> None:
        self._record("update_file_status", file, status)

    def error(self, file: str, message: str) -> None:
        self._record("error", file, message)

    def complete(self) -> None:
        self._record("complete")

    def cleanup(self) -> None:
        self._record("cleanup")

    def methods(self) -> list[str]:
        return [c[0] for c in self.calls]


# === FIXTURES ===


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def recording_renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def make_renderer():
    """Factory for RecordingRenderer with failure injection."""
    return RecordingRenderer
