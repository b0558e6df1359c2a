# src/progress/renderers.py — v1
"""Concrete progress renderers and the capability-based factory.

- InteractiveProgressRenderer: cursor control, spinner, colored bar, ETA and
  throughput, redrawn in place.
- PlainTextProgressRenderer: one line per event, throttled progress lines.
- MinimalProgressRenderer: 25/50/75% milestones and a final tally.
- SilentProgressRenderer: no output.
"""

from __future__ import annotations

import time
from typing import Callable, Literal

from reviewpipe.core.models import FileStatus
from reviewpipe.progress.base_renderer import BaseProgressRenderer
from reviewpipe.progress.models import ProgressBarConfig
from reviewpipe.progress.terminal import (
    ASCII_PROGRESS_CHARS,
    ASCII_STATUS_ICONS,
    CLEAR_LINE,
    HIDE_CURSOR,
    PROGRESS_CHARS,
    SHOW_CURSOR,
    SPINNER_CHARS,
    STATUS_ICONS,
    OutputSink,
    StreamSink,
    TerminalCapabilities,
    Throttle,
    estimate_remaining_ms,
    format_clock,
    format_duration,
    throughput_per_minute,
    truncate_path,
)

ProgressStyle = Literal["auto", "interactive", "plain", "minimal", "silent"]
FallbackKind = Literal["plain", "ci", "minimal", "silent"]

_TERMINAL_STATUSES = (FileStatus.SUCCESS, FileStatus.WARNING, FileStatus.ERROR)


def _percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 100 if completed else 0
    return round(completed / total * 100)


class InteractiveProgressRenderer(BaseProgressRenderer):
    """Single redrawn progress line for ANSI-capable terminals."""

    def __init__(
        self,
        capabilities: TerminalCapabilities,
        sink: OutputSink | None = None,
        config: ProgressBarConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._caps = capabilities
        self._sink = sink or StreamSink()
        self._config = config or ProgressBarConfig()
        self._clock = clock
        self._throttle = Throttle(self._config.update_interval_ms, clock)
        self._active = False
        self._line_drawn = False
        self._spinner_index = 0
        self._start = 0.0
        self._total = 0
        self._completed = 0
        self._file_statuses: dict[str, FileStatus] = {}

    @property
    def name(self) -> str:
        return "interactive"

    def start(self, total_files: int) -> None:
        self._active = True
        self._total = total_files
        self._completed = 0
        self._start = self._clock()
        self._throttle.reset()
        self._line_drawn = False
        self._file_statuses.clear()
        if self._caps.supports_ansi:
            self._sink.write(HIDE_CURSOR)
            self._sink.flush()

    def update_progress(self, current_file: str, completed: int, total: int) -> None:
        if not self._active:
            return
        self._completed = max(self._completed, completed)
        self._total = total
        if not self._throttle.ready():
            return
        self._draw(self._render_line(current_file, completed, total))

    def update_file_status(self, file: str, status: FileStatus) -> None:
        self._file_statuses[file] = status
        if not self._active or status not in _TERMINAL_STATUSES:
            return
        icon = self._colorize(self._icon(status), status.value)
        self._print_above(f"{icon} {truncate_path(file, self._config.path_max_length)}")

    def error(self, file: str, message: str) -> None:
        self._file_statuses[file] = FileStatus.ERROR
        if not self._active:
            return
        icon = self._colorize(self._icon(FileStatus.ERROR), "error")
        self._print_above(f"{icon} {truncate_path(file, self._config.path_max_length)}: {message}")

    def complete(self) -> None:
        if not self._active:
            return
        elapsed = (self._clock() - self._start) * 1000
        rate = throughput_per_minute(self._total, elapsed)
        line = f"Completed {self._total} files in {format_clock(elapsed)} ({rate} files/min)"
        icon = self._icon(FileStatus.SUCCESS)
        self._clear_current()
        self._sink.write(self._colorize(f"{icon} {line}", "success") + "\n")
        if self._caps.supports_ansi:
            self._sink.write(SHOW_CURSOR)
        self._sink.flush()
        self._active = False

    def cleanup(self) -> None:
        if self._active and self._caps.supports_ansi:
            self._clear_current()
            self._sink.write(SHOW_CURSOR)
            self._sink.flush()
        self._active = False

    # ------------------------------------------------------------------
    # Rendering helpers
    # ------------------------------------------------------------------

    def _render_line(self, current_file: str, completed: int, total: int) -> str:
        pct = _percentage(completed, total)
        parts: list[str] = []
        frames = SPINNER_CHARS if self._caps.supports_unicode else ("-", "\\", "|", "/")
        spinner = frames[self._spinner_index % len(frames)]
        self._spinner_index += 1
        parts.append(self._colorize(spinner, "processing"))
        parts.append(self._colorize(self._bar(pct), "bar"))
        if self._config.show_percentage:
            parts.append(f"{pct}%")
        if self._config.show_file_count:
            parts.append(f"({completed}/{total})")
        if self._config.show_current_file and current_file:
            parts.append(self._colorize(truncate_path(current_file, self._config.path_max_length), "processing"))
        line = " ".join(parts)

        elapsed = (self._clock() - self._start) * 1000
        if self._config.show_eta:
            remaining = estimate_remaining_ms(elapsed, completed, total)
            line += f" | ETA: {format_clock(remaining) if remaining is not None else '--:--'}"
        if self._config.show_throughput:
            line += f" | {throughput_per_minute(completed, elapsed)} files/min"
        return line

    def _bar(self, pct: int) -> str:
        chars = PROGRESS_CHARS if self._caps.supports_unicode else ASCII_PROGRESS_CHARS
        width = self._config.width
        filled = round(pct / 100 * width)
        return f"{chars['left']}{chars['filled'] * filled}{chars['empty'] * (width - filled)}{chars['right']}"

    def _icon(self, status: FileStatus) -> str:
        icons = STATUS_ICONS if self._caps.supports_unicode else ASCII_STATUS_ICONS
        return icons[status.value]

    def _colorize(self, text: str, key: str) -> str:
        if not self._caps.supports_color:
            return text
        colors = self._config.colors
        return f"{getattr(colors, key)}{text}{colors.reset}"

    def _draw(self, line: str) -> None:
        if self._caps.supports_ansi:
            self._sink.write(CLEAR_LINE + line)
            self._line_drawn = True
        else:
            self._sink.write(line + "\n")
        self._sink.flush()

    def _clear_current(self) -> None:
        if self._line_drawn and self._caps.supports_ansi:
            self._sink.write(CLEAR_LINE)
        self._line_drawn = False

    def _print_above(self, text: str) -> None:
        self._clear_current()
        self._sink.write(text + "\n")
        self._sink.flush()


class PlainTextProgressRenderer(BaseProgressRenderer):
    """Line-per-event output without escape codes, for pipes and CI logs."""

    def __init__(
        self,
        sink: OutputSink | None = None,
        update_interval_ms: float = 1000.0,
        path_max_length: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sink = sink or StreamSink()
        self._clock = clock
        self._throttle = Throttle(update_interval_ms, clock)
        self._path_max = path_max_length
        self._total = 0
        self._start = 0.0
        self._last_args: tuple[str, int, int] | None = None

    @property
    def name(self) -> str:
        return "plain"

    def start(self, total_files: int) -> None:
        self._total = total_files
        self._start = self._clock()
        self._throttle.reset()
        self._last_args = None
        self._emit(f"Starting analysis of {total_files} files...")

    def update_progress(self, current_file: str, completed: int, total: int) -> None:
        self._last_args = (current_file, completed, total)
        if not self._throttle.ready():
            return
        self._emit_progress(current_file, completed, total)

    def update_file_status(self, file: str, status: FileStatus) -> None:
        if status in _TERMINAL_STATUSES:
            self._emit(f"{status.value.upper()}: {truncate_path(file, self._path_max)}")

    def error(self, file: str, message: str) -> None:
        self._emit(f"ERROR processing {truncate_path(file, self._path_max)}: {message}")

    def complete(self) -> None:
        if self._throttle.pending and self._last_args is not None:
            self._emit_progress(*self._last_args)
            self._throttle.pending = False
        elapsed = (self._clock() - self._start) * 1000
        self._emit(f"Analysis complete. Processed {self._total} files in {format_duration(elapsed)}.")

    def cleanup(self) -> None:
        pass

    def _emit_progress(self, current_file: str, completed: int, total: int) -> None:
        pct = _percentage(completed, total)
        self._emit(f"[{completed}/{total}] {pct}% - {truncate_path(current_file, self._path_max)}")

    def _emit(self, line: str) -> None:
        self._sink.write(line + "\n")
        self._sink.flush()


class MinimalProgressRenderer(BaseProgressRenderer):
    """Milestone percentages only; suited to CI."""

    MILESTONES = (25, 50, 75)

    def __init__(self, sink: OutputSink | None = None) -> None:
        self._sink = sink or StreamSink()
        self._total = 0
        self._reached = 0
        self._seen: dict[str, FileStatus] = {}

    @property
    def name(self) -> str:
        return "minimal"

    def start(self, total_files: int) -> None:
        self._total = total_files
        self._reached = 0
        self._seen.clear()
        self._emit(f"Analyzing {total_files} files...")

    def update_progress(self, current_file: str, completed: int, total: int) -> None:
        pct = _percentage(completed, total)
        for milestone in self.MILESTONES:
            if self._reached < milestone <= pct:
                self._reached = milestone
                self._emit(f"{milestone}% complete...")

    def update_file_status(self, file: str, status: FileStatus) -> None:
        if status in _TERMINAL_STATUSES:
            self._seen[file] = status

    def error(self, file: str, message: str) -> None:
        self._seen[file] = FileStatus.ERROR
        self._emit(f"ERROR: {file}: {message}")

    def complete(self) -> None:
        counts = {s: 0 for s in _TERMINAL_STATUSES}
        for status in self._seen.values():
            counts[status] += 1
        self._emit(
            f"Analysis complete: {counts[FileStatus.SUCCESS]} successful, "
            f"{counts[FileStatus.WARNING]} warnings, {counts[FileStatus.ERROR]} errors"
        )

    def cleanup(self) -> None:
        pass

    def _emit(self, line: str) -> None:
        self._sink.write(line + "\n")
        self._sink.flush()


class SilentProgressRenderer(BaseProgressRenderer):
    """Produces no output; results are still tracked by ProgressStateManager."""

    @property
    def name(self) -> str:
        return "silent"

    def start(self, total_files: int) -> None:
        pass

    def update_progress(self, current_file: str, completed: int, total: int) -> None:
        pass

    def update_file_status(self, file: str, status: FileStatus) -> None:
        pass

    def error(self, file: str, message: str) -> None:
        pass

    def complete(self) -> None:
        pass

    def cleanup(self) -> None:
        pass


def create_fallback_renderer(
    kind: FallbackKind = "plain",
    sink: OutputSink | None = None,
    path_max_length: int = 60,
) -> BaseProgressRenderer:
    """Renderer used after the primary one proves unreliable."""
    if kind in ("ci", "minimal"):
        return MinimalProgressRenderer(sink=sink)
    if kind == "silent":
        return SilentProgressRenderer()
    return PlainTextProgressRenderer(sink=sink, path_max_length=path_max_length)


def select_renderer(
    capabilities: TerminalCapabilities,
    style: ProgressStyle = "auto",
    sink: OutputSink | None = None,
    config: ProgressBarConfig | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> BaseProgressRenderer:
    """Pick a renderer from the capability flags and the requested style.

    'auto' and 'interactive' give the interactive renderer only on an
    interactive, ANSI-capable terminal; otherwise plain text.
    """
    if style == "silent":
        return SilentProgressRenderer()
    if style == "minimal":
        return MinimalProgressRenderer(sink=sink)
    if style in ("auto", "interactive") and capabilities.is_interactive and capabilities.supports_ansi:
        return InteractiveProgressRenderer(capabilities, sink=sink, config=config, clock=clock)
    return PlainTextProgressRenderer(
        sink=sink,
        update_interval_ms=config.update_interval_ms if config else 1000.0,
        path_max_length=config.path_max_length if config else 60,
        clock=clock,
    )
