# src/progress/terminal.py — v1
"""Terminal capabilities, output sinks, and display formatting helpers.

Renderers never touch sys.stdout directly: they receive an OutputSink and a
TerminalCapabilities value, which keeps renderer selection a pure function of
the capability flags.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Callable, Mapping, Protocol, TextIO

ESC = "\x1b["
HIDE_CURSOR = f"{ESC}?25l"
SHOW_CURSOR = f"{ESC}?25h"
CLEAR_LINE = f"\r{ESC}K"

PROGRESS_CHARS = {
    "filled": "█",
    "empty": "░",
    "left": "▕",
    "right": "▏",
}
ASCII_PROGRESS_CHARS = {
    "filled": "=",
    "empty": "-",
    "left": "[",
    "right": "]",
}
SPINNER_CHARS = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")
STATUS_ICONS = {
    "success": "✔",
    "error": "✖",
    "warning": "⚠",
    "pending": "…",
    "processing": "↻",
}
ASCII_STATUS_ICONS = {
    "success": "OK",
    "error": "ERR",
    "warning": "WARN",
    "pending": "..",
    "processing": ">>",
}


@dataclass(frozen=True)
class TerminalCapabilities:
    """Boolean capability flags of the output terminal."""

    is_interactive: bool = False
    supports_color: bool = False
    supports_ansi: bool = False
    supports_unicode: bool = False

    @classmethod
    def detect(
        cls,
        stream: TextIO | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> TerminalCapabilities:
        """Best-effort detection from a stream and environment variables."""
        stream = stream if stream is not None else sys.stdout
        env = environ if environ is not None else os.environ

        isatty = getattr(stream, "isatty", None)
        interactive = bool(isatty and isatty())
        term = env.get("TERM", "").lower()
        ansi = interactive and term != "dumb"

        force = env.get("FORCE_COLOR")
        if force in ("1", "true"):
            color = True
        elif force == "0" or "NO_COLOR" in env:
            color = False
        else:
            color = ansi and (
                bool(env.get("COLORTERM"))
                or any(t in term for t in ("color", "xterm", "screen", "tmux"))
            )

        locale = (env.get("LC_ALL") or env.get("LC_CTYPE") or env.get("LANG") or "").lower()
        encoding = (getattr(stream, "encoding", None) or "").lower()
        unicode = "utf-8" in locale or "utf8" in locale or encoding.startswith("utf")

        return cls(
            is_interactive=interactive,
            supports_color=color,
            supports_ansi=ansi,
            supports_unicode=unicode,
        )


class OutputSink(Protocol):
    """Where renderers write their text."""

    def write(self, text: str) -> None: ...

    def flush(self) -> None: ...


class StreamSink:
    """OutputSink over a text stream, resolved lazily (default: stdout)."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def write(self, text: str) -> None:
        self.stream.write(text)

    def flush(self) -> None:
        self.stream.flush()


class Throttle:
    """Allow at most one emission per interval.

    A call inside the interval is remembered as pending so the caller can
    flush the latest state later (e.g. on completion).
    """

    def __init__(self, interval_ms: float, clock: Callable[[], float]) -> None:
        self._interval_s = interval_ms / 1000.0
        self._clock = clock
        self._last: float | None = None
        self.pending = False

    def ready(self) -> bool:
        now = self._clock()
        if self._last is None or now - self._last >= self._interval_s:
            self._last = now
            self.pending = False
            return True
        self.pending = True
        return False

    def reset(self) -> None:
        self._last = None
        self.pending = False


def truncate_path(path: str, max_length: int = 40) -> str:
    """Shorten a path, keeping the file name and as many parents as fit."""
    if len(path) <= max_length:
        return path

    parts = path.replace("\\", "/").split("/")
    filename = parts[-1]
    if len(filename) >= max_length - 3:
        return "..." + filename[-(max_length - 3):]

    result = filename
    remaining = max_length - len(filename) - 4
    for part in reversed(parts[:-1]):
        if len(part) + 1 > remaining:
            break
        result = f"{part}/{result}"
        remaining -= len(part) + 1
    return f".../{result}"


def format_clock(ms: float) -> str:
    """Format milliseconds as m:ss or h:mm:ss."""
    seconds = round(ms / 1000)
    if seconds < 60:
        return f"0:{seconds:02d}"
    minutes, secs = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}:{secs:02d}"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}"


def format_duration(ms: float) -> str:
    """Format milliseconds with units, e.g. '45s', '2m 30s', '1h 15m'."""
    seconds = round(ms / 1000)
    if seconds < 60:
        return f"{seconds}s"
    minutes, secs = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m {secs}s" if secs else f"{minutes}m"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m" if minutes else f"{hours}h"


def throughput_per_minute(completed: int, elapsed_ms: float) -> int:
    if completed <= 0 or elapsed_ms <= 0:
        return 0
    return round(completed / (elapsed_ms / 60000.0))


def estimate_remaining_ms(elapsed_ms: float, completed: int, total: int) -> float | None:
    """(elapsed / completed) * (total - completed); None until one file is done."""
    if completed <= 0:
        return None
    return (elapsed_ms / completed) * max(total - completed, 0)
