# tests/unit/progress/test_terminal.py — v1
"""Tests for progress/terminal.py — capabilities, throttle, formatting."""

from __future__ import annotations

import io

import pytest

from reviewpipe.progress.terminal import (
    TerminalCapabilities,
    Throttle,
    estimate_remaining_ms,
    format_clock,
    format_duration,
    throughput_per_minute,
    truncate_path,
)


class _TTY(io.StringIO):
    encoding = "utf-8"

    def isatty(self) -> bool:
        return True


class TestTerminalCapabilities:
    def test_non_tty(self):
        caps = TerminalCapabilities.detect(io.StringIO(), environ={"TERM": "xterm-256color"})
        assert caps.is_interactive is False
        assert caps.supports_ansi is False
        assert caps.supports_color is False

    def test_tty_with_color_term(self):
        caps = TerminalCapabilities.detect(_TTY(), environ={"TERM": "xterm-256color", "LANG": "en_US.UTF-8"})
        assert caps.is_interactive
        assert caps.supports_ansi
        assert caps.supports_color
        assert caps.supports_unicode

    def test_dumb_terminal(self):
        caps = TerminalCapabilities.detect(_TTY(), environ={"TERM": "dumb"})
        assert caps.is_interactive
        assert not caps.supports_ansi

    def test_no_color(self):
        caps = TerminalCapabilities.detect(_TTY(), environ={"TERM": "xterm", "NO_COLOR": "1"})
        assert caps.supports_ansi
        assert not caps.supports_color


class TestThrottle:
    def test_first_call_ready(self, fake_clock):
        t = Throttle(100, fake_clock)
        assert t.ready()

    def test_suppresses_within_interval(self, fake_clock):
        t = Throttle(100, fake_clock)
        t.ready()
        fake_clock.advance_ms(50)
        assert not t.ready()
        assert t.pending

    def test_ready_after_quiet_period(self, fake_clock):
        t = Throttle(100, fake_clock)
        t.ready()
        fake_clock.advance_ms(50)
        t.ready()
        fake_clock.advance_ms(60)
        assert t.ready()
        assert not t.pending


class TestTruncatePath:
    def test_short_path_unchanged(self):
        assert truncate_path("src/a.py", 40) == "src/a.py"

    def test_keeps_filename_and_trailing_dirs(self):
        path = "very/long/directory/structure/with/many/levels/file.ts"
        out = truncate_path(path, 30)
        assert out.startswith(".../")
        assert out.endswith("levels/file.ts")
        assert len(out) <= 30

    def test_long_filename(self):
        out = truncate_path("dir/" + "x" * 60 + ".py", 20)
        assert out.startswith("...")
        assert len(out) == 20
        assert out.endswith(".py")


class TestFormatting:
    @pytest.mark.parametrize("ms,expected", [
        (5000, "0:05"),
        (62000, "1:02"),
        (3723000, "1:02:03"),
    ])
    def test_format_clock(self, ms, expected):
        assert format_clock(ms) == expected

    @pytest.mark.parametrize("ms,expected", [
        (45000, "45s"),
        (150000, "2m 30s"),
        (120000, "2m"),
        (4500000, "1h 15m"),
    ])
    def test_format_duration(self, ms, expected):
        assert format_duration(ms) == expected

    def test_throughput(self):
        assert throughput_per_minute(10, 60000) == 10
        assert throughput_per_minute(0, 60000) == 0

    def test_eta_undefined_before_first_completion(self):
        assert estimate_remaining_ms(5000, 0, 10) is None

    def test_eta(self):
        assert estimate_remaining_ms(4000, 2, 10) == 16000
