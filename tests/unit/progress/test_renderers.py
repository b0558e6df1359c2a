# tests/unit/progress/test_renderers.py — v1
"""Tests for progress/renderers.py — renderer variants and factories."""

from __future__ import annotations

from reviewpipe.core.models import FileStatus
from reviewpipe.progress.models import ProgressBarConfig
from reviewpipe.progress.renderers import (
    InteractiveProgressRenderer,
    MinimalProgressRenderer,
    PlainTextProgressRenderer,
    SilentProgressRenderer,
    create_fallback_renderer,
    select_renderer,
)
from reviewpipe.progress.terminal import HIDE_CURSOR, SHOW_CURSOR, TerminalCapabilities

_FULL = TerminalCapabilities(
    is_interactive=True, supports_color=False, supports_ansi=True, supports_unicode=False,
)
_PIPE = TerminalCapabilities()
LONG_PATH = "very/long/directory/structure/with/many/levels/file.ts"


class TestSelectRenderer:
    def test_interactive_terminal(self, sink):
        assert isinstance(select_renderer(_FULL, "auto", sink=sink), InteractiveProgressRenderer)

    def test_non_interactive_gets_plain(self, sink):
        assert isinstance(select_renderer(_PIPE, "auto", sink=sink), PlainTextProgressRenderer)
        assert isinstance(select_renderer(_PIPE, "interactive", sink=sink), PlainTextProgressRenderer)

    def test_interactive_without_ansi_gets_plain(self, sink):
        caps = TerminalCapabilities(is_interactive=True, supports_ansi=False)
        assert isinstance(select_renderer(caps, "auto", sink=sink), PlainTextProgressRenderer)

    def test_explicit_styles(self, sink):
        assert isinstance(select_renderer(_FULL, "plain", sink=sink), PlainTextProgressRenderer)
        assert isinstance(select_renderer(_FULL, "minimal", sink=sink), MinimalProgressRenderer)
        assert isinstance(select_renderer(_FULL, "silent", sink=sink), SilentProgressRenderer)

    def test_fallback_kinds(self, sink):
        assert isinstance(create_fallback_renderer(sink=sink), PlainTextProgressRenderer)
        assert isinstance(create_fallback_renderer("ci", sink=sink), MinimalProgressRenderer)
        assert isinstance(create_fallback_renderer("minimal", sink=sink), MinimalProgressRenderer)
        assert isinstance(create_fallback_renderer("silent"), SilentProgressRenderer)

    def test_plain_uses_configured_path_length(self, sink):
        config = ProgressBarConfig(path_max_length=20, update_interval_ms=0)
        r = select_renderer(_PIPE, "plain", sink=sink, config=config)
        r.start(1)
        r.update_file_status(LONG_PATH, FileStatus.SUCCESS)
        assert "SUCCESS: .../levels/file.ts" in sink.lines

    def test_fallback_path_length(self, sink):
        r = create_fallback_renderer(sink=sink, path_max_length=20)
        r.error(LONG_PATH, "boom")
        assert "ERROR processing .../levels/file.ts: boom" in sink.lines


class TestPlainTextRenderer:
    def test_start_and_complete(self, sink, fake_clock):
        r = PlainTextProgressRenderer(sink=sink, clock=fake_clock)
        r.start(3)
        fake_clock.advance(45)
        r.complete()
        assert sink.lines[0] == "Starting analysis of 3 files..."
        assert sink.lines[-1] == "Analysis complete. Processed 3 files in 45s."

    def test_progress_throttled(self, sink, fake_clock):
        r = PlainTextProgressRenderer(sink=sink, update_interval_ms=1000, clock=fake_clock)
        r.start(10)
        r.update_progress("a.py", 1, 10)
        fake_clock.advance_ms(100)
        r.update_progress("b.py", 2, 10)
        fake_clock.advance_ms(100)
        r.update_progress("c.py", 3, 10)
        progress = [l for l in sink.lines if l.startswith("[")]
        assert progress == ["[1/10] 10% - a.py"]

    def test_last_suppressed_update_flushed_on_complete(self, sink, fake_clock):
        r = PlainTextProgressRenderer(sink=sink, update_interval_ms=1000, clock=fake_clock)
        r.start(2)
        r.update_progress("a.py", 1, 2)
        fake_clock.advance_ms(10)
        r.update_progress("b.py", 2, 2)
        r.complete()
        progress = [l for l in sink.lines if l.startswith("[")]
        assert progress == ["[1/2] 50% - a.py", "[2/2] 100% - b.py"]

    def test_status_and_error_lines(self, sink):
        r = PlainTextProgressRenderer(sink=sink)
        r.start(1)
        r.update_file_status("a.py", FileStatus.PROCESSING)
        r.update_file_status("a.py", FileStatus.WARNING)
        r.error("b.py", "boom")
        assert "WARNING: a.py" in sink.lines
        assert "ERROR processing b.py: boom" in sink.lines
        assert not any("PROCESSING" in l for l in sink.lines)


class TestMinimalRenderer:
    def test_milestones_once(self, sink):
        r = MinimalProgressRenderer(sink=sink)
        r.start(4)
        for done in (1, 1, 2, 3, 4):
            r.update_progress("f", done, 4)
        milestones = [l for l in sink.lines if l.endswith("% complete...")]
        assert milestones == ["25% complete...", "50% complete...", "75% complete..."]

    def test_final_tally(self, sink):
        r = MinimalProgressRenderer(sink=sink)
        r.start(3)
        r.update_file_status("a", FileStatus.SUCCESS)
        r.update_file_status("b", FileStatus.WARNING)
        r.error("c", "bad")
        r.complete()
        assert sink.lines[-1] == "Analysis complete: 1 successful, 1 warnings, 1 errors"


class TestInteractiveRenderer:
    def test_cursor_hidden_and_restored(self, sink, fake_clock):
        r = InteractiveProgressRenderer(_FULL, sink=sink, clock=fake_clock)
        r.start(2)
        assert sink.chunks[0] == HIDE_CURSOR
        r.complete()
        assert SHOW_CURSOR in sink.text

    def test_eta_placeholder_before_first_completion(self, sink, fake_clock):
        r = InteractiveProgressRenderer(_FULL, sink=sink, clock=fake_clock)
        r.start(4)
        r.update_progress("a.py", 0, 4)
        assert "ETA: --:--" in sink.text
        assert "(0/4)" in sink.text

    def test_eta_after_completion(self, sink, fake_clock):
        config = ProgressBarConfig(update_interval_ms=0)
        r = InteractiveProgressRenderer(_FULL, sink=sink, config=config, clock=fake_clock)
        r.start(4)
        fake_clock.advance(10)
        r.update_progress("b.py", 2, 4)
        # 10s for 2 files -> 10s for the remaining 2
        assert "ETA: 0:10" in sink.text
        assert "50%" in sink.text

    def test_redraw_throttled(self, sink, fake_clock):
        r = InteractiveProgressRenderer(_FULL, sink=sink, clock=fake_clock)
        r.start(10)
        r.update_progress("a.py", 1, 10)
        r.update_progress("b.py", 2, 10)
        assert "(1/10)" in sink.text
        assert "(2/10)" not in sink.text
        fake_clock.advance_ms(150)
        r.update_progress("c.py", 3, 10)
        assert "(3/10)" in sink.text

    def test_status_lines_use_ascii_icons(self, sink, fake_clock):
        r = InteractiveProgressRenderer(_FULL, sink=sink, clock=fake_clock)
        r.start(1)
        r.update_file_status("a.py", FileStatus.SUCCESS)
        assert "OK a.py\n" in sink.text

    def test_complete_summary(self, sink, fake_clock):
        r = InteractiveProgressRenderer(_FULL, sink=sink, clock=fake_clock)
        r.start(6)
        fake_clock.advance(60)
        r.complete()
        assert "Completed 6 files in 1:00 (6 files/min)" in sink.text

    def test_cleanup_after_complete_is_noop(self, sink, fake_clock):
        r = InteractiveProgressRenderer(_FULL, sink=sink, clock=fake_clock)
        r.start(1)
        r.complete()
        before = sink.text
        r.cleanup()
        assert sink.text == before

    def test_error_after_complete_is_silent(self, sink, fake_clock):
        r = InteractiveProgressRenderer(_FULL, sink=sink, clock=fake_clock)
        r.start(1)
        r.complete()
        before = sink.text
        r.error("a.py", "late failure")
        assert sink.text == before

    def test_error_before_start_is_silent(self, sink):
        r = InteractiveProgressRenderer(_FULL, sink=sink)
        r.error("a.py", "boom")
        assert sink.text == ""


class TestSilentRenderer:
    def test_no_output(self, sink):
        r = SilentProgressRenderer()
        r.start(3)
        r.update_progress("a", 1, 3)
        r.error("a", "x")
        r.complete()
        assert sink.text == ""
