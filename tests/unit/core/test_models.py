# tests/unit/core/test_models.py — v1
"""Tests for core/models.py — FileStatus, ProcessingResult, GroupSummary."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from reviewpipe.core.models import FileStatus, GroupSummary, ProcessingResult

_T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _result(file: str, status: FileStatus, duration: float = 100.0) -> ProcessingResult:
    return ProcessingResult(
        file=file,
        success=status != FileStatus.ERROR,
        status=status,
        duration_ms=duration,
        start_time=_T0,
        error=RuntimeError("boom") if status == FileStatus.ERROR else None,
    )


class TestFileStatus:
    def test_terminal_statuses(self):
        assert FileStatus.SUCCESS.is_terminal
        assert FileStatus.WARNING.is_terminal
        assert FileStatus.ERROR.is_terminal

    def test_non_terminal_statuses(self):
        assert not FileStatus.PENDING.is_terminal
        assert not FileStatus.PROCESSING.is_terminal

    def test_string_values(self):
        assert FileStatus("success") is FileStatus.SUCCESS


class TestProcessingResult:
    def test_immutable(self):
        r = _result("a.py", FileStatus.SUCCESS)
        with pytest.raises(AttributeError):
            r.file = "b.py"  # type: ignore[misc]

    def test_error_message(self):
        assert _result("a.py", FileStatus.ERROR).error_message == "boom"
        assert _result("a.py", FileStatus.SUCCESS).error_message is None

    def test_error_message_falls_back_to_type_name(self):
        r = ProcessingResult(
            file="a.py", success=False, status=FileStatus.ERROR,
            duration_ms=1.0, start_time=_T0, error=ValueError(),
        )
        assert r.error_message == "ValueError"


class TestGroupSummary:
    def test_empty(self):
        s = GroupSummary.from_results([])
        assert s.total_files == 0
        assert s.success_rate == 0.0
        assert s.average_duration_ms == 0.0

    def test_counts_and_rates(self):
        results = [
            _result("a", FileStatus.SUCCESS, 100),
            _result("b", FileStatus.SUCCESS, 200),
            _result("c", FileStatus.WARNING, 300),
            _result("d", FileStatus.ERROR, 400),
        ]
        s = GroupSummary.from_results(results)
        assert s.total_files == 4
        assert s.successful_files == 2
        assert s.warning_files == 1
        assert s.failed_files == 1
        assert s.total_duration_ms == 1000
        assert s.average_duration_ms == 250
        assert s.success_rate == 0.5
        assert s.warning_rate == 0.25
        assert s.error_rate == 0.25

    def test_rates_sum_to_one(self):
        results = [_result(str(i), st) for i, st in enumerate(
            [FileStatus.SUCCESS, FileStatus.WARNING, FileStatus.ERROR] * 3
        )]
        s = GroupSummary.from_results(results)
        assert s.success_rate + s.warning_rate + s.error_rate == pytest.approx(1.0)

    def test_warning_not_counted_as_success(self):
        s = GroupSummary.from_results([_result("a", FileStatus.WARNING)])
        assert s.successful_files == 0
        assert s.success_rate == 0.0

    def test_frozen(self):
        s = GroupSummary.from_results([_result("a", FileStatus.SUCCESS)])
        with pytest.raises(ValidationError):
            s.total_files = 5  # type: ignore[misc]
