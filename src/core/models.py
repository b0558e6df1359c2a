# src/core/models.py — v1
"""Shared domain models used across the processing core.

Every component imports file statuses and results from here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Generic, Iterable, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class FileStatus(str, Enum):
    """Lifecycle of one file: PENDING -> PROCESSING -> SUCCESS | WARNING | ERROR."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({FileStatus.SUCCESS, FileStatus.WARNING, FileStatus.ERROR})


@dataclass(frozen=True)
class ProcessingResult(Generic[T]):
    """Outcome of analysing a single file. One per file per run."""

    file: str
    success: bool
    status: FileStatus
    duration_ms: float
    start_time: datetime
    end_time: datetime | None = None
    value: T | None = None
    error: BaseException | None = None
    attempts: int = 1

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        return str(self.error) or type(self.error).__name__


class GroupSummary(BaseModel):
    """Aggregate counts for a set of results.

    success_rate counts SUCCESS only; WARNING and ERROR each have their own
    rate, so the three rates sum to 1.0 for a non-empty set.
    """

    model_config = ConfigDict(frozen=True)

    total_files: int = 0
    successful_files: int = 0
    failed_files: int = 0
    warning_files: int = 0
    total_duration_ms: float = 0.0
    average_duration_ms: float = 0.0
    success_rate: float = 0.0
    error_rate: float = 0.0
    warning_rate: float = 0.0

    @classmethod
    def from_results(cls, results: Iterable[ProcessingResult]) -> GroupSummary:
        """Derive a fresh summary from a result set."""
        items = list(results)
        if not items:
            return cls()

        successful = sum(1 for r in items if r.success and r.status == FileStatus.SUCCESS)
        warnings = sum(1 for r in items if r.success and r.status == FileStatus.WARNING)
        failed = sum(1 for r in items if not r.success or r.status == FileStatus.ERROR)
        total_duration = sum(r.duration_ms for r in items)
        total = len(items)

        return cls(
            total_files=total,
            successful_files=successful,
            failed_files=failed,
            warning_files=warnings,
            total_duration_ms=total_duration,
            average_duration_ms=total_duration / total,
            success_rate=successful / total,
            error_rate=failed / total,
            warning_rate=warnings / total,
        )
