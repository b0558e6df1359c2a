# src/processing/models.py — v1
"""Processing options and run reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, field_validator

from reviewpipe.core.errors import ConfigurationError
from reviewpipe.core.models import FileStatus, GroupSummary, ProcessingResult
from reviewpipe.grouping.grouper import directory_stats
from reviewpipe.grouping.models import DirectoryStats, FileGroup, GroupingPlan

T = TypeVar("T")


class ProcessingMode(str, Enum):
    SEQUENTIAL = "sequential"
    CONCURRENT = "concurrent"


class ProcessingOptions(BaseModel):
    """Per-run orchestration options.

    Attributes:
        mode: Sequential (input order) or concurrent (bounded by max_concurrency).
        max_concurrency: Permits of the concurrency gate in concurrent mode.
        continue_on_error: False enables strict mode: stop after the first Error.
        max_errors: Stop scheduling new files once this many ended in Error.
        analysis_timeout_s: Per-attempt timeout applied to the analysis call.
    """

    mode: ProcessingMode = ProcessingMode.SEQUENTIAL
    max_concurrency: int = 4
    continue_on_error: bool = True
    max_errors: int | None = None
    analysis_timeout_s: float | None = None

    @field_validator("max_concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ConfigurationError(f"max_concurrency must be >= 1, got {v}")
        return v

    @field_validator("max_errors")
    @classmethod
    def validate_max_errors(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ConfigurationError(f"max_errors must be >= 1, got {v}")
        return v

    @field_validator("analysis_timeout_s")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ConfigurationError(f"analysis_timeout_s must be > 0, got {v}")
        return v


@dataclass
class RunReport(Generic[T]):
    """Results of one orchestration run, in input order.

    Files never started because the run stopped early are listed in
    skipped_files and have no ProcessingResult.
    """

    run_id: str
    results: list[ProcessingResult[T]]
    summary: GroupSummary
    duration_ms: float = 0.0
    aborted: bool = False
    abort_reason: str | None = None
    skipped_files: list[str] = field(default_factory=list)

    @property
    def failed_results(self) -> list[ProcessingResult[T]]:
        return [r for r in self.results if r.status == FileStatus.ERROR]

    @property
    def has_errors(self) -> bool:
        return any(r.status == FileStatus.ERROR for r in self.results)

    def status_of(self, file: str) -> FileStatus:
        """Final status of file; PENDING when it was skipped."""
        for r in self.results:
            if r.file == file:
                return r.status
        return FileStatus.PENDING


@dataclass
class GroupResult(Generic[T]):
    """Results and summary of one processed group."""

    group: FileGroup
    results: list[ProcessingResult[T]]
    summary: GroupSummary
    duration_ms: float = 0.0

    @property
    def name(self) -> str:
        return self.group.name


@dataclass
class GroupedRunReport(Generic[T]):
    """Results of a grouped run: per-group results plus the grouping plan."""

    run_id: str
    plan: GroupingPlan
    groups: list[GroupResult[T]]
    summary: GroupSummary
    duration_ms: float = 0.0
    aborted: bool = False
    abort_reason: str | None = None
    skipped_files: list[str] = field(default_factory=list)

    @property
    def results(self) -> list[ProcessingResult[T]]:
        return [r for g in self.groups for r in g.results]

    @property
    def processing_order(self) -> list[str]:
        return self.plan.processing_order

    @property
    def excluded_directories(self) -> list[str]:
        return list(self.plan.excluded_groups)

    @property
    def has_errors(self) -> bool:
        return any(r.status == FileStatus.ERROR for r in self.results)

    def directory_stats(self) -> DirectoryStats:
        return directory_stats(self.plan.directory_groups)
