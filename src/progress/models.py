# src/progress/models.py — v1
"""Progress tracking models: state, statistics, events, render errors."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from reviewpipe.core.models import FileStatus


@dataclass
class FileIssue:
    """An error or warning message attached to one file."""

    file: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ProgressState:
    """Mutable progress of one run. Owned by a single ProgressStateManager."""

    total_files: int = 0
    completed_files: int = 0
    current_file: str | None = None
    file_statuses: dict[str, FileStatus] = field(default_factory=dict)
    start_time: float = 0.0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    errors: list[FileIssue] = field(default_factory=list)
    warnings: list[FileIssue] = field(default_factory=list)


class ProgressStats(BaseModel):
    """Snapshot of progress counters for reporting."""

    total_files: int
    completed_files: int
    successful_files: int
    error_files: int
    warning_files: int
    pending_files: int
    processing_files: int
    completion_percentage: int
    elapsed_ms: float
    estimated_remaining_ms: float | None = None


EventKind = Literal[
    "run_started",
    "file_status",
    "file_error",
    "file_warning",
    "group_started",
    "group_completed",
    "run_completed",
]


@dataclass(frozen=True)
class ProgressEvent:
    """Typed progress notification published to listeners."""

    kind: EventKind
    file: str | None = None
    status: FileStatus | None = None
    message: str | None = None
    group: str | None = None
    completed: int = 0
    total: int = 0
    data: dict[str, Any] = field(default_factory=dict)


class ProgressErrorType(str, Enum):
    """Cause of a rendering failure."""

    TERMINAL_NOT_SUPPORTED = "terminal_not_supported"
    ANSI_NOT_SUPPORTED = "ansi_not_supported"
    RENDER_FAILURE = "render_failure"
    RESOURCE_FAILURE = "resource_failure"


@dataclass(frozen=True)
class RenderError:
    """One recorded renderer failure."""

    type: ProgressErrorType
    message: str
    method: str
    original_error: BaseException | None = None
    context: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ProgressColors(BaseModel):
    """ANSI color sequences per status."""

    success: str = "\x1b[32m"
    processing: str = "\x1b[36m"
    pending: str = "\x1b[90m"
    warning: str = "\x1b[33m"
    error: str = "\x1b[31m"
    bar: str = "\x1b[34m"
    reset: str = "\x1b[0m"


class ProgressBarConfig(BaseModel):
    """Display options for the interactive renderer."""

    width: int = Field(default=30, ge=10, le=100)
    show_percentage: bool = True
    show_file_count: bool = True
    show_current_file: bool = True
    show_eta: bool = True
    show_throughput: bool = True
    update_interval_ms: float = Field(default=100.0, ge=0)
    path_max_length: int = Field(default=40, ge=20, le=200)
    colors: ProgressColors = Field(default_factory=ProgressColors)
