# src/progress/state.py — v1
"""Progress state manager: per-file status tracking and aggregate counters.

Framework-agnostic: it drives an optional renderer and publishes typed
ProgressEvent objects to subscribed listeners. Each mutation is a short
critical section guarded by a lock, so concurrent completions are counted
exactly once.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Iterable

from reviewpipe.core.models import TERMINAL_STATUSES, FileStatus
from reviewpipe.progress.base_renderer import BaseProgressRenderer
from reviewpipe.progress.models import FileIssue, ProgressEvent, ProgressState, ProgressStats
from reviewpipe.progress.terminal import estimate_remaining_ms

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ProgressEvent], None]

_COUNTING_PREDECESSORS = (FileStatus.PENDING, FileStatus.PROCESSING)


class ProgressStateManager:
    """Track one run's progress and mirror it to a renderer and listeners.

    Args:
        renderer: Optional renderer (normally a RenderErrorGuard).
        listeners: Callables receiving every ProgressEvent.
        clock: Monotonic clock in seconds.
    """

    def __init__(
        self,
        renderer: BaseProgressRenderer | None = None,
        listeners: Iterable[ProgressListener] = (),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._renderer = renderer
        self._listeners: list[ProgressListener] = list(listeners)
        self._clock = clock
        self._lock = threading.Lock()
        self._state = ProgressState(start_time=clock())

    # --- Subscriptions ---

    def subscribe(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: ProgressListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, event: ProgressEvent) -> None:
        """Deliver an event to every listener; listener failures are logged."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.warning("Progress listener failed on %s event", event.kind, exc_info=True)

    # --- Lifecycle ---

    def start_processing(self, files: Iterable[str]) -> None:
        """Reset the state for a new run over files."""
        file_list = list(files)
        with self._lock:
            self._state = ProgressState(
                total_files=len(file_list),
                file_statuses={f: FileStatus.PENDING for f in file_list},
                start_time=self._clock(),
                started_at=datetime.now(timezone.utc),
            )
            total = self._state.total_files
        if self._renderer is not None:
            self._renderer.start(total)
        self.publish(ProgressEvent(kind="run_started", total=total))

    def update_file_status(self, file: str, status: FileStatus) -> None:
        """Record a status transition.

        Entering a terminal status from PENDING or PROCESSING increments the
        completed counter; repeating a terminal status does not.
        """
        with self._lock:
            previous = self._state.file_statuses.get(file)
            if previous is None:
                logger.debug("Status update for untracked file %s", file)
            self._state.file_statuses[file] = status
            if status == FileStatus.PROCESSING:
                self._state.current_file = file
            if status in TERMINAL_STATUSES and previous in _COUNTING_PREDECESSORS:
                self._state.completed_files += 1
            completed = self._state.completed_files
            total = self._state.total_files
            current = self._state.current_file or file

        if self._renderer is not None:
            self._renderer.update_file_status(file, status)
            self._renderer.update_progress(current, completed, total)
        self.publish(ProgressEvent(
            kind="file_status", file=file, status=status, completed=completed, total=total,
        ))

    def add_error(self, file: str, message: str) -> None:
        """Record a terminal failure for file and mark it ERROR."""
        with self._lock:
            self._state.errors.append(FileIssue(file=file, message=message))
        self.update_file_status(file, FileStatus.ERROR)
        if self._renderer is not None:
            self._renderer.error(file, message)
        self.publish(ProgressEvent(kind="file_error", file=file, message=message))

    def add_warning(self, file: str, message: str) -> None:
        """Record a non-fatal issue; marks file WARNING unless it already failed."""
        with self._lock:
            self._state.warnings.append(FileIssue(file=file, message=message))
            already_failed = self._state.file_statuses.get(file) == FileStatus.ERROR
        if not already_failed:
            self.update_file_status(file, FileStatus.WARNING)
        self.publish(ProgressEvent(kind="file_warning", file=file, message=message))

    def complete(self) -> None:
        if self._renderer is not None:
            self._renderer.complete()
        with self._lock:
            completed, total = self._state.completed_files, self._state.total_files
        self.publish(ProgressEvent(kind="run_completed", completed=completed, total=total))

    def cleanup(self) -> None:
        if self._renderer is not None:
            self._renderer.cleanup()

    def reset(self) -> None:
        with self._lock:
            self._state = ProgressState(start_time=self._clock())

    # --- Queries ---

    @property
    def total_files(self) -> int:
        return self._state.total_files

    @property
    def completed_files(self) -> int:
        return self._state.completed_files

    @property
    def current_file(self) -> str | None:
        return self._state.current_file

    def file_status(self, file: str) -> FileStatus | None:
        return self._state.file_statuses.get(file)

    def all_file_statuses(self) -> dict[str, FileStatus]:
        with self._lock:
            return dict(self._state.file_statuses)

    def errors(self) -> list[FileIssue]:
        return list(self._state.errors)

    def warnings(self) -> list[FileIssue]:
        return list(self._state.warnings)

    def is_complete(self) -> bool:
        return self._state.total_files > 0 and self._state.completed_files >= self._state.total_files

    def stats(self) -> ProgressStats:
        with self._lock:
            counts = {status: 0 for status in FileStatus}
            for status in self._state.file_statuses.values():
                counts[status] += 1
            total = self._state.total_files
            completed = self._state.completed_files
            elapsed_ms = (self._clock() - self._state.start_time) * 1000

        remaining = None
        if completed < total:
            remaining = estimate_remaining_ms(elapsed_ms, completed, total)

        return ProgressStats(
            total_files=total,
            completed_files=completed,
            successful_files=counts[FileStatus.SUCCESS],
            error_files=counts[FileStatus.ERROR],
            warning_files=counts[FileStatus.WARNING],
            pending_files=counts[FileStatus.PENDING],
            processing_files=counts[FileStatus.PROCESSING],
            completion_percentage=round(completed / total * 100) if total else 0,
            elapsed_ms=elapsed_ms,
            estimated_remaining_ms=remaining,
        )

    def summary(self) -> dict[str, float]:
        stats = self.stats()
        return {
            "total": stats.total_files,
            "completed": stats.completed_files,
            "successful": stats.successful_files,
            "errors": stats.error_files,
            "warnings": stats.warning_files,
            "duration_ms": stats.elapsed_ms,
        }
