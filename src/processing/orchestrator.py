# src/processing/orchestrator.py — v1
"""Processing orchestrator: drive files through an analysis function.

Each file goes through the retry policy (optionally behind a circuit
breaker), its status transitions are recorded in the progress state, and
the guarded renderer mirrors them. Per-file failures are captured as
ProcessingResult records; only configuration errors propagate.

Modes:
  - sequential: strict input order, one file at a time
  - concurrent: bounded by a ConcurrencyGate, results still in input order
  - grouped (run_grouped): FileGrouper plan, groups in order, files
    sequential within each group
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Generic, Iterable, Sequence, TypeVar

from reviewpipe.concurrency.gate import ConcurrencyGate
from reviewpipe.core.errors import AnalysisTimeoutError
from reviewpipe.core.models import FileStatus, GroupSummary, ProcessingResult
from reviewpipe.grouping.grouper import FileGrouper
from reviewpipe.grouping.models import FileGroup, GroupingOptions
from reviewpipe.logging.context import log_context
from reviewpipe.processing.models import (
    GroupedRunReport,
    GroupResult,
    ProcessingMode,
    ProcessingOptions,
    RunReport,
)
from reviewpipe.progress.base_renderer import BaseProgressRenderer
from reviewpipe.progress.guard import RenderErrorGuard
from reviewpipe.progress.memory import MemoryMonitor
from reviewpipe.progress.models import ProgressEvent
from reviewpipe.progress.state import ProgressListener, ProgressStateManager
from reviewpipe.retry.circuit_breaker import CircuitBreaker
from reviewpipe.retry.policy import RetryOutcome, RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

Analyzer = Callable[[str], Awaitable[T]]
# Returns (status, message) for a successful analysis value
ValueClassifier = Callable[[Any], tuple[FileStatus, "str | None"]]
GroupStartHook = Callable[[FileGroup], None]
GroupCompleteHook = Callable[[GroupResult], None]

_FAIL_STATES = frozenset({"fail", "failed", "error"})
_WARNING_STATES = frozenset({"warning", "warn"})


def classify_value(value: Any) -> tuple[FileStatus, str | None]:
    """Derive a file status from an analysis value.

    A value may signal a non-fatal issue through a ``state`` attribute or
    key ("warning" or "fail"), with an optional ``message``/``warning``
    describing it. Anything else is SUCCESS.
    """
    if isinstance(value, Mapping):
        state = value.get("state")
        message = value.get("message") or value.get("warning")
    else:
        state = getattr(value, "state", None)
        message = getattr(value, "message", None) or getattr(value, "warning", None)

    if isinstance(state, str):
        lowered = state.lower()
        if lowered in _WARNING_STATES:
            return FileStatus.WARNING, str(message) if message else "analysis reported a warning"
        if lowered in _FAIL_STATES:
            return FileStatus.ERROR, str(message) if message else "analysis reported a failure"
    return FileStatus.SUCCESS, None


class _StopTracker:
    """Decide when a run stops scheduling new files."""

    def __init__(self, options: ProcessingOptions, memory_monitor: MemoryMonitor | None) -> None:
        self._options = options
        self._memory = memory_monitor
        self.error_count = 0
        self.reason: str | None = None

    @property
    def stopped(self) -> bool:
        return self.reason is not None

    def observe(self, result: ProcessingResult) -> None:
        if result.status == FileStatus.ERROR:
            self.error_count += 1
        if self.reason is not None:
            return

        if result.status == FileStatus.ERROR and not self._options.continue_on_error:
            self.reason = f"strict mode: stopped after error in {result.file}"
        elif self._options.max_errors is not None and self.error_count >= self._options.max_errors:
            self.reason = f"maximum error count reached ({self.error_count})"
        elif self._memory is not None and self._memory.check() == "maximum":
            self.reason = f"memory limit reached ({self._memory.peak_mb:.0f}MB peak)"

        if self.reason is not None:
            logger.error("Stopping run: %s", self.reason)


class ProcessingOrchestrator(Generic[T]):
    """Run an analysis function over files with retry and progress reporting.

    Args:
        options: Default ProcessingOptions; per-call options replace them.
        retry_policy: RetryPolicy applied per file.
        circuit_breaker: Optional breaker wrapped around each file's retries.
        renderer: Progress renderer; wrapped in RenderErrorGuard unless it
            already is one.
        listeners: ProgressEvent listeners.
        memory_monitor: Checked after each file.
        grouper: FileGrouper for run_grouped.
        value_classifier: Maps an analysis value to (status, message).
        max_render_errors: Guard threshold when wrapping the renderer.
        clock: Monotonic clock in seconds, used for durations.
    """

    def __init__(
        self,
        options: ProcessingOptions | None = None,
        retry_policy: RetryPolicy | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        renderer: BaseProgressRenderer | None = None,
        listeners: Iterable[ProgressListener] = (),
        memory_monitor: MemoryMonitor | None = None,
        grouper: FileGrouper | None = None,
        value_classifier: ValueClassifier | None = None,
        max_render_errors: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._options = options or ProcessingOptions()
        self._retry = retry_policy or RetryPolicy()
        self._breaker = circuit_breaker
        if renderer is not None and not isinstance(renderer, RenderErrorGuard):
            renderer = RenderErrorGuard(renderer, max_errors=max_render_errors)
        self._renderer = renderer
        self._progress = ProgressStateManager(renderer=renderer, listeners=listeners, clock=clock)
        self._memory = memory_monitor
        self._grouper = grouper or FileGrouper()
        self._classify = value_classifier or classify_value
        self._clock = clock

    @property
    def progress(self) -> ProgressStateManager:
        return self._progress

    @property
    def renderer(self) -> BaseProgressRenderer | None:
        return self._renderer

    @property
    def options(self) -> ProcessingOptions:
        return self._options

    # ------------------------------------------------------------------
    # Flat runs
    # ------------------------------------------------------------------

    async def run(
        self,
        files: Sequence[str],
        analyze: Analyzer[T],
        options: ProcessingOptions | None = None,
    ) -> RunReport[T]:
        """Process files and return one result per started file, in input order.

        An empty list still drives the renderer through start(0)/complete().
        """
        opts = options or self._options
        file_list = list(files)
        run_id = uuid.uuid4().hex[:12]
        started = self._clock()
        tracker = _StopTracker(opts, self._memory)

        with log_context(run_id=run_id, group=None, file=None):
            logger.info(
                "Run %s: %d files, %s mode (concurrency=%d)",
                run_id, len(file_list), opts.mode.value, opts.max_concurrency,
            )
            self._progress.start_processing(file_list)
            try:
                if opts.mode == ProcessingMode.CONCURRENT and len(file_list) > 1:
                    slots = await self._run_concurrent(file_list, analyze, opts, tracker)
                else:
                    slots = await self._run_sequential(file_list, analyze, opts, tracker)
            finally:
                self._progress.complete()

            results = [r for r in slots if r is not None]
            skipped = [f for f, r in zip(file_list, slots) if r is None]
            report = RunReport(
                run_id=run_id,
                results=results,
                summary=GroupSummary.from_results(results),
                duration_ms=(self._clock() - started) * 1000,
                aborted=tracker.stopped,
                abort_reason=tracker.reason,
                skipped_files=skipped,
            )
            _log_summary(report.summary, len(skipped))
            return report

    async def _run_sequential(
        self,
        files: list[str],
        analyze: Analyzer[T],
        opts: ProcessingOptions,
        tracker: _StopTracker,
    ) -> list[ProcessingResult[T] | None]:
        slots: list[ProcessingResult[T] | None] = []
        for index, file in enumerate(files):
            if tracker.stopped:
                slots.extend([None] * (len(files) - index))
                break
            logger.debug("Processing file %d/%d: %s", index + 1, len(files), file)
            result = await self.process_file(file, analyze, opts)
            slots.append(result)
            tracker.observe(result)
        return slots

    async def _run_concurrent(
        self,
        files: list[str],
        analyze: Analyzer[T],
        opts: ProcessingOptions,
        tracker: _StopTracker,
    ) -> list[ProcessingResult[T] | None]:
        gate = ConcurrencyGate(opts.max_concurrency, name="files")
        slots: list[ProcessingResult[T] | None] = [None] * len(files)

        async def worker(index: int, file: str) -> None:
            async with gate:
                # Files not yet admitted when the run stops stay unstarted
                if tracker.stopped:
                    return
                result = await self.process_file(file, analyze, opts)
                slots[index] = result
                tracker.observe(result)

        await asyncio.gather(*(worker(i, f) for i, f in enumerate(files)))
        logger.debug("Concurrent run peaked at %d in flight", gate.peak_in_flight)
        return slots

    # ------------------------------------------------------------------
    # Grouped runs
    # ------------------------------------------------------------------

    async def run_grouped(
        self,
        files: Sequence[str],
        analyze: Analyzer[T],
        grouping: GroupingOptions | None = None,
        options: ProcessingOptions | None = None,
        on_group_start: GroupStartHook | None = None,
        on_group_complete: GroupCompleteHook | None = None,
    ) -> GroupedRunReport[T]:
        """Group files, then process groups in plan order.

        Files inside a group run sequentially. Excluded groups are never
        processed; they are reported through the plan.
        """
        opts = options or self._options
        plan = self._grouper.plan(files, grouping)
        run_id = uuid.uuid4().hex[:12]
        started = self._clock()
        tracker = _StopTracker(opts, self._memory)
        group_results: list[GroupResult[T]] = []
        skipped: list[str] = []

        with log_context(run_id=run_id, group=None, file=None):
            logger.info(
                "Run %s: %d files in %d groups by %s",
                run_id, plan.total_files, len(plan.groups), plan.group_by,
            )
            self._progress.start_processing(plan.processing_order)
            try:
                for group in plan.groups:
                    if tracker.stopped:
                        skipped.extend(group.files)
                        continue
                    with log_context(group=group.name):
                        group_result, unstarted = await self._run_group(
                            group, analyze, opts, tracker, on_group_start, on_group_complete,
                        )
                    group_results.append(group_result)
                    skipped.extend(unstarted)
            finally:
                self._progress.complete()

            results = [r for g in group_results for r in g.results]
            report = GroupedRunReport(
                run_id=run_id,
                plan=plan,
                groups=group_results,
                summary=GroupSummary.from_results(results),
                duration_ms=(self._clock() - started) * 1000,
                aborted=tracker.stopped,
                abort_reason=tracker.reason,
                skipped_files=skipped,
            )
            _log_summary(report.summary, len(skipped))
            return report

    async def _run_group(
        self,
        group: FileGroup,
        analyze: Analyzer[T],
        opts: ProcessingOptions,
        tracker: _StopTracker,
        on_group_start: GroupStartHook | None,
        on_group_complete: GroupCompleteHook | None,
    ) -> tuple[GroupResult[T], list[str]]:
        started = self._clock()
        logger.info("Group %s: %d files", group.name, len(group.files))
        self._progress.publish(ProgressEvent(
            kind="group_started", group=group.name, total=len(group.files),
        ))
        _call_hook(on_group_start, group)

        results: list[ProcessingResult[T]] = []
        unstarted: list[str] = []
        for file in group.files:
            if tracker.stopped:
                unstarted.append(file)
                continue
            result = await self.process_file(file, analyze, opts)
            results.append(result)
            tracker.observe(result)

        summary = GroupSummary.from_results(results)
        group_result = GroupResult(
            group=group,
            results=results,
            summary=summary,
            duration_ms=(self._clock() - started) * 1000,
        )
        self._progress.publish(ProgressEvent(
            kind="group_completed",
            group=group.name,
            completed=len(results),
            total=len(group.files),
            data=summary.model_dump(),
        ))
        _call_hook(on_group_complete, group_result)
        return group_result, unstarted

    # ------------------------------------------------------------------
    # Single file
    # ------------------------------------------------------------------

    async def process_file(
        self,
        file: str,
        analyze: Analyzer[T],
        options: ProcessingOptions | None = None,
    ) -> ProcessingResult[T]:
        """Analyse one file and record its status transitions. Never raises."""
        opts = options or self._options
        with log_context(file=file):
            self._progress.update_file_status(file, FileStatus.PROCESSING)
            start_time = datetime.now(timezone.utc)
            t0 = self._clock()

            outcome = await self._execute(file, analyze, opts.analysis_timeout_s)

            duration_ms = (self._clock() - t0) * 1000
            end_time = datetime.now(timezone.utc)

            if outcome.success:
                status, message = self._classify(outcome.value)
                if status == FileStatus.WARNING:
                    self._progress.add_warning(file, message or "warning")
                elif status == FileStatus.ERROR:
                    self._progress.add_error(file, message or "failed")
                else:
                    self._progress.update_file_status(file, FileStatus.SUCCESS)
                error = RuntimeError(message) if status == FileStatus.ERROR else None
                return ProcessingResult(
                    file=file,
                    success=status != FileStatus.ERROR,
                    status=status,
                    duration_ms=duration_ms,
                    start_time=start_time,
                    end_time=end_time,
                    value=outcome.value,
                    error=error,
                    attempts=outcome.attempts,
                )

            error_message = str(outcome.error) or type(outcome.error).__name__
            logger.error(
                "Failed to process %s after %d attempt(s): %s",
                file, outcome.attempts, error_message,
            )
            self._progress.add_error(file, error_message)
            return ProcessingResult(
                file=file,
                success=False,
                status=FileStatus.ERROR,
                duration_ms=duration_ms,
                start_time=start_time,
                end_time=end_time,
                error=outcome.error,
                attempts=outcome.attempts,
            )

    async def _execute(
        self, file: str, analyze: Analyzer[T], timeout_s: float | None,
    ) -> RetryOutcome[T]:
        async def attempt() -> T:
            if timeout_s is None:
                return await analyze(file)
            try:
                return await asyncio.wait_for(analyze(file), timeout=timeout_s)
            except asyncio.TimeoutError as exc:
                raise AnalysisTimeoutError(file, timeout_s) from exc

        if self._breaker is None:
            return await self._retry.run(attempt, name="analysis", file_path=file)

        # The breaker counts files whose retries were exhausted, not single attempts
        outcomes: list[RetryOutcome[T]] = []

        async def with_retries() -> T:
            outcome = await self._retry.run(attempt, name="analysis", file_path=file)
            outcomes.append(outcome)
            if outcome.error is not None:
                raise outcome.error
            return outcome.value  # type: ignore[return-value]

        try:
            await self._breaker.call(with_retries)
        except Exception as exc:
            if outcomes:
                return outcomes[-1]
            # Rejected by an open circuit without invoking the analysis
            return RetryOutcome(success=False, error=exc, attempts=0)
        return outcomes[-1]


def _call_hook(hook: Callable[[Any], None] | None, arg: Any) -> None:
    if hook is None:
        return
    try:
        hook(arg)
    except Exception:
        logger.warning("Group hook %r failed", hook, exc_info=True)


def _log_summary(summary: GroupSummary, skipped: int) -> None:
    logger.info(
        "Run complete: %d files, %d succeeded, %d warnings, %d failed, %d skipped (%.0fms)",
        summary.total_files, summary.successful_files, summary.warning_files,
        summary.failed_files, skipped, summary.total_duration_ms,
    )
