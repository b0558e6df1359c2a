# src/progress/guard.py — v1
"""Render error guard: absorb renderer failures and fall back.

Every renderer call goes through the guard. Failures are recorded with a
typed cause; once max_errors have been recorded the active renderer is
permanently swapped for the fallback (plain text by default) for the rest of
the run. Rendering failures never reach the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from reviewpipe.core.models import FileStatus
from reviewpipe.progress.base_renderer import BaseProgressRenderer
from reviewpipe.progress.models import ProgressErrorType, RenderError
from reviewpipe.progress.renderers import PlainTextProgressRenderer

logger = logging.getLogger(__name__)

DEFAULT_MAX_RENDER_ERRORS = 3

_TERMINAL_HINTS = ("tty", "terminal", "stdout", "not a terminal")
_ANSI_HINTS = ("ansi", "escape", "color", "cursor")


def classify_render_error(error: BaseException) -> ProgressErrorType:
    """Map a renderer exception to its ProgressErrorType."""
    if isinstance(error, (MemoryError, BrokenPipeError)):
        return ProgressErrorType.RESOURCE_FAILURE
    message = str(error).lower()
    if any(hint in message for hint in _TERMINAL_HINTS):
        return ProgressErrorType.TERMINAL_NOT_SUPPORTED
    if any(hint in message for hint in _ANSI_HINTS):
        return ProgressErrorType.ANSI_NOT_SUPPORTED
    if isinstance(error, OSError):
        return ProgressErrorType.RESOURCE_FAILURE
    return ProgressErrorType.RENDER_FAILURE


class RenderErrorGuard(BaseProgressRenderer):
    """Renderer wrapper with error counting and automatic fallback.

    Args:
        renderer: Primary renderer.
        fallback: Renderer used after the threshold (plain text if None).
        max_errors: Recorded errors that trigger the swap.
        on_error: Optional callback per recorded error; its own exceptions
            are logged and ignored.
    """

    def __init__(
        self,
        renderer: BaseProgressRenderer,
        fallback: BaseProgressRenderer | None = None,
        max_errors: int = DEFAULT_MAX_RENDER_ERRORS,
        on_error: Callable[[RenderError], None] | None = None,
    ) -> None:
        self._primary = renderer
        self._fallback = fallback or PlainTextProgressRenderer()
        self._max_errors = max(1, max_errors)
        self._on_error = on_error
        self._errors: list[RenderError] = []
        self._fallback_mode = False
        self._run_total: int | None = None

    @property
    def name(self) -> str:
        return f"guarded({self.active.name})"

    @property
    def active(self) -> BaseProgressRenderer:
        """Renderer currently receiving calls."""
        return self._fallback if self._fallback_mode else self._primary

    @property
    def in_fallback_mode(self) -> bool:
        return self._fallback_mode

    @property
    def errors(self) -> list[RenderError]:
        return list(self._errors)

    @property
    def error_count(self) -> int:
        return len(self._errors)

    # --- BaseProgressRenderer ---

    def start(self, total_files: int) -> None:
        self._run_total = total_files
        self._safe_call("start", total_files)

    def update_progress(self, current_file: str, completed: int, total: int) -> None:
        self._safe_call("update_progress", current_file, completed, total)

    def update_file_status(self, file: str, status: FileStatus) -> None:
        self._safe_call("update_file_status", file, status)

    def error(self, file: str, message: str) -> None:
        self._safe_call("error", file, message)

    def complete(self) -> None:
        self._safe_call("complete")
        self._run_total = None

    def cleanup(self) -> None:
        self._safe_call("cleanup")

    # --- Error management ---

    def record_error(
        self,
        error: BaseException,
        method: str = "unknown",
        error_type: ProgressErrorType | None = None,
        context: dict[str, Any] | None = None,
    ) -> RenderError:
        """Record one failure and swap to the fallback once the threshold is hit."""
        record = RenderError(
            type=error_type or classify_render_error(error),
            message=str(error),
            method=method,
            original_error=error,
            context=context or {},
        )
        self._errors.append(record)
        logger.debug("Progress render error in %s (%s): %s", method, record.type.value, error)

        if self._on_error is not None:
            try:
                self._on_error(record)
            except Exception:
                logger.debug("Render error callback failed", exc_info=True)

        if not self._fallback_mode and len(self._errors) >= self._max_errors:
            self._switch_to_fallback(record)
        return record

    def force_fallback(self) -> None:
        """Swap to the fallback renderer immediately."""
        if not self._fallback_mode:
            self._switch_to_fallback(RenderError(
                type=ProgressErrorType.RENDER_FAILURE,
                message="Forced fallback mode",
                method="force_fallback",
            ))

    def reset(self) -> None:
        """Clear recorded errors and return to the primary renderer."""
        self._errors.clear()
        self._fallback_mode = False

    def _safe_call(self, method: str, *args: Any) -> None:
        renderer = self.active
        try:
            getattr(renderer, method)(*args)
        except Exception as exc:
            self.record_error(exc, method=method, context={"args": args, "renderer": renderer.name})

    def _switch_to_fallback(self, trigger: RenderError) -> None:
        self._fallback_mode = True
        try:
            self._primary.cleanup()
        except Exception:
            logger.debug("Ignoring cleanup failure of %s", self._primary.name, exc_info=True)

        logger.warning(
            "Progress display error (%s), switching to %s output: %s",
            trigger.type.value, self._fallback.name, trigger.message,
        )
        if self._run_total is not None:
            try:
                self._fallback.start(self._run_total)
            except Exception as exc:
                self._errors.append(RenderError(
                    type=classify_render_error(exc), message=str(exc),
                    method="start", original_error=exc,
                ))
