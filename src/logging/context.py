# src/logging/context.py — v1
"""Contextual logging support: attach run_id, group, and file to log records.

Values live in context variables, so each asyncio task processing a file
sees its own file while sharing the run id of the task that spawned it.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("run_id", default=None)
_group: contextvars.ContextVar[str | None] = contextvars.ContextVar("group", default=None)
_file: contextvars.ContextVar[str | None] = contextvars.ContextVar("file", default=None)

_VARS: dict[str, contextvars.ContextVar[str | None]] = {
    "run_id": _run_id,
    "group": _group,
    "file": _file,
}


@dataclass(frozen=True)
class LogContext:
    """Snapshot of the current logging context."""

    run_id: str | None = None
    group: str | None = None
    file: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Non-None fields, for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    return LogContext(run_id=_run_id.get(), group=_group.get(), file=_file.get())


def set_run_context(run_id: str) -> None:
    """Start a run: set the run id and clear group/file."""
    _run_id.set(run_id)
    _group.set(None)
    _file.set(None)


@contextmanager
def log_context(**fields: str | None) -> Iterator[LogContext]:
    """Temporarily set context fields, restoring previous values on exit.

    Raises:
        KeyError: If a field is not run_id, group, or file.
    """
    tokens = [(_VARS[name], _VARS[name].set(value)) for name, value in fields.items()]
    try:
        yield get_context()
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def clear_context() -> None:
    """Reset all context variables."""
    for var in _VARS.values():
        var.set(None)
