# src/progress/base_renderer.py — v1
"""Abstract progress renderer interface.

Every output mode (interactive, plain text, minimal, silent) implements this
interface; RenderErrorGuard wraps any of them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from reviewpipe.core.models import FileStatus


class BaseProgressRenderer(ABC):
    """Unified interface for progress output."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Renderer identifier (e.g., 'interactive', 'plain')."""

    @abstractmethod
    def start(self, total_files: int) -> None:
        """Begin a run of total_files files."""

    @abstractmethod
    def update_progress(self, current_file: str, completed: int, total: int) -> None:
        """Reflect the aggregate counters after a transition."""

    @abstractmethod
    def update_file_status(self, file: str, status: FileStatus) -> None:
        """Reflect one file's status change."""

    @abstractmethod
    def error(self, file: str, message: str) -> None:
        """Report a terminal failure for one file."""

    @abstractmethod
    def complete(self) -> None:
        """Finish the run display."""

    @abstractmethod
    def cleanup(self) -> None:
        """Restore the terminal. Safe to call more than once."""
