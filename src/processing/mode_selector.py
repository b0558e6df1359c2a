# src/processing/mode_selector.py — v1
"""Choose sequential or concurrent processing for a command."""

from __future__ import annotations

import logging
from typing import Literal

from reviewpipe.processing.models import ProcessingMode

logger = logging.getLogger(__name__)

CommandType = Literal["files", "directory", "changes", "pr"]

SEQUENTIAL_COMMANDS = frozenset({"files", "directory", "changes"})
CONCURRENT_COMMANDS = frozenset({"pr"})


class ProcessingModeSelector:
    """Local file, directory and change reviews run sequentially so output
    follows input order; pull-request reviews run concurrently. Force flags
    take precedence, sequential first.
    """

    @staticmethod
    def determine(
        command_type: str,
        file_count: int = 0,
        force_sequential: bool = False,
        force_parallel: bool = False,
    ) -> ProcessingMode:
        if force_sequential:
            logger.debug("Forced sequential processing for %d files", file_count)
            return ProcessingMode.SEQUENTIAL
        if force_parallel:
            logger.debug("Forced concurrent processing for %d files", file_count)
            return ProcessingMode.CONCURRENT
        if command_type in CONCURRENT_COMMANDS:
            logger.debug("Concurrent processing for %s command (%d files)", command_type, file_count)
            return ProcessingMode.CONCURRENT
        if command_type not in SEQUENTIAL_COMMANDS:
            logger.debug("Unknown command type %r, defaulting to sequential", command_type)
        return ProcessingMode.SEQUENTIAL
