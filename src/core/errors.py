# src/core/errors.py — v1
"""Exception types shared across the processing core."""

from __future__ import annotations


class ReviewPipeError(Exception):
    """Base class for reviewpipe errors."""


class ConfigurationError(ReviewPipeError):
    """Raised when configuration is invalid or internally inconsistent."""


class CircuitOpenError(ReviewPipeError):
    """Raised instead of invoking an operation while the circuit is open."""

    def __init__(self, name: str, failures: int, threshold: int):
        self.name = name
        self.failures = failures
        self.threshold = threshold
        super().__init__(
            f"Circuit '{name}' is open after {failures} consecutive failures "
            f"(threshold {threshold})"
        )


class AnalysisTimeoutError(ReviewPipeError):
    """The analysis function did not finish within the configured timeout."""

    def __init__(self, file_path: str, timeout_s: float):
        self.file_path = file_path
        self.timeout_s = timeout_s
        super().__init__(f"Analysis of {file_path} timed out after {timeout_s:.1f}s")
