# src/retry/classifier.py — v1
"""Classify failures as retryable or not by their message and type.

Retryable patterns are checked first (network, timeout, rate limit, 5xx,
temporary overload), then non-retryable ones (authentication, permission,
not found, malformed input). Anything unmatched is treated as retryable.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

from reviewpipe.core.errors import AnalysisTimeoutError, CircuitOpenError


class ErrorCategory(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    SERVICE_UNAVAILABLE = "service_unavailable"
    TEMPORARY = "temporary"
    AUTHENTICATION = "authentication"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    CIRCUIT_OPEN = "circuit_open"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Classification:
    category: ErrorCategory
    retryable: bool


_RETRYABLE_PATTERNS: tuple[tuple[ErrorCategory, tuple[str, ...]], ...] = (
    (ErrorCategory.TIMEOUT, ("timeout", "timed out", "etimedout")),
    (ErrorCategory.NETWORK, ("network", "connection", "econnrefused", "econnreset", "enotfound")),
    (ErrorCategory.RATE_LIMIT, ("rate limit", "429", "too many requests")),
    (ErrorCategory.SERVICE_UNAVAILABLE, ("service unavailable", "500", "502", "503", "504")),
    (ErrorCategory.TEMPORARY, ("temporary", "busy", "overloaded")),
)

_NON_RETRYABLE_PATTERNS: tuple[tuple[ErrorCategory, tuple[str, ...]], ...] = (
    (ErrorCategory.AUTHENTICATION, ("unauthorized", "authentication", "401")),
    (ErrorCategory.PERMISSION, ("forbidden", "403", "permission denied")),
    (ErrorCategory.NOT_FOUND, ("not found", "404", "enoent", "no such file")),
    (ErrorCategory.INVALID_INPUT, ("invalid", "malformed", "syntax error")),
)


def classify_error(error: BaseException) -> Classification:
    """Classify an exception into an ErrorCategory with a retryable flag."""
    if isinstance(error, CircuitOpenError):
        return Classification(ErrorCategory.CIRCUIT_OPEN, retryable=False)
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, AnalysisTimeoutError)):
        return Classification(ErrorCategory.TIMEOUT, retryable=True)
    if isinstance(error, ConnectionError):
        return Classification(ErrorCategory.NETWORK, retryable=True)
    if isinstance(error, PermissionError):
        return Classification(ErrorCategory.PERMISSION, retryable=False)
    if isinstance(error, FileNotFoundError):
        return Classification(ErrorCategory.NOT_FOUND, retryable=False)

    msg = str(error).lower()
    for category, patterns in _RETRYABLE_PATTERNS:
        if any(p in msg for p in patterns):
            return Classification(category, retryable=True)
    for category, patterns in _NON_RETRYABLE_PATTERNS:
        if any(p in msg for p in patterns):
            return Classification(category, retryable=False)
    return Classification(ErrorCategory.UNKNOWN, retryable=True)


def is_retryable(error: BaseException) -> bool:
    return classify_error(error).retryable
