# src/logging/handlers.py — v1
"""Size-based rotating file handler for log files."""

from __future__ import annotations

import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

from reviewpipe.core.errors import ConfigurationError

_SIZE_RE = re.compile(r"^(\d+)\s*(B|KB|MB|GB)?$", re.IGNORECASE)
_MULTIPLIERS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}


def parse_size(size: str | int) -> int:
    """Parse '10MB', '512KB', '2048' or an int into a byte count."""
    if isinstance(size, int):
        value = size
    else:
        match = _SIZE_RE.match(size.strip())
        if not match:
            raise ConfigurationError(f"Invalid size: {size!r}. Use e.g. '10MB'.")
        value = int(match.group(1)) * _MULTIPLIERS[(match.group(2) or "B").upper()]
    if value <= 0:
        raise ConfigurationError(f"Size must be positive, got {size!r}")
    return value


def create_rotating_handler(
    log_file: str,
    rotation: str | int = "10MB",
    retention: int = 5,
) -> RotatingFileHandler:
    """Rotating handler writing UTF-8 to log_file, creating parent directories.

    Args:
        log_file: Path to the log file.
        rotation: Max file size before rotation.
        retention: Number of backup files to keep.
    """
    if retention < 0:
        raise ConfigurationError(f"retention must be >= 0, got {retention}")
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        filename=str(path),
        maxBytes=parse_size(rotation),
        backupCount=retention,
        encoding="utf-8",
    )
