# src/__init__.py — v1
"""reviewpipe: run a per-file analysis function over many files with retry,
bounded concurrency, grouping, and progress reporting."""

from reviewpipe.version import __version__

__all__ = ["__version__"]
