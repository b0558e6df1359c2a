# src/diff/__init__.py — v1
"""Chunked processing of large diffs."""
