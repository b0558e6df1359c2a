# src/processing/__init__.py — v1
"""Processing orchestration."""
