# src/retry/__init__.py — v1
"""Retry policy, error classification and circuit breaker."""
