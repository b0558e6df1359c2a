# src/progress/__init__.py — v1
"""Progress state, renderers and render error handling."""
