# src/grouping/__init__.py — v1
"""File grouping and directory trees."""
