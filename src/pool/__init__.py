# src/pool/__init__.py — v1
"""Model pool scheduler."""
