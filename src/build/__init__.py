# src/build/__init__.py — v1
"""Sequential build pipeline."""
