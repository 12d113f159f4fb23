# src/parser/__init__.py — v1
"""Output parser and repair engine."""
