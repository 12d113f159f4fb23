# src/__init__.py — v1
"""genforge: scheduling, scoring, parsing and sequential builds for LLM code generation."""
