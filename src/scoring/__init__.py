# src/scoring/__init__.py — v1
"""Outcome-learning scorer."""
