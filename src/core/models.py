# src/core/models.py — v1
"""Shared vocabularies used across the pool, scoring and build packages.

No module redefines these aliases; all imports come from core.models.
"""

from __future__ import annotations

from typing import Literal

# === POOL ===

SlotRole = Literal["planner", "builder", "reviewer", "any"]

# === SCORING ===

Tier = Literal["fast", "balanced", "powerful"]
TaskType = Literal["format", "complete", "generate", "refactor", "debug", "explain", "plan"]

# Cheapest first; index order is used for upgrade/downgrade decisions.
TIER_ORDER: tuple[Tier, ...] = ("fast", "balanced", "powerful")

# === BUILD ===

StepStatus = Literal["pending", "building", "completed", "failed"]
PipelineStatus = Literal["idle", "running", "completed", "failed"]

TERMINAL_STEP_STATUSES: frozenset[str] = frozenset({"completed", "failed"})
