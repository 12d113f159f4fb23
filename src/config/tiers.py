# src/config/tiers.py — v1
"""Model tier and role tables.

Tier resolution order:
  1. Explicit table (MODEL_TIERS=qwen2.5-coder-32b=powerful,...)
  2. Name-token inference on the model id (only if TIER_INFERENCE_FALLBACK)
  3. Default tier ("balanced")

Roles have no inference step: a model without an explicit assignment is "any".
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import get_args

from genforge.core.models import SlotRole, Tier

DEFAULT_TIER: Tier = "balanced"
DEFAULT_ROLE: SlotRole = "any"

VALID_TIERS: frozenset[str] = frozenset(get_args(Tier))
VALID_ROLES: frozenset[str] = frozenset(get_args(SlotRole))

# Checked in order; first hit wins. A hint only matches a whole name token
# ("13b" is not "3b", "gemini" is not "mini"). Parameter counts come first so
# "llama-3.1-70b" resolves on "70b"; size suffixes beat family names ("o3-mini").
TIER_HINTS: list[tuple[str, Tier]] = [
    ("70b", "powerful"),
    ("32b", "powerful"),
    ("30b", "powerful"),
    ("14b", "balanced"),
    ("13b", "balanced"),
    ("8b", "balanced"),
    ("7b", "fast"),
    ("3b", "fast"),
    ("1.5b", "fast"),
    ("mini", "fast"),
    ("flash", "fast"),
    ("haiku", "fast"),
    ("opus", "powerful"),
    ("o3", "powerful"),
]

_HINT_PATTERNS: list[tuple[re.Pattern[str], Tier]] = [
    (re.compile(rf"(?<![a-z0-9.]){re.escape(hint)}(?![a-z0-9])"), tier) for hint, tier in TIER_HINTS
]


@dataclass(frozen=True)
class TierAssignment:
    """Resolved tier for a model id."""

    model: str
    tier: Tier
    source: str  # "explicit", "inferred" or "default"


def parse_assignments(value: str, allowed: frozenset[str], label: str) -> dict[str, str]:
    """Parse 'model=value,model=value' strings.

    Args:
        value: Raw comma-separated assignment string.
        allowed: Accepted right-hand side values.
        label: Used in error messages ("tier", "role").

    Raises:
        ValueError: On a malformed pair or an unknown value.
    """
    result: dict[str, str] = {}
    for raw in value.split(","):
        pair = raw.strip()
        if not pair:
            continue
        if "=" not in pair:
            raise ValueError(f"Invalid {label} assignment {pair!r}: expected model={label}")
        model, assigned = (p.strip() for p in pair.rsplit("=", 1))
        if not model or assigned not in allowed:
            raise ValueError(
                f"Invalid {label} assignment {pair!r}: "
                f"{label} must be one of {', '.join(sorted(allowed))}"
            )
        result[model] = assigned
    return result


def infer_tier(model: str) -> Tier | None:
    """Guess a tier from name tokens of the model id. None when nothing matches."""
    lower = model.lower()
    for pattern, tier in _HINT_PATTERNS:
        if pattern.search(lower):
            return tier
    return None


def resolve_tier(
    model: str,
    explicit: dict[str, str] | None = None,
    inference_fallback: bool = True,
) -> TierAssignment:
    """Resolve a model's tier through the explicit table, inference, then default."""
    if explicit and model in explicit:
        return TierAssignment(model=model, tier=explicit[model], source="explicit")  # type: ignore[arg-type]

    if inference_fallback:
        inferred = infer_tier(model)
        if inferred is not None:
            return TierAssignment(model=model, tier=inferred, source="inferred")

    return TierAssignment(model=model, tier=DEFAULT_TIER, source="default")


class TierTable:
    """Callable tier resolver bound to one explicit table."""

    def __init__(self, explicit: dict[str, str] | None = None, inference_fallback: bool = True):
        self._explicit = dict(explicit or {})
        self._inference_fallback = inference_fallback

    @classmethod
    def from_string(cls, value: str, inference_fallback: bool = True) -> TierTable:
        return cls(parse_assignments(value, VALID_TIERS, "tier"), inference_fallback)

    def set(self, model: str, tier: Tier) -> None:
        if tier not in VALID_TIERS:
            raise ValueError(f"Unknown tier: {tier!r}")
        self._explicit[model] = tier

    def resolve(self, model: str) -> TierAssignment:
        return resolve_tier(model, self._explicit, self._inference_fallback)

    def __call__(self, model: str) -> Tier:
        return self.resolve(model).tier
