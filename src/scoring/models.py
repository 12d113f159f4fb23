# src/scoring/models.py — v1
"""Outcome scorer types: GenerationOutcome, ModelScore and the query results."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from genforge.core.models import TaskType, Tier


def _outcome_id() -> str:
    return f"outcome_{uuid.uuid4().hex[:12]}"


class GenerationOutcome(BaseModel):
    """One completed generation attempt. Immutable once built."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    id: str = Field(default_factory=_outcome_id)
    model: str
    task_type: TaskType
    tier: Tier = "balanced"
    quality_score: float = Field(ge=0.0, le=100.0)
    tests_passed: bool | None = None
    user_accepted: bool | None = None
    duration_ms: float = Field(default=0.0, ge=0.0)
    tokens_used: int = Field(default=0, ge=0)
    error_count: int = Field(default=0, ge=0)
    refinements_needed: int = Field(default=0, ge=0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_success(self) -> bool:
        """Accepted by the user, or tests passed with quality above 60."""
        return self.user_accepted is True or (
            self.tests_passed is True and self.quality_score > 60
        )


class ModelScore(BaseModel):
    """Decay-weighted aggregate for one (task type, model) pair."""

    model_config = ConfigDict(protected_namespaces=())

    model: str
    task_type: TaskType
    tier: Tier
    weighted_score: float
    quality_avg: float
    success_rate: float
    speed_score: float
    error_rate: float
    refinement_rate: float
    sample_count: int
    confidence: float
    last_updated: datetime


class BestModel(BaseModel):
    """Winner of a get_best_model() query."""

    model_config = ConfigDict(protected_namespaces=())

    model: str
    score: float
    confidence: float
    effective_score: float
    reason: str


class TierRecommendation(BaseModel):
    """Upgrade/downgrade advice. Never both flags at once."""

    should_upgrade: bool = False
    should_downgrade: bool = False
    suggested_tier: Tier | None = None
    reason: str = ""


class LeaderboardEntry(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model: str
    task_type: TaskType
    score: float
    confidence: float
    sample_count: int


class WeakSpot(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model: str
    task_type: TaskType
    issue: str


class ScorerInsights(BaseModel):
    """Summary across all scored pairs."""

    top_performers: dict[str, str] = Field(default_factory=dict)
    weak_spots: list[WeakSpot] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class ScorerConfig(BaseModel):
    """Tunable scoring constants. Weights must sum to 1."""

    decay_rate: float = Field(default=0.1, ge=0.0)
    confidence_saturation: int = Field(default=10, ge=1)
    neutral_prior: float = Field(default=0.5, ge=0.0, le=1.0)
    w_quality: float = 0.35
    w_success: float = 0.25
    w_speed: float = 0.15
    w_error: float = 0.15
    w_refinement: float = 0.10
    error_scale: float = 10.0
    refinement_scale: float = 5.0
    upgrade_max_score: float = 0.4
    upgrade_min_confidence: float = 0.5
    downgrade_min_score: float = 0.6
    downgrade_min_confidence: float = 0.3
    consolidation_gap: float = 0.2
    low_data_threshold: int = 10
