# src/scoring/decay.py — v1
"""Recency-weighted score components for one (task type, model) pair.

weight = e^(-age_days × decay_rate); old samples fade but never reach zero.
All five components are decay-weighted means in [0, 1].
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime

from genforge.scoring.models import GenerationOutcome, ScorerConfig

SECONDS_PER_DAY = 86_400.0


@dataclass
class ScoreComponents:
    """Decayed component averages plus the combined score."""

    quality_avg: float = 0.0
    success_rate: float = 0.0
    speed_score: float = 0.0
    error_rate: float = 0.0
    refinement_rate: float = 0.0
    weighted_score: float = 0.0
    confidence: float = 0.0
    sample_count: int = 0


def compute_decay_weight(age_days: float, decay_rate: float) -> float:
    """Exponential recency weight. Future timestamps count as age zero."""
    if age_days <= 0:
        return 1.0
    return math.exp(-age_days * decay_rate)


def median_duration(outcomes: list[GenerationOutcome]) -> float:
    """Upper median of the durations (element at index n // 2 once sorted)."""
    durations = sorted(o.duration_ms for o in outcomes)
    return durations[len(durations) // 2]


def speed_value(duration_ms: float, median_ms: float) -> float:
    """1.0 at or below the median, shrinking for slower samples."""
    if median_ms <= 0:
        return 1.0
    return min(1.0, median_ms / max(1.0, duration_ms))


def compute_components(
    outcomes: list[GenerationOutcome],
    now: datetime,
    config: ScorerConfig,
) -> ScoreComponents:
    """Aggregate outcomes into decayed components and a weighted score.

    Args:
        outcomes: All retained outcomes for one pair. Must not be empty.
        now: Reference time for ages.
        config: Weights, decay rate and normalisation scales.
    """
    if not outcomes:
        raise ValueError("compute_components requires at least one outcome")

    median_ms = median_duration(outcomes)

    total_weight = quality = success = speed = error = refinement = 0.0
    for outcome in outcomes:
        age_days = (now - outcome.timestamp).total_seconds() / SECONDS_PER_DAY
        w = compute_decay_weight(age_days, config.decay_rate)
        total_weight += w
        quality += w * (outcome.quality_score / 100.0)
        success += w * (1.0 if outcome.is_success else 0.0)
        speed += w * speed_value(outcome.duration_ms, median_ms)
        error += w * (outcome.error_count / config.error_scale)
        refinement += w * (outcome.refinements_needed / config.refinement_scale)

    c = ScoreComponents(sample_count=len(outcomes))
    if total_weight > 0:
        c.quality_avg = quality / total_weight
        c.success_rate = success / total_weight
        c.speed_score = speed / total_weight
        c.error_rate = min(1.0, error / total_weight)
        c.refinement_rate = min(1.0, refinement / total_weight)

    c.weighted_score = (
        config.w_quality * c.quality_avg
        + config.w_success * c.success_rate
        + config.w_speed * c.speed_score
        + config.w_error * (1.0 - c.error_rate)
        + config.w_refinement * (1.0 - c.refinement_rate)
    )
    c.confidence = min(1.0, len(outcomes) / config.confidence_saturation)
    return c


def effective_score(weighted_score: float, confidence: float, neutral_prior: float = 0.5) -> float:
    """Regress a score toward the neutral prior when confidence is low."""
    return weighted_score * confidence + (1.0 - confidence) * neutral_prior
