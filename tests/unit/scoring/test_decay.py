# tests/unit/scoring/test_decay.py — v1
"""Tests for scoring/decay.py."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import pytest

from genforge.scoring.decay import (
    compute_components,
    compute_decay_weight,
    effective_score,
    median_duration,
    speed_value,
)
from genforge.scoring.models import GenerationOutcome, ScorerConfig

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _o(quality=50.0, duration_ms=1000.0, age_days=0.0, **kw):
    return GenerationOutcome(
        model="m",
        task_type="generate",
        quality_score=quality,
        duration_ms=duration_ms,
        timestamp=NOW - timedelta(days=age_days),
        **kw,
    )


class TestDecayWeight:
    def test_fresh_sample_full_weight(self):
        assert compute_decay_weight(0.0, 0.1) == 1.0

    def test_future_sample_full_weight(self):
        assert compute_decay_weight(-3.0, 0.1) == 1.0

    def test_exponential(self):
        assert compute_decay_weight(10.0, 0.1) == pytest.approx(math.exp(-1.0))

    def test_never_zero(self):
        assert compute_decay_weight(3650.0, 0.1) > 0.0


class TestSpeed:
    def test_upper_median_even_count(self):
        assert median_duration([_o(duration_ms=1000), _o(duration_ms=3000)]) == 3000

    def test_median_odd_count(self):
        outcomes = [_o(duration_ms=d) for d in (500, 4000, 2000)]
        assert median_duration(outcomes) == 2000

    def test_slower_than_median_penalised(self):
        assert speed_value(4000.0, 2000.0) == pytest.approx(0.5)
        assert speed_value(1000.0, 2000.0) == 1.0

    def test_zero_duration_floor(self):
        assert speed_value(0.0, 500.0) == 1.0


class TestComponents:
    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            compute_components([], NOW, ScorerConfig())

    def test_weighted_score_formula(self):
        c = compute_components(
            [_o(quality=80.0, error_count=5, refinements_needed=1, user_accepted=True)],
            NOW,
            ScorerConfig(),
        )
        assert c.quality_avg == pytest.approx(0.8)
        assert c.error_rate == pytest.approx(0.5)
        assert c.refinement_rate == pytest.approx(0.2)
        expected = 0.35 * 0.8 + 0.25 * 1.0 + 0.15 * 1.0 + 0.15 * 0.5 + 0.10 * 0.8
        assert c.weighted_score == pytest.approx(expected)

    def test_custom_weights(self):
        cfg = ScorerConfig(w_quality=1.0, w_success=0.0, w_speed=0.0, w_error=0.0, w_refinement=0.0)
        c = compute_components([_o(quality=30.0)], NOW, cfg)
        assert c.weighted_score == pytest.approx(0.3)

    def test_components_in_unit_range(self):
        outcomes = [
            _o(quality=100.0, duration_ms=0.0, error_count=99, refinements_needed=99),
            _o(quality=0.0, duration_ms=90_000.0, age_days=40),
        ]
        c = compute_components(outcomes, NOW, ScorerConfig())
        for value in (c.quality_avg, c.success_rate, c.speed_score, c.error_rate,
                      c.refinement_rate, c.weighted_score, c.confidence):
            assert 0.0 <= value <= 1.0

    def test_confidence(self):
        outcomes = [_o() for _ in range(4)]
        assert compute_components(outcomes, NOW, ScorerConfig()).confidence == pytest.approx(0.4)


class TestEffectiveScore:
    def test_full_confidence_is_raw(self):
        assert effective_score(0.9, 1.0) == pytest.approx(0.9)

    def test_zero_confidence_is_prior(self):
        assert effective_score(0.9, 0.0, neutral_prior=0.3) == pytest.approx(0.3)
