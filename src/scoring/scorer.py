# src/scoring/scorer.py — v1
"""Outcome-learning scorer.

Turns a stream of GenerationOutcome records into per-(task type, model)
scores and answers "which model should handle task type X".

Scores are recomputed from scratch over the retained outcomes for a pair
every time a new outcome for that pair arrives, so decay weighting always
reflects the current clock. A pair with no retained outcomes has no entry;
"no entry" is distinct from a score of zero.

Thread-safe: one lock guards the outcome buffer and the score table.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from genforge.core.bounded import BoundedStore
from genforge.core.models import TIER_ORDER, TaskType, Tier
from genforge.scoring.decay import compute_components, effective_score
from genforge.scoring.models import (
    BestModel,
    GenerationOutcome,
    LeaderboardEntry,
    ModelScore,
    ScorerConfig,
    ScorerInsights,
    TierRecommendation,
    WeakSpot,
)

if TYPE_CHECKING:
    from genforge.config.settings import Settings

logger = logging.getLogger(__name__)

ScoreKey = tuple[str, str]  # (task_type, model)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OutcomeScorer:
    """Bounded outcome history plus the derived score table.

    Args:
        config: Scoring constants.
        outcome_capacity: Ring-buffer size; oldest outcomes drop first.
        score_capacity: LRU capacity of the score table.
        clock: Returns the current aware datetime (injectable for tests).
    """

    def __init__(
        self,
        config: ScorerConfig | None = None,
        outcome_capacity: int = 1000,
        score_capacity: int = 500,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or ScorerConfig()
        self._outcomes: deque[GenerationOutcome] = deque(maxlen=outcome_capacity)
        self._scores: BoundedStore[ScoreKey, ModelScore] = BoundedStore(score_capacity, policy="lru")
        self._clock = clock or _utcnow
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, clock: Callable[[], datetime] | None = None) -> OutcomeScorer:
        config = ScorerConfig(
            decay_rate=settings.scorer_decay_rate,
            confidence_saturation=settings.scorer_confidence_saturation,
            neutral_prior=settings.scorer_neutral_prior,
            w_quality=settings.scorer_w_quality,
            w_success=settings.scorer_w_success,
            w_speed=settings.scorer_w_speed,
            w_error=settings.scorer_w_error,
            w_refinement=settings.scorer_w_refinement,
            upgrade_max_score=settings.scorer_upgrade_max_score,
            upgrade_min_confidence=settings.scorer_upgrade_min_confidence,
            downgrade_min_score=settings.scorer_downgrade_min_score,
            downgrade_min_confidence=settings.scorer_downgrade_min_confidence,
        )
        return cls(
            config=config,
            outcome_capacity=settings.scorer_outcome_capacity,
            score_capacity=settings.scorer_score_capacity,
            clock=clock,
        )

    @property
    def config(self) -> ScorerConfig:
        return self._config.model_copy()

    @property
    def outcome_count(self) -> int:
        with self._lock:
            return len(self._outcomes)

    # --- Recording ---

    def record_outcome(self, outcome: GenerationOutcome) -> ModelScore | None:
        """Store one outcome and refresh the score of its pair.

        Returns:
            The pair's updated score.
        """
        with self._lock:
            self._outcomes.append(outcome)
            score = self._recalculate_locked(outcome.model, outcome.task_type)

        logger.info(
            "Outcome recorded: model=%s task_type=%s quality=%.1f",
            outcome.model, outcome.task_type, outcome.quality_score,
        )
        return score

    def recalculate_scores(self, model: str, task_type: TaskType) -> ModelScore | None:
        """Rebuild one pair's score. None when the pair has no retained outcomes."""
        with self._lock:
            return self._recalculate_locked(model, task_type)

    def _recalculate_locked(self, model: str, task_type: str) -> ModelScore | None:
        key = (task_type, model)
        relevant = [o for o in self._outcomes if o.model == model and o.task_type == task_type]
        if not relevant:
            self._scores.delete(key)
            return None

        now = self._clock()
        c = compute_components(relevant, now, self._config)
        score = ModelScore(
            model=model,
            task_type=task_type,  # type: ignore[arg-type]
            tier=relevant[-1].tier,
            weighted_score=c.weighted_score,
            quality_avg=c.quality_avg,
            success_rate=c.success_rate,
            speed_score=c.speed_score,
            error_rate=c.error_rate,
            refinement_rate=c.refinement_rate,
            sample_count=c.sample_count,
            confidence=c.confidence,
            last_updated=now,
        )
        evicted = self._scores.put(key, score)
        if evicted is not None:
            logger.debug("Score table full, evicted %s", evicted)

        logger.debug(
            "Scores recalculated: model=%s task_type=%s weighted=%.3f confidence=%.2f samples=%d",
            model, task_type, c.weighted_score, c.confidence, c.sample_count,
        )
        return score

    # --- Queries ---

    def get_score(self, task_type: TaskType, model: str) -> ModelScore | None:
        with self._lock:
            score = self._scores.peek((task_type, model))
        return score.model_copy() if score is not None else None

    def get_best_model(self, task_type: TaskType | None, candidates: Iterable[str]) -> BestModel | None:
        """Highest effective score among candidates that have a score.

        Ties keep the first candidate evaluated. None when no candidate has
        any recorded score (or task_type is None).
        """
        if task_type is None:
            return None
        prior = self._config.neutral_prior

        best: ModelScore | None = None
        best_effective = -1.0
        with self._lock:
            for model in candidates:
                score = self._scores.get((task_type, model))
                if score is None:
                    continue
                eff = effective_score(score.weighted_score, score.confidence, prior)
                if eff > best_effective:
                    best, best_effective = score, eff

        if best is None:
            return None
        return BestModel(
            model=best.model,
            score=best.weighted_score,
            confidence=best.confidence,
            effective_score=best_effective,
            reason=(
                f"Best model for {task_type}: {best.model} "
                f"(score={best.weighted_score:.3f}, confidence={best.confidence:.2f}, "
                f"effective={best_effective:.3f})"
            ),
        )

    def get_model_recommendation(self, task_type: TaskType, current_tier: Tier) -> TierRecommendation:
        """Advise moving up or down a tier for this task type.

        The current tier's representative is its most confident scored model.
        Upgrade wins over downgrade; the default is no change.
        """
        cfg = self._config
        current_index = TIER_ORDER.index(current_tier)

        with self._lock:
            entries = [s for s in self._scores.values() if s.task_type == task_type]

        current = max(
            (s for s in entries if s.tier == current_tier),
            key=lambda s: s.confidence,
            default=None,
        )

        if (
            current is not None
            and current.weighted_score < cfg.upgrade_max_score
            and current.confidence > cfg.upgrade_min_confidence
            and current_index < len(TIER_ORDER) - 1
        ):
            target = TIER_ORDER[current_index + 1]
            return TierRecommendation(
                should_upgrade=True,
                suggested_tier=target,
                reason=(
                    f"Current {current_tier} tier is underperforming for {task_type} "
                    f"(score={current.weighted_score:.3f}). Consider upgrading to {target}."
                ),
            )

        adequate = [
            s for s in entries
            if TIER_ORDER.index(s.tier) < current_index
            and s.weighted_score > cfg.downgrade_min_score
            and s.confidence > cfg.downgrade_min_confidence
        ]
        if adequate:
            cheaper = max(adequate, key=lambda s: s.weighted_score)
            return TierRecommendation(
                should_downgrade=True,
                suggested_tier=cheaper.tier,
                reason=(
                    f"Faster {cheaper.tier} tier performs adequately for {task_type}. "
                    f"Consider downgrading from {current_tier} to save resources."
                ),
            )

        return TierRecommendation(
            reason=f"Current {current_tier} tier is performing adequately for {task_type}."
        )

    def get_leaderboard(self) -> list[LeaderboardEntry]:
        """All scored pairs, best weighted score first."""
        with self._lock:
            scores = list(self._scores.values())
        entries = [
            LeaderboardEntry(
                model=s.model,
                task_type=s.task_type,
                score=s.weighted_score,
                confidence=s.confidence,
                sample_count=s.sample_count,
            )
            for s in scores
        ]
        entries.sort(key=lambda e: e.score, reverse=True)
        return entries

    def get_insights(self) -> ScorerInsights:
        cfg = self._config
        with self._lock:
            scores = list(self._scores.values())
            outcome_count = len(self._outcomes)

        by_task: dict[str, list[ModelScore]] = {}
        for s in scores:
            by_task.setdefault(s.task_type, []).append(s)

        insights = ScorerInsights()
        for task_type, entries in by_task.items():
            insights.top_performers[task_type] = max(entries, key=lambda s: s.weighted_score).model
            for s in entries:
                if s.weighted_score < cfg.upgrade_max_score and s.confidence > cfg.upgrade_min_confidence:
                    insights.weak_spots.append(
                        WeakSpot(
                            model=s.model,
                            task_type=s.task_type,
                            issue=(
                                f"Low performance score ({s.weighted_score:.3f}) "
                                f"with high confidence ({s.confidence:.2f})"
                            ),
                        )
                    )

        if insights.weak_spots:
            insights.recommendations.append(
                f"{len(insights.weak_spots)} model-task combinations are underperforming. "
                "Consider switching models or upgrading tiers."
            )

        for task_type, entries in by_task.items():
            confident = sorted(
                (s for s in entries if s.confidence > cfg.upgrade_min_confidence),
                key=lambda s: s.weighted_score,
                reverse=True,
            )
            if len(confident) >= 2:
                best, worst = confident[0], confident[-1]
                if best.weighted_score - worst.weighted_score > cfg.consolidation_gap:
                    insights.recommendations.append(
                        f"For {task_type} tasks, {best.model} significantly outperforms "
                        f"{worst.model}. Consider consolidating to {best.model}."
                    )

        if outcome_count < cfg.low_data_threshold:
            insights.recommendations.append(
                "Limited outcome data available. More samples will improve recommendation accuracy."
            )
        return insights

    def clear(self) -> None:
        """Drop every outcome and score."""
        with self._lock:
            self._outcomes.clear()
            self._scores.clear()
        logger.info("Outcome scorer cleared")
