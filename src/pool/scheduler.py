# src/pool/scheduler.py — v1
"""Model pool scheduler.

Owns the slot roster and hands out idle slots without double-booking.

Locking: the roster lock is never held while probing endpoints or while
calling the scorer. acquire_slot() reads candidate models under the lock,
asks the scorer for a ranking outside it, then re-validates and marks the
slot busy under the lock again. release_slot() updates the roster, drops
the lock, then forwards the outcome to the scorer.

Slot selection for a role:
  1. idle slots pinned to that role
  2. idle "any"-role slots
  3. NoSlotAvailable
Role "any" accepts every idle slot. Within the candidates: preferred model,
then the scorer's best model for the task type, then least recently used.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from genforge.config.tiers import DEFAULT_ROLE, VALID_ROLES, TierTable, parse_assignments
from genforge.core.errors import SlotStateError, StaleLeaseError
from genforge.core.models import SlotRole, TaskType
from genforge.pool.discovery import BaseModelProbe
from genforge.pool.models import (
    DiscoveredModel,
    EndpointStatus,
    ModelAggregate,
    ModelSlot,
    NoSlotAvailable,
    PoolStats,
    SlotLease,
    SlotOutcome,
    Throughput,
)
from genforge.scoring.models import GenerationOutcome

if TYPE_CHECKING:
    from genforge.config.settings import Settings
    from genforge.scoring.scorer import OutcomeScorer

logger = logging.getLogger(__name__)

MIN_SLOTS_PER_MODEL = 1
MAX_SLOTS_PER_MODEL = 10
THROUGHPUT_WINDOW = timedelta(seconds=60)

_NEVER_USED = datetime.min.replace(tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def slot_id_for(endpoint: str, model: str, index: int) -> str:
    return f"{endpoint}::{model}::{index}"


class ModelPoolScheduler:
    """Slot roster, discovery merge and non-blocking slot assignment.

    Args:
        endpoints: Endpoint base URLs to probe.
        probe: Lists loaded models per endpoint.
        scorer: Optional outcome scorer used to rank candidates and to
            receive released outcomes.
        tier_table: Resolves a model's tier for recorded outcomes.
        max_slots_per_model: Concurrent slots created per discovered model.
        slot_timeout_s: Busy time after which reclaim_stale_slots() frees a slot.
        role_assignments: model -> role pins.
        clock: Returns the current aware datetime.
    """

    def __init__(
        self,
        endpoints: list[str],
        probe: BaseModelProbe,
        scorer: OutcomeScorer | None = None,
        tier_table: TierTable | None = None,
        max_slots_per_model: int = 3,
        slot_timeout_s: float = 600.0,
        role_assignments: dict[str, str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._endpoints = list(endpoints)
        self._probe = probe
        self._scorer = scorer
        self._tiers = tier_table or TierTable()
        self._max_slots = _clamp_slots(max_slots_per_model)
        self._slot_timeout = timedelta(seconds=slot_timeout_s)
        self._role_assignments: dict[str, str] = dict(role_assignments or {})
        self._clock = clock or _utcnow

        self._slots: dict[str, ModelSlot] = {}
        self._discovered: dict[str, list[DiscoveredModel]] = {}
        self._endpoint_status: dict[str, EndpointStatus] = {}
        self._completions: deque[tuple[datetime, int]] = deque()
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        probe: BaseModelProbe,
        scorer: OutcomeScorer | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> ModelPoolScheduler:
        return cls(
            endpoints=settings.pool_endpoints_list,
            probe=probe,
            scorer=scorer,
            tier_table=TierTable.from_string(settings.model_tiers, settings.tier_inference_fallback),
            max_slots_per_model=settings.pool_max_slots_per_model,
            slot_timeout_s=settings.pool_slot_timeout_s,
            role_assignments=parse_assignments(settings.pool_role_assignments, VALID_ROLES, "role"),
            clock=clock,
        )

    # --- Discovery ---

    def discover(self) -> dict[str, list[DiscoveredModel]]:
        """Probe every endpoint and merge the results into the roster.

        An unreachable endpoint contributes no models; its idle slots are
        dropped, busy ones stay until released.
        """
        results: dict[str, list[DiscoveredModel]] = {}
        statuses: dict[str, EndpointStatus] = {}

        for endpoint in self._endpoints:
            try:
                models = self._probe.list_models(endpoint)
            except Exception as exc:
                logger.warning("Model discovery failed for %s: %s", endpoint, exc)
                results[endpoint] = []
                statuses[endpoint] = EndpointStatus(
                    endpoint=endpoint, healthy=False, error=str(exc), checked_at=self._clock()
                )
                continue
            results[endpoint] = models
            statuses[endpoint] = EndpointStatus(
                endpoint=endpoint, healthy=True, model_count=len(models), checked_at=self._clock()
            )
            logger.info(
                "Discovered %d models on %s: %s",
                len(models), endpoint, ", ".join(m.id for m in models),
            )

        with self._lock:
            self._discovered = results
            self._endpoint_status.update(statuses)
            self._sync_slots_locked()
            discovered = {k: [m.model_copy() for m in v] for k, v in results.items()}
        return discovered

    def _sync_slots_locked(self) -> None:
        active: set[str] = set()
        for endpoint, models in self._discovered.items():
            for model in models:
                role = self._role_assignments.get(model.id, DEFAULT_ROLE)
                for i in range(self._max_slots):
                    sid = slot_id_for(endpoint, model.id, i)
                    active.add(sid)
                    slot = self._slots.get(sid)
                    if slot is None:
                        self._slots[sid] = ModelSlot(id=sid, model=model.id, endpoint=endpoint, role=role)
                    elif not slot.busy:
                        slot.role = role  # type: ignore[assignment]

        for sid in [s for s, slot in self._slots.items() if s not in active and not slot.busy]:
            del self._slots[sid]

        logger.info(
            "Slots synced: total=%d busy=%d",
            len(self._slots), sum(1 for s in self._slots.values() if s.busy),
        )

    # --- Assignment ---

    def acquire_slot(
        self,
        role: SlotRole = "any",
        preferred_model: str | None = None,
        task_type: TaskType | None = None,
        task: str | None = None,
    ) -> SlotLease | NoSlotAvailable:
        """Pick an idle slot for role and mark it busy. Never blocks."""
        best_model: str | None = None
        if self._scorer is not None and task_type is not None:
            with self._lock:
                models = list(dict.fromkeys(s.model for s in self._candidates_locked(role)))
            if models:
                best = self._scorer.get_best_model(task_type, models)
                best_model = best.model if best is not None else None

        with self._lock:
            candidates = self._candidates_locked(role)
            if not candidates:
                logger.debug("No idle slot for role=%s", role)
                return NoSlotAvailable(role=role, preferred_model=preferred_model)

            slot, reason = self._choose(candidates, preferred_model, best_model)
            now = self._clock()
            slot.busy = True
            slot.lease_id = f"lease_{uuid.uuid4().hex}"
            slot.task_started_at = now
            slot.current_task = task or "pending"
            lease = SlotLease(
                slot_id=slot.id,
                lease_id=slot.lease_id,
                model=slot.model,
                endpoint=slot.endpoint,
                role=slot.role,
                acquired_at=now,
                reason=reason,
            )

        logger.info("Slot acquired: %s (role=%s, reason=%s)", lease.slot_id, role, reason)
        return lease

    def _candidates_locked(self, role: str) -> list[ModelSlot]:
        idle = [s for s in self._slots.values() if not s.busy]
        if role == "any":
            return idle
        pinned = [s for s in idle if s.role == role]
        return pinned or [s for s in idle if s.role == "any"]

    @staticmethod
    def _choose(
        candidates: list[ModelSlot],
        preferred_model: str | None,
        best_model: str | None,
    ) -> tuple[ModelSlot, str]:
        for wanted, reason in ((preferred_model, "preferred"), (best_model, "scored")):
            if wanted is None:
                continue
            matching = [s for s in candidates if s.model == wanted]
            if matching:
                return _least_recently_used(matching), reason
        return _least_recently_used(candidates), "lru"

    def release_slot(
        self,
        lease: SlotLease | str,
        outcome: SlotOutcome | None = None,
    ) -> ModelSlot | None:
        """Return a slot to the pool and forward the outcome to the scorer.

        Args:
            lease: The lease from acquire_slot(), or a bare slot id. Only a
                lease is checked for ownership.
            outcome: Result of the task, recorded with the scorer.

        Returns:
            Snapshot of the released slot, or None for an unknown id.

        Raises:
            SlotStateError: If the slot is not busy.
            StaleLeaseError: If the slot was reclaimed and now belongs to
                another lease.
        """
        if isinstance(lease, SlotLease):
            slot_id, lease_id = lease.slot_id, lease.lease_id
        else:
            slot_id, lease_id = lease, None

        with self._lock:
            slot = self._slots.get(slot_id)
            if slot is None:
                logger.warning("Release of unknown slot %s", slot_id)
                return None
            if not slot.busy:
                raise SlotStateError(slot_id, expected_busy=True)
            if lease_id is not None and slot.lease_id != lease_id:
                raise StaleLeaseError(slot_id, lease_id)

            now = self._clock()
            if outcome is not None and outcome.duration_ms is not None:
                latency_ms = outcome.duration_ms
            elif slot.task_started_at is not None:
                latency_ms = (now - slot.task_started_at).total_seconds() * 1000
            else:
                latency_ms = 0.0
            tokens = outcome.tokens_used if outcome is not None else 0
            task = slot.current_task

            slot.busy = False
            slot.lease_id = None
            slot.current_task = None
            slot.task_started_at = None
            slot.completed_tasks += 1
            slot.total_tokens_used += tokens
            slot.last_used_at = now
            n = slot.completed_tasks
            slot.avg_latency_ms = (slot.avg_latency_ms * (n - 1) + latency_ms) / n

            deferred = self._role_assignments.get(slot.model)
            if deferred is not None and deferred != slot.role:
                slot.role = deferred  # type: ignore[assignment]

            self._completions.append((now, tokens))
            self._prune_completions_locked(now)
            snapshot = slot.model_copy()

        logger.info(
            "Slot released: %s (task=%s, latency_ms=%.0f, tokens=%d)",
            slot_id, task, latency_ms, tokens,
        )

        if outcome is not None and self._scorer is not None:
            self._scorer.record_outcome(
                GenerationOutcome(
                    model=snapshot.model,
                    task_type=outcome.task_type,
                    tier=self._tiers(snapshot.model),
                    quality_score=outcome.quality_score,
                    tests_passed=outcome.tests_passed,
                    user_accepted=outcome.user_accepted,
                    duration_ms=latency_ms,
                    tokens_used=tokens,
                    error_count=outcome.error_count,
                    refinements_needed=outcome.refinements_needed,
                    timestamp=now,
                )
            )
        return snapshot

    def reclaim_stale_slots(self, timeout_s: float | None = None) -> int:
        """Free slots busy for longer than the slot timeout. Returns the count."""
        timeout = timedelta(seconds=timeout_s) if timeout_s is not None else self._slot_timeout
        reclaimed = 0
        with self._lock:
            now = self._clock()
            for slot in self._slots.values():
                if slot.busy and slot.task_started_at is not None and now - slot.task_started_at > timeout:
                    logger.warning(
                        "Reclaiming stale slot %s (model=%s, task=%s, busy for %.0fs)",
                        slot.id, slot.model, slot.current_task,
                        (now - slot.task_started_at).total_seconds(),
                    )
                    slot.busy = False
                    slot.lease_id = None
                    slot.current_task = None
                    slot.task_started_at = None
                    reclaimed += 1
        return reclaimed

    def mark_slot_task(self, slot_id: str, task: str) -> bool:
        with self._lock:
            slot = self._slots.get(slot_id)
            if slot is None:
                return False
            slot.current_task = task
            return True

    # --- Configuration ---

    def set_role(self, model: str, role: SlotRole) -> None:
        """Pin a model to a role. Busy slots pick it up when released."""
        if role not in VALID_ROLES:
            raise ValueError(f"Unknown role: {role!r}")
        with self._lock:
            self._role_assignments[model] = role
            for slot in self._slots.values():
                if slot.model == model and not slot.busy:
                    slot.role = role
        logger.info("Role assignment updated: %s -> %s", model, role)

    def set_max_slots_per_model(self, max_slots: int) -> int:
        """Clamp to 1..10 and re-sync the roster. Returns the applied value."""
        with self._lock:
            self._max_slots = _clamp_slots(max_slots)
            self._sync_slots_locked()
            return self._max_slots

    # --- Queries ---

    def stats(self) -> PoolStats:
        with self._lock:
            slots = [s.model_copy() for s in self._slots.values()]
            now = self._clock()
            recent = [(t, tok) for t, tok in self._completions if now - t <= THROUGHPUT_WINDOW]

        aggregates: dict[tuple[str, str], ModelAggregate] = {}
        latency_sums: dict[tuple[str, str], float] = {}
        for slot in slots:
            key = (slot.endpoint, slot.model)
            agg = aggregates.get(key)
            if agg is None:
                agg = aggregates[key] = ModelAggregate(model=slot.model, endpoint=slot.endpoint)
                latency_sums[key] = 0.0
            agg.total_slots += 1
            agg.busy_slots += int(slot.busy)
            agg.completed_tasks += slot.completed_tasks
            agg.total_tokens += slot.total_tokens_used
            latency_sums[key] += slot.avg_latency_ms
        for key, agg in aggregates.items():
            agg.avg_latency_ms = latency_sums[key] / agg.total_slots

        busy = sum(1 for s in slots if s.busy)
        return PoolStats(
            total_slots=len(slots),
            busy_slots=busy,
            available_slots=len(slots) - busy,
            models=list(aggregates.values()),
            throughput=Throughput(
                tasks_per_minute=len(recent),
                tokens_per_minute=sum(tok for _, tok in recent),
            ),
        )

    def get_slots(self) -> list[ModelSlot]:
        with self._lock:
            return [s.model_copy() for s in self._slots.values()]

    def get_slot(self, slot_id: str) -> ModelSlot | None:
        with self._lock:
            slot = self._slots.get(slot_id)
            return slot.model_copy() if slot is not None else None

    def get_discovered_models(self) -> dict[str, list[DiscoveredModel]]:
        with self._lock:
            return {k: [m.model_copy() for m in v] for k, v in self._discovered.items()}

    def endpoint_status(self) -> dict[str, EndpointStatus]:
        with self._lock:
            return {k: v.model_copy() for k, v in self._endpoint_status.items()}

    def available_count(self, role: SlotRole | None = None) -> int:
        """Idle slots that could serve role (pinned or "any")."""
        with self._lock:
            return sum(
                1 for s in self._slots.values()
                if not s.busy and (role in (None, "any") or s.role in (role, "any"))
            )

    def has_available(self, role: SlotRole | None = None) -> bool:
        return self.available_count(role) > 0

    def close(self) -> None:
        with self._lock:
            self._slots.clear()
            self._discovered.clear()
            self._endpoint_status.clear()
            self._completions.clear()
        logger.info("Model pool closed")

    def _prune_completions_locked(self, now: datetime) -> None:
        while self._completions and now - self._completions[0][0] > THROUGHPUT_WINDOW:
            self._completions.popleft()


def _clamp_slots(value: int) -> int:
    return max(MIN_SLOTS_PER_MODEL, min(value, MAX_SLOTS_PER_MODEL))


def _least_recently_used(slots: list[ModelSlot]) -> ModelSlot:
    """Oldest last_used_at first; never-used slots first of all; ties keep roster order."""
    return min(slots, key=lambda s: s.last_used_at or _NEVER_USED)
