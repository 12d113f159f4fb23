# src/pool/models.py — v1
"""Model pool types: slots, discovery results, leases and pool stats."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from genforge.core.models import SlotRole, TaskType


class ModelSlot(BaseModel):
    """One schedulable (model, endpoint) pair. At most one task at a time."""

    model_config = ConfigDict(protected_namespaces=())

    id: str
    model: str
    endpoint: str
    role: SlotRole = "any"
    busy: bool = False
    lease_id: str | None = None
    current_task: str | None = None
    task_started_at: datetime | None = None
    completed_tasks: int = 0
    total_tokens_used: int = 0
    avg_latency_ms: float = 0.0
    last_used_at: datetime | None = None


class DiscoveredModel(BaseModel):
    """A model reported as loaded by an endpoint."""

    id: str
    endpoint: str
    object: str = "model"
    owned_by: str = "unknown"


class EndpointStatus(BaseModel):
    """Outcome of the last probe of one endpoint."""

    endpoint: str
    healthy: bool
    model_count: int = 0
    error: str | None = None
    checked_at: datetime


class SlotLease(BaseModel):
    """A successful acquire_slot() result. Hand it back to release_slot().

    lease_id identifies this acquisition. A release carrying a lease_id
    that no longer matches the slot (reclaimed, then re-acquired) is refused.
    """

    model_config = ConfigDict(protected_namespaces=())

    slot_id: str
    lease_id: str
    model: str
    endpoint: str
    role: SlotRole
    acquired_at: datetime
    reason: Literal["preferred", "scored", "lru"] = "lru"

    @property
    def acquired(self) -> bool:
        return True


class NoSlotAvailable(BaseModel):
    """acquire_slot() found no idle slot. Retryable, not an error."""

    role: SlotRole
    preferred_model: str | None = None
    reason: str = "no idle slot"

    @property
    def acquired(self) -> bool:
        return False


class SlotOutcome(BaseModel):
    """What the caller reports when it hands a slot back.

    duration_ms falls back to the time measured since acquisition.
    """

    task_type: TaskType
    quality_score: float = Field(default=0.0, ge=0.0, le=100.0)
    tests_passed: bool | None = None
    user_accepted: bool | None = None
    duration_ms: float | None = Field(default=None, ge=0.0)
    tokens_used: int = Field(default=0, ge=0)
    error_count: int = Field(default=0, ge=0)
    refinements_needed: int = Field(default=0, ge=0)


class ModelAggregate(BaseModel):
    """Per-(endpoint, model) rollup inside PoolStats."""

    model_config = ConfigDict(protected_namespaces=())

    model: str
    endpoint: str
    total_slots: int = 0
    busy_slots: int = 0
    avg_latency_ms: float = 0.0
    completed_tasks: int = 0
    total_tokens: int = 0


class Throughput(BaseModel):
    tasks_per_minute: int = 0
    tokens_per_minute: int = 0


class PoolStats(BaseModel):
    total_slots: int = 0
    busy_slots: int = 0
    available_slots: int = 0
    models: list[ModelAggregate] = Field(default_factory=list)
    throughput: Throughput = Field(default_factory=Throughput)
