# src/logging/context.py — v1
"""Contextual logging support — attach pipeline_id, step, slot_id, model to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per build step and per slot lease.
_pipeline_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "pipeline_id", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)
_slot_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "slot_id", default=None
)
_model: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "model", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    pipeline_id: str | None = None
    step: str | None = None
    slot_id: str | None = None
    model: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        pipeline_id=_pipeline_id.get(),
        step=_step.get(),
        slot_id=_slot_id.get(),
        model=_model.get(),
    )


def set_pipeline_context(pipeline_id: str, step: str | None = None) -> None:
    """Set build-level context (called once per pipeline step)."""
    _pipeline_id.set(pipeline_id)
    _step.set(step)


def set_slot_context(slot_id: str | None, model: str | None = None) -> None:
    """Set slot-level context (called when a slot is leased)."""
    _slot_id.set(slot_id)
    _model.set(model)


def clear_context() -> None:
    """Reset all context variables."""
    _pipeline_id.set(None)
    _step.set(None)
    _slot_id.set(None)
    _model.set(None)
