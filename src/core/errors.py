# src/core/errors.py — v1
"""Error taxonomy shared by the scheduler and the build registry.

Routine outcomes are values, not exceptions:
  - NotFound (unknown slot/pipeline/step id) is returned as ``None``.
  - Unavailable (no idle slot) is returned as ``pool.models.NoSlotAvailable``.

Only broken locking or lifecycle discipline in the caller raises.
"""

from __future__ import annotations


class InvariantViolation(RuntimeError):
    """A caller broke a state-machine or exclusivity rule."""


class SlotStateError(InvariantViolation):
    """Slot busy flag is not what the operation requires."""

    def __init__(self, slot_id: str, expected_busy: bool):
        self.slot_id = slot_id
        self.expected_busy = expected_busy
        state = "busy" if expected_busy else "idle"
        super().__init__(f"Slot '{slot_id}' is not {state}")


class StepTransitionError(InvariantViolation):
    """Illegal build step transition (e.g. completing a terminal step)."""

    def __init__(self, step_id: str, current: str, target: str):
        self.step_id = step_id
        self.current = current
        self.target = target
        super().__init__(f"Step '{step_id}' cannot move from '{current}' to '{target}'")


class StaleLeaseError(SlotStateError):
    """Release presented a lease the slot no longer holds (reclaimed in between)."""

    def __init__(self, slot_id: str, lease_id: str):
        self.slot_id = slot_id
        self.expected_busy = True
        self.lease_id = lease_id
        InvariantViolation.__init__(self, f"Slot '{slot_id}' is no longer held by lease '{lease_id}'")
