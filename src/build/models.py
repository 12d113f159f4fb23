# src/build/models.py — v1
"""Sequential build types: pipelines, steps, step results and progress views."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from genforge.core.models import PipelineStatus, StepStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepSpec(BaseModel):
    """Caller-supplied description of one step, before it becomes a BuildStep."""

    description: str
    prompt: str = ""
    category: str = "general"


class BuildStep(BaseModel):
    """One step. pending -> building -> completed | failed; pending -> failed."""

    id: str
    step_number: int = Field(ge=1)
    description: str
    prompt: str = ""
    category: str = "general"
    status: StepStatus = "pending"
    code: str | None = None
    quality_score: float | None = None
    health_passed: bool | None = None
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


class BuildPipeline(BaseModel):
    """One multi-step build run.

    accumulated_code is the separator-joined code of completed steps, in
    step order. Failed steps contribute nothing.
    """

    id: str
    project_id: str
    original_prompt: str
    steps: list[BuildStep] = Field(default_factory=list)
    status: PipelineStatus = "idle"
    current_step: int = 0
    accumulated_code: str = ""
    steps_completed: int = 0
    steps_failed: int = 0
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = None

    def find_step(self, step_id: str) -> BuildStep | None:
        return next((s for s in self.steps if s.id == step_id), None)


class StepResult(BaseModel):
    """Validated output attached to a completed step."""

    code: str
    quality_score: float = Field(default=0.0, ge=0.0, le=100.0)
    health_passed: bool = True


class NextStep(BaseModel):
    """Step handed out by get_next_step(), with its prompt and context."""

    step: BuildStep
    prompt: str
    context_code: str


class StepSummary(BaseModel):
    step_number: int
    description: str
    status: StepStatus
    quality_score: float | None = None


class PipelineProgress(BaseModel):
    pipeline_id: str
    status: PipelineStatus
    total_steps: int
    completed_steps: int
    failed_steps: int
    current_step: int
    current_step_description: str = "N/A"
    completion_percentage: int = 0
    steps: list[StepSummary] = Field(default_factory=list)
