# src/build/sequential.py — v1
"""Sequential build registry: the step state machine behind multi-step builds.

The registry never generates code itself. Callers take a step with
get_next_step(), run it against a pool slot, parse the output, then report
back through complete_step() or fail_step().

Failing a step never halts the pipeline: later pending steps are still
handed out. Once no step is pending or building, the pipeline settles on
"completed" (no failures) or "failed".

Every public method returns a deep copy; the stored pipelines are only
mutated under the registry lock.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from genforge.build.models import (
    BuildPipeline,
    BuildStep,
    NextStep,
    PipelineProgress,
    StepResult,
    StepSpec,
    StepSummary,
)
from genforge.build.prompts import build_step_prompt
from genforge.core.errors import StepTransitionError
from genforge.core.models import TERMINAL_STEP_STATUSES

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SequentialBuildRegistry:
    """In-process registry of build pipelines.

    Args:
        context_separator: Joins completed step codes into accumulated_code.
        clock: Returns the current aware datetime.
    """

    def __init__(
        self,
        context_separator: str = "\n\n",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._separator = context_separator
        self._clock = clock or _utcnow
        self._pipelines: dict[str, BuildPipeline] = {}
        self._lock = threading.Lock()

    # --- Lifecycle ---

    def create_pipeline(
        self,
        project_id: str,
        prompt: str,
        step_specs: Sequence[StepSpec | dict],
    ) -> BuildPipeline:
        """Create a pipeline with every step pending. An empty step list is valid."""
        specs = [s if isinstance(s, StepSpec) else StepSpec.model_validate(s) for s in step_specs]
        steps = [
            BuildStep(
                id=f"step_{i + 1}_{uuid.uuid4().hex[:6]}",
                step_number=i + 1,
                description=spec.description,
                prompt=spec.prompt,
                category=spec.category,
            )
            for i, spec in enumerate(specs)
        ]
        pipeline = BuildPipeline(
            id=f"pipeline_{uuid.uuid4().hex}",
            project_id=project_id,
            original_prompt=prompt,
            steps=steps,
            started_at=self._clock(),
        )
        with self._lock:
            self._pipelines[pipeline.id] = pipeline
            snapshot = pipeline.model_copy(deep=True)

        logger.info(
            "Build pipeline created: %s (project=%s, steps=%d)",
            pipeline.id, project_id, len(steps),
        )
        return snapshot

    def get_next_step(self, pipeline_id: str) -> NextStep | None:
        """Take the first pending step and flip it to building.

        Returns:
            The step, its rendered prompt and the accumulated code so far;
            None when nothing is pending or the pipeline is unknown.
        """
        with self._lock:
            pipeline = self._pipelines.get(pipeline_id)
            if pipeline is None:
                return None
            step = next((s for s in pipeline.steps if s.status == "pending"), None)
            if step is None:
                return None

            step.status = "building"
            step.started_at = self._clock()
            pipeline.status = "running"
            pipeline.current_step = step.step_number

            result = NextStep(
                step=step.model_copy(deep=True),
                prompt=build_step_prompt(step, pipeline),
                context_code=pipeline.accumulated_code,
            )

        logger.info("Build step dispatched: %s step %d", pipeline_id, result.step.step_number)
        return result

    def complete_step(
        self,
        pipeline_id: str,
        step_id: str,
        result: StepResult | dict,
    ) -> BuildPipeline | None:
        """Mark a building step completed and append its code to the context.

        result may be a StepResult or a plain {code, quality_score,
        health_passed} mapping.

        Raises:
            StepTransitionError: If the step is not building.
        """
        if not isinstance(result, StepResult):
            result = StepResult.model_validate(result)
        with self._lock:
            pipeline = self._pipelines.get(pipeline_id)
            step = pipeline.find_step(step_id) if pipeline is not None else None
            if pipeline is None or step is None:
                return None
            if step.status != "building":
                raise StepTransitionError(step_id, step.status, "completed")

            step.status = "completed"
            step.code = result.code
            step.quality_score = result.quality_score
            step.health_passed = result.health_passed
            step.completed_at = self._clock()

            pipeline.steps_completed += 1
            pipeline.accumulated_code = self._separator.join(
                s.code or "" for s in pipeline.steps if s.status == "completed"
            )
            self._settle_locked(pipeline)
            snapshot = pipeline.model_copy(deep=True)

        logger.info(
            "Build step completed: %s step %d (quality=%.1f)",
            pipeline_id, step.step_number, result.quality_score,
        )
        return snapshot

    def fail_step(self, pipeline_id: str, step_id: str, error: str) -> BuildPipeline | None:
        """Mark a pending or building step failed. Remaining steps stay pending.

        Raises:
            StepTransitionError: If the step is already terminal.
        """
        with self._lock:
            pipeline = self._pipelines.get(pipeline_id)
            step = pipeline.find_step(step_id) if pipeline is not None else None
            if pipeline is None or step is None:
                return None
            if step.status in TERMINAL_STEP_STATUSES:
                raise StepTransitionError(step_id, step.status, "failed")

            step.status = "failed"
            step.error = error
            step.completed_at = self._clock()
            pipeline.steps_failed += 1
            self._settle_locked(pipeline)
            snapshot = pipeline.model_copy(deep=True)

        logger.warning("Build step failed: %s step %d: %s", pipeline_id, step.step_number, error)
        return snapshot

    def _settle_locked(self, pipeline: BuildPipeline) -> None:
        if any(s.status in ("pending", "building") for s in pipeline.steps):
            return
        pipeline.status = "failed" if pipeline.steps_failed else "completed"
        pipeline.completed_at = self._clock()
        logger.info(
            "Build pipeline %s %s (completed=%d, failed=%d)",
            pipeline.id, pipeline.status, pipeline.steps_completed, pipeline.steps_failed,
        )

    # --- Queries ---

    def get_pipeline(self, pipeline_id: str) -> BuildPipeline | None:
        with self._lock:
            pipeline = self._pipelines.get(pipeline_id)
            return pipeline.model_copy(deep=True) if pipeline is not None else None

    def get_pipeline_for_project(self, project_id: str) -> BuildPipeline | None:
        """Most recently created idle or running pipeline for a project."""
        with self._lock:
            for pipeline in reversed(list(self._pipelines.values())):
                if pipeline.project_id == project_id and pipeline.status in ("idle", "running"):
                    return pipeline.model_copy(deep=True)
        return None

    def get_progress(self, pipeline_id: str) -> PipelineProgress | None:
        with self._lock:
            pipeline = self._pipelines.get(pipeline_id)
            if pipeline is None:
                return None
            building = next((s for s in pipeline.steps if s.status == "building"), None)
            total = len(pipeline.steps)
            return PipelineProgress(
                pipeline_id=pipeline.id,
                status=pipeline.status,
                total_steps=total,
                completed_steps=pipeline.steps_completed,
                failed_steps=pipeline.steps_failed,
                current_step=pipeline.current_step,
                current_step_description=building.description if building else "N/A",
                completion_percentage=round(pipeline.steps_completed / total * 100) if total else 0,
                steps=[
                    StepSummary(
                        step_number=s.step_number,
                        description=s.description,
                        status=s.status,
                        quality_score=s.quality_score,
                    )
                    for s in pipeline.steps
                ],
            )

    def list_pipelines(self) -> list[BuildPipeline]:
        with self._lock:
            return [p.model_copy(deep=True) for p in self._pipelines.values()]

    def discard_pipeline(self, pipeline_id: str) -> bool:
        with self._lock:
            removed = self._pipelines.pop(pipeline_id, None) is not None
        if removed:
            logger.info("Build pipeline discarded: %s", pipeline_id)
        return removed

    def close(self) -> None:
        with self._lock:
            self._pipelines.clear()
        logger.info("Build registry closed")
