# src/build/runner.py — v1
"""Build runner — drive a pipeline end to end against the model pool.

For each pending step:
  1. take it from the registry (pending -> building)
  2. acquire a pool slot, polling until the acquire timeout
  3. execute the step prompt with retry
  4. parse the output and extract (repaired) code
  5. complete or fail the step
  6. release the slot with an outcome, which feeds the scorer

A failed step never stops the run; later steps still execute against the
code accumulated so far.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from genforge.build.models import BuildPipeline, NextStep, StepResult, StepSpec
from genforge.core.errors import SlotStateError
from genforge.core.models import SlotRole, TaskType
from genforge.llm.retry import LLMRetryExhausted, RetryConfig, with_retry
from genforge.logging.context import clear_context, set_pipeline_context, set_slot_context
from genforge.pool.models import SlotLease, SlotOutcome

if TYPE_CHECKING:
    from genforge.build.sequential import SequentialBuildRegistry
    from genforge.llm.base_client import BaseSlotExecutor
    from genforge.parser.output_parser import OutputParser
    from genforge.pool.scheduler import ModelPoolScheduler

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are an expert software engineer. Reply with the complete code in a single "
    "fenced code block."
)


@dataclass
class BuildReport:
    """Result of a full build run."""

    pipeline_id: str
    success: bool = True
    steps_completed: int = 0
    steps_failed: int = 0
    step_errors: dict[int, str] = field(default_factory=dict)
    error: str | None = None
    duration_ms: int = 0
    pipeline: BuildPipeline | None = None


class BuildRunner:
    """Execute every step of a pipeline through pool slots.

    Args:
        registry: Pipeline state machine.
        pool: Slot scheduler (wired to the scorer).
        parser: Output parser used to validate each step's raw text.
        executor: Runs a prompt against a leased slot.
        role: Pool role requested for every step.
        task_type: Task type recorded with every outcome.
        acquire_timeout_s: Give up on a step after waiting this long for a slot.
        acquire_poll_s: Sleep between acquire attempts.
        retry_configs: Per-error-type retry budgets for executions.
        system_prompt: System message sent with every step.
    """

    def __init__(
        self,
        registry: SequentialBuildRegistry,
        pool: ModelPoolScheduler,
        parser: OutputParser,
        executor: BaseSlotExecutor,
        role: SlotRole = "builder",
        task_type: TaskType = "generate",
        acquire_timeout_s: float = 30.0,
        acquire_poll_s: float = 0.5,
        retry_configs: dict[str, RetryConfig] | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> None:
        self._registry = registry
        self._pool = pool
        self._parser = parser
        self._executor = executor
        self._role = role
        self._task_type = task_type
        self._acquire_timeout_s = acquire_timeout_s
        self._acquire_poll_s = acquire_poll_s
        self._retry_configs = retry_configs
        self._system_prompt = system_prompt

    async def build(
        self,
        project_id: str,
        prompt: str,
        step_specs: Sequence[StepSpec | dict],
    ) -> BuildReport:
        """Create a pipeline and run it to the end."""
        pipeline = self._registry.create_pipeline(project_id, prompt, step_specs)
        return await self.run(pipeline.id)

    async def run(self, pipeline_id: str) -> BuildReport:
        """Run every pending step of an existing pipeline.

        An unknown pipeline id gives a failed report with error set.
        """
        if self._registry.get_pipeline(pipeline_id) is None:
            logger.warning("Build requested for unknown pipeline %s", pipeline_id)
            return BuildReport(
                pipeline_id=pipeline_id, success=False, error=f"Unknown pipeline: {pipeline_id}"
            )

        start_ns = time.monotonic_ns()
        report = BuildReport(pipeline_id=pipeline_id)

        try:
            while (next_step := self._registry.get_next_step(pipeline_id)) is not None:
                set_pipeline_context(pipeline_id, step=f"step_{next_step.step.step_number}")
                error = await self._run_step(pipeline_id, next_step)
                if error is not None:
                    report.step_errors[next_step.step.step_number] = error
        finally:
            clear_context()

        final = self._registry.get_pipeline(pipeline_id)
        report.pipeline = final
        if final is not None:
            report.steps_completed = final.steps_completed
            report.steps_failed = final.steps_failed
        report.success = report.steps_failed == 0
        report.duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000

        logger.info(
            "Build complete: %s, %d completed, %d failed, %dms",
            pipeline_id, report.steps_completed, report.steps_failed, report.duration_ms,
        )
        return report

    async def _run_step(self, pipeline_id: str, next_step: NextStep) -> str | None:
        """Run one dispatched step. Returns the failure message, if any."""
        step = next_step.step
        lease = await self._acquire(f"step {step.step_number}: {step.description}")
        if lease is None:
            error = f"No {self._role} slot available within {self._acquire_timeout_s:.0f}s"
            self._registry.fail_step(pipeline_id, step.id, error)
            return error

        set_slot_context(lease.slot_id, lease.model)
        outcome = SlotOutcome(task_type=self._task_type, error_count=1)
        try:
            try:
                response = await with_retry(
                    self._executor.execute,
                    lease,
                    self._compose_prompt(next_step),
                    system=self._system_prompt,
                    label=f"{pipeline_id} step {step.step_number}",
                    retry_configs=self._retry_configs,
                )
            except LLMRetryExhausted as exc:
                logger.error("Step %d execution failed: %s", step.step_number, exc)
                self._registry.fail_step(pipeline_id, step.id, str(exc))
                return str(exc)

            parsed = self._parser.parse(response.content)
            code = self._parser.extract_code(parsed)
            quality = parsed.confidence * 100
            problems = len(parsed.invalid_json_blocks) + len(parsed.incomplete_blocks)
            cut_off = parsed.truncation_detected or response.hit_length_limit
            if response.hit_length_limit:
                logger.warning("Step %d reply stopped at the output token limit", step.step_number)
                problems += 1
            outcome = SlotOutcome(
                task_type=self._task_type,
                quality_score=quality if code.strip() else 0.0,
                tests_passed=None,
                duration_ms=response.latency_ms,
                tokens_used=response.total_tokens,
                error_count=problems if code.strip() else problems + 1,
                refinements_needed=0,
            )

            if not code.strip():
                error = "Model returned no usable code"
                self._registry.fail_step(pipeline_id, step.id, error)
                return error

            self._registry.complete_step(
                pipeline_id,
                step.id,
                StepResult(
                    code=code,
                    quality_score=quality,
                    health_passed=not cut_off,
                ),
            )
            return None
        finally:
            try:
                self._pool.release_slot(lease, outcome)
            except SlotStateError as exc:
                logger.warning(
                    "Slot %s was reclaimed before step %d finished: %s",
                    lease.slot_id, step.step_number, exc,
                )

    async def _acquire(self, task: str) -> SlotLease | None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._acquire_timeout_s
        while True:
            result = self._pool.acquire_slot(self._role, task_type=self._task_type, task=task)
            if isinstance(result, SlotLease):
                return result
            if loop.time() >= deadline:
                logger.warning("Timed out waiting for a %s slot", self._role)
                return None
            await asyncio.sleep(self._acquire_poll_s)

    @staticmethod
    def _compose_prompt(next_step: NextStep) -> str:
        if not next_step.context_code:
            return next_step.prompt
        return f"{next_step.prompt}\n\nCurrent code:\n```\n{next_step.context_code}\n```"
