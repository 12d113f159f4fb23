# tests/unit/build/test_runner.py — v1
"""Tests for build/runner.py — end-to-end builds against a faked pool."""

from __future__ import annotations

import pytest

from genforge.build.runner import BuildRunner
from genforge.llm.models import LLMResponse
from genforge.llm.retry import RetryConfig
from genforge.logging.context import get_context

SMALL = "qwen2.5-coder-7b"


def _fenced(code: str) -> str:
    return f"```js\n{code}\n```"


def _runner(registry, pool, parser, executor, **kw):
    kw.setdefault("retry_configs", {})
    kw.setdefault("acquire_timeout_s", 0.0)
    return BuildRunner(registry, pool, parser, executor, **kw)


class TestBuild:
    @pytest.mark.asyncio
    async def test_all_steps_complete(self, registry, pool, parser, scorer, three_steps, make_executor):
        pool.discover()
        executor = make_executor([_fenced("const a = 1;"), _fenced("const b = 2;"), _fenced("const c = 3;")])

        report = await _runner(registry, pool, parser, executor).build("proj", "Build todo app", three_steps)

        assert report.success
        assert report.steps_completed == 3
        assert report.steps_failed == 0
        assert report.step_errors == {}
        assert report.pipeline.status == "completed"
        assert report.pipeline.accumulated_code == "const a = 1;\n\nconst b = 2;\n\nconst c = 3;"
        assert report.pipeline.steps[0].quality_score == pytest.approx(100.0)
        assert report.pipeline.steps[0].health_passed is True

        assert pool.stats().busy_slots == 0
        assert scorer.get_score("generate", SMALL).sample_count == 3

    @pytest.mark.asyncio
    async def test_context_passed_to_later_steps(self, registry, pool, parser, three_steps, make_executor):
        pool.discover()
        executor = make_executor([_fenced("const a = 1;"), _fenced("const b = 2;"), _fenced("const c = 3;")])

        await _runner(registry, pool, parser, executor).build("proj", "app", three_steps)

        first_prompt = executor.calls[0][1]
        second_prompt = executor.calls[1][1]
        assert "Current code:" not in first_prompt
        assert first_prompt.startswith("## Build Step 1 of 3")
        assert second_prompt.endswith("Current code:\n```\nconst a = 1;\n```")

    @pytest.mark.asyncio
    async def test_failed_step_does_not_stop_run(self, registry, pool, parser, scorer, three_steps, make_executor):
        pool.discover()
        executor = make_executor([_fenced("const a = 1;"), ValueError("bad request"), _fenced("const c = 3;")])

        report = await _runner(registry, pool, parser, executor).build("proj", "app", three_steps)

        assert not report.success
        assert report.steps_completed == 2
        assert report.steps_failed == 1
        assert list(report.step_errors) == [2]
        assert "bad request" in report.step_errors[2]
        assert report.pipeline.status == "failed"
        assert report.pipeline.accumulated_code == "const a = 1;\n\nconst c = 3;"
        assert executor.calls[2][1].endswith("```\nconst a = 1;\n```")
        assert pool.stats().busy_slots == 0

    @pytest.mark.asyncio
    async def test_failed_execution_recorded_as_error(self, registry, pool, parser, scorer, make_executor):
        pool.discover()
        executor = make_executor([ValueError("bad request")])

        await _runner(registry, pool, parser, executor).build("proj", "app", [{"description": "only"}])

        score = scorer.get_score("generate", SMALL)
        assert score.quality_avg == 0.0
        assert score.error_rate == pytest.approx(0.1)

    @pytest.mark.asyncio
    async def test_retry_then_success(self, registry, pool, parser, make_executor):
        pool.discover()
        executor = make_executor([ConnectionError("connection refused"), _fenced("const a = 1;")])
        runner = _runner(
            registry, pool, parser, executor,
            retry_configs={"connection": RetryConfig(max_retries=1, base_delay_s=0.0, jitter=False)},
        )

        report = await runner.build("proj", "app", [{"description": "only"}])

        assert report.success
        assert len(executor.calls) == 2

    @pytest.mark.asyncio
    async def test_empty_reply_fails_step(self, registry, pool, parser, make_executor):
        pool.discover()
        executor = make_executor(["   "])

        report = await _runner(registry, pool, parser, executor).build("proj", "app", [{"description": "only"}])

        assert report.step_errors == {1: "Model returned no usable code"}
        assert pool.stats().busy_slots == 0

    @pytest.mark.asyncio
    async def test_truncated_reply_repaired(self, registry, pool, parser, make_executor):
        pool.discover()
        executor = make_executor(["```js\nconst a = [1, 2\n"])

        report = await _runner(registry, pool, parser, executor).build("proj", "app", [{"description": "only"}])

        step = report.pipeline.steps[0]
        assert step.status == "completed"
        assert step.code == "const a = [1, 2]"
        assert step.health_passed is False
        assert step.quality_score == pytest.approx(55.0)

    @pytest.mark.asyncio
    async def test_no_slot_fails_every_step(self, registry, pool, parser, three_steps, make_executor):
        executor = make_executor([])

        report = await _runner(registry, pool, parser, executor).build("proj", "app", three_steps)

        assert report.steps_failed == 3
        assert report.step_errors[1] == "No builder slot available within 0s"
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_empty_pipeline(self, registry, pool, parser, make_executor):
        pool.discover()
        report = await _runner(registry, pool, parser, make_executor([])).build("proj", "app", [])
        assert report.success
        assert report.steps_completed == 0
        assert report.pipeline.status == "idle"

    @pytest.mark.asyncio
    async def test_unknown_pipeline(self, registry, pool, parser, make_executor):
        executor = make_executor([])
        report = await _runner(registry, pool, parser, executor).run("pipeline_nope")
        assert not report.success
        assert report.error == "Unknown pipeline: pipeline_nope"
        assert report.pipeline is None
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_log_context_cleared(self, registry, pool, parser, make_executor):
        pool.discover()
        executor = make_executor([_fenced("const a = 1;")])
        await _runner(registry, pool, parser, executor).build("proj", "app", [{"description": "only"}])
        assert get_context().as_dict() == {}

    @pytest.mark.asyncio
    async def test_pinned_role_used(self, registry, pool, parser, make_executor):
        pool.discover()
        pool.set_role("llama-3.1-8b", "builder")
        executor = make_executor([_fenced("const a = 1;")])
        await _runner(registry, pool, parser, executor).build("proj", "app", [{"description": "only"}])
        assert executor.calls[0][0].model == "llama-3.1-8b"
        assert executor.calls[0][0].role == "builder"

    @pytest.mark.asyncio
    async def test_earlier_code_sent_once(self, registry, pool, parser, three_steps, make_executor):
        pool.discover()
        executor = make_executor([
            _fenced("const App = () => null;"),
            _fenced("const todos = [];"),
            _fenced("localStorage.setItem('todos', '[]');"),
        ])

        report = await _runner(registry, pool, parser, executor).build("proj", "app", three_steps)

        second_prompt = executor.calls[1][1]
        third_prompt = executor.calls[2][1]
        assert "Return ONLY the new code" in second_prompt
        assert "COMPLETE" not in second_prompt
        assert third_prompt.count("const App") == 1
        assert third_prompt.endswith("```\nconst App = () => null;\n\nconst todos = [];\n```")
        assert report.pipeline.accumulated_code.count("const App") == 1

    @pytest.mark.asyncio
    async def test_length_limit_marks_step_unhealthy(self, registry, pool, parser, scorer, make_executor):
        pool.discover()
        executor = make_executor([
            LLMResponse(content=_fenced("const a = 1;"), model=SMALL, finish_reason="length"),
        ])

        report = await _runner(registry, pool, parser, executor).build("proj", "app", [{"description": "only"}])

        step = report.pipeline.steps[0]
        assert step.status == "completed"
        assert step.health_passed is False
        assert scorer.get_score("generate", SMALL).error_rate == pytest.approx(0.1)


class TestStaleLease:
    @pytest.mark.asyncio
    async def test_reclaimed_slot_release_does_not_abort_run(
        self, registry, pool, parser, three_steps, make_executor
    ):
        pool.discover()
        pool.set_max_slots_per_model(1)
        stolen = []

        class ReclaimDuringFirstStep(make_executor):
            async def execute(self, slot, prompt, system=None, history=None):
                if not stolen:
                    pool.reclaim_stale_slots(timeout_s=-1)
                    stolen.append(pool.acquire_slot(preferred_model=slot.model))
                return await super().execute(slot, prompt, system, history)

        executor = ReclaimDuringFirstStep(
            [_fenced("const a = 1;"), _fenced("const b = 2;"), _fenced("const c = 3;")]
        )

        report = await _runner(registry, pool, parser, executor).build("proj", "app", three_steps)

        assert report.success
        assert report.steps_completed == 3
        first_lease = executor.calls[0][0]
        assert stolen[0].slot_id == first_lease.slot_id
        assert pool.get_slot(stolen[0].slot_id).busy
        assert all(lease.slot_id != stolen[0].slot_id for lease, _ in executor.calls[1:])
        assert pool.get_slot(first_lease.slot_id).completed_tasks == 0
