# tests/unit/build/test_prompts.py — v1
"""Tests for build/prompts.py."""

from __future__ import annotations

from genforge.build.models import BuildPipeline, BuildStep
from genforge.build.prompts import INCREMENTAL_INSTRUCTIONS, build_step_prompt


def _pipeline(statuses, accumulated="", qualities=None):
    qualities = qualities or {}
    steps = [
        BuildStep(
            id=f"s{i + 1}",
            step_number=i + 1,
            description=f"Feature {i + 1}",
            prompt=f"Implement feature {i + 1}" if i != 2 else "",
            status=status,
            quality_score=qualities.get(i + 1),
        )
        for i, status in enumerate(statuses)
    ]
    return BuildPipeline(id="p", project_id="proj", original_prompt="app", steps=steps,
                         accumulated_code=accumulated)


class TestBuildStepPrompt:
    def test_first_step(self):
        pipeline = _pipeline(["building", "pending", "pending"])
        prompt = build_step_prompt(pipeline.steps[0], pipeline)
        assert prompt.startswith("## Build Step 1 of 3: Feature 1\n")
        assert INCREMENTAL_INSTRUCTIONS not in prompt
        assert "Previously completed steps:" not in prompt
        assert "Upcoming steps (do NOT implement these yet):\n- Step 2: Feature 2\n- Step 3: Feature 3" in prompt
        assert prompt.endswith("Current task: Implement feature 1")

    def test_middle_step_with_context(self):
        pipeline = _pipeline(["completed", "building", "pending"], accumulated="code", qualities={1: 85.0})
        prompt = build_step_prompt(pipeline.steps[1], pipeline)
        assert INCREMENTAL_INSTRUCTIONS in prompt
        assert "Return ONLY the new code" in prompt
        assert "Do not repeat the existing code" in prompt
        assert "- Step 1: Feature 1 (quality: 85)" in prompt
        assert "- Step 3: Feature 3" in prompt
        assert "- Step 2" not in prompt

    def test_missing_quality_shown_as_na(self):
        pipeline = _pipeline(["completed", "building", "pending"], accumulated="code")
        assert "(quality: N/A)" in build_step_prompt(pipeline.steps[1], pipeline)

    def test_failed_steps_not_listed(self):
        pipeline = _pipeline(["failed", "building", "pending"])
        prompt = build_step_prompt(pipeline.steps[1], pipeline)
        assert "Feature 1" not in prompt
        assert INCREMENTAL_INSTRUCTIONS not in prompt

    def test_last_step_falls_back_to_description(self):
        pipeline = _pipeline(["completed", "completed", "building"], accumulated="code")
        prompt = build_step_prompt(pipeline.steps[2], pipeline)
        assert "Upcoming steps" not in prompt
        assert prompt.endswith("Current task: Feature 3")
