# src/build/prompts.py — v1
"""Prompt assembly for one build step.

Layout:
  ## Build Step N of M: <description>
  incremental-build instructions (only when earlier code exists)
  previously completed steps with their quality
  upcoming steps, flagged as not-yet
  Current task: <step prompt>
"""

from __future__ import annotations

from genforge.build.models import BuildPipeline, BuildStep

INCREMENTAL_INSTRUCTIONS = (
    "You are building incrementally on existing code. The current code is provided as context.\n"
    "IMPORTANT: Return ONLY the new code for this step. Do not repeat the existing code;\n"
    "it is kept as is and your reply is appended after it.\n"
    "Build on existing names and functionality instead of redefining them."
)


def _format_quality(score: float | None) -> str:
    if score is None:
        return "N/A"
    return f"{score:g}"


def build_step_prompt(step: BuildStep, pipeline: BuildPipeline) -> str:
    """Render the prompt for step in the context of its pipeline."""
    parts: list[str] = [
        f"## Build Step {step.step_number} of {len(pipeline.steps)}: {step.description}",
        "",
    ]

    if pipeline.accumulated_code:
        parts.extend([INCREMENTAL_INSTRUCTIONS, ""])

    completed = [s for s in pipeline.steps if s.status == "completed"]
    if completed:
        parts.append("Previously completed steps:")
        parts.extend(
            f"- Step {s.step_number}: {s.description} (quality: {_format_quality(s.quality_score)})"
            for s in completed
        )
        parts.append("")

    upcoming = [s for s in pipeline.steps if s.status == "pending" and s.id != step.id]
    if upcoming:
        parts.append("Upcoming steps (do NOT implement these yet):")
        parts.extend(f"- Step {s.step_number}: {s.description}" for s in upcoming)
        parts.append("")

    parts.append(f"Current task: {step.prompt or step.description}")
    return "\n".join(parts)
