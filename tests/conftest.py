# tests/conftest.py — v1
"""Shared test fixtures for all unit tests.

Provides a controllable clock, a static model probe, wired core services
and a scripted slot executor. No network access; all I/O is faked.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from genforge.build.sequential import SequentialBuildRegistry
from genforge.config.settings import Settings
from genforge.config.tiers import TierTable
from genforge.llm.base_client import BaseSlotExecutor
from genforge.llm.models import LLMResponse, Message
from genforge.parser.output_parser import OutputParser
from genforge.pool.discovery import StaticModelProbe
from genforge.pool.models import SlotLease
from genforge.pool.scheduler import ModelPoolScheduler
from genforge.scoring.scorer import OutcomeScorer

ENDPOINT_A = "http://gpu-a:1234/v1"
ENDPOINT_B = "http://gpu-b:1234/v1"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class ScriptedExecutor(BaseSlotExecutor):
    """Returns queued replies in order.

    Strings become the reply content. LLMResponse entries are returned
    unchanged and Exception entries are raised.
    """

    def __init__(self, replies: list[str | LLMResponse | Exception] | None = None):
        self.replies = list(replies or [])
        self.calls: list[tuple[SlotLease, str]] = []

    async def execute(
        self,
        slot: SlotLease,
        prompt: str,
        system: str | None = None,
        history: list[Message] | None = None,
    ) -> LLMResponse:
        self.calls.append((slot, prompt))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, LLMResponse):
            return reply
        return LLMResponse(
            content=reply,
            input_tokens=100,
            output_tokens=50,
            model=slot.model,
            endpoint=slot.endpoint,
            latency_ms=1200,
        )

    @property
    def provider_name(self) -> str:
        return "scripted"


# === FIXTURES: Core services ===


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, pool_endpoints=f"{ENDPOINT_A},{ENDPOINT_B}")


@pytest.fixture
def probe() -> StaticModelProbe:
    return StaticModelProbe({
        ENDPOINT_A: ["qwen2.5-coder-7b", "qwen2.5-coder-32b"],
        ENDPOINT_B: ["llama-3.1-8b"],
    })


@pytest.fixture
def scorer(clock: FakeClock) -> OutcomeScorer:
    return OutcomeScorer(clock=clock)


@pytest.fixture
def pool(probe: StaticModelProbe, scorer: OutcomeScorer, clock: FakeClock) -> ModelPoolScheduler:
    return ModelPoolScheduler(
        endpoints=[ENDPOINT_A, ENDPOINT_B],
        probe=probe,
        scorer=scorer,
        tier_table=TierTable(),
        max_slots_per_model=2,
        clock=clock,
    )


@pytest.fixture
def parser() -> OutputParser:
    return OutputParser()


@pytest.fixture
def registry(clock: FakeClock) -> SequentialBuildRegistry:
    return SequentialBuildRegistry(clock=clock)


@pytest.fixture
def three_steps() -> list[dict]:
    return [
        {"description": "Scaffold the app shell", "prompt": "Create App component", "category": "setup"},
        {"description": "Add todo list", "prompt": "Render a list of todos", "category": "feature"},
        {"description": "Add persistence", "prompt": "Save todos to localStorage", "category": "feature"},
    ]


@pytest.fixture
def make_executor() -> type[ScriptedExecutor]:
    """Factory: make_executor(["```js\\n...\\n```", TimeoutError()])."""
    return ScriptedExecutor
