# src/llm/base_client.py — v1
"""Abstract executor that runs one prompt against one leased pool slot."""

from __future__ import annotations

from abc import ABC, abstractmethod

from genforge.llm.models import LLMResponse, Message
from genforge.pool.models import SlotLease


class BaseSlotExecutor(ABC):
    """Runs prompts against the endpoint/model a SlotLease points at."""

    @abstractmethod
    async def execute(
        self,
        slot: SlotLease,
        prompt: str,
        system: str | None = None,
        history: list[Message] | None = None,
    ) -> LLMResponse:
        """Send prompt to slot.model at slot.endpoint and return the raw text."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier."""

    async def close(self) -> None:
        """Release any pooled connections."""
