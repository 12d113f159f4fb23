# src/llm/models.py — v1
"""LLM execution types: Message and LLMResponse."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class Message(BaseModel):
    """Single message in a conversation."""

    role: Literal["user", "assistant", "system"]
    content: str


class LLMResponse(BaseModel):
    """Normalized response from a slot's endpoint."""

    model_config = ConfigDict(protected_namespaces=())

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str
    endpoint: str = ""
    provider: str = "openai-compatible"
    latency_ms: int = 0
    finish_reason: str | None = None
    raw_response: Any = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def hit_length_limit(self) -> bool:
        """The server stopped because it ran out of output tokens."""
        return self.finish_reason == "length"
