# src/llm/adapters/openai_adapter.py — v1
"""OpenAI-compatible executor implementing BaseSlotExecutor.

Uses the official openai SDK against any server that speaks the chat
completions API (LM Studio, vLLM, Ollama /v1, OpenAI itself). One
AsyncOpenAI client is kept per endpoint.
"""

from __future__ import annotations

import time
from typing import Any

from genforge.llm.base_client import BaseSlotExecutor
from genforge.llm.models import LLMResponse, Message
from genforge.pool.models import SlotLease


class OpenAICompatibleExecutor(BaseSlotExecutor):
    """Chat-completions executor keyed by slot endpoint."""

    def __init__(
        self,
        api_key: str = "lm-studio",
        max_tokens: int = 4096,
        temperature: float = 0.2,
        timeout: float = 600.0,
    ):
        self._api_key = api_key
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._timeout = timeout
        self._clients: dict[str, Any] = {}

    def _client(self, endpoint: str) -> Any:
        client = self._clients.get(endpoint)
        if client is None:
            import openai

            client = openai.AsyncOpenAI(
                base_url=endpoint, api_key=self._api_key, timeout=self._timeout
            )
            self._clients[endpoint] = client
        return client

    async def execute(
        self,
        slot: SlotLease,
        prompt: str,
        system: str | None = None,
        history: list[Message] | None = None,
    ) -> LLMResponse:
        oai_messages: list[dict[str, Any]] = []
        if system:
            oai_messages.append({"role": "system", "content": system})
        for m in history or []:
            oai_messages.append({"role": m.role, "content": m.content})
        oai_messages.append({"role": "user", "content": prompt})

        t0 = time.monotonic()
        resp = await self._client(slot.endpoint).chat.completions.create(
            model=slot.model,
            messages=oai_messages,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )
        latency = int((time.monotonic() - t0) * 1000)

        choice = resp.choices[0]
        usage = resp.usage
        return LLMResponse(
            content=choice.message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=slot.model,
            endpoint=slot.endpoint,
            provider=self.provider_name,
            latency_ms=latency,
            finish_reason=choice.finish_reason,
            raw_response=resp,
        )

    @property
    def provider_name(self) -> str:
        return "openai-compatible"

    async def close(self) -> None:
        clients, self._clients = self._clients, {}
        for client in clients.values():
            await client.close()
