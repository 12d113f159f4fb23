# src/pool/discovery.py — v1
"""Model probes: ask an endpoint which models it currently has loaded.

A probe raises on failure; the scheduler records the error per endpoint
and keeps going with the others.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from genforge.pool.models import DiscoveredModel

logger = logging.getLogger(__name__)


class BaseModelProbe(ABC):
    """Lists the models loaded behind one endpoint."""

    @abstractmethod
    def list_models(self, endpoint: str) -> list[DiscoveredModel]:
        """Return loaded models. Raises when the endpoint is unreachable."""


class OpenAIModelProbe(BaseModelProbe):
    """Probe for OpenAI-compatible servers (LM Studio, vLLM, Ollama /v1).

    Calls ``GET {endpoint}/models`` through the openai SDK.
    """

    def __init__(self, api_key: str = "lm-studio", timeout: float = 10.0):
        self._api_key = api_key
        self._timeout = timeout

    def list_models(self, endpoint: str) -> list[DiscoveredModel]:
        import openai

        client = openai.OpenAI(base_url=endpoint, api_key=self._api_key, timeout=self._timeout)
        try:
            page = client.models.list()
            return [
                DiscoveredModel(
                    id=m.id,
                    endpoint=endpoint,
                    object=getattr(m, "object", None) or "model",
                    owned_by=getattr(m, "owned_by", None) or "unknown",
                )
                for m in page
            ]
        finally:
            client.close()


class StaticModelProbe(BaseModelProbe):
    """Fixed roster per endpoint; endpoints marked failing raise ConnectionError."""

    def __init__(self, models: dict[str, list[str]] | None = None):
        self._models: dict[str, list[str]] = {k: list(v) for k, v in (models or {}).items()}
        self._failing: dict[str, str] = {}

    def set_models(self, endpoint: str, models: list[str]) -> None:
        self._models[endpoint] = list(models)
        self._failing.pop(endpoint, None)

    def fail(self, endpoint: str, error: str = "connection refused") -> None:
        self._failing[endpoint] = error

    def list_models(self, endpoint: str) -> list[DiscoveredModel]:
        if endpoint in self._failing:
            raise ConnectionError(self._failing[endpoint])
        return [DiscoveredModel(id=m, endpoint=endpoint) for m in self._models.get(endpoint, [])]
