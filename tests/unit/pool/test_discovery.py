# tests/unit/pool/test_discovery.py — v1
"""Tests for pool/discovery.py."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from genforge.pool.discovery import OpenAIModelProbe, StaticModelProbe

ENDPOINT = "http://gpu-a:1234/v1"


class TestOpenAIModelProbe:
    @patch("openai.OpenAI")
    def test_lists_models(self, mock_cls):
        client = MagicMock()
        client.models.list.return_value = [
            SimpleNamespace(id="qwen2.5-coder-7b", object="model", owned_by="organization_owner"),
            SimpleNamespace(id="llama-3.1-8b", object=None, owned_by=None),
        ]
        mock_cls.return_value = client

        models = OpenAIModelProbe(api_key="k", timeout=5.0).list_models(ENDPOINT)

        mock_cls.assert_called_once_with(base_url=ENDPOINT, api_key="k", timeout=5.0)
        assert [m.id for m in models] == ["qwen2.5-coder-7b", "llama-3.1-8b"]
        assert models[0].owned_by == "organization_owner"
        assert models[1].object == "model"
        assert models[1].owned_by == "unknown"
        assert all(m.endpoint == ENDPOINT for m in models)
        client.close.assert_called_once()

    @patch("openai.OpenAI")
    def test_error_propagates_and_closes(self, mock_cls):
        client = MagicMock()
        client.models.list.side_effect = ConnectionError("refused")
        mock_cls.return_value = client

        with pytest.raises(ConnectionError):
            OpenAIModelProbe().list_models(ENDPOINT)
        client.close.assert_called_once()


class TestStaticModelProbe:
    def test_roster(self):
        probe = StaticModelProbe({ENDPOINT: ["a", "b"]})
        assert [m.id for m in probe.list_models(ENDPOINT)] == ["a", "b"]
        assert probe.list_models("http://other/v1") == []

    def test_fail_and_recover(self):
        probe = StaticModelProbe({ENDPOINT: ["a"]})
        probe.fail(ENDPOINT, "boom")
        with pytest.raises(ConnectionError, match="boom"):
            probe.list_models(ENDPOINT)
        probe.set_models(ENDPOINT, ["c"])
        assert [m.id for m in probe.list_models(ENDPOINT)] == ["c"]
