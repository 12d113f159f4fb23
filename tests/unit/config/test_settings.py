# tests/unit/config/test_settings.py — v1
"""Tests for config/settings.py — typed Settings and validation rules."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from genforge.config.settings import ConfigurationError, Settings, load_settings


class TestSettingsDefaults:
    def test_default_pool(self):
        s = Settings(_env_file=None)
        assert s.pool_endpoints_list == ["http://localhost:1234/v1"]
        assert s.pool_max_slots_per_model == 3
        assert s.pool_slot_timeout_s == 600.0

    def test_default_scorer_weights(self):
        s = Settings(_env_file=None)
        assert s.scorer_w_quality == 0.35
        assert s.scorer_w_success == 0.25
        assert s.scorer_decay_rate == 0.1
        assert s.scorer_confidence_saturation == 10

    def test_default_parser(self):
        s = Settings(_env_file=None)
        assert s.parser_max_output_length == 50_000
        assert s.parser_clean_artifacts is True

    def test_default_build(self):
        s = Settings(_env_file=None)
        assert s.build_context_separator == "\n\n"
        assert s.build_default_role == "builder"


class TestSettingsValidation:
    def test_weights_must_sum_to_one(self):
        with pytest.raises(ConfigurationError, match="sum to 1.0"):
            Settings(_env_file=None, scorer_w_quality=0.5)

    def test_negative_weight(self):
        with pytest.raises(ConfigurationError, match="non-negative"):
            Settings(
                _env_file=None,
                scorer_w_quality=0.6,
                scorer_w_refinement=-0.15,
            )

    def test_negative_decay_rate(self):
        with pytest.raises(ConfigurationError, match="DECAY_RATE"):
            Settings(_env_file=None, scorer_decay_rate=-1.0)

    def test_zero_poll_interval(self):
        with pytest.raises(ConfigurationError, match="POLL"):
            Settings(_env_file=None, build_acquire_poll_s=0)

    def test_empty_endpoints(self):
        with pytest.raises(ConfigurationError, match="POOL_ENDPOINTS"):
            Settings(_env_file=None, pool_endpoints=" , ")

    def test_errors_are_joined(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(_env_file=None, scorer_decay_rate=-1.0, build_acquire_poll_s=0)
        assert "DECAY_RATE" in str(exc_info.value)
        assert "POLL" in str(exc_info.value)

    def test_max_slots_range(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, pool_max_slots_per_model=11)
        with pytest.raises(ValidationError):
            Settings(_env_file=None, pool_max_slots_per_model=0)

    def test_capacity_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, scorer_outcome_capacity=0)


class TestHelpers:
    def test_endpoints_list_strips(self):
        s = Settings(_env_file=None, pool_endpoints=" http://a/v1 , http://b/v1 ,")
        assert s.pool_endpoints_list == ["http://a/v1", "http://b/v1"]

    def test_load_settings_overrides(self):
        s = load_settings(_env_file=None, pool_max_slots_per_model=5)
        assert s.pool_max_slots_per_model == 5

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("POOL_ENDPOINTS", "http://env-host:8000/v1")
        s = Settings(_env_file=None)
        assert s.pool_endpoints_list == ["http://env-host:8000/v1"]
