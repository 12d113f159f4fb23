# tests/unit/logging/test_context.py — v1
"""Tests for logging/context.py — contextual logging variables."""

from __future__ import annotations

from genforge.logging.context import (
    clear_context,
    get_context,
    set_pipeline_context,
    set_slot_context,
)


class TestLogContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_initial_state(self):
        ctx = get_context()
        assert ctx.pipeline_id is None
        assert ctx.slot_id is None

    def test_set_pipeline_context(self):
        set_pipeline_context("pipeline_1", "step_1")
        ctx = get_context()
        assert ctx.pipeline_id == "pipeline_1"
        assert ctx.step == "step_1"

    def test_set_slot_context(self):
        set_slot_context("ep::m::1", "m")
        ctx = get_context()
        assert ctx.slot_id == "ep::m::1"
        assert ctx.model == "m"

    def test_as_dict_filters_none(self):
        set_pipeline_context("pipeline_1")
        d = get_context().as_dict()
        assert d == {"pipeline_id": "pipeline_1"}

    def test_clear(self):
        set_pipeline_context("pipeline_1", "step_1")
        set_slot_context("s", "m")
        clear_context()
        assert get_context().as_dict() == {}
