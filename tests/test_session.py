"""Tests for the parameter state and mode transitions."""

from __future__ import annotations

import json
import math

import pytest

from trait_explorer.session import (
    DataDefaults,
    Mode,
    SessionState,
    derive_defaults,
    effective_slope,
    reset,
    set_mode,
    sigmoid_params,
    update_param,
)

DEFAULTS = DataDefaults(slope=1 / 0.8, shift=1.5, trait_std=0.8)


class TestModeTransitions:
    def test_constrained_resets_slope_and_shift(self):
        state = SessionState(slope=5.0, shift=2.0, mode=Mode.FREE)
        constrained = set_mode(state, "constrained", DEFAULTS)
        assert constrained.mode is Mode.CONSTRAINED
        assert constrained.slope == pytest.approx(1.25)
        assert constrained.shift == pytest.approx(1.5)

    def test_back_to_free_keeps_values(self):
        state = set_mode(SessionState(slope=5.0, shift=2.0), Mode.CONSTRAINED, DEFAULTS)
        free = set_mode(state, "free", DEFAULTS)
        assert free.mode is Mode.FREE
        assert free.slope == pytest.approx(1.25)
        assert free.shift == pytest.approx(1.5)

    def test_retrigger_is_idempotent(self):
        once = set_mode(SessionState(), "constrained", DEFAULTS)
        moved = update_param(once, "slope", 40.0)
        twice = set_mode(moved, "constrained", DEFAULTS)
        assert twice == once

    def test_unknown_mode_keeps_current(self):
        state = SessionState(mode=Mode.CONSTRAINED)
        assert set_mode(state, "sideways", DEFAULTS).mode is Mode.CONSTRAINED

    def test_shift_outside_slider_range_is_kept(self):
        defaults = DataDefaults(slope=1.0, shift=14.2, trait_std=1.0)
        assert set_mode(SessionState(), "constrained", defaults).shift == pytest.approx(14.2)


class TestUpdateParam:
    def test_sets_value(self):
        assert update_param(SessionState(), "start", 0.25).start == pytest.approx(0.25)

    def test_shift_read_only_when_constrained(self):
        state = set_mode(SessionState(), "constrained", DEFAULTS)
        assert update_param(state, "shift", 7.0).shift == pytest.approx(1.5)

    def test_shift_editable_when_free(self):
        assert update_param(SessionState(), "shift", 7.0).shift == pytest.approx(7.0)

    def test_garbage_value_keeps_state(self):
        state = SessionState()
        assert update_param(state, "slope", "abc") is state
        assert update_param(state, "slope", None) is state

    def test_unknown_param_raises(self):
        with pytest.raises(KeyError):
            update_param(SessionState(), "gain", 1.0)

    def test_no_clamping(self):
        assert update_param(SessionState(), "slope", 250.0).slope == pytest.approx(250.0)


class TestEffectiveSlope:
    def test_free_ignores_factor(self):
        state = SessionState(slope=3.0, slope_factor=4.0, mode=Mode.FREE)
        assert effective_slope(state) == pytest.approx(3.0)

    def test_constrained_multiplies_factor(self):
        state = SessionState(slope=3.0, slope_factor=4.0, mode=Mode.CONSTRAINED)
        assert effective_slope(state) == pytest.approx(12.0)

    def test_unit_factor_is_identity(self):
        state = SessionState(slope=1.25, slope_factor=1.0, mode=Mode.CONSTRAINED)
        assert effective_slope(state) == 1.25

    def test_sigmoid_params_use_effective_slope(self):
        state = SessionState(start=0.2, end=0.7, slope=2.0, shift=1.0, slope_factor=2.5, mode=Mode.CONSTRAINED)
        params = sigmoid_params(state)
        assert (params.start, params.end, params.slope, params.shift) == (0.2, 0.7, 5.0, 1.0)


class TestDefaultsAndSerialization:
    def test_derive_defaults_uses_sample_std(self):
        defaults = derive_defaults([1.0, 2.0, 3.0], root_value=2.5)
        assert defaults.trait_std == pytest.approx(1.0)
        assert defaults.slope == pytest.approx(1.0)
        assert defaults.shift == pytest.approx(2.5)

    def test_derive_defaults_skips_missing(self):
        defaults = derive_defaults([1.0, math.nan, 3.0], root_value=0.0)
        assert defaults.trait_std == pytest.approx(math.sqrt(2.0))

    def test_round_trip_dict(self):
        state = SessionState(start=0.1, end=0.8, slope=4.0, shift=-1.0, mode=Mode.CONSTRAINED, slope_factor=2.0)
        data = state.to_dict()
        assert data["mode"] == "constrained"
        assert SessionState.from_dict(data) == state

    def test_non_finite_survives_json_round_trip(self):
        state = SessionState(slope=math.inf, shift=-math.inf, start=math.nan, mode=Mode.CONSTRAINED)
        data = json.loads(json.dumps(state.to_dict(), allow_nan=False))
        restored = SessionState.from_dict(data)
        assert restored.slope == math.inf
        assert restored.shift == -math.inf
        assert math.isnan(restored.start)
        assert restored.mode is Mode.CONSTRAINED

    def test_from_dict_tolerates_garbage(self):
        state = SessionState.from_dict({"slope": "x", "mode": "??", "start": 0.3})
        assert state.slope == SessionState().slope
        assert state.mode is Mode.FREE
        assert state.start == pytest.approx(0.3)
        assert SessionState.from_dict(None) == SessionState()

    def test_reset_returns_defaults(self):
        assert reset() == SessionState()
