"""Sigmoid parameter state and the free/constrained mode transitions.

The state is a plain value object; every transition returns a new
``SessionState`` so the recompute path stays a pure function of it.
"""

from __future__ import annotations

import enum
import math
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from . import config
from .sigmoid import SigmoidParams

PARAM_NAMES = ("start", "end", "slope", "shift", "slope_factor")


class Mode(str, enum.Enum):
    FREE = config.MODE_FREE
    CONSTRAINED = config.MODE_CONSTRAINED


@dataclass(frozen=True)
class DataDefaults:
    slope: float
    shift: float
    trait_std: float


@dataclass(frozen=True)
class SessionState:
    start: float = config.DEFAULT_PARAMS["start"]
    end: float = config.DEFAULT_PARAMS["end"]
    slope: float = config.DEFAULT_PARAMS["slope"]
    shift: float = config.DEFAULT_PARAMS["shift"]
    mode: Mode = Mode(config.DEFAULT_MODE)
    slope_factor: float = config.DEFAULT_PARAMS["slope_factor"]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe dict; non-finite values travel as "inf"/"-inf"/"nan" strings."""
        data = asdict(self)
        for name in PARAM_NAMES:
            if not math.isfinite(data[name]):
                data[name] = str(data[name])
        data["mode"] = self.mode.value
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SessionState":
        if not isinstance(data, dict):
            return cls()
        base = cls()
        values: Dict[str, Any] = {}
        for name in PARAM_NAMES:
            num = coerce_float(data.get(name))
            values[name] = getattr(base, name) if num is None else num
        values["mode"] = coerce_mode(data.get("mode"), base.mode)
        return cls(**values)


def coerce_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def coerce_mode(value: Any, fallback: Mode = Mode.FREE) -> Mode:
    try:
        return Mode(value)
    except ValueError:
        return fallback


def derive_defaults(trait_values: Any, root_value: float) -> DataDefaults:
    """Slope is the inverse sample std of all node traits; shift is the root estimate."""
    series = pd.Series(np.asarray(trait_values, dtype=float))
    std = float(series.std())
    with np.errstate(divide="ignore"):
        slope = float(np.divide(1.0, std))
    return DataDefaults(slope=slope, shift=float(root_value), trait_std=std)


def set_mode(state: SessionState, mode: Any, defaults: DataDefaults) -> SessionState:
    new_mode = coerce_mode(mode, state.mode)
    if new_mode is Mode.CONSTRAINED:
        return replace(state, mode=new_mode, slope=defaults.slope, shift=defaults.shift)
    return replace(state, mode=new_mode)


def update_param(state: SessionState, name: str, value: Any) -> SessionState:
    if name not in PARAM_NAMES:
        raise KeyError(name)
    num = coerce_float(value)
    if num is None:
        return state
    if name == "shift" and state.mode is Mode.CONSTRAINED:
        return state
    return replace(state, **{name: num})


def reset() -> SessionState:
    return SessionState()


def effective_slope(state: SessionState) -> float:
    if state.mode is Mode.CONSTRAINED:
        return state.slope * state.slope_factor
    return state.slope


def sigmoid_params(state: SessionState) -> SigmoidParams:
    return SigmoidParams(
        start=state.start,
        end=state.end,
        slope=effective_slope(state),
        shift=state.shift,
    )
