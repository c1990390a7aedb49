"""Verbal rules for the logistic curve."""

import math

from . import config
from .sigmoid import SigmoidParams


def describe_curve(params: SigmoidParams) -> str:
    if params.direction == "constant" or params.slope == 0:
        return f"Flat line at {params.midpoint:.2f}: start and end coincide or the slope is zero."
    rising = (params.direction == "increasing") == (params.slope > 0)
    trend = "rises" if rising else "falls"
    steepness = "sharply" if abs(params.slope) >= 5 else "gradually"
    where = f"{params.shift:.2f}" if math.isfinite(params.shift) else "an undefined point"
    return f"Frequency {trend} {steepness} from {params.start:.2f} to {params.end:.2f}, crossing {params.midpoint:.2f} at trait {where}."


def describe_mode_change(old, new):
    if new == config.MODE_CONSTRAINED:
        return "Constrained: slope reset to 1/sd of node traits, shift pinned to the root estimate."
    if old == config.MODE_CONSTRAINED:
        return "Free: slope and shift keep their constrained values until you move them."
    return "Free: slope and shift are set directly."


def equation_latex(params: SigmoidParams) -> str:
    return (
        r"f(x) = %.2f + \frac{%.2f - %.2f}{1 + e^{-%.3f\,(x - %.3f)}}"
        % (params.start, params.end, params.start, params.slope, params.shift)
    )
