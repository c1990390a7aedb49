from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import numpy as np

ArrayLike = Union[float, np.ndarray]


@dataclass(frozen=True)
class SigmoidParams:
    start: float
    end: float
    slope: float
    shift: float

    @property
    def midpoint(self) -> float:
        return (self.start + self.end) / 2

    @property
    def direction(self) -> str:
        if self.end > self.start:
            return "increasing"
        if self.end < self.start:
            return "decreasing"
        return "constant"


def logistic(x: ArrayLike, params: SigmoidParams) -> ArrayLike:
    """f(x) = start + (end - start) / (1 + exp(-slope * (x - shift)))."""
    arr = np.asarray(x, dtype=float)
    # exp overflow saturates to the start asymptote
    with np.errstate(over="ignore"):
        ys = params.start + (params.end - params.start) / (1.0 + np.exp(-params.slope * (arr - params.shift)))
    if np.ndim(ys) == 0:
        return float(ys)
    return ys
