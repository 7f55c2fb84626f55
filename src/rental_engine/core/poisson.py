"""Poisson rate distribution backed by ``scipy.stats``."""

from __future__ import annotations

from dataclasses import dataclass
import math

import numpy as np
from scipy.stats import poisson


@dataclass(frozen=True)
class PoissonRate:
    """Poisson distribution over non-negative integers with a fixed mean rate."""

    rate: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.rate) or self.rate <= 0.0:
            raise ValueError(f"Poisson rate must be positive and finite, got {self.rate}.")

    def pmf(self, k: int) -> float:
        """Point mass at ``k``."""
        return float(poisson.pmf(k, self.rate))

    def cdf(self, k: int) -> float:
        """Cumulative mass through ``k`` inclusive."""
        return float(poisson.cdf(k, self.rate))

    def pmf_through(self, upper: int) -> np.ndarray:
        """Vector of point masses for ``k = 0..upper``."""
        return poisson.pmf(np.arange(upper + 1), self.rate)
