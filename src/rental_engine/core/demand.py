"""Capped demand/return expectations for the rental dynamics."""

from __future__ import annotations

import numpy as np

from rental_engine.core.poisson import PoissonRate


def truncated_expectation(limit: int, dist: PoissonRate) -> float:
    """Return ``E[min(X, limit)]`` for ``X ~ dist``.

    Requests beyond ``limit`` cannot be served, so all mass above it is
    collapsed onto ``limit`` itself.
    """
    if limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit}.")
    ks = np.arange(limit + 1)
    served = float(np.dot(dist.pmf_through(limit), ks))
    overflow = (1.0 - dist.cdf(limit)) * limit
    return served + overflow
