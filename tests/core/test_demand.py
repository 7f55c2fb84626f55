"""Tests for the Poisson wrapper and capped expectations."""

import math

import pytest

from rental_engine.core.demand import truncated_expectation
from rental_engine.core.poisson import PoissonRate


def test_poisson_cdf_is_cumulative_pmf() -> None:
    dist = PoissonRate(3.0)
    running = 0.0
    for k in range(15):
        running += dist.pmf(k)
        assert abs(dist.cdf(k) - running) <= 1e-12
    assert dist.cdf(60) == pytest.approx(1.0)


@pytest.mark.parametrize("rate", [0.0, -1.0, math.inf])
def test_poisson_rejects_invalid_rate(rate: float) -> None:
    with pytest.raises(ValueError, match="rate"):
        PoissonRate(rate)


def test_truncated_expectation_at_zero_is_zero() -> None:
    assert truncated_expectation(0, PoissonRate(4.0)) == 0.0


def test_truncated_expectation_matches_direct_sum() -> None:
    dist = PoissonRate(2.5)
    limit = 4
    expected = sum(min(k, limit) * dist.pmf(k) for k in range(80))
    assert truncated_expectation(limit, dist) == pytest.approx(expected, abs=1e-10)


@pytest.mark.parametrize("rate", [0.5, 3.0, 4.0, 12.0])
def test_truncated_expectation_is_monotone_and_capped(rate: float) -> None:
    dist = PoissonRate(rate)
    previous = 0.0
    for limit in range(31):
        value = truncated_expectation(limit, dist)
        assert value <= limit + 1e-12
        assert value <= rate + 1e-12
        assert value >= previous - 1e-12
        previous = value
    assert previous == pytest.approx(rate, rel=1e-3)


def test_truncated_expectation_rejects_negative_limit() -> None:
    with pytest.raises(ValueError, match="non-negative"):
        truncated_expectation(-1, PoissonRate(3.0))
