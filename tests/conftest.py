"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path
import sys

import pytest


def _preload_numpy_without_macos_check() -> None:
    """Preload NumPy while bypassing the macOS sanity check.

    This avoids a hard crash seen with some macOS BLAS/LAPACK builds during
    NumPy's import-time polyfit check.
    """
    if sys.platform != "darwin":
        return

    original_platform = sys.platform
    try:
        sys.platform = "linux"
        import numpy  # noqa: F401
    finally:
        sys.platform = original_platform


_preload_numpy_without_macos_check()

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def small_config_path() -> Path:
    return FIXTURES_DIR / "rental_small.yaml"


@pytest.fixture(scope="session")
def scenario_params():
    """Textbook scenario: 20 cars per lot, up to 5 moved per night, base problem."""
    from rental_engine.core.params import RentalParams

    return RentalParams(
        move_limit=5,
        capacity=20,
        rental_rates=(3.0, 4.0),
        return_rates=(3.0, 2.0),
        rent_reward=10.0,
    )


@pytest.fixture(scope="session")
def scenario_graph(scenario_params):
    from rental_engine.dp.model import build_rental_graph

    return build_rental_graph(scenario_params)
