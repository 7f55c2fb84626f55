"""Dynamic programming components for the rental reallocation MDP."""

from rental_engine.dp.model import RentalGraph, build_rental_graph
from rental_engine.dp.policy import Policy
from rental_engine.dp.policy_iteration import (
    PolicyIterationConfig,
    PolicyIterationResult,
    solve_policy_iteration,
)

__all__ = [
    "Policy",
    "PolicyIterationConfig",
    "PolicyIterationResult",
    "RentalGraph",
    "build_rental_graph",
    "solve_policy_iteration",
]
