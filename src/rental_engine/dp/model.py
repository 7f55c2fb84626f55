"""Two-location rental MDP: dense state/action catalog and expected-value transitions."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Iterator

from rental_engine.core.demand import truncated_expectation
from rental_engine.core.grid import OffsetArray
from rental_engine.core.params import LotChange, RentalParams
from rental_engine.core.poisson import PoissonRate
from rental_engine.core.types import (
    Action,
    ActionDescriptor,
    CountPair,
    State,
    StateDescriptor,
    Transition,
    action_label,
    state_label,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RentalDistributions:
    """The four independent Poisson processes driving the dynamics."""

    rent: tuple[PoissonRate, PoissonRate]
    returns: tuple[PoissonRate, PoissonRate]

    @classmethod
    def from_params(cls, params: RentalParams) -> "RentalDistributions":
        return cls(
            rent=(PoissonRate(params.rental_rates[0]), PoissonRate(params.rental_rates[1])),
            returns=(
                PoissonRate(params.return_rates[0]),
                PoissonRate(params.return_rates[1]),
            ),
        )


class RentalGraph:
    """Frozen MDP model; the single source of truth for rewards and reachability.

    States are keyed by count pair over ``[0, R] x [0, R]`` and actions by
    signed move over ``[-L, L]``. Values are not stored here; the solver keeps
    them in a separate buffer.
    """

    def __init__(
        self,
        *,
        states: OffsetArray,
        actions: OffsetArray,
        capacity: int,
        move_limit: int,
        expected_returns: tuple[float, float],
    ) -> None:
        self._states = states.freeze()
        self._actions = actions.freeze()
        self.capacity = capacity
        self.move_limit = move_limit
        self.expected_returns = expected_returns

    @property
    def states(self) -> OffsetArray:
        return self._states

    @property
    def actions(self) -> OffsetArray:
        return self._actions

    @property
    def n_states(self) -> int:
        return len(self._states)

    @property
    def n_actions(self) -> int:
        return len(self._actions)

    def state(self, count: CountPair) -> State:
        return self._states[count]

    def action(self, move: int) -> Action:
        return self._actions[move]

    def iter_states(self) -> Iterator[State]:
        """Iterate states in ascending ``(m, n)`` order."""
        return iter(self._states)

    def count_bounds(self) -> tuple[tuple[int, int], tuple[int, int]]:
        return ((0, self.capacity), (0, self.capacity))

    def new_value_buffer(self, fill: float = 0.0) -> OffsetArray:
        """Allocate a writable value buffer aligned with the state grid."""
        return OffsetArray(*self.count_bounds(), fill=fill, dtype=float)


def build_rental_graph(params: RentalParams) -> RentalGraph:
    """Build the complete rental MDP from validated parameters."""
    params.validate()
    dists = RentalDistributions.from_params(params)
    states = _build_state_catalog(params, dists)
    actions = _build_action_catalog(params)

    capacity = params.capacity
    expected_returns = (
        truncated_expectation(capacity, dists.returns[0]),
        truncated_expectation(capacity, dists.returns[1]),
    )
    for count in states.keys():
        state = states[count]
        transitions = tuple(
            _transition_for_move(state.descriptor, move, expected_returns, capacity)
            for move in admissible_moves(params.move_limit)
        )
        states[count] = state.with_transitions(transitions)

    logger.debug(
        "Built rental graph: %d states, %d actions, expected returns %.3f/%.3f",
        len(states),
        len(actions),
        expected_returns[0],
        expected_returns[1],
    )
    return RentalGraph(
        states=states,
        actions=actions,
        capacity=capacity,
        move_limit=params.move_limit,
        expected_returns=expected_returns,
    )


def admissible_moves(move_limit: int) -> tuple[int, ...]:
    """Moves in construction order: stay, then outward ``1..L``, then inward ``-1..-L``."""
    outward = tuple(range(1, move_limit + 1))
    return (0, *outward, *(-k for k in outward))


def state_reward(
    count: CountPair,
    rent: tuple[float, float],
    rent_reward: float,
    change: LotChange | None,
) -> float:
    reward = (rent[0] + rent[1]) * rent_reward
    if change is not None:
        for cars in count:
            if cars > change.parking_limit:
                reward -= change.parking_cost
    return reward


def action_reward(move: int, move_cost: float, change: LotChange | None) -> float:
    free_credit = 1 if (change is not None and change.free_shuttle and move > 0) else 0
    return -move_cost * (abs(move) - free_credit)


def _build_state_catalog(params: RentalParams, dists: RentalDistributions) -> OffsetArray:
    capacity = params.capacity
    states = OffsetArray((0, capacity), (0, capacity))
    for m, n in states.keys():
        rent = (
            truncated_expectation(m, dists.rent[0]),
            truncated_expectation(n, dists.rent[1]),
        )
        descriptor = StateDescriptor(label=state_label(m, n), count=(m, n), rent=rent)
        states[m, n] = State(
            descriptor=descriptor,
            reward=state_reward((m, n), rent, params.rent_reward, params.change),
        )
    return states


def _build_action_catalog(params: RentalParams) -> OffsetArray:
    limit = params.move_limit
    actions = OffsetArray((-limit, limit))
    for move in actions.keys():
        actions[move] = Action(
            descriptor=ActionDescriptor(label=action_label(move), move=move),
            reward=action_reward(move, params.move_cost, params.change),
        )
    return actions


def _transition_for_move(
    descriptor: StateDescriptor,
    move: int,
    expected_returns: tuple[float, float],
    capacity: int,
) -> Transition:
    remaining0, remaining1 = descriptor.expected_remaining()
    destination = (
        _clamp(_round_half_away(remaining0 - move + expected_returns[0]), capacity),
        _clamp(_round_half_away(remaining1 + move + expected_returns[1]), capacity),
    )
    return Transition(
        action=move,
        source=descriptor.count,
        destination=destination,
        probability=1.0,
    )


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _clamp(value: int, capacity: int) -> int:
    return max(0, min(capacity, value))
