"""Deterministic policy container and read-only reporting views."""

from __future__ import annotations

from collections import Counter
from typing import Iterator

import pandas as pd

from rental_engine.core.grid import OffsetArray
from rental_engine.core.types import CountPair, state_label
from rental_engine.dp.model import RentalGraph


class Policy:
    """Dense mapping from every count pair to a signed move, initialized to 0."""

    def __init__(self, capacity: int, initial_action: int = 0) -> None:
        self.capacity = capacity
        self._actions = OffsetArray(
            (0, capacity), (0, capacity), fill=initial_action, dtype=int
        )

    @classmethod
    def for_graph(cls, graph: RentalGraph) -> "Policy":
        return cls(graph.capacity)

    def __getitem__(self, count: CountPair) -> int:
        return int(self._actions[count])

    def __setitem__(self, count: CountPair, action: int) -> None:
        self._actions[count] = action

    def __len__(self) -> int:
        return len(self._actions)

    def __iter__(self) -> Iterator[CountPair]:
        return self._actions.keys()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Policy):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def items(self) -> Iterator[tuple[CountPair, int]]:
        for count, action in self._actions.items():
            yield count, int(action)

    def copy(self) -> "Policy":
        clone = Policy(self.capacity)
        clone._actions = self._actions.copy()
        return clone

    def to_dict(self) -> dict[CountPair, int]:
        return dict(self.items())


def action_rows(graph: RentalGraph) -> list[dict[str, object]]:
    """One row per action with its label and fixed reward."""
    return [
        {"action": action.label, "move": action.move, "reward": action.reward}
        for action in graph.actions
    ]


def policy_rows(
    graph: RentalGraph,
    policy: Policy,
    values: OffsetArray,
) -> list[dict[str, object]]:
    """Build flat tabular rows for policy/value inspection."""
    return0, return1 = graph.expected_returns
    rows: list[dict[str, object]] = []
    for state in graph.iter_states():
        m, n = state.count
        rows.append(
            {
                "state_id": state.label,
                "m": m,
                "n": n,
                "reward": state.reward,
                "action": policy[state.count],
                "rent_0": state.rent[0],
                "rent_1": state.rent[1],
                "return_0": return0,
                "return_1": return1,
                "value": float(values[state.count]),
            }
        )
    return rows


def transition_rows(
    graph: RentalGraph,
    values: OffsetArray,
    gamma: float,
) -> list[dict[str, object]]:
    """One row per transition with destination, probability and backed-up return."""
    rows: list[dict[str, object]] = []
    for state in graph.iter_states():
        for transition in state.transitions:
            action = graph.action(transition.action)
            backed_up = (
                state.reward
                + action.reward
                + gamma * float(values[transition.destination])
            )
            rows.append(
                {
                    "state_id": state.label,
                    "action": action.label,
                    "destination": state_label(*transition.destination),
                    "probability": transition.probability,
                    "destination_value": float(values[transition.destination]),
                    "return": backed_up,
                }
            )
    return rows


def policy_grid(policy: Policy) -> pd.DataFrame:
    """Action grid with location-0 counts as rows and location-1 counts as columns."""
    index = pd.RangeIndex(policy.capacity + 1, name="m")
    columns = pd.RangeIndex(policy.capacity + 1, name="n")
    grid = pd.DataFrame(0, index=index, columns=columns, dtype=int)
    for (m, n), action in policy.items():
        grid.at[m, n] = action
    return grid


def summarize_policy(rows: list[dict[str, object]]) -> dict[str, object]:
    """Summarize the action mix and value range across all states."""
    if not rows:
        return {
            "n_states": 0,
            "action_histogram": {},
            "no_move_rate": 0.0,
            "value_summary": {"min": 0.0, "max": 0.0, "mean": 0.0},
        }

    action_counter = Counter(int(row["action"]) for row in rows)
    values = [float(row["value"]) for row in rows]
    n_states = len(rows)
    return {
        "n_states": n_states,
        "action_histogram": dict(sorted(action_counter.items())),
        "no_move_rate": action_counter.get(0, 0) / n_states,
        "value_summary": {
            "min": min(values),
            "max": max(values),
            "mean": float(sum(values) / n_states),
        },
    }
