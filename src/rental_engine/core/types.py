"""Descriptor and entity types shared by the model builder and solver."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

CountPair = tuple[int, int]


def state_label(m: int, n: int) -> str:
    return f"{m}_{n}"


def action_label(move: int) -> str:
    return f"{move:+d}"


@dataclass(frozen=True)
class StateDescriptor:
    """Identity of one inventory configuration.

    Attributes:
        label: Human-readable ``"m_n"`` identifier.
        count: Cars parked at location 0 and location 1.
        rent: Expected rentals at each location, capped by the cars on hand.
    """

    label: str
    count: CountPair
    rent: tuple[float, float]

    def expected_remaining(self) -> tuple[float, float]:
        """Expected cars left at each location after the day's rentals."""
        return (self.count[0] - self.rent[0], self.count[1] - self.rent[1])


@dataclass(frozen=True)
class ActionDescriptor:
    """Signed overnight move; positive moves cars from location 0 to 1."""

    label: str
    move: int


@dataclass(frozen=True)
class Transition:
    """Expected-value successor for one state-action pair."""

    action: int
    source: CountPair
    destination: CountPair
    probability: float = 1.0


@dataclass(frozen=True)
class Action:
    descriptor: ActionDescriptor
    reward: float

    @property
    def move(self) -> int:
        return self.descriptor.move

    @property
    def label(self) -> str:
        return self.descriptor.label


@dataclass(frozen=True)
class State:
    """One MDP state with its fixed reward and outgoing transitions.

    ``action_index`` maps every available action value to the positions of its
    transitions inside ``transitions``.
    """

    descriptor: StateDescriptor
    reward: float
    transitions: tuple[Transition, ...] = ()
    action_index: Mapping[int, tuple[int, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def count(self) -> CountPair:
        return self.descriptor.count

    @property
    def label(self) -> str:
        return self.descriptor.label

    @property
    def rent(self) -> tuple[float, float]:
        return self.descriptor.rent

    def available_actions(self) -> tuple[int, ...]:
        return tuple(self.action_index)

    def transitions_for(self, action: int) -> tuple[Transition, ...]:
        """Return the transitions produced by ``action``; unknown actions raise KeyError."""
        return tuple(self.transitions[idx] for idx in self.action_index[action])

    def with_transitions(self, transitions: tuple[Transition, ...]) -> "State":
        """Return a copy holding ``transitions`` and the index derived from them."""
        grouped: dict[int, list[int]] = {}
        for idx, transition in enumerate(transitions):
            grouped.setdefault(transition.action, []).append(idx)
        index = MappingProxyType(
            {action: tuple(positions) for action, positions in grouped.items()}
        )
        return State(
            descriptor=self.descriptor,
            reward=self.reward,
            transitions=transitions,
            action_index=index,
        )
