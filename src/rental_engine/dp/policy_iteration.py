"""Policy-iteration solver for the two-location rental MDP."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from warnings import warn

from rental_engine.core.grid import OffsetArray
from rental_engine.core.types import State
from rental_engine.dp.model import RentalGraph
from rental_engine.dp.policy import Policy

logger = logging.getLogger(__name__)

_TIE_TOL = 1e-12

SWEEP_GAUSS_SEIDEL = "gauss_seidel"
SWEEP_JACOBI = "jacobi"
SUPPORTED_SWEEP_MODES = (SWEEP_GAUSS_SEIDEL, SWEEP_JACOBI)


@dataclass(frozen=True)
class PolicyIterationConfig:
    """Configuration for policy iteration.

    ``sweep_mode="gauss_seidel"`` updates values in place in ascending
    ``(m, n)`` order, so later states in a sweep already see earlier updates.
    ``"jacobi"`` backs every state up from a snapshot taken at the start of the
    sweep; it converges differently and yields different intermediate values.
    """

    gamma: float
    theta: float
    max_eval_sweeps: int
    max_policy_iters: int = 1000
    sweep_mode: str = SWEEP_GAUSS_SEIDEL
    show_progress: bool = False
    progress_desc: str = "Policy Iteration"

    def validate(self) -> None:
        if not (0.0 < self.gamma < 1.0):
            raise ValueError("gamma must be in (0, 1).")
        if not math.isfinite(self.theta) or self.theta <= 0.0:
            raise ValueError("theta must be positive.")
        if self.max_eval_sweeps <= 0:
            raise ValueError("max_eval_sweeps must be positive.")
        if self.max_policy_iters <= 0:
            raise ValueError("max_policy_iters must be positive.")
        if self.sweep_mode not in SUPPORTED_SWEEP_MODES:
            raise ValueError(
                f"Unsupported sweep_mode={self.sweep_mode!r}. "
                f"Expected one of {SUPPORTED_SWEEP_MODES}."
            )


@dataclass(frozen=True)
class EvaluationStats:
    """Outcome of one policy-evaluation phase."""

    sweeps: int
    delta_history: tuple[float, ...]
    converged: bool

    @property
    def final_delta(self) -> float:
        return self.delta_history[-1] if self.delta_history else 0.0


@dataclass(frozen=True)
class PolicyIterationResult:
    """Outputs from a policy-iteration solve."""

    values: OffsetArray
    policy: Policy
    iterations: int
    policy_stable: bool
    evaluation_sweeps: tuple[int, ...]
    evaluation_deltas: tuple[float, ...]
    policy_changes: tuple[int, ...]


def lookahead_value(
    graph: RentalGraph,
    state: State,
    action: int,
    values: OffsetArray,
    gamma: float,
) -> float:
    """Compute Q(s, a) from the transitions ``action`` produces in ``state``."""
    action_reward = graph.action(action).reward
    total = 0.0
    for transition in state.transitions_for(action):
        total += transition.probability * (
            state.reward + action_reward + gamma * values[transition.destination]
        )
    return float(total)


def greedy_action(
    graph: RentalGraph,
    state: State,
    values: OffsetArray,
    gamma: float,
) -> tuple[float, int, dict[int, float]]:
    """Compute the best lookahead value and its action at one state.

    Ties are broken towards the smallest ``|move|`` and then the smallest
    signed move, independent of how the transitions were enumerated.
    """
    best_action = 0
    best_value = -math.inf
    q_values: dict[int, float] = {}
    for action in sorted(state.available_actions(), key=lambda move: (abs(move), move)):
        q_val = lookahead_value(graph, state, action, values, gamma)
        q_values[action] = q_val
        if q_val > best_value + _TIE_TOL:
            best_value = q_val
            best_action = action
    return best_value, best_action, q_values


def evaluate_policy(
    graph: RentalGraph,
    policy: Policy,
    values: OffsetArray,
    config: PolicyIterationConfig,
) -> EvaluationStats:
    """Refine ``values`` in place towards V^π for the fixed ``policy``.

    Sweeps stop once the largest absolute change is at most ``theta`` or after
    ``max_eval_sweeps`` sweeps, whichever comes first. The cutoff is accepted
    as-is.
    """
    delta_history: list[float] = []
    converged = False
    for _ in range(config.max_eval_sweeps):
        source = values.copy() if config.sweep_mode == SWEEP_JACOBI else values
        delta = 0.0
        for state in graph.iter_states():
            count = state.count
            v_new = lookahead_value(graph, state, policy[count], source, config.gamma)
            delta = max(delta, abs(v_new - values[count]))
            values[count] = v_new
        delta_history.append(delta)
        if delta <= config.theta:
            converged = True
            break

    if not converged:
        logger.info(
            "Policy evaluation stopped after %d sweeps with delta=%.3e > theta=%.3e",
            len(delta_history),
            delta_history[-1],
            config.theta,
        )
    return EvaluationStats(
        sweeps=len(delta_history),
        delta_history=tuple(delta_history),
        converged=converged,
    )


def improve_policy(
    graph: RentalGraph,
    policy: Policy,
    values: OffsetArray,
    gamma: float,
) -> int:
    """Make ``policy`` greedy with respect to ``values``.

    Returns:
        Number of states whose action changed; zero means the policy is stable.
    """
    changed = 0
    for state in graph.iter_states():
        _, best_action, _ = greedy_action(graph, state, values, gamma)
        if best_action != policy[state.count]:
            policy[state.count] = best_action
            changed += 1
    return changed


def solve_policy_iteration(
    graph: RentalGraph,
    config: PolicyIterationConfig,
    policy: Policy | None = None,
    values: OffsetArray | None = None,
) -> PolicyIterationResult:
    """Alternate evaluation and improvement until no action changes."""
    config.validate()
    policy = policy if policy is not None else Policy.for_graph(graph)
    values = values if values is not None else graph.new_value_buffer()

    evaluation_sweeps: list[int] = []
    evaluation_deltas: list[float] = []
    policy_changes: list[int] = []
    policy_stable = False
    iterations = 0

    iterator = range(1, config.max_policy_iters + 1)
    show_tqdm = config.show_progress
    progress = iterator
    if show_tqdm:
        # Import tqdm lazily to avoid notebook-side effects when progress is disabled.
        from tqdm.auto import tqdm

        progress = tqdm(
            iterator,
            desc=config.progress_desc,
            dynamic_ncols=True,
            leave=False,
        )

    for iteration in progress:
        stats = evaluate_policy(graph, policy, values, config)
        changed = improve_policy(graph, policy, values, config.gamma)

        evaluation_sweeps.append(stats.sweeps)
        evaluation_deltas.append(stats.final_delta)
        policy_changes.append(changed)
        iterations = iteration
        logger.info(
            "Policy iteration %d: %d evaluation sweeps, delta=%.3e, %d actions changed",
            iteration,
            stats.sweeps,
            stats.final_delta,
            changed,
        )

        if show_tqdm:
            progress.set_postfix(
                {"delta": f"{stats.final_delta:.3e}", "changed": changed},
                refresh=False,
            )

        if changed == 0:
            policy_stable = True
            break

    if show_tqdm:
        progress.close()

    if not policy_stable:
        warn(
            f"max_policy_iters={config.max_policy_iters} reached but policy not yet stable",
            RuntimeWarning,
        )

    return PolicyIterationResult(
        values=values,
        policy=policy,
        iterations=iterations,
        policy_stable=policy_stable,
        evaluation_sweeps=tuple(evaluation_sweeps),
        evaluation_deltas=tuple(evaluation_deltas),
        policy_changes=tuple(policy_changes),
    )
