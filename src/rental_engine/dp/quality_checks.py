"""Quality checks for solved rental MDP runs."""

from __future__ import annotations

from dataclasses import dataclass

from rental_engine.core.grid import OffsetArray
from rental_engine.core.params import RentalParams
from rental_engine.dp.model import RentalGraph, admissible_moves
from rental_engine.dp.policy import Policy
from rental_engine.dp.policy_iteration import greedy_action, lookahead_value


@dataclass(frozen=True)
class CheckResult:
    """One quality-check result."""

    name: str
    passed: bool
    details: str
    metric: float | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "name": self.name,
            "passed": self.passed,
            "details": self.details,
        }
        if self.metric is not None:
            payload["metric"] = self.metric
        return payload


@dataclass(frozen=True)
class QualityReport:
    """Aggregated hard/conceptual checks."""

    hard_checks: tuple[CheckResult, ...]
    conceptual_checks: tuple[CheckResult, ...]
    strict_conceptual: bool

    @property
    def hard_failures(self) -> tuple[CheckResult, ...]:
        return tuple(check for check in self.hard_checks if not check.passed)

    @property
    def conceptual_warnings(self) -> tuple[CheckResult, ...]:
        return tuple(check for check in self.conceptual_checks if not check.passed)

    @property
    def passed(self) -> bool:
        if self.hard_failures:
            return False
        if self.strict_conceptual and self.conceptual_warnings:
            return False
        return True

    def to_dict(self) -> dict[str, object]:
        return {
            "hard_checks": [check.to_dict() for check in self.hard_checks],
            "conceptual_checks": [check.to_dict() for check in self.conceptual_checks],
            "hard_failures": [check.to_dict() for check in self.hard_failures],
            "conceptual_warnings": [
                check.to_dict() for check in self.conceptual_warnings
            ],
            "strict_conceptual": self.strict_conceptual,
            "passed": self.passed,
        }


def run_quality_checks(
    *,
    params: RentalParams,
    graph: RentalGraph,
    values: OffsetArray,
    policy: Policy,
    gamma: float,
    residual_atol: float = 1.0,
    strict_conceptual: bool = False,
) -> QualityReport:
    """Run hard + conceptual checks against a solved model."""
    hard_checks = (
        _check_parameter_domains(params=params, gamma=gamma),
        _check_catalog_size(graph=graph),
        _check_transition_coverage(graph=graph),
        _check_transition_bounds(graph=graph),
        _check_policy_action_range(graph=graph, policy=policy),
        _check_policy_greedy(graph=graph, values=values, policy=policy, gamma=gamma),
    )

    conceptual_checks = (
        _check_evaluation_residual(
            graph=graph,
            values=values,
            policy=policy,
            gamma=gamma,
            residual_atol=residual_atol,
        ),
        _check_policy_collapse(policy=policy),
        _check_moves_within_inventory(policy=policy),
    )

    return QualityReport(
        hard_checks=hard_checks,
        conceptual_checks=conceptual_checks,
        strict_conceptual=strict_conceptual,
    )


def _check_parameter_domains(params: RentalParams, gamma: float) -> CheckResult:
    checks = params.validation_errors()
    if not (0.0 < gamma < 1.0):
        checks.append("gamma must be in (0, 1)")
    passed = len(checks) == 0
    details = "all parameter domains valid" if passed else "; ".join(checks)
    return CheckResult(name="parameter_domains", passed=passed, details=details)


def _check_catalog_size(graph: RentalGraph) -> CheckResult:
    expected_states = (graph.capacity + 1) ** 2
    expected_actions = 2 * graph.move_limit + 1
    passed = graph.n_states == expected_states and graph.n_actions == expected_actions
    return CheckResult(
        name="catalog_size",
        passed=passed,
        details=(
            f"states={graph.n_states} (expected {expected_states}), "
            f"actions={graph.n_actions} (expected {expected_actions})"
        ),
    )


def _check_transition_coverage(graph: RentalGraph) -> CheckResult:
    expected = admissible_moves(graph.move_limit)
    bad: list[str] = []
    for state in graph.iter_states():
        moves = tuple(transition.action for transition in state.transitions)
        if moves != expected or any(
            len(state.action_index[move]) != 1 for move in expected
        ):
            bad.append(state.label)
        elif any(transition.probability != 1.0 for transition in state.transitions):
            bad.append(state.label)
    passed = not bad
    details = (
        "one probability-1 transition per action for every state"
        if passed
        else f"{len(bad)} state(s) with malformed transitions, e.g. {bad[0]}"
    )
    return CheckResult(
        name="transition_coverage",
        passed=passed,
        details=details,
        metric=float(len(bad)),
    )


def _check_transition_bounds(graph: RentalGraph) -> CheckResult:
    capacity = graph.capacity
    out_of_bounds = [
        (state.label, transition.destination)
        for state in graph.iter_states()
        for transition in state.transitions
        if not all(0 <= cars <= capacity for cars in transition.destination)
    ]
    passed = not out_of_bounds
    details = (
        f"all destinations inside [0, {capacity}]^2"
        if passed
        else f"{len(out_of_bounds)} destination(s) out of bounds, e.g. {out_of_bounds[0]}"
    )
    return CheckResult(name="transition_bounds", passed=passed, details=details)


def _check_policy_action_range(graph: RentalGraph, policy: Policy) -> CheckResult:
    limit = graph.move_limit
    invalid = [(count, action) for count, action in policy.items() if abs(action) > limit]
    passed = not invalid and len(policy) == graph.n_states
    details = (
        f"all actions in [-{limit}, {limit}]"
        if passed
        else f"invalid policy entries: {invalid[:5]} (policy size {len(policy)})"
    )
    return CheckResult(name="policy_action_range", passed=passed, details=details)


def _check_policy_greedy(
    graph: RentalGraph,
    values: OffsetArray,
    policy: Policy,
    gamma: float,
) -> CheckResult:
    mismatches = 0
    for state in graph.iter_states():
        _, best_action, _ = greedy_action(graph, state, values, gamma)
        if policy[state.count] != best_action:
            mismatches += 1
    return CheckResult(
        name="policy_greedy",
        passed=mismatches == 0,
        details=f"{mismatches} state(s) where the policy is not greedy",
        metric=float(mismatches),
    )


def _check_evaluation_residual(
    graph: RentalGraph,
    values: OffsetArray,
    policy: Policy,
    gamma: float,
    residual_atol: float,
) -> CheckResult:
    residual = 0.0
    for state in graph.iter_states():
        backed_up = lookahead_value(graph, state, policy[state.count], values, gamma)
        residual = max(residual, abs(backed_up - float(values[state.count])))
    return CheckResult(
        name="evaluation_residual",
        passed=residual <= residual_atol,
        details=f"max |V - T_pi V| = {residual:.3e}, atol={residual_atol:.3e}",
        metric=residual,
    )


def _check_policy_collapse(policy: Policy) -> CheckResult:
    n_moving = sum(1 for _, action in policy.items() if action != 0)
    return CheckResult(
        name="policy_collapse",
        passed=n_moving > 0,
        details=f"{n_moving} state(s) with a non-zero move",
        metric=float(n_moving),
    )


def _check_moves_within_inventory(policy: Policy) -> CheckResult:
    violations = [
        (count, action)
        for count, action in policy.items()
        if (action > 0 and action > count[0]) or (action < 0 and -action > count[1])
    ]
    passed = not violations
    details = (
        "policy never moves more cars than the source location holds"
        if passed
        else f"{len(violations)} state(s) move more cars than available, e.g. {violations[0]}"
    )
    return CheckResult(
        name="moves_within_inventory",
        passed=passed,
        details=details,
        metric=float(len(violations)),
    )
