"""Policy-iteration engine tests."""

from __future__ import annotations

from dataclasses import replace
import warnings

import numpy as np
import pytest

from rental_engine.core.params import LotChange, RentalParams, load_scenario_config
from rental_engine.dp.model import build_rental_graph
from rental_engine.dp.policy import Policy
from rental_engine.dp.policy_iteration import (
    PolicyIterationConfig,
    evaluate_policy,
    greedy_action,
    improve_policy,
    lookahead_value,
    solve_policy_iteration,
)

SCENARIO_CONFIG = PolicyIterationConfig(gamma=0.9, theta=0.1, max_eval_sweeps=16)


def _small_graph(change: LotChange | None = None):
    params = RentalParams(
        move_limit=2,
        capacity=4,
        rental_rates=(3.0, 4.0),
        return_rates=(3.0, 2.0),
        rent_reward=10.0,
        change=change,
    )
    return build_rental_graph(params)


def test_lookahead_value_is_reward_plus_discounted_successor() -> None:
    graph = _small_graph()
    values = graph.new_value_buffer()
    for idx, count in enumerate(values.keys()):
        values[count] = float(idx)

    state = graph.state((2, 3))
    for move in state.available_actions():
        (transition,) = state.transitions_for(move)
        expected = (
            state.reward
            + graph.action(move).reward
            + 0.9 * values[transition.destination]
        )
        assert lookahead_value(graph, state, move, values, 0.9) == pytest.approx(expected)


def test_first_sweep_from_zero_matches_immediate_reward_at_origin() -> None:
    graph = _small_graph()
    policy = Policy.for_graph(graph)
    values = graph.new_value_buffer()
    config = PolicyIterationConfig(gamma=0.9, theta=1e-6, max_eval_sweeps=1)

    stats = evaluate_policy(graph, policy, values, config)

    assert stats.sweeps == 1
    assert stats.converged is False
    # (0, 0) is swept first, so every successor value is still zero.
    assert values[0, 0] == pytest.approx(graph.state((0, 0)).reward)


def test_policy_evaluation_contracts_by_gamma() -> None:
    graph = _small_graph()
    policy = Policy.for_graph(graph)
    values = graph.new_value_buffer()
    config = PolicyIterationConfig(gamma=0.9, theta=1e-8, max_eval_sweeps=500)

    stats = evaluate_policy(graph, policy, values, config)

    assert stats.converged is True
    assert stats.final_delta <= config.theta
    history = stats.delta_history
    assert len(history) > 2
    for previous, current in zip(history, history[1:]):
        assert current <= config.gamma * previous + 1e-9


def test_evaluation_stops_at_sweep_cutoff_without_error() -> None:
    graph = _small_graph()
    policy = Policy.for_graph(graph)
    values = graph.new_value_buffer()
    config = PolicyIterationConfig(gamma=0.9, theta=1e-12, max_eval_sweeps=3)

    stats = evaluate_policy(graph, policy, values, config)

    assert stats.sweeps == 3
    assert stats.converged is False
    assert stats.final_delta > config.theta


def test_converged_values_satisfy_bellman_equation_for_policy() -> None:
    graph = _small_graph()
    policy = Policy.for_graph(graph)
    policy[2, 2] = 1
    policy[1, 3] = -2
    values = graph.new_value_buffer()
    config = PolicyIterationConfig(gamma=0.9, theta=1e-10, max_eval_sweeps=2000)

    evaluate_policy(graph, policy, values, config)

    for state in graph.iter_states():
        backed_up = lookahead_value(graph, state, policy[state.count], values, 0.9)
        assert backed_up == pytest.approx(float(values[state.count]), abs=1e-8)


def test_jacobi_sweeps_differ_per_sweep_but_share_fixed_point() -> None:
    graph = _small_graph()
    policy = Policy.for_graph(graph)

    one_sweep_gs = graph.new_value_buffer()
    one_sweep_jacobi = graph.new_value_buffer()
    gs_config = PolicyIterationConfig(gamma=0.9, theta=1e-12, max_eval_sweeps=1)
    evaluate_policy(graph, policy, one_sweep_gs, gs_config)
    evaluate_policy(
        graph, policy, one_sweep_jacobi, replace(gs_config, sweep_mode="jacobi")
    )
    assert not np.allclose(one_sweep_gs.to_numpy(), one_sweep_jacobi.to_numpy())
    for state in graph.iter_states():
        assert one_sweep_jacobi[state.count] == pytest.approx(state.reward)

    converged_gs = graph.new_value_buffer()
    converged_jacobi = graph.new_value_buffer()
    tight = PolicyIterationConfig(gamma=0.9, theta=1e-10, max_eval_sweeps=5000)
    evaluate_policy(graph, policy, converged_gs, tight)
    evaluate_policy(graph, policy, converged_jacobi, replace(tight, sweep_mode="jacobi"))
    np.testing.assert_allclose(
        converged_gs.to_numpy(), converged_jacobi.to_numpy(), atol=1e-6
    )


def test_greedy_action_breaks_ties_towards_no_move() -> None:
    # With the free shuttle, moving one car out costs nothing, so under a flat
    # value function it ties exactly with staying put.
    graph = _small_graph(change=LotChange(free_shuttle=True, parking_limit=10))
    values = graph.new_value_buffer()
    state = graph.state((2, 2))

    best_value, best_action, q_values = greedy_action(graph, state, values, 0.9)

    assert q_values[0] == q_values[1]
    assert best_action == 0
    assert best_value == pytest.approx(state.reward)
    assert set(q_values) == {-2, -1, 0, 1, 2}


def test_greedy_action_prefers_smaller_signed_move_on_magnitude_tie() -> None:
    graph = _small_graph()
    state = graph.state((2, 2))
    destinations = {move: state.transitions_for(move)[0].destination for move in (-1, 0, 1)}
    assert len(set(destinations.values())) == 3

    values = graph.new_value_buffer(fill=-1000.0)
    values[destinations[1]] = 0.0
    values[destinations[-1]] = 0.0

    _, best_action, q_values = greedy_action(graph, state, values, 0.9)

    assert q_values[1] == q_values[-1]
    assert best_action == -1


def test_improvement_is_monotone_per_state() -> None:
    graph = _small_graph(change=LotChange())
    policy = Policy.for_graph(graph)
    values = graph.new_value_buffer()
    config = PolicyIterationConfig(gamma=0.9, theta=1e-3, max_eval_sweeps=100)
    evaluate_policy(graph, policy, values, config)

    old_policy = policy.copy()
    improve_policy(graph, policy, values, config.gamma)

    for state in graph.iter_states():
        old_q = lookahead_value(graph, state, old_policy[state.count], values, 0.9)
        new_q = lookahead_value(graph, state, policy[state.count], values, 0.9)
        assert new_q >= old_q - 1e-12


def test_improvement_reports_zero_changes_for_greedy_policy() -> None:
    graph = _small_graph()
    policy = Policy.for_graph(graph)
    values = graph.new_value_buffer()

    improve_policy(graph, policy, values, 0.9)
    assert improve_policy(graph, policy, values, 0.9) == 0


def test_small_fixture_reaches_stable_policy(small_config_path) -> None:
    params, solver = load_scenario_config(small_config_path)
    graph = build_rental_graph(params)
    config = PolicyIterationConfig(**solver)

    result = solve_policy_iteration(graph, config)

    assert result.policy_stable is True
    assert result.policy_changes[-1] == 0
    assert result.iterations == len(result.evaluation_sweeps)
    assert all(abs(action) <= params.move_limit for _, action in result.policy.items())


def test_solver_is_deterministic(small_config_path) -> None:
    params, solver = load_scenario_config(small_config_path)
    graph = build_rental_graph(params)
    config = PolicyIterationConfig(**solver)

    first = solve_policy_iteration(graph, config)
    second = solve_policy_iteration(graph, config)

    assert first.policy == second.policy
    np.testing.assert_array_equal(first.values.to_numpy(), second.values.to_numpy())


def test_scenario_reaches_stable_policy(scenario_graph) -> None:
    result = solve_policy_iteration(scenario_graph, SCENARIO_CONFIG)

    assert result.policy_stable is True
    assert len(result.policy) == 441
    assert max(result.evaluation_sweeps) <= SCENARIO_CONFIG.max_eval_sweeps
    assert all(abs(action) <= 5 for _, action in result.policy.items())
    assert scenario_graph.action(0).reward == 0.0


def test_policy_iteration_cutoff_warns() -> None:
    graph = _small_graph()
    config = PolicyIterationConfig(
        gamma=0.9, theta=1e-6, max_eval_sweeps=200, max_policy_iters=1
    )
    policy = Policy.for_graph(graph)
    values = graph.new_value_buffer()
    # Start from a deliberately poor policy so the first improvement changes it.
    for count in policy:
        policy[count] = 2

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        result = solve_policy_iteration(graph, config, policy=policy, values=values)

    assert result.policy_stable is False
    assert result.iterations == 1
    assert any(issubclass(w.category, RuntimeWarning) for w in caught)


@pytest.mark.parametrize(
    "overrides,match",
    [
        ({"gamma": 1.0}, "gamma"),
        ({"gamma": 0.0}, "gamma"),
        ({"theta": 0.0}, "theta"),
        ({"max_eval_sweeps": 0}, "max_eval_sweeps"),
        ({"max_policy_iters": 0}, "max_policy_iters"),
        ({"sweep_mode": "async"}, "sweep_mode"),
    ],
)
def test_config_validation(overrides: dict, match: str) -> None:
    config = replace(SCENARIO_CONFIG, **overrides)
    with pytest.raises(ValueError, match=match):
        config.validate()
