"""Run rental-reallocation policy iteration and persist run artifacts."""

from __future__ import annotations

import argparse
from dataclasses import replace
from datetime import datetime, timezone
import logging
from pathlib import Path
from typing import Any

from rental_engine.core.params import load_scenario_config
from rental_engine.dp.artifacts import (
    encode_policy,
    encode_values,
    ensure_run_dir,
    write_json,
    write_policy_table,
    write_yaml,
)
from rental_engine.dp.model import build_rental_graph
from rental_engine.dp.policy import policy_grid, policy_rows, summarize_policy
from rental_engine.dp.policy_iteration import (
    SUPPORTED_SWEEP_MODES,
    PolicyIterationConfig,
    solve_policy_iteration,
)
from rental_engine.dp.quality_checks import run_quality_checks


def main() -> int:
    parser = argparse.ArgumentParser(description="Solve the rental MDP via policy iteration.")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("configs/rental/jacks_rental.yaml"),
        help="Path to scenario YAML with 'params' and 'solver' sections.",
    )
    parser.add_argument(
        "--run-dir",
        type=Path,
        default=None,
        help="Optional explicit output run directory.",
    )
    parser.add_argument("--tag", default="manual", help="Tag used in default run directory.")
    parser.add_argument("--gamma", type=float, default=None)
    parser.add_argument("--theta", type=float, default=None)
    parser.add_argument("--max-eval-sweeps", type=int, default=None)
    parser.add_argument("--max-policy-iters", type=int, default=None)
    parser.add_argument("--sweep-mode", choices=SUPPORTED_SWEEP_MODES, default=None)
    parser.add_argument("--residual-atol", type=float, default=1.0)
    parser.add_argument(
        "--no-change",
        action="store_true",
        help="Ignore the free-shuttle/parking change and solve the base problem.",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable tqdm progress bar over policy-iteration rounds.",
    )
    parser.add_argument("--verbose", action="store_true", help="Log solver progress.")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    params, solver_cfg = load_scenario_config(args.config)
    if args.no_change:
        params = replace(params, change=None)
    config = PolicyIterationConfig(
        gamma=float(_pick(args.gamma, solver_cfg, "gamma", 0.9)),
        theta=float(_pick(args.theta, solver_cfg, "theta", 0.1)),
        max_eval_sweeps=int(_pick(args.max_eval_sweeps, solver_cfg, "max_eval_sweeps", 16)),
        max_policy_iters=int(
            _pick(args.max_policy_iters, solver_cfg, "max_policy_iters", 1000)
        ),
        sweep_mode=str(_pick(args.sweep_mode, solver_cfg, "sweep_mode", "gauss_seidel")),
        show_progress=not args.no_progress,
    )
    config.validate()

    graph = build_rental_graph(params)
    result = solve_policy_iteration(graph, config)
    rows = policy_rows(graph, result.policy, result.values)
    quality = run_quality_checks(
        params=params,
        graph=graph,
        values=result.values,
        policy=result.policy,
        gamma=config.gamma,
        residual_atol=args.residual_atol,
    )

    run_dir = args.run_dir or _default_run_dir(tag=args.tag)
    ensure_run_dir(run_dir)

    config_payload = {
        "created_at_utc": datetime.now(timezone.utc).isoformat(),
        "config_path": str(args.config),
        "params": params.to_dict(),
        "solver": {
            "gamma": config.gamma,
            "theta": config.theta,
            "max_eval_sweeps": config.max_eval_sweeps,
            "max_policy_iters": config.max_policy_iters,
            "sweep_mode": config.sweep_mode,
            "residual_atol": args.residual_atol,
        },
    }
    solver_metrics = {
        "iterations": result.iterations,
        "policy_stable": result.policy_stable,
        "evaluation_sweeps": list(result.evaluation_sweeps),
        "evaluation_deltas": list(result.evaluation_deltas),
        "policy_changes": list(result.policy_changes),
        "n_states": graph.n_states,
        "n_actions": graph.n_actions,
        "summary": summarize_policy(rows),
    }

    write_yaml(run_dir / "config_resolved.yaml", config_payload)
    write_json(run_dir / "values.json", encode_values(result.values))
    write_json(run_dir / "policy.json", encode_policy(result.policy))
    write_json(run_dir / "solver_metrics.json", solver_metrics)
    write_json(run_dir / "quality_report.json", quality.to_dict())
    write_policy_table(run_dir / "policy_table.csv", rows)

    print(f"Run directory: {run_dir}")
    print(
        f"Policy Iteration: stable={result.policy_stable}, "
        f"iterations={result.iterations}, sweeps={sum(result.evaluation_sweeps)}"
    )
    print(policy_grid(result.policy).to_string())
    if quality.conceptual_warnings:
        print(
            "Conceptual warnings: "
            + ", ".join(warning.name for warning in quality.conceptual_warnings)
        )

    if quality.hard_failures:
        print("Hard quality checks failed; see quality_report.json.")
        return 1
    return 0


def _pick(override: Any, solver_cfg: dict[str, Any], key: str, default: Any) -> Any:
    if override is not None:
        return override
    return solver_cfg.get(key, default)


def _default_run_dir(tag: str) -> Path:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    safe_tag = "".join(ch if ch.isalnum() or ch in {"-", "_"} else "_" for ch in tag)
    return Path("runs") / "pi" / f"{timestamp}_{safe_tag}"


if __name__ == "__main__":
    raise SystemExit(main())
