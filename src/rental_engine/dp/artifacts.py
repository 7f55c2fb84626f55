"""Serialization helpers for policy-iteration run artifacts."""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any

import pandas as pd
import yaml

from rental_engine.core.grid import OffsetArray
from rental_engine.core.params import RentalParams
from rental_engine.core.types import CountPair, state_label
from rental_engine.dp.policy import Policy


REQUIRED_RUN_FILES: tuple[str, ...] = (
    "config_resolved.yaml",
    "values.json",
    "policy.json",
    "solver_metrics.json",
    "policy_table.csv",
    "quality_report.json",
)


@dataclass(frozen=True)
class LoadedRunArtifacts:
    """Structured artifacts loaded from a run directory."""

    run_dir: Path
    params: RentalParams
    config_resolved: dict[str, Any]
    values: dict[CountPair, float]
    policy: dict[CountPair, int]
    solver_metrics: dict[str, Any]
    quality_report: dict[str, Any]
    policy_table: pd.DataFrame


def ensure_run_dir(run_dir: Path) -> None:
    """Create run directory and parent paths."""
    run_dir.mkdir(parents=True, exist_ok=True)


def write_json(path: Path, payload: Any) -> None:
    """Write JSON with stable formatting."""
    path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def write_yaml(path: Path, payload: Any) -> None:
    """Write YAML with stable formatting."""
    path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")


def write_policy_table(path: Path, rows: list[dict[str, object]]) -> None:
    pd.DataFrame(rows).to_csv(path, index=False)


def state_from_id(state_id: str) -> CountPair:
    """Decode a ``"m_n"`` state label."""
    parts = state_id.split("_")
    if len(parts) != 2:
        raise ValueError(f"Invalid state id: {state_id}")
    return int(parts[0]), int(parts[1])


def encode_values(values: OffsetArray) -> dict[str, float]:
    """Encode value table keyed by state id."""
    return {state_label(*count): float(value) for count, value in values.items()}


def decode_values(payload: dict[str, float]) -> dict[CountPair, float]:
    return {state_from_id(state_id): float(value) for state_id, value in payload.items()}


def encode_policy(policy: Policy) -> dict[str, int]:
    """Encode policy table keyed by state id."""
    return {state_label(*count): int(action) for count, action in policy.items()}


def decode_policy(payload: dict[str, int]) -> dict[CountPair, int]:
    return {state_from_id(state_id): int(action) for state_id, action in payload.items()}


def load_run_artifacts(run_dir: Path) -> LoadedRunArtifacts:
    """Load all required artifacts from a run directory."""
    missing = [name for name in REQUIRED_RUN_FILES if not (run_dir / name).exists()]
    if missing:
        raise FileNotFoundError(
            f"Missing required run artifacts in {run_dir}: {', '.join(missing)}"
        )

    config_resolved = yaml.safe_load((run_dir / "config_resolved.yaml").read_text())
    if not isinstance(config_resolved, dict):
        raise ValueError("config_resolved.yaml must contain a YAML mapping.")

    params_payload = config_resolved.get("params")
    if not isinstance(params_payload, dict):
        raise ValueError("config_resolved.yaml missing 'params' payload.")

    values_payload = json.loads((run_dir / "values.json").read_text())
    policy_payload = json.loads((run_dir / "policy.json").read_text())
    solver_metrics = json.loads((run_dir / "solver_metrics.json").read_text())
    quality_report = json.loads((run_dir / "quality_report.json").read_text())

    return LoadedRunArtifacts(
        run_dir=run_dir,
        params=RentalParams.from_dict(params_payload),
        config_resolved=config_resolved,
        values=decode_values(values_payload),
        policy=decode_policy(policy_payload),
        solver_metrics=solver_metrics,
        quality_report=quality_report,
        policy_table=pd.read_csv(run_dir / "policy_table.csv"),
    )
