"""Parameter schema and YAML helpers for the rental reallocation MDP."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import math
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class LotChange:
    """Optional modifications to the base rental problem.

    Attributes:
        free_shuttle: One car per night moves from location 0 to 1 for free.
        parking_limit: Cars above this count at a location need an extra lot.
        parking_cost: Flat cost per location that exceeds ``parking_limit``.
    """

    free_shuttle: bool = True
    parking_limit: int = 10
    parking_cost: float = 4.0

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if isinstance(self.parking_limit, bool) or not isinstance(self.parking_limit, int):
            errors.append("change.parking_limit must be an integer")
        elif self.parking_limit < 0:
            errors.append("change.parking_limit must be non-negative")
        if not math.isfinite(self.parking_cost) or self.parking_cost < 0.0:
            errors.append("change.parking_cost must be non-negative and finite")
        return errors


@dataclass(frozen=True)
class RentalParams:
    """Top-level configuration of the two-location rental problem."""

    move_limit: int
    capacity: int
    rental_rates: tuple[float, float]
    return_rates: tuple[float, float]
    rent_reward: float
    move_cost: float = 2.0
    change: LotChange | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        """Raise ``ValueError`` listing every invalid field."""
        errors = self.validation_errors()
        if errors:
            raise ValueError("Invalid rental params: " + "; ".join(errors) + ".")

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        for name in ("move_limit", "capacity"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                errors.append(f"{name} must be an integer")
            elif value < 0:
                errors.append(f"{name} must be non-negative")
        for name in ("rental_rates", "return_rates"):
            rates = getattr(self, name)
            if len(rates) != 2:
                errors.append(f"{name} must hold exactly two rates")
                continue
            for idx, rate in enumerate(rates):
                if not math.isfinite(rate) or rate <= 0.0:
                    errors.append(f"{name}[{idx}] must be positive and finite")
        if not math.isfinite(self.rent_reward):
            errors.append("rent_reward must be finite")
        if not math.isfinite(self.move_cost) or self.move_cost < 0.0:
            errors.append("move_cost must be non-negative and finite")
        if self.change is not None:
            errors.extend(self.change.validation_errors())
        return errors

    def to_dict(self) -> dict[str, Any]:
        """Convert parameter object to a plain dict."""
        payload = asdict(self)
        payload["rental_rates"] = list(self.rental_rates)
        payload["return_rates"] = list(self.return_rates)
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "RentalParams":
        """Create parameter object from a plain dict."""
        change_payload = payload.get("change")
        change = None
        if change_payload is not None:
            change = LotChange(
                free_shuttle=bool(change_payload.get("free_shuttle", True)),
                parking_limit=int(change_payload.get("parking_limit", 10)),
                parking_cost=float(change_payload.get("parking_cost", 4.0)),
            )
        return cls(
            move_limit=int(payload["move_limit"]),
            capacity=int(payload["capacity"]),
            rental_rates=_rate_pair(payload["rental_rates"], "rental_rates"),
            return_rates=_rate_pair(payload["return_rates"], "return_rates"),
            rent_reward=float(payload["rent_reward"]),
            move_cost=float(payload.get("move_cost", 2.0)),
            change=change,
            metadata=dict(payload.get("metadata", {})),
        )


def save_rental_params(params: RentalParams, output_path: Path) -> None:
    """Serialize parameters to YAML."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(yaml.safe_dump(params.to_dict(), sort_keys=False))


def load_rental_params(path: Path) -> RentalParams:
    """Load parameters from YAML, accepting a bare mapping or a ``params`` section."""
    payload = yaml.safe_load(path.read_text())
    if not isinstance(payload, dict):
        raise ValueError("Expected a mapping in rental parameter YAML.")
    if "params" in payload:
        payload = payload["params"]
    return RentalParams.from_dict(payload)


def load_scenario_config(path: Path) -> tuple[RentalParams, dict[str, Any]]:
    """Load a scenario YAML holding ``params`` and an optional ``solver`` section."""
    payload = yaml.safe_load(path.read_text())
    if not isinstance(payload, dict) or "params" not in payload:
        raise ValueError(f"Expected a mapping with a 'params' section in {path}.")
    solver = payload.get("solver") or {}
    if not isinstance(solver, dict):
        raise ValueError(f"Expected 'solver' to be a mapping in {path}.")
    return RentalParams.from_dict(payload["params"]), dict(solver)


def _rate_pair(raw: Any, name: str) -> tuple[float, float]:
    values = tuple(float(value) for value in raw)
    if len(values) != 2:
        raise ValueError(f"{name} must hold exactly two rates, got {len(values)}.")
    return values  # type: ignore[return-value]
