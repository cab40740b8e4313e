"""Solver configuration: enumeration ceilings, numeric policy and parallelism."""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv

ENV_PREFIX = "MINETOOLBOX_"

# Largest component enumerated exhaustively by default.
DEFAULT_MAX_COMPONENT_CELLS = 55

_ON_CEILING_CHOICES = ("approximate", "raise")


@dataclass(frozen=True)
class SolverConfig:
    """
    Tuning knobs for one solve.

    Attributes:
        max_component_cells: Components referencing more cells than this are
            not enumerated; they go straight to the approximation fallback.
        max_hypotheses: Per-component cap on enumerated hypotheses.
        max_steps: Per-component cap on backtracking frame steps. Unlike the
            time budget this ceiling is deterministic.
        time_budget: Optional wall-clock seconds allowed per component.
        on_ceiling: "approximate" degrades the component to the local-density
            estimate and flags the result; "raise" raises SolveTimeout.
        exact: Also produce exact Fraction probabilities.
        workers: Number of threads used to profile components (1 = inline).
    """

    max_component_cells: int = DEFAULT_MAX_COMPONENT_CELLS
    max_hypotheses: int = 200_000
    max_steps: int = 2_000_000
    time_budget: Optional[float] = None
    on_ceiling: str = "approximate"
    exact: bool = True
    workers: int = 1

    def __post_init__(self) -> None:
        if self.max_component_cells < 1:
            raise ValueError("max_component_cells must be positive.")
        if self.max_hypotheses < 1:
            raise ValueError("max_hypotheses must be positive.")
        if self.max_steps < 1:
            raise ValueError("max_steps must be positive.")
        if self.time_budget is not None and self.time_budget <= 0:
            raise ValueError("time_budget must be positive when set.")
        if self.on_ceiling not in _ON_CEILING_CHOICES:
            raise ValueError('on_ceiling must be "approximate" or "raise".')
        if self.workers < 1:
            raise ValueError("workers must be >= 1.")

    @classmethod
    def from_env(
        cls, dotenv_path: Optional[Union[str, Path]] = None, **overrides: Any
    ) -> "SolverConfig":
        """
        Build a config from MINETOOLBOX_* environment variables.

        A .env file is loaded first (without overriding variables that are
        already set). Keyword overrides win over the environment.
        """
        load_dotenv(dotenv_path=dotenv_path)

        values: Dict[str, Any] = {}
        for f in fields(cls):
            raw = os.getenv(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            values[f.name] = _parse_value(f.name, raw)

        values.update(overrides)
        return cls(**values)


def _parse_value(name: str, raw: str) -> Any:
    raw = raw.strip()
    if name == "exact":
        return raw.lower() in ("1", "true", "yes")
    if name == "on_ceiling":
        return raw.lower()
    if name == "time_budget":
        if raw.lower() in ("none", "off"):
            return None
        return float(raw)
    return int(raw)
