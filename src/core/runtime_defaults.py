"""
Runtime defaults for the MVC post-processor and its solvers.

Values can be overridden via environment variables to avoid hardcoded tuning
in multiple entrypoints.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Optional


ENV_SOLVER = "UVFLIPREPAIR_SOLVER"
ENV_SOLVER_RTOL = "UVFLIPREPAIR_SOLVER_RTOL"
ENV_SOLVER_MAX_ITERATIONS = "UVFLIPREPAIR_SOLVER_MAX_ITERATIONS"
ENV_ILU_DROP_TOL = "UVFLIPREPAIR_ILU_DROP_TOL"
ENV_ILU_FILL_FACTOR = "UVFLIPREPAIR_ILU_FILL_FACTOR"
ENV_CHECK_COLORING = "UVFLIPREPAIR_CHECK_COLORING"
ENV_DIAGNOSTICS_DIR = "UVFLIPREPAIR_DIAGNOSTICS_DIR"

_SOLVER_CHOICES = ("bicgstab", "direct")


@dataclass(frozen=True)
class RuntimeDefaults:
    solver: str
    solver_rtol: float
    solver_max_iterations: int
    ilu_drop_tol: float
    ilu_fill_factor: float
    check_coloring: bool
    diagnostics_dir: Optional[str]


def _read_int_env(
    env_name: str,
    default: int,
    *,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    raw = os.environ.get(env_name)
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default

    if min_value is not None and value < min_value:
        return default
    if max_value is not None and value > max_value:
        return default
    return value


def _read_float_env(
    env_name: str,
    default: float,
    *,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    raw = os.environ.get(env_name)
    if raw is None:
        return default
    try:
        value = float(str(raw).strip())
    except (TypeError, ValueError):
        return default

    if value != value:  # NaN
        return default
    if min_value is not None and value < min_value:
        return default
    if max_value is not None and value > max_value:
        return default
    return value


def _read_bool_env(env_name: str, default: bool) -> bool:
    raw = os.environ.get(env_name)
    if raw is None:
        return default
    value = str(raw).strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _read_choice_env(env_name: str, default: str, choices: tuple[str, ...]) -> str:
    raw = os.environ.get(env_name)
    if raw is None:
        return default
    value = str(raw).strip().lower()
    return value if value in choices else default


def load_runtime_defaults() -> RuntimeDefaults:
    diagnostics_dir = (os.environ.get(ENV_DIAGNOSTICS_DIR) or "").strip() or None

    return RuntimeDefaults(
        solver=_read_choice_env(ENV_SOLVER, "bicgstab", _SOLVER_CHOICES),
        solver_rtol=_read_float_env(ENV_SOLVER_RTOL, 1e-10, min_value=1e-16, max_value=1e-2),
        solver_max_iterations=_read_int_env(
            ENV_SOLVER_MAX_ITERATIONS, 5000, min_value=1, max_value=1_000_000
        ),
        ilu_drop_tol=_read_float_env(ENV_ILU_DROP_TOL, 1e-6, min_value=0.0, max_value=1.0),
        ilu_fill_factor=_read_float_env(ENV_ILU_FILL_FACTOR, 10.0, min_value=1.0, max_value=100.0),
        check_coloring=_read_bool_env(ENV_CHECK_COLORING, False),
        diagnostics_dir=diagnostics_dir,
    )


DEFAULTS = load_runtime_defaults()
