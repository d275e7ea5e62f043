"""Registry module for solver defaults and the built-in YAML schemas."""
from __future__ import annotations

from pathlib import Path
from typing import Any

from ..utils import load_yaml

# Registry paths
REGISTRY_PATH = Path(__file__).resolve().parent
SOLVER_DEFAULTS_PATH = REGISTRY_PATH / "solver_defaults.yaml"
SCHEMAS_PATH = REGISTRY_PATH / "schemas"

# Private caches
_SOLVER_DEFAULTS: dict[str, Any] | None = None


def load_solver_defaults() -> dict[str, Any]:
    """Load solver defaults. Args: none. Returns: dict."""
    global _SOLVER_DEFAULTS
    if _SOLVER_DEFAULTS is None:
        _SOLVER_DEFAULTS = load_yaml(SOLVER_DEFAULTS_PATH)
    return _SOLVER_DEFAULTS


def float_diff_limit() -> float:
    """Tolerance used by assignments when the caller doesn't pass one."""
    return float(load_solver_defaults().get("float_diff_limit", 1e-6))


__all__ = [
    "REGISTRY_PATH",
    "SCHEMAS_PATH",
    "SOLVER_DEFAULTS_PATH",
    "float_diff_limit",
    "load_solver_defaults",
]
