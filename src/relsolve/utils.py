"""Shared numeric and utility helpers for the relsolve package.

This module provides common utility functions for:
- Numeric coercion of caller input
- Tolerance-based comparison of field values
- YAML file loading
"""
from __future__ import annotations

import math
from pathlib import Path
from typing import Any

import yaml


def relative_difference(old: float, new: float) -> float:
    """Return the difference between two values, relative to the old one.

    The difference is normalised by ``|old|`` unless ``old`` is zero, in which
    case the absolute difference is returned.

    Example:
        >>> relative_difference(100.0, 101.0)
        0.01
        >>> relative_difference(0.0, 0.5)
        0.5
    """
    diff = abs(new - old)
    if old != 0:
        diff /= abs(old)
    return diff


def within_tolerance(old: float, new: float, *, tol: float) -> bool:
    """Check if ``new`` agrees with ``old`` within ``tol``.

    Args:
        old: Baseline value (the one already known).
        new: Candidate value.
        tol: Maximum allowed relative difference (absolute at a zero baseline).

    Returns:
        True if the candidate is accepted as equal to the baseline.
    """
    return relative_difference(old, new) <= tol


def is_determinate(value: object) -> bool:
    """Return True for a finite real number (bools excluded)."""
    if value is None or isinstance(value, bool):
        return False
    if not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def coerce_number(value: Any, field_name: str) -> float | None:
    """Convert a value to a float, ensuring it is finite.

    Args:
        value: The value to convert. Can be int, float, a numeric string, or None.
        field_name: The name of the field for error reporting.

    Returns:
        The value as a float, or None if the input is None.

    Raises:
        ValueError: If the value is not numeric, not finite, or cannot be converted.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be numeric; got {value!r}")
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            raise ValueError(f"{field_name} must be numeric; got {value!r}") from None
    if isinstance(value, (int, float)):
        number = float(value)
        if not math.isfinite(number):
            raise ValueError(f"{field_name} must be finite; got {value!r}")
        return number
    raise ValueError(f"{field_name} must be numeric; got {value!r}")


def load_yaml(path: Path | str) -> dict:
    """Load and parse a YAML file into a dictionary.

    Args:
        path: Path to YAML file.

    Returns:
        Dictionary containing parsed YAML content.
        Returns empty dict if file is empty or contains only None.

    Raises:
        FileNotFoundError: If path doesn't exist.
        ValueError: If the top level is not a mapping.
        yaml.YAMLError: If YAML parsing fails.
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping at the top level")
    return data


def ensure_list(value: object | None, *, name: str, item_desc: str) -> list:
    """Ensure a value is a list (or empty), raising a descriptive error otherwise."""
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"{name} must be a list of {item_desc}")
    return list(value)


def format_number(value: float | None) -> str:
    """Render a field value for display (``?`` when unknown)."""
    if value is None:
        return "?"
    return f"{value:.10g}"
