"""Field store with consistency-checked assignment.

Every value that enters a solve (caller input, rule output, default) goes
through :meth:`FieldStore.assign`, which is the only place contradictions are
detected.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

from .utils import format_number, is_determinate, within_tolerance

logger = logging.getLogger(__name__)

SOURCE_INPUT = "input"
SOURCE_DEFAULT = "default"


class InconsistencyError(ValueError):
    """Two values for the same field disagree beyond tolerance."""

    def __init__(self, field: str, old: float, new: float, source: str | None = None) -> None:
        self.field = field
        self.old = old
        self.new = new
        self.source = source
        message = f"Param inconsistency on {field}: old {old!r} != new {new!r}"
        if source:
            message += f" (from {source})"
        super().__init__(message)


@dataclass
class Field:
    name: str
    value: float | None = None
    source: str | None = None

    @property
    def known(self) -> bool:
        return self.value is not None


class FieldStore:
    """Fixed-schema mapping from field name to a value or ``None`` (unknown)."""

    def __init__(self, names: Iterable[str], *, tol: float) -> None:
        self.tol = tol
        self._fields: dict[str, Field] = {name: Field(name) for name in names}

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __getitem__(self, name: str) -> float | None:
        return self._fields[name].value

    def __repr__(self) -> str:
        body = ", ".join(f"{name}={format_number(f.value)}" for name, f in self._fields.items())
        return f"FieldStore({body})"

    def seed(self, values: Mapping[str, float | None]) -> None:
        """Load caller input; ``None`` entries stay unknown."""
        for name, value in values.items():
            self.assign(name, value, source=SOURCE_INPUT)

    def assign(self, name: str, candidate: float | None, *, source: str | None = None) -> bool:
        """Propose ``candidate`` for field ``name``.

        Returns True when the field was unknown and now holds ``candidate``,
        False when the candidate was unknown or merely confirmed the current
        value.

        Raises:
            KeyError: If ``name`` is not a field of this store.
            InconsistencyError: If the field already holds a value that differs
                from ``candidate`` by more than the tolerance.
        """
        field = self._fields[name]
        if not is_determinate(candidate):
            return False
        candidate = float(candidate)
        if field.value is None:
            field.value, field.source = candidate, source
            return True
        if not within_tolerance(field.value, candidate, tol=self.tol):
            raise InconsistencyError(name, field.value, candidate, source)
        if candidate != field.value:
            logger.debug("%s confirmed by %s within tolerance: %r vs %r", name, source, field.value, candidate)
        return False

    def is_known(self, name: str) -> bool:
        return self._fields[name].known

    def unknown(self) -> list[str]:
        """Names of fields still unknown, in schema order."""
        return [name for name, field in self._fields.items() if not field.known]

    def known_values(self) -> dict[str, float]:
        return {name: field.value for name, field in self._fields.items() if field.value is not None}

    def as_dict(self) -> dict[str, float | None]:
        return {name: field.value for name, field in self._fields.items()}

    def sources(self) -> dict[str, str | None]:
        """Where each known value came from: ``input``, ``default`` or a rule name."""
        return {name: field.source for name, field in self._fields.items() if field.known}
