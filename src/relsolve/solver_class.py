"""Fixpoint solver for a schema's rules and defaults.

Core ideas:
- Rules are one-directional; each is applied at most once per solve.
- A pass applies every active rule once. Passes repeat until every field is
  known (solved) or a pass leaves the unknown count unchanged (stuck).
- When stuck, defaults are injected one at a time in declared order, each
  followed by a full fixpoint run from where the previous one stopped.
- Any contradiction raises :class:`InconsistencyError` and aborts the solve.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from .field_class import SOURCE_DEFAULT, FieldStore, InconsistencyError
from .registry import float_diff_limit, load_solver_defaults
from .rule_class import Rule
from .schema_class import Schema
from .utils import coerce_number, format_number

logger = logging.getLogger(__name__)

SOLVED = "solved"
UNDERSPECIFIED = "underspecified"


@dataclass(frozen=True, eq=False)
class SolveResult:
    """Outcome of :meth:`Solver.solve`.

    Falsy when the schema could not be fully specified, so callers can branch
    without exception handling::

        result = solve(schema, data)
        if not result:
            print("missing:", result.unknown)

    Attributes:
        status: ``"solved"`` or ``"underspecified"``.
        values: Every schema field, ``None`` where still unknown.
        unknown: Fields still unknown (empty when solved).
        defaults_applied: Default fields injected, in order.
        rules_applied: Names of consumed rules, in application order.
        sources: Origin of each known value (``input``, ``default`` or a rule name).
        passes: Total rule passes run across all attempts.
    """

    status: str
    values: dict[str, float | None]
    unknown: tuple[str, ...] = ()
    defaults_applied: tuple[str, ...] = ()
    rules_applied: tuple[str, ...] = ()
    sources: dict[str, str | None] = field(default_factory=dict)
    passes: int = 0

    @property
    def solved(self) -> bool:
        return self.status == SOLVED

    def __bool__(self) -> bool:
        return self.solved

    def __repr__(self) -> str:
        body = ", ".join(f"{name}={format_number(value)}" for name, value in self.values.items())
        return f"SolveResult({self.status}: {body})"


@dataclass
class _Attempt:
    """Mutable bookkeeping private to one solve call."""

    store: FieldStore
    active: list[Rule]
    applied: list[str] = field(default_factory=list)
    passes: int = 0


class _SolverLogAdapter(logging.LoggerAdapter):
    """Per-solver adapter; quiet solvers only pass warnings and above."""

    def __init__(self, logger: logging.Logger, extra: dict, verbose: bool) -> None:
        super().__init__(logger, extra)
        self.floor = logging.DEBUG if verbose else logging.WARNING

    def isEnabledFor(self, level: int) -> bool:
        return level >= self.floor and super().isEnabledFor(level)


@dataclass
class Solver:
    """Solve datasets of one schema."""

    schema: Schema
    tol: float | None = None
    verbose: bool = False
    _log: _SolverLogAdapter = field(init=False, repr=False)
    _pass_level: int = field(init=False, repr=False, default=logging.DEBUG)

    def __post_init__(self) -> None:
        """Resolve the tolerance and set up a per-instance logger."""
        if self.tol is None:
            self.tol = float_diff_limit()
        if self.tol < 0:
            raise ValueError(f"tol must be non-negative; got {self.tol}")
        self._pass_level = logging.INFO if load_solver_defaults().get("log_passes") else logging.DEBUG
        self._log = _SolverLogAdapter(
            logger.getChild(self.__class__.__name__),
            {"schema": self.schema.name, "pass_id": None},
            self.verbose,
        )

    def _new_store(self, values: Mapping[str, object] | None) -> FieldStore:
        store = FieldStore(self.schema.fields, tol=self.tol)
        seeded: dict[str, float | None] = {}
        for name, raw in (values or {}).items():
            if name not in store:
                raise ValueError(f"Schema {self.schema.name!r} has no field {name!r}")
            seeded[name] = coerce_number(raw, name)
        store.seed(seeded)
        return store

    def solve(self, values: Mapping[str, object] | None = None) -> SolveResult:
        """Fill in missing fields of ``values``.

        Args:
            values: Partial mapping field -> number. Missing or ``None`` entries
                start unknown.

        Returns:
            A solved result holding every field, or an underspecified one when
            the input, rules and all defaults together can't pin every field.

        Raises:
            ValueError: If ``values`` names a field outside the schema or holds a
                non-numeric value.
            InconsistencyError: If two values for one field disagree beyond
                tolerance. No partial result is returned.
        """
        attempt = _Attempt(store=self._new_store(values), active=list(self.schema.rules))
        self._log.debug(
            "Starting solve: %s fields, %s rules, %s defaults, known=%s",
            len(self.schema.fields),
            len(self.schema.rules),
            len(self.schema.defaults),
            sorted(attempt.store.known_values()),
        )

        # Try to solve it without using defaults.
        if self._run_to_fixpoint(attempt):
            return self._result(attempt, SOLVED, ())

        # Apply defaults one by one, each followed by a full fixpoint run.
        defaults_applied: list[str] = []
        for name, value in self.schema.defaults:
            if attempt.store.is_known(name):
                continue
            self._log.info("Applying default %s=%s", name, format_number(value))
            attempt.store.assign(name, value, source=SOURCE_DEFAULT)
            defaults_applied.append(name)
            if self._run_to_fixpoint(attempt):
                return self._result(attempt, SOLVED, defaults_applied)

        self._log.info("Underspecified: %s still unknown", ", ".join(attempt.store.unknown()))
        return self._result(attempt, UNDERSPECIFIED, defaults_applied)

    def _run_to_fixpoint(self, attempt: _Attempt) -> bool:
        """Run passes until solved (True) or stuck (False).

        The active rule list is left as it stood when the loop stopped, so a
        later attempt resumes without retrying consumed rules.
        """
        prev_unknown: int | None = None
        while True:
            unknown = len(attempt.store.unknown())
            self._log.extra["pass_id"] = attempt.passes
            self._log.log(
                self._pass_level,
                "Pass %s: %s unknown, %s active rules",
                attempt.passes,
                unknown,
                len(attempt.active),
            )
            if unknown == 0:
                return True
            if unknown == prev_unknown:
                return False
            prev_unknown = unknown
            attempt.active = self._apply_rules(attempt)
            attempt.passes += 1

    def _apply_rules(self, attempt: _Attempt) -> list[Rule]:
        """Evaluate each active rule once; return the rules still active."""
        remaining: list[Rule] = []
        for rule in attempt.active:
            # Rules see the store as updated by earlier rules in this pass.
            candidate = rule.evaluate(attempt.store.as_dict())
            if candidate is None:
                remaining.append(rule)
                continue
            try:
                attempt.store.assign(rule.output, candidate, source=rule.name)
            except InconsistencyError:
                self._log.info("Rule %r contradicts %s", rule.name, rule.output)
                raise
            self._log.debug("Applied %r: %s=%s", rule.name, rule.output, format_number(candidate))
            attempt.applied.append(rule.name)
        return remaining

    def _result(self, attempt: _Attempt, status: str, defaults_applied: Sequence[str]) -> SolveResult:
        store = attempt.store
        if status == SOLVED:
            self._log.info(
                "Solved after %s passes (%s rules applied, defaults: %s)",
                attempt.passes,
                len(attempt.applied),
                ", ".join(defaults_applied) or "none",
            )
        return SolveResult(
            status=status,
            values=store.as_dict(),
            unknown=tuple(store.unknown()),
            defaults_applied=tuple(defaults_applied),
            rules_applied=tuple(attempt.applied),
            sources=store.sources(),
            passes=attempt.passes,
        )

    def check(self, values: Mapping[str, object]) -> list[str]:
        """Apply every rule once against ``values`` and return the names of rules that produced a value.

        On complete data every such rule confirmed an existing value; on partial
        data the list also holds rules that derived a missing one.

        Unlike :meth:`solve`, this evaluates rules even when every field is
        already given, so contradictions inside a complete dataset are caught.
        Defaults are not used.

        Raises:
            InconsistencyError: On the first rule that contradicts the data.
        """
        attempt = _Attempt(store=self._new_store(values), active=list(self.schema.rules))
        self._apply_rules(attempt)
        return attempt.applied


def solve(
    schema: Schema,
    values: Mapping[str, object] | None = None,
    *,
    tol: float | None = None,
    verbose: bool = False,
) -> SolveResult:
    """Solve ``values`` against ``schema``. See :meth:`Solver.solve`."""
    return Solver(schema, tol=tol, verbose=verbose).solve(values)


def check(schema: Schema, values: Mapping[str, object], *, tol: float | None = None) -> list[str]:
    """Check ``values`` against every rule of ``schema``. See :meth:`Solver.check`."""
    return Solver(schema, tol=tol).check(values)
