"""One-directional computation rules.

A rule derives a single target field from zero or more input fields. Rules are
pure: they never write to a field store, they only propose a value that the
solver then routes through the consistency-checked assignment.

Rules can be declared two ways:

- in Python, by decorating a function whose parameter names are the inputs::

    @rule(name="Net from quantity and rate", output="net_amount", tags=("invoice_item",))
    def net_amount(qty: float, rate: float) -> float:
        return qty * rate

- from an expression string, e.g. in a YAML schema::

    Rule.from_expression("net_amount = qty * rate")

Inverse relations are never inferred; each direction is its own rule.
"""
from __future__ import annotations

import inspect
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping

import sympy as sp
from sympy.parsing.sympy_parser import parse_expr

logger = logging.getLogger(__name__)

_SYMBOLS: dict[str, sp.Symbol] = {}
# Registered rule catalog, in declaration order.
_RULES: list[tuple[tuple[str, ...], "Rule"]] = []


def symbol(name: str) -> sp.Symbol:
    """Get a stable Sympy symbol for a field name."""
    # Cache symbols to keep identity stable across rules.
    sym = _SYMBOLS.get(name)
    if sym is None:
        sym = sp.Symbol(name, real=True)
        _SYMBOLS[name] = sym
    return sym


@dataclass(frozen=True, eq=False)
class Rule:
    """Derive ``output`` from ``inputs`` with ``func``.

    Attributes:
        name: Human-readable rule name, used in logs and traces.
        output: Target field name.
        inputs: Field names passed to ``func`` as keyword arguments.
        func: Pure callable returning the target value.
        expr: Sympy expression of the computation, when one could be built.
    """

    name: str
    output: str
    inputs: tuple[str, ...]
    func: Callable[..., float] = field(repr=False)
    expr: sp.Expr | None = field(default=None, repr=False)

    def evaluate(self, values: Mapping[str, float | None]) -> float | None:
        """Compute the target value, or None when it cannot be computed yet.

        A rule cannot compute while any input is unknown. Arithmetic failures
        (division by zero, math domain errors, overflow) and non-finite results
        also yield None, so the rule stays active for a later pass.
        """
        kwargs: dict[str, float] = {}
        for name in self.inputs:
            value = values.get(name)
            if value is None:
                return None
            kwargs[name] = value
        try:
            result = self.func(**kwargs)
        except (ArithmeticError, ValueError) as exc:
            logger.debug("Rule %r not applicable: %s", self.name, exc)
            return None
        if result is None:
            return None
        try:
            number = float(result)
        except (TypeError, ValueError):
            return None
        return number if math.isfinite(number) else None

    def describe(self) -> str:
        """Return ``output = expression`` when the expression is known."""
        if self.expr is None:
            return f"{self.output} = {self.name}({', '.join(self.inputs)})"
        return f"{self.output} = {self.expr}"

    @classmethod
    def from_function(
        cls,
        func: Callable[..., float],
        *,
        output: str,
        name: str | None = None,
        inputs: tuple[str, ...] | None = None,
    ) -> Rule:
        """Wrap a plain function; its parameter names are the rule inputs."""
        arg_names = tuple(inputs) if inputs is not None else tuple(inspect.signature(func).parameters.keys())
        try:
            expr = sp.sympify(func(*[symbol(arg) for arg in arg_names]))
        except (TypeError, ValueError, AttributeError, sp.SympifyError):
            # Functions using math.* on floats can't be traced symbolically.
            expr = None
        return cls(
            name=name or func.__name__,
            output=output,
            inputs=arg_names,
            func=func,
            expr=expr,
        )

    @classmethod
    def from_expression(
        cls,
        text: str,
        *,
        name: str | None = None,
        fields: Iterable[str] | None = None,
    ) -> Rule:
        """Build a rule from ``"target = expression"``.

        Args:
            text: Rule text, e.g. ``"qty = net_amount / rate"``.
            name: Optional rule name (defaults to the text itself).
            fields: Field names to parse as symbols, so names that clash with
                Sympy constants (``E``, ``I``, ``S``...) still map to fields.

        Raises:
            ValueError: If the text has no ``=`` or the expression can't be parsed.
        """
        target, sep, rhs = text.partition("=")
        target, rhs = target.strip(), rhs.strip()
        if not sep or not target or not rhs:
            raise ValueError(f"Rule {text!r} must have the form 'target = expression'")
        if not target.isidentifier():
            raise ValueError(f"Rule {text!r} target must be a field name")
        local_dict = {f: symbol(f) for f in (fields or ())}
        try:
            expr = parse_expr(rhs, local_dict=local_dict)
        except Exception as exc:
            raise ValueError(f"Could not parse rule {text!r}: {exc}") from exc
        if not isinstance(expr, sp.Expr):
            raise ValueError(f"Rule {text!r} must be an arithmetic expression")
        arg_names = tuple(sorted(sym.name for sym in expr.free_symbols))
        fn = sp.lambdify([symbol(arg) for arg in arg_names], expr, "math")

        def compute(**kwargs: float) -> float:
            return fn(*(kwargs[arg] for arg in arg_names))

        return cls(
            name=name or f"{target} = {rhs}",
            output=target,
            inputs=arg_names,
            func=compute,
            expr=expr,
        )


def rule(
    *,
    output: str,
    name: str | None = None,
    tags: str | tuple[str, ...] = (),
    inputs: tuple[str, ...] | None = None,
):
    """Decorate a function as a rule registered in the tag catalog.

    Untagged rules are attached to the function but left out of the catalog.
    """
    tag_tuple = (tags,) if isinstance(tags, str) else tuple(tags)

    def decorator(func):
        """Wrap the function in a Rule and attach it to the catalog."""
        new_rule = Rule.from_function(func, output=output, name=name, inputs=inputs)
        if tag_tuple:
            _RULES.append((tag_tuple, new_rule))
        setattr(func, "rule", new_rule)
        return func

    return decorator


def rules_with_tags(
    tags: str | tuple[str, ...],
    *,
    require_all: bool = True,
    exclude: tuple[str, ...] | None = None,
) -> tuple[Rule, ...]:
    """Return registered rules matching ``tags``, in declaration order.

    Raises:
        ValueError: If no tag is requested.
    """
    requested = (tags,) if isinstance(tags, str) else tuple(tags)
    if not requested:
        raise ValueError("rules_with_tags needs at least one tag")
    exclude_set = set(exclude or ())

    matches: list[Rule] = []
    seen: set[int] = set()
    for rule_tags, registered in _RULES:
        if exclude_set and exclude_set.intersection(rule_tags):
            continue
        if require_all:
            if not all(tag in rule_tags for tag in requested):
                continue
        else:
            if not any(tag in rule_tags for tag in requested):
                continue
        if id(registered) in seen:
            continue
        seen.add(id(registered))
        matches.append(registered)
    return tuple(matches)
