"""Schema: the field list, default table and rule list of one domain."""
from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field, replace
from typing import Callable, Mapping, Sequence

import networkx as nx

from .rule_class import Rule
from .utils import coerce_number, ensure_list

logger = logging.getLogger(__name__)

WarnFunc = Callable[[str, type[Warning] | None], None]


@dataclass(frozen=True)
class Schema:
    """Immutable description of a domain.

    Attributes:
        name: Schema identifier (e.g. ``"invoice_item"``).
        fields: Ordered field names.
        defaults: Ordered ``(field, value)`` pairs tried when input and rules
            are not enough. Order matters: see :meth:`with_default_order`.
        rules: Ordered rules; order fixes evaluation order within a pass.
        description: Optional free-form text.
    """

    name: str
    fields: tuple[str, ...]
    defaults: tuple[tuple[str, float], ...] = ()
    rules: tuple[Rule, ...] = ()
    description: str | None = None
    warn: WarnFunc = field(default=warnings.warn, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(ensure_list(self.fields, name=f"{self.name} fields", item_desc="field names")))
        object.__setattr__(self, "rules", tuple(ensure_list(self.rules, name=f"{self.name} rules", item_desc="Rule objects")))
        defaults = self.defaults.items() if isinstance(self.defaults, Mapping) else self.defaults
        object.__setattr__(
            self,
            "defaults",
            tuple((str(name), coerce_number(value, f"default {name}")) for name, value in defaults),
        )
        self.validate()

    @property
    def default_map(self) -> dict[str, float]:
        return dict(self.defaults)

    def validate(self) -> None:
        """Check the schema is well formed.

        Raises:
            ValueError: On duplicate fields or defaults, defaults without a value,
                or rules/defaults naming fields outside the schema.

        Fields that no rule derives and no default covers can only be
        supplied by the caller; they are reported through ``warn``.
        """
        seen: set[str] = set()
        for name in self.fields:
            if name in seen:
                raise ValueError(f"Schema {self.name!r}: duplicate field {name!r}")
            seen.add(name)

        default_names: set[str] = set()
        for name, value in self.defaults:
            if name not in seen:
                raise ValueError(f"Schema {self.name!r}: default for unknown field {name!r}")
            if name in default_names:
                raise ValueError(f"Schema {self.name!r}: duplicate default for {name!r}")
            if value is None:
                raise ValueError(f"Schema {self.name!r}: default for {name!r} has no value")
            default_names.add(name)

        for rule in self.rules:
            if not isinstance(rule, Rule):
                raise TypeError(f"Schema {self.name!r}: rules must be Rule objects; got {rule!r}")
            unknown = [n for n in (rule.output, *rule.inputs) if n not in seen]
            if unknown:
                raise ValueError(
                    f"Schema {self.name!r}: rule {rule.name!r} references unknown field(s) {', '.join(unknown)}"
                )

        for name in self.input_only_fields():
            self.warn(
                f"Schema {self.name!r}: {name} is never derived by a rule and has no default; it must be supplied",
                UserWarning,
            )

    def rule_graph(self) -> nx.DiGraph:
        """Return the field/rule dependency graph.

        Field nodes are the field names (``kind="field"``); each rule is a node
        (``kind="rule"``) with edges from its inputs and to its output.
        """
        graph = nx.DiGraph()
        for name in self.fields:
            graph.add_node(name, kind="field", default=self.default_map.get(name))
        for idx, rule in enumerate(self.rules):
            node = ("rule", idx)
            graph.add_node(node, kind="rule", name=rule.name)
            for name in rule.inputs:
                graph.add_edge(name, node)
            graph.add_edge(node, rule.output)
        return graph

    def input_only_fields(self) -> list[str]:
        """Fields with no producing rule and no default, in schema order."""
        graph = self.rule_graph()
        defaults = self.default_map
        return [name for name in self.fields if graph.in_degree(name) == 0 and name not in defaults]

    def with_default_order(self, order: Sequence[str]) -> Schema:
        """Return a copy with the default table reordered.

        Defaults named in ``order`` come first, in that order; the rest keep
        their relative order after them.

        Raises:
            ValueError: If ``order`` names a field without a default.
        """
        defaults = self.default_map
        missing = [name for name in order if name not in defaults]
        if missing:
            raise ValueError(f"Schema {self.name!r} has no default for {', '.join(missing)}")
        head = [(name, defaults[name]) for name in order]
        tail = [(name, value) for name, value in self.defaults if name not in order]
        return replace(self, defaults=tuple(head + tail), warn=_silent)

    def with_defaults(self, defaults: Mapping[str, float] | Sequence[tuple[str, float]]) -> Schema:
        """Return a copy with a different default table."""
        return replace(self, defaults=defaults, warn=_silent)


def _silent(message: str, category: type[Warning] | None = None) -> None:
    # Copies were already validated once; don't repeat the warnings.
    logger.debug(message)
