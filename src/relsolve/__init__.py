from .field_class import FieldStore, InconsistencyError
from .rule_class import Rule, rule, rules_with_tags
from .schema_class import Schema
from .solver_class import SOLVED, UNDERSPECIFIED, SolveResult, Solver, check, solve
from .loader import find_schema_files, get_schema, load_all_schemas, load_schema_yaml
from .registry import float_diff_limit, load_solver_defaults

__all__ = [
    "FieldStore",
    "InconsistencyError",
    "Rule",
    "SOLVED",
    "Schema",
    "SolveResult",
    "Solver",
    "UNDERSPECIFIED",
    "check",
    "find_schema_files",
    "float_diff_limit",
    "get_schema",
    "load_all_schemas",
    "load_schema_yaml",
    "load_solver_defaults",
    "rule",
    "rules_with_tags",
    "solve",
]
