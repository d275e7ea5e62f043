import argparse
import logging
import sys
from itertools import combinations
from pathlib import Path

from .field_class import InconsistencyError
from .loader import load_all_schemas
from .schema_class import Schema
from .solver_class import Solver
from .utils import coerce_number, format_number

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_UNDERSPECIFIED = 2
EXIT_INCONSISTENT = 3


def _parse_assignments(items: list[str], schema: Schema) -> dict[str, float]:
    values: dict[str, float] = {}
    for item in items:
        name, sep, raw = item.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ValueError(f"expected field=value, got {item!r}")
        if name not in schema.fields:
            raise ValueError(f"schema {schema.name!r} has no field {name!r}")
        values[name] = coerce_number(raw.strip(), name)
    return values


def _format_values(values: dict[str, float | None]) -> str:
    return "{" + ", ".join(f"{name}: {format_number(value)}" for name, value in values.items()) + "}"


def _print_schema(schema: Schema) -> None:
    print(f"Schema: {schema.name}")
    if schema.description:
        print(f"  {schema.description}")
    print("\nFields:")
    for name in schema.fields:
        print(f"  {name}")
    print("\nDefaults (in order):")
    if schema.defaults:
        for name, value in schema.defaults:
            print(f"  {name} = {format_number(value)}")
    else:
        print("  (none)")
    print("\nRules (in order):")
    for idx, rule in enumerate(schema.rules, start=1):
        print(f"  {idx:>2}. {rule.describe()}")


def _solve_one(solver: Solver, values: dict[str, float]) -> int:
    try:
        result = solver.solve(values)
    except InconsistencyError as err:
        print(f"ERROR: {err}", file=sys.stderr)
        return EXIT_INCONSISTENT
    print(_format_values(result.values))
    if not result:
        print(f"underspecified: {', '.join(result.unknown)} unknown", file=sys.stderr)
        return EXIT_UNDERSPECIFIED
    if result.defaults_applied:
        print(f"defaults applied: {', '.join(result.defaults_applied)}")
    return EXIT_OK


def _sweep(solver: Solver, case: dict[str, float]) -> None:
    # Solve every subset of a complete case, smallest subsets first.
    names = list(solver.schema.fields)
    idx = 0
    for size in range(len(names) + 1):
        for subset_names in combinations(names, size):
            subset = {name: case[name] for name in subset_names}
            try:
                result = solver.solve(subset)
            except InconsistencyError as err:
                line = f"ERROR: {err}"
            else:
                line = _format_values(result.values) if result else "underspecified"
            print(f"{idx}: {_format_values(subset)} -> {line}")
            idx += 1


def main(argv: list[str] | None = None) -> None:
    """Entry point for the relsolve command-line interface."""
    parser = argparse.ArgumentParser(prog="relsolve", description="Fill in and check related numeric fields.")
    parser.add_argument(
        "--schema-dir",
        type=Path,
        action="append",
        default=[],
        help="Extra directory of YAML schemas (repeatable).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log solver progress.")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("list", help="List available schemas.")

    show_parser = subparsers.add_parser("show", help="Show fields, defaults and rules of a schema.")
    show_parser.add_argument("schema", help="Schema name (e.g. invoice_item)")

    for command, help_text in (
        ("solve", "Fill in missing fields."),
        ("check", "Check given fields against every rule."),
        ("sweep", "Solve every subset of a complete, consistent case."),
    ):
        sub = subparsers.add_parser(command, help=help_text)
        sub.add_argument("schema", help="Schema name (e.g. invoice_item)")
        sub.add_argument("values", nargs="*", metavar="field=value", help="Known field values.")
        sub.add_argument("--tol", type=float, default=None, help="Consistency tolerance (default from registry).")
        if command in ("solve", "sweep"):
            sub.add_argument(
                "--defaults-order",
                default=None,
                help="Comma-separated default fields to try first (e.g. qty,vat_pct).",
            )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(EXIT_OK)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    schemas = load_all_schemas(args.schema_dir)

    if args.command == "list":
        for name in sorted(schemas):
            description = schemas[name].description
            print(f"{name}: {description}" if description else name)
        sys.exit(EXIT_OK)

    schema = schemas.get(args.schema)
    if schema is None:
        print(f"Schema '{args.schema}' not found; available: {', '.join(sorted(schemas))}", file=sys.stderr)
        sys.exit(EXIT_USAGE)

    if args.command == "show":
        _print_schema(schema)
        sys.exit(EXIT_OK)

    try:
        values = _parse_assignments(args.values, schema)
        if getattr(args, "defaults_order", None):
            schema = schema.with_default_order([name.strip() for name in args.defaults_order.split(",") if name.strip()])
        solver = Solver(schema, tol=args.tol, verbose=args.verbose)
    except ValueError as err:
        print(f"ERROR: {err}", file=sys.stderr)
        sys.exit(EXIT_USAGE)

    if args.command == "solve":
        sys.exit(_solve_one(solver, values))

    if args.command == "check":
        try:
            confirmed = solver.check(values)
        except InconsistencyError as err:
            print(f"ERROR: {err}", file=sys.stderr)
            sys.exit(EXIT_INCONSISTENT)
        print(f"consistent ({len(confirmed)} rules checked)")
        sys.exit(EXIT_OK)

    if args.command == "sweep":
        missing = [name for name in schema.fields if name not in values]
        if missing:
            print(f"ERROR: sweep needs every field; missing {', '.join(missing)}", file=sys.stderr)
            sys.exit(EXIT_USAGE)
        print(f"the real case: {_format_values(values)}")
        _sweep(solver, values)
        sys.exit(EXIT_OK)

    sys.exit(EXIT_USAGE)


if __name__ == "__main__":
    main()
