from pathlib import Path
from typing import Any, Iterable
import warnings

from .registry import SCHEMAS_PATH
from .rule_class import Rule
from .schema_class import Schema
from .utils import load_yaml

REQUIRED_FIELDS = ("name", "fields", "rules")
OPTIONAL_FIELDS = ("defaults", "description")


def _parse_defaults(raw: Any, path: Path) -> list[tuple[str, Any]]:
    if raw is None:
        return []
    # A mapping keeps file order; a list of one-key mappings makes the order explicit.
    if isinstance(raw, dict):
        return list(raw.items())
    if not isinstance(raw, list):
        raise ValueError(f"'defaults' must be a mapping or a list of mappings in {path}")
    pairs: list[tuple[str, Any]] = []
    for item in raw:
        if not isinstance(item, dict) or len(item) != 1:
            raise ValueError(f"each 'defaults' entry must be a single 'field: value' mapping in {path}")
        pairs.extend(item.items())
    return pairs


def _parse_rules(raw: Any, fields: list[str], path: Path) -> list[Rule]:
    if not isinstance(raw, list):
        raise ValueError(f"'rules' must be a list in {path}")
    rules: list[Rule] = []
    for item in raw:
        if isinstance(item, str):
            rules.append(Rule.from_expression(item, fields=fields))
        elif isinstance(item, dict) and "rule" in item:
            rules.append(Rule.from_expression(item["rule"], name=item.get("name"), fields=fields))
        else:
            raise ValueError(f"rule entries must be strings or mappings with a 'rule' key in {path}; got {item!r}")
    return rules


def load_schema_yaml(path: Path | str) -> Schema:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"schema file not found at {path}")

    data = load_yaml(path)
    missing = [field for field in REQUIRED_FIELDS if field not in data]
    if missing:
        missing_list = ", ".join(missing)
        raise ValueError(f"Missing required field(s) in {path}: {missing_list}")

    unexpected = sorted(set(data) - set(REQUIRED_FIELDS) - set(OPTIONAL_FIELDS))
    if unexpected:
        warnings.warn(f"Ignoring unknown key(s) in {path}: {', '.join(unexpected)}", UserWarning)

    fields = data["fields"]
    if not isinstance(fields, list) or not all(isinstance(name, str) for name in fields):
        raise ValueError(f"'fields' must be a list of names in {path}")

    return Schema(
        name=str(data["name"]),
        fields=tuple(fields),
        defaults=tuple(_parse_defaults(data.get("defaults"), path)),
        rules=tuple(_parse_rules(data["rules"], fields, path)),
        description=data.get("description"),
    )


def find_schema_files(root: Path) -> list[Path]:
    root = Path(root)
    if not root.is_dir():
        return []
    files = [child for child in root.iterdir() if child.is_file() and child.suffix in (".yaml", ".yml")]
    return sorted(files, key=lambda p: p.name)


def load_all_schemas(schema_dirs: Iterable[Path] = ()) -> dict[str, Schema]:
    """Return built-in schemas plus those found in ``schema_dirs``, keyed by name."""
    from .schemas import PYTHON_SCHEMAS

    schemas: dict[str, Schema] = dict(PYTHON_SCHEMAS)
    for root in (SCHEMAS_PATH, *schema_dirs):
        for path in find_schema_files(root):
            schema = load_schema_yaml(path)
            if schema.name in schemas:
                raise ValueError(f"Duplicate schema name detected: {schema.name} ({path})")
            schemas[schema.name] = schema
    return schemas


def get_schema(name: str, schema_dirs: Iterable[Path] = ()) -> Schema:
    schemas = load_all_schemas(schema_dirs)
    schema = schemas.get(name)
    if schema is None:
        raise KeyError(f"Schema {name!r} not found; available: {', '.join(sorted(schemas))}")
    return schema
