# File: local2py/validators.py
"""
local2py - Document Validators
===============================
A **pure-function validation pipeline** over the raw document produced by
the YAML parser.  Each ``validate_*`` function inspects one section and
returns a ``ValidationResult``; ``validate_document`` merges them all.

Only local shape is checked.  Cross-table references (does ``to_table``
exist, does a FOREIGN KEY column have a ``foreign`` entry) are left alone:
dangling references surface as SQL errors when the generated database is
opened.

Usage by downstream modules:
    from local2py.validators import validate_document
    result = validate_document(raw)
    if not result.is_valid:
        ...
"""

from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from local2py.models import CONSTRAINT_VALUES, INTEGER_TYPES, REFERENTIAL_ACTION_VALUES
from local2py.utils import is_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("local2py.validators")

# ---------------------------------------------------------------------------
# Document vocabulary
# ---------------------------------------------------------------------------

KNOWN_TOP_LEVEL_KEYS: FrozenSet[str] = frozenset({
    "version",
    "dir_database",
    "foreign_key_constrain_support",
    "table",
    "query",
    "view",
    "trigger",
    "seed",
    "config",
})

_COLUMN_KEYS: FrozenSet[str] = frozenset({
    "type", "constraint", "autoincrement", "nullable", "default", "check",
})
_FOREIGN_KEYS: FrozenSet[str] = frozenset({
    "to_table", "to_column", "on_update", "on_delete",
})

SQL_RESERVED_WORDS: FrozenSet[str] = frozenset({
    "add", "all", "alter", "and", "as", "autoincrement", "between", "case",
    "check", "collate", "commit", "constraint", "create", "default",
    "deferrable", "delete", "distinct", "drop", "else", "escape", "except",
    "exists", "foreign", "from", "group", "having", "if", "in", "index",
    "insert", "intersect", "into", "is", "isnull", "join", "limit", "not",
    "notnull", "null", "on", "or", "order", "primary", "references",
    "select", "set", "table", "then", "to", "transaction", "union", "unique",
    "update", "using", "values", "when", "where",
})


# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationError:
    """Lightweight problem descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    @property
    def path(self) -> str:
        return str(self.context.get("path", ""))

    def __repr__(self) -> str:
        where: str = f" [{self.path}]" if self.path else ""
        return f"[{self.level.upper()}] {self.code}{where}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()


class ValidationResult:
    """Accumulates ``ValidationError`` instances produced by the pipeline."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationError] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(self, code: str, message: str, path: str = "") -> None:
        self._items.append(ValidationError("error", code, message, {"path": path}))

    def add_warning(self, code: str, message: str, path: str = "") -> None:
        self._items.append(ValidationError("warning", code, message, {"path": path}))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_warning]

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def summary(self) -> str:
        return (
            f"Validation: {len(self.errors)} error(s), "
            f"{len(self.warnings)} warning(s), "
            f"{len(self._items)} total item(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary(), ""]
        for item in self._items:
            prefix: str = "✗" if item.is_error else "⚠"
            lines.append(f"  {prefix} {item}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _section(raw: Mapping[str, Any], key: str, result: ValidationResult) -> Dict[str, Any]:
    """Return a mapping section, reporting a non-mapping value as an error."""
    value: Any = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        result.add_error(
            "invalid_section",
            f"Section '{key}' must be a mapping, got {type(value).__name__}.",
            key,
        )
        return {}
    return dict(value)


def _check_bool(value: Any, name: str, path: str, result: ValidationResult) -> None:
    if value is not None and not isinstance(value, bool):
        result.add_error(
            "invalid_flag",
            f"'{name}' must be a boolean, got {value!r}.",
            path,
        )


def _check_optional_int(value: Any, name: str, path: str, result: ValidationResult) -> None:
    if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
        result.add_error(
            "invalid_projection",
            f"'{name}' must be an integer, got {value!r}.",
            path,
        )


# ---------------------------------------------------------------------------
# Section validators
# ---------------------------------------------------------------------------


def validate_document_shape(raw: Any) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    if not isinstance(raw, Mapping):
        result.add_error(
            "malformed_document",
            f"Top-level document must be a mapping, got {type(raw).__name__}.",
        )
        return result
    for key in raw:
        if key not in KNOWN_TOP_LEVEL_KEYS:
            result.add_warning("unknown_key", f"Unknown top-level key '{key}' is ignored.", str(key))
    if "dir_database" in raw and not isinstance(raw["dir_database"], str):
        result.add_error("invalid_section", "'dir_database' must be a string.", "dir_database")
    _check_bool(raw.get("foreign_key_constrain_support"), "foreign_key_constrain_support",
                "foreign_key_constrain_support", result)
    return result


def validate_version(raw: Mapping[str, Any]) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    if "version" not in raw:
        return result
    version: Any = raw["version"]
    if isinstance(version, bool) or not isinstance(version, int) or version <= 0:
        result.add_error(
            "invalid_version",
            f"'version' must be a positive integer, got {version!r}.",
            "version",
        )
    return result


def _validate_column(table: str, name: str, column: Any, result: ValidationResult) -> None:
    path: str = f"table.{table}.column.{name}"

    if isinstance(column, str):
        if not column.strip():
            result.add_error("missing_column_type", f"Column '{name}' has an empty type.", path)
        return
    if not isinstance(column, Mapping):
        result.add_error(
            "invalid_column",
            f"Column '{name}' must be a type string or a mapping with 'type'.",
            path,
        )
        return

    column_type: Any = column.get("type")
    if not isinstance(column_type, str) or not column_type.strip():
        result.add_error("missing_column_type", f"Column '{name}' must declare a 'type'.", path)

    for key in column:
        if key not in _COLUMN_KEYS:
            result.add_error("invalid_column", f"Unknown column attribute '{key}'.", f"{path}.{key}")

    constraint: Any = column.get("constraint")
    if constraint is not None:
        normalised: str = " ".join(str(constraint).upper().split())
        if normalised not in CONSTRAINT_VALUES:
            result.add_error(
                "invalid_constraint",
                f"Constraint '{constraint}' is not one of "
                f"{', '.join(sorted(CONSTRAINT_VALUES))}.",
                f"{path}.constraint",
            )

    _check_bool(column.get("nullable"), "nullable", f"{path}.nullable", result)
    _check_bool(column.get("autoincrement"), "autoincrement", f"{path}.autoincrement", result)

    if column.get("autoincrement") is True:
        is_pk: bool = str(constraint or "").upper().split() == ["PRIMARY", "KEY"]
        is_int: bool = str(column_type or "").strip().upper() in INTEGER_TYPES
        if not (is_pk and is_int):
            result.add_warning(
                "autoincrement_without_integer_pk",
                f"Column '{name}' sets autoincrement but is not an INTEGER PRIMARY KEY.",
                path,
            )

    if not is_snake_case(name):
        result.add_warning("naming_convention", f"Column '{name}' is not snake_case.", path)
    if name.lower() in SQL_RESERVED_WORDS:
        result.add_warning(
            "reserved_column_name",
            f"Column '{name}' is an SQL keyword and may need quoting.",
            path,
        )


def _validate_foreign(table: str, foreign: Any, result: ValidationResult) -> None:
    base: str = f"table.{table}.foreign"
    if foreign is None:
        return
    if not isinstance(foreign, Mapping):
        result.add_error("invalid_foreign_key", "'foreign' must be a mapping.", base)
        return
    for column_name, entry in foreign.items():
        path: str = f"{base}.{column_name}"
        if not isinstance(entry, Mapping):
            result.add_error("invalid_foreign_key", "Foreign key entry must be a mapping.", path)
            continue
        for key in entry:
            if key not in _FOREIGN_KEYS:
                result.add_error("invalid_foreign_key", f"Unknown foreign key attribute '{key}'.",
                                 f"{path}.{key}")
        for required in ("to_table", "to_column"):
            value: Any = entry.get(required)
            if not isinstance(value, str) or not value.strip():
                result.add_error(
                    "invalid_foreign_key",
                    f"Foreign key on '{column_name}' must declare '{required}'.",
                    f"{path}.{required}",
                )
        for action_key in ("on_update", "on_delete"):
            action: Any = entry.get(action_key)
            if action is None:
                continue
            if " ".join(str(action).upper().split()) not in REFERENTIAL_ACTION_VALUES:
                result.add_error(
                    "invalid_referential_action",
                    f"'{action_key}' value '{action}' is not one of "
                    f"{', '.join(sorted(REFERENTIAL_ACTION_VALUES))}.",
                    f"{path}.{action_key}",
                )


def validate_tables(raw: Mapping[str, Any]) -> ValidationResult:
    """Every table needs at least one well-formed column."""
    result: ValidationResult = ValidationResult()
    tables: Dict[str, Any] = _section(raw, "table", result)

    for table_name, table in tables.items():
        path: str = f"table.{table_name}"
        name: str = str(table_name)

        if name.lower() in SQL_RESERVED_WORDS:
            result.add_error(
                "reserved_table_name",
                f"Table name '{name}' is an SQL reserved word.",
                path,
            )
        elif not is_snake_case(name):
            result.add_warning("naming_convention", f"Table '{name}' is not snake_case.", path)

        if table is None:
            table = {}
        if not isinstance(table, Mapping):
            result.add_error("invalid_table", f"Table '{name}' must be a mapping.", path)
            continue

        _check_bool(table.get("create_if_not_exists"), "create_if_not_exists",
                    f"{path}.create_if_not_exists", result)

        columns: Any = table.get("column")
        if not isinstance(columns, Mapping) or not columns:
            result.add_error(
                "missing_columns",
                f"Table '{name}' must declare at least one column.",
                f"{path}.column",
            )
        else:
            for column_name, column in columns.items():
                _validate_column(name, str(column_name), column, result)

        _validate_foreign(name, table.get("foreign"), result)

    return result


def _validate_projection(kind: str, path: str, name: str, body: Any, result: ValidationResult) -> None:
    if not isinstance(body, Mapping):
        result.add_error(f"invalid_{kind}", f"{kind.capitalize()} '{name}' must be a mapping.", path)
        return

    columns: Any = body.get("column")
    if not isinstance(columns, Mapping) or not columns:
        result.add_error(
            "missing_projection_columns",
            f"{kind.capitalize()} '{name}' must declare at least one column.",
            f"{path}.column",
        )
    else:
        for column_name, column in columns.items():
            column_path: str = f"{path}.column.{column_name}"
            if isinstance(column, str):
                continue
            if not isinstance(column, Mapping) or not column.get("type"):
                result.add_error(
                    "missing_column_type",
                    f"Projection column '{column_name}' must declare a 'type'.",
                    column_path,
                )

    join: Any = body.get("join")
    if join is not None and not (
        isinstance(join, list) and all(isinstance(j, str) for j in join)
    ):
        result.add_error("invalid_projection", "'join' must be a list of strings.", f"{path}.join")

    _check_bool(body.get("distinct", body.get("disticnt")), "distinct", f"{path}.distinct", result)
    _check_optional_int(body.get("limit"), "limit", f"{path}.limit", result)
    _check_optional_int(body.get("offset"), "offset", f"{path}.offset", result)


def validate_queries(raw: Mapping[str, Any]) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    queries: Dict[str, Any] = _section(raw, "query", result)

    for table_name, group in queries.items():
        group_path: str = f"query.{table_name}"
        if not isinstance(group, Mapping):
            result.add_error("invalid_query", f"Queries for '{table_name}' must be a mapping.", group_path)
            continue
        for query_name, body in group.items():
            _validate_projection("query", f"{group_path}.{query_name}", str(query_name), body, result)

    return result


def validate_views(raw: Mapping[str, Any]) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    views: Dict[str, Any] = _section(raw, "view", result)

    for view_name, body in views.items():
        path: str = f"view.{view_name}"
        _validate_projection("view", path, str(view_name), body, result)
        if isinstance(body, Mapping):
            source: Any = body.get("from")
            if not isinstance(source, str) or not source.strip():
                result.add_error(
                    "missing_view_from",
                    f"View '{view_name}' must declare a non-empty 'from'.",
                    f"{path}.from",
                )
            _check_bool(body.get("create_if_not_exists"), "create_if_not_exists",
                        f"{path}.create_if_not_exists", result)

    return result


def validate_triggers(raw: Mapping[str, Any]) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    triggers: Dict[str, Any] = _section(raw, "trigger", result)

    for trigger_name, body in triggers.items():
        path: str = f"trigger.{trigger_name}"
        raw_sql: Any = body.get("raw_sql") if isinstance(body, Mapping) else None
        if not isinstance(raw_sql, str) or not raw_sql.strip():
            result.add_error(
                "invalid_trigger",
                f"Trigger '{trigger_name}' must declare a non-empty 'raw_sql'.",
                f"{path}.raw_sql",
            )

    return result


def validate_seeds(raw: Mapping[str, Any]) -> ValidationResult:
    """Each seed row must carry exactly one value per declared column."""
    result: ValidationResult = ValidationResult()
    seeds: Dict[str, Any] = _section(raw, "seed", result)

    for table_name, body in seeds.items():
        path: str = f"seed.{table_name}"
        if not isinstance(body, Mapping):
            result.add_error("invalid_seed", f"Seed '{table_name}' must be a mapping.", path)
            continue

        columns: Any = body.get("column")
        values: Any = body.get("value", [])
        if not isinstance(columns, list) or not columns:
            result.add_error("invalid_seed", "'column' must be a non-empty list.", f"{path}.column")
            continue
        if not isinstance(values, list):
            result.add_error("invalid_seed", "'value' must be a list of rows.", f"{path}.value")
            continue

        for index, row in enumerate(values):
            if row is None or isinstance(row, (list, dict)):
                result.add_error("invalid_seed", "Seed row must be a comma-joined string.",
                                 f"{path}.value[{index}]")
                continue
            count: int = len(str(row).split(","))
            if count != len(columns):
                result.add_error(
                    "seed_row_mismatch",
                    f"Seed row {index} has {count} value(s) for {len(columns)} column(s).",
                    f"{path}.value[{index}]",
                )

    return result


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


def validate_document(raw: Any) -> ValidationResult:
    """Run every section validator and merge the results."""
    result: ValidationResult = validate_document_shape(raw)
    if not isinstance(raw, Mapping):
        return result

    for validator in (
        validate_version,
        validate_tables,
        validate_queries,
        validate_views,
        validate_triggers,
        validate_seeds,
    ):
        result.merge(validator(raw))

    logger.debug("%s", result.summary())
    return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "KNOWN_TOP_LEVEL_KEYS",
    "SQL_RESERVED_WORDS",
    "ValidationError",
    "ValidationResult",
    "validate_document",
    "validate_document_shape",
    "validate_queries",
    "validate_seeds",
    "validate_tables",
    "validate_triggers",
    "validate_version",
    "validate_views",
]

logger.debug("local2py.validators loaded.")
