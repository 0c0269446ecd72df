# File: local2py/ddl.py
"""
local2py - Static SQL Builder
==============================
Derives the creation script of the generated database from the schema:
``CREATE TABLE``, ``CREATE VIEW``, trigger pass-through and seed
``INSERT`` statements.  Projection SELECTs reuse the runtime clause builder
so that generation-time SQL and query-time SQL are assembled by the same
code.

SQL fragments supplied by the document (``origin``, ``join``, ``where``,
trigger bodies...) are copied verbatim; nothing here parses SQL.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from local2py.models import (
    ColumnConstraint,
    ColumnDefinition,
    ForeignKeyDefinition,
    ProjectionDefinition,
    Schema,
    SeedDefinition,
    TableDefinition,
    TriggerDefinition,
    ViewDefinition,
)
from local2py.runtime.query_helper import all_conditional_clauses, distinct_clause
from local2py.utils import collapse_whitespace

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("local2py.ddl")

_NUMBER_RE: re.Pattern[str] = re.compile(r"^-?\d+(\.\d+)?$")

# Defaults that are SQL expressions rather than string literals.
_RAW_DEFAULTS = frozenset({"CURRENT_TIMESTAMP", "CURRENT_DATE", "CURRENT_TIME", "NULL"})


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------


def default_literal(value: Any, column: Optional[ColumnDefinition] = None) -> str:
    """Render a column ``DEFAULT`` value."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    text: str = str(value)
    if column is not None and column.is_bool and text.strip().lower() in ("true", "false"):
        return "1" if text.strip().lower() == "true" else "0"
    if text.strip().upper() in _RAW_DEFAULTS or text.strip().startswith("("):
        return text.strip()
    is_text: bool = column is not None and column.sql_type == "TEXT"
    if _NUMBER_RE.match(text.strip()) and not is_text:
        return text.strip()
    escaped: str = text.replace("'", "''")
    return f"'{escaped}'"


def seed_value_literal(token: str) -> str:
    """
    Render one seed value: numbers stay bare, ``true``/``false`` become
    ``1``/``0``, ``null`` becomes ``NULL``, anything else is single-quoted
    as written.
    """
    value: str = token.strip()
    lowered: str = value.lower()
    if _NUMBER_RE.match(value):
        return value
    if lowered in ("true", "false"):
        return "1" if lowered == "true" else "0"
    if lowered == "null":
        return "NULL"
    return f"'{value}'"


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


def build_column_definition(table: TableDefinition, column: ColumnDefinition) -> str:
    """``name TYPE[ CONSTRAINT][ AUTOINCREMENT][ NOT NULL][ DEFAULT v]``"""
    parts: List[str] = [column.name, column.sql_type]

    constraint: Optional[str] = column.constraint
    if constraint == ColumnConstraint.FOREIGN_KEY.value:
        # Covered by the table-level clause when a ``foreign`` entry exists;
        # otherwise emitted as declared (SQLite rejects it at open time).
        if column.name not in table.foreign_keys:
            parts.append(constraint)
    elif constraint == ColumnConstraint.CHECK.value and column.check:
        parts.append(f"CHECK ({column.check})")
    elif constraint:
        parts.append(constraint)

    if column.autoincrement:
        parts.append("AUTOINCREMENT")
    if not column.nullable:
        parts.append("NOT NULL")
    if column.default is not None:
        parts.append(f"DEFAULT {default_literal(column.default, column)}")

    return " ".join(parts)


def build_foreign_key_clause(foreign_key: ForeignKeyDefinition) -> str:
    clause: str = (
        f"FOREIGN KEY ({foreign_key.column_name}) "
        f"REFERENCES {foreign_key.to_table}({foreign_key.to_column})"
    )
    if foreign_key.on_update:
        clause += f" ON UPDATE {foreign_key.on_update}"
    if foreign_key.on_delete:
        clause += f" ON DELETE {foreign_key.on_delete}"
    return clause


def build_create_table(table: TableDefinition) -> str:
    definitions: List[str] = [
        build_column_definition(table, column) for column in table.columns.values()
    ]
    definitions.extend(build_foreign_key_clause(fk) for fk in table.foreign_keys.values())
    if_not_exists: str = " IF NOT EXISTS" if table.create_if_not_exists else ""
    return f"CREATE TABLE{if_not_exists} {table.name} ({', '.join(definitions)})"


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------


def projection_columns_sql(projection: ProjectionDefinition) -> List[str]:
    columns: List[str] = []
    for column in projection.columns.values():
        if column.origin == column.name:
            columns.append(column.name)
        else:
            columns.append(f"{column.origin} AS {column.name}")
    return columns


def build_projection_select(projection: ProjectionDefinition, from_table: str) -> str:
    """
    ``SELECT [DISTINCT] <columns> FROM <table> <joins> <clauses>``

    Clauses come from ``all_conditional_clauses`` so their order is fixed.
    ``?`` placeholders in ``where`` are left for driver binding.
    """
    parts: Sequence[str] = (
        "SELECT",
        distinct_clause(projection.distinct),
        ", ".join(projection_columns_sql(projection)),
        f"FROM {from_table}",
        " ".join(projection.join),
        all_conditional_clauses(
            where=projection.where,
            group_by=projection.group_by,
            having=projection.having,
            order_by=projection.order_by,
            limit=projection.limit,
            offset=projection.offset,
        ),
    )
    return " ".join(part for part in parts if part)


def view_name(view: ViewDefinition) -> str:
    return f"{view.name}_view"


def build_create_view(view: ViewDefinition) -> str:
    if_not_exists: str = " IF NOT EXISTS" if view.create_if_not_exists else ""
    select: str = build_projection_select(view, view.from_table)
    return f"CREATE VIEW{if_not_exists} {view_name(view)} AS {select}"


# ---------------------------------------------------------------------------
# Triggers and seeds
# ---------------------------------------------------------------------------


def normalize_trigger(trigger: TriggerDefinition) -> str:
    """Collapse whitespace; the trailing ``;`` is added by the script joiner."""
    return collapse_whitespace(trigger.raw_sql).rstrip(";").strip()


def build_seed_inserts(seed: SeedDefinition) -> List[str]:
    """One ``INSERT`` per seed row."""
    columns: str = ", ".join(seed.columns)
    statements: List[str] = []
    for row in seed.rows:
        values: str = ", ".join(seed_value_literal(token) for token in row.split(","))
        statements.append(f"INSERT INTO {seed.table_name} ({columns}) VALUES ({values})")
    return statements


# ---------------------------------------------------------------------------
# Creation script
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CreationStatements:
    """Creation statements grouped in execution order."""

    tables: List[str] = field(default_factory=list)
    views: List[str] = field(default_factory=list)
    triggers: List[str] = field(default_factory=list)
    seeds: List[str] = field(default_factory=list)

    def ordered(self) -> List[str]:
        return [*self.tables, *self.views, *self.triggers, *self.seeds]


def build_creation_statements(
    schema: Schema,
    *,
    sort_tables_by_dependency: bool = False,
) -> CreationStatements:
    """
    Build every statement of the creation script.

    Tables keep declaration order unless ``sort_tables_by_dependency`` is
    set, in which case foreign-key targets are created first.
    """
    order: List[str] = (
        schema.topological_order() if sort_tables_by_dependency else schema.table_names
    )
    statements: CreationStatements = CreationStatements(
        tables=[build_create_table(schema.tables[name]) for name in order],
        views=[build_create_view(view) for view in schema.views.values()],
        triggers=[normalize_trigger(trigger) for trigger in schema.triggers.values()],
        seeds=[stmt for seed in schema.seeds.values() for stmt in build_seed_inserts(seed)],
    )
    logger.debug(
        "Creation script: %d table(s), %d view(s), %d trigger(s), %d seed insert(s).",
        len(statements.tables),
        len(statements.views),
        len(statements.triggers),
        len(statements.seeds),
    )
    return statements


def build_creation_script(schema: Schema, *, sort_tables_by_dependency: bool = False) -> str:
    """Single ``;``-separated script, suitable for ``executescript``."""
    statements: List[str] = build_creation_statements(
        schema, sort_tables_by_dependency=sort_tables_by_dependency
    ).ordered()
    return "".join(f"{stmt};\n" for stmt in statements)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "CreationStatements",
    "build_column_definition",
    "build_create_table",
    "build_create_view",
    "build_creation_script",
    "build_creation_statements",
    "build_foreign_key_clause",
    "build_projection_select",
    "build_seed_inserts",
    "default_literal",
    "normalize_trigger",
    "projection_columns_sql",
    "seed_value_literal",
    "view_name",
]

logger.debug("local2py.ddl loaded.")
