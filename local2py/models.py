# File: local2py/models.py
"""
local2py - Core Data Models
============================
Pydantic V2 models representing the parsed local-database document and the
generator configuration.  These models are the single source of truth for
the whole pipeline: Load → Validate → Generate → Export.

Every schema model is frozen: the loader builds it once and every
generator reads it without mutation.
"""

from __future__ import annotations

import logging
from collections import deque
from enum import Enum
from typing import Any, Deque, Dict, FrozenSet, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("local2py.models")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ColumnType(str, Enum):
    """Column types understood by the generators (SQLite storage classes)."""

    INTEGER = "INTEGER"
    INT = "INT"
    REAL = "REAL"
    TEXT = "TEXT"
    BLOB = "BLOB"
    BOOL = "BOOL"


class ColumnConstraint(str, Enum):
    """Inline column constraint literals."""

    PRIMARY_KEY = "PRIMARY KEY"
    FOREIGN_KEY = "FOREIGN KEY"
    UNIQUE = "UNIQUE"
    CHECK = "CHECK"


class ReferentialAction(str, Enum):
    """``ON UPDATE`` / ``ON DELETE`` actions for foreign keys."""

    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"
    CASCADE = "CASCADE"


CONSTRAINT_VALUES: FrozenSet[str] = frozenset(c.value for c in ColumnConstraint)
REFERENTIAL_ACTION_VALUES: FrozenSet[str] = frozenset(a.value for a in ReferentialAction)
INTEGER_TYPES: FrozenSet[str] = frozenset({ColumnType.INTEGER.value, ColumnType.INT.value})

# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    use_enum_values=True,
    frozen=True,
    extra="forbid",
)


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


class ColumnDefinition(BaseModel):
    """One column of a persisted table."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1, description="SQL type, upper-cased.")
    constraint: Optional[ColumnConstraint] = None
    autoincrement: bool = False
    nullable: bool = True
    default: Any = None
    check: Optional[str] = Field(
        default=None, description="Expression for a CHECK constraint."
    )

    @field_validator("type", mode="before")
    @classmethod
    def _upper_type(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("constraint", mode="before")
    @classmethod
    def _upper_constraint(cls, v: Any) -> Any:
        if isinstance(v, str):
            return " ".join(v.upper().split())
        return v

    @computed_field  # type: ignore[misc]
    @property
    def sql_type(self) -> str:
        """Storage type used in DDL: BOOL lowers to INTEGER."""
        return ColumnType.INTEGER.value if self.type == ColumnType.BOOL.value else self.type

    @computed_field  # type: ignore[misc]
    @property
    def is_primary_key(self) -> bool:
        return self.constraint == ColumnConstraint.PRIMARY_KEY.value

    @property
    def is_bool(self) -> bool:
        return self.type == ColumnType.BOOL.value


class ForeignKeyDefinition(BaseModel):
    """Edge from a local column to a column of another table."""

    model_config = _SHARED_CONFIG

    column_name: str = Field(..., min_length=1)
    to_table: str = Field(..., min_length=1)
    to_column: str = Field(..., min_length=1)
    on_update: Optional[ReferentialAction] = None
    on_delete: Optional[ReferentialAction] = None

    @field_validator("on_update", "on_delete", mode="before")
    @classmethod
    def _upper_action(cls, v: Any) -> Any:
        if isinstance(v, str):
            return " ".join(v.upper().split()) or None
        return v


class TableDefinition(BaseModel):
    """
    Shape of one persisted table.

    ``columns`` keeps declaration order; it drives DDL column order, model
    field order and the order of generated service constants.
    """

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    create_if_not_exists: bool = True
    columns: Dict[str, ColumnDefinition] = Field(..., min_length=1)
    foreign_keys: Dict[str, ForeignKeyDefinition] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _keys_match_names(self) -> "TableDefinition":
        for key, column in self.columns.items():
            if key != column.name:
                raise ValueError(
                    f"Column key '{key}' does not match column name '{column.name}'."
                )
        return self

    @computed_field  # type: ignore[misc]
    @property
    def has_foreign_keys(self) -> bool:
        return bool(self.foreign_keys)

    @property
    def column_names(self) -> List[str]:
        return list(self.columns.keys())

    @property
    def primary_key(self) -> Optional[ColumnDefinition]:
        """The primary-key column, only when exactly one column carries it."""
        keys: List[ColumnDefinition] = [c for c in self.columns.values() if c.is_primary_key]
        return keys[0] if len(keys) == 1 else None


# ---------------------------------------------------------------------------
# Projections (queries and views)
# ---------------------------------------------------------------------------


class ProjectionColumn(BaseModel):
    """Named output column backed by an SQL expression."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    origin: str = Field(..., min_length=1)

    @field_validator("type", mode="before")
    @classmethod
    def _upper_type(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v


class ProjectionDefinition(BaseModel):
    """Fields shared by queries and views: a SELECT over opaque SQL text."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    columns: Dict[str, ProjectionColumn] = Field(..., min_length=1)
    distinct: bool = False
    join: List[str] = Field(default_factory=list)
    where: Optional[str] = None
    group_by: Optional[str] = None
    having: Optional[str] = None
    order_by: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None


class QueryDefinition(ProjectionDefinition):
    """Named read query owned by ``table``; becomes a service method."""

    table: str = Field(..., min_length=1)


class ViewDefinition(ProjectionDefinition):
    """Persisted ``CREATE VIEW`` over ``from_table``."""

    from_table: str = Field(..., min_length=1)
    create_if_not_exists: bool = True


# ---------------------------------------------------------------------------
# Triggers and seeds
# ---------------------------------------------------------------------------


class TriggerDefinition(BaseModel):
    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    raw_sql: str = Field(..., min_length=1)


class SeedDefinition(BaseModel):
    """Rows inserted right after the schema is created."""

    model_config = _SHARED_CONFIG

    table_name: str = Field(..., min_length=1)
    columns: List[str] = Field(..., min_length=1)
    rows: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Schema root
# ---------------------------------------------------------------------------


class Schema(BaseModel):
    """Full declarative description of one local database."""

    model_config = _SHARED_CONFIG

    version: int = Field(..., gt=0)
    database_directory_name: str = "morpheme"
    foreign_key_constraints_enabled: bool = True
    tables: Dict[str, TableDefinition] = Field(default_factory=dict)
    queries: Dict[str, Dict[str, QueryDefinition]] = Field(default_factory=dict)
    views: Dict[str, ViewDefinition] = Field(default_factory=dict)
    triggers: Dict[str, TriggerDefinition] = Field(default_factory=dict)
    seeds: Dict[str, SeedDefinition] = Field(default_factory=dict)

    @computed_field  # type: ignore[misc]
    @property
    def table_names(self) -> List[str]:
        return list(self.tables.keys())

    def get_table(self, name: str) -> Optional[TableDefinition]:
        return self.tables.get(name)

    def queries_for(self, table_name: str) -> List[QueryDefinition]:
        return list(self.queries.get(table_name, {}).values())

    @property
    def all_queries(self) -> List[QueryDefinition]:
        return [q for group in self.queries.values() for q in group.values()]

    def topological_order(self) -> List[str]:
        """
        Return table names with foreign-key targets before their dependents.

        Uses Kahn's algorithm; ties keep declaration order.  Self references
        and targets outside the schema are ignored.  On a cycle the remaining
        tables are appended in declaration order.
        """
        in_degree: Dict[str, int] = {name: 0 for name in self.tables}
        adjacency: Dict[str, List[str]] = {name: [] for name in self.tables}

        for table in self.tables.values():
            targets = {fk.to_table for fk in table.foreign_keys.values()}
            for target in targets:
                if target != table.name and target in adjacency:
                    adjacency[target].append(table.name)
                    in_degree[table.name] += 1

        queue: Deque[str] = deque(n for n, d in in_degree.items() if d == 0)
        result: List[str] = []

        while queue:
            node: str = queue.popleft()
            result.append(node)
            for neighbour in adjacency[node]:
                in_degree[neighbour] -= 1
                if in_degree[neighbour] == 0:
                    queue.append(neighbour)

        if len(result) != len(self.tables):
            logger.warning(
                "Circular FK dependency detected; falling back to declaration "
                "order for the remaining tables."
            )
            placed = set(result)
            result.extend(name for name in self.tables if name not in placed)

        return result

    def __repr__(self) -> str:
        return (
            f"<Schema v{self.version} {len(self.tables)} tables, "
            f"{len(self.views)} views, {len(self.all_queries)} queries>"
        )


# ---------------------------------------------------------------------------
# Generator configuration
# ---------------------------------------------------------------------------


class GenerationConfig(BaseModel):
    """Settings that shape the emitted package (not the database)."""

    model_config = ConfigDict(
        strict=False,
        validate_assignment=True,
        extra="forbid",
    )

    package_name: str = Field(default="local_db", min_length=1)
    database_file_name: str = Field(default="local2py.db", min_length=1)
    format_output: bool = True
    clean_output: bool = False
    generate_manifest: bool = True
    sort_tables_by_dependency: bool = False

    @field_validator("package_name")
    @classmethod
    def _package_is_identifier(cls, v: str) -> str:
        if not v.isidentifier():
            raise ValueError(f"package_name '{v}' is not a valid Python identifier.")
        return v


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "CONSTRAINT_VALUES",
    "ColumnConstraint",
    "ColumnDefinition",
    "ColumnType",
    "ForeignKeyDefinition",
    "GenerationConfig",
    "INTEGER_TYPES",
    "ProjectionColumn",
    "ProjectionDefinition",
    "QueryDefinition",
    "REFERENTIAL_ACTION_VALUES",
    "ReferentialAction",
    "Schema",
    "SeedDefinition",
    "TableDefinition",
    "TriggerDefinition",
    "ViewDefinition",
]

logger.debug("local2py.models loaded.")
