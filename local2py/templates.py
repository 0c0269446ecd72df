# File: local2py/templates.py
"""
local2py - Code Template Primitives
====================================
Shared building blocks for the source generators:

    1. SQL type → Python type / converter / zero-value mapping
    2. ``FieldSpec``: how one column becomes one row-model attribute
    3. Naming rules for generated modules and classes
    4. ``BaseGenerator``: common state and the file-header helper

**Assembly contract** (same for every generator):
    - Files are built as ``List[str]`` and joined with ``"\\n"``.
    - Every generated file ends with exactly one newline.
    - Generators are stateless between calls; they return
      ``Dict[relative_path, content]`` and never touch the filesystem.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional

from local2py.errors import GenerationError
from local2py.models import (
    ColumnDefinition,
    ForeignKeyDefinition,
    GenerationConfig,
    ProjectionDefinition,
    QueryDefinition,
    Schema,
    TableDefinition,
    ViewDefinition,
)
from local2py.utils import safe_identifier, to_pascal_case, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("local2py.templates")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

INDENT: str = "    "
INDENT2: str = INDENT * 2
INDENT3: str = INDENT * 3
INDENT4: str = INDENT * 4


@dataclass(frozen=True, slots=True)
class PythonType:
    annotation: str
    converter: str
    zero: str


# SQL type → how the generated model stores and reads it.
_PYTHON_TYPE_MAP: Dict[str, PythonType] = {
    "INTEGER": PythonType("int", "to_int", "0"),
    "INT": PythonType("int", "to_int", "0"),
    "REAL": PythonType("float", "to_float", "0.0"),
    "TEXT": PythonType("str", "to_str", "''"),
    "BLOB": PythonType("bytes", "to_bytes", "b''"),
    "BOOL": PythonType("bool", "to_bool", "False"),
}

# Defaults evaluated by SQLite itself; the model leaves them to the database.
_SQL_SIDE_DEFAULTS: FrozenSet[str] = frozenset({
    "CURRENT_TIMESTAMP", "CURRENT_DATE", "CURRENT_TIME", "NULL",
})

# Attribute names the row model already uses for its own API.
RESERVED_MODEL_ATTRIBUTES: FrozenSet[str] = frozenset({
    "self", "to_map", "from_map", "from_map_with_join", "to_json", "from_json", "copy_with",
})


def python_type(sql_type: str, path: str) -> PythonType:
    """
    Resolve the Python mapping of an SQL type.

    Raises:
        GenerationError: for types the generators do not support.
    """
    mapped: Optional[PythonType] = _PYTHON_TYPE_MAP.get(sql_type.upper())
    if mapped is None:
        raise GenerationError(
            f"Unsupported column type '{sql_type}'; expected one of "
            f"{', '.join(sorted(_PYTHON_TYPE_MAP))}.",
            path,
        )
    return mapped


def python_default(column: ColumnDefinition, mapped: PythonType) -> Optional[str]:
    """Python literal of a declared default, or ``None`` when SQLite owns it."""
    value: Any = column.default
    if value is None:
        return None
    if isinstance(value, str):
        text: str = value.strip()
        if text.upper() in _SQL_SIDE_DEFAULTS or text.startswith("("):
            return None
    try:
        if mapped.annotation == "bool":
            if isinstance(value, str):
                return repr(value.strip().lower() in ("true", "1"))
            return repr(bool(value))
        if mapped.annotation == "int":
            return repr(int(value))
        if mapped.annotation == "float":
            return repr(float(value))
        if mapped.annotation == "bytes":
            return repr(str(value).encode("utf-8"))
        return repr(str(value))
    except (TypeError, ValueError):
        logger.warning(
            "Default %r of column '%s' does not fit type %s; left to the database.",
            value,
            column.name,
            column.type,
        )
        return None


# ---------------------------------------------------------------------------
# Field specifications
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """
    One attribute of a generated row model.

    ``key`` is the column name used in maps and SQL; ``attr`` is the Python
    attribute (keywords get a trailing underscore).
    """

    attr: str
    key: str
    annotation: str
    converter: str
    zero: str
    required: bool
    primary_key: bool
    is_bool: bool
    fallback: str
    default: Optional[str] = None

    @property
    def keeps_null(self) -> bool:
        """Nullable with a declared default: ``None`` is a real value, not "unset"."""
        return not self.required and self.default is not None

    @property
    def declaration(self) -> str:
        if self.primary_key:
            return f"{self.attr}: {self.annotation} = {self.zero}"
        if self.required:
            return f"{self.attr}: {self.annotation}"
        if self.keeps_null:
            return f"{self.attr}: Optional[{self.annotation}] = {self.default}"
        return f"{self.attr}: Optional[{self.annotation}] = None"

    @property
    def optional_annotation(self) -> str:
        return f"Optional[{self.annotation}]"


def table_field_specs(table: TableDefinition) -> List[FieldSpec]:
    """
    Attribute rules for a table row:

    - the primary key defaults to the type's zero value so new rows can be
      built before SQLite assigns the key;
    - ``nullable: false`` columns are required;
    - nullable columns default to their declared default, or ``None``.
    """
    specs: List[FieldSpec] = []
    for column in table.columns.values():
        path: str = f"table.{table.name}.column.{column.name}"
        mapped: PythonType = python_type(column.type, path)
        default: Optional[str] = python_default(column, mapped)
        primary_key: bool = column.is_primary_key and table.primary_key is not None
        required: bool = primary_key or not column.nullable
        if primary_key:
            fallback: str = mapped.zero
        elif required:
            fallback = default if default is not None else mapped.zero
        else:
            fallback = default if default is not None else "None"
        specs.append(FieldSpec(
            attr=safe_identifier(column.name),
            key=column.name,
            annotation=mapped.annotation,
            converter=mapped.converter,
            zero=mapped.zero,
            required=required,
            primary_key=primary_key,
            is_bool=column.is_bool,
            fallback=fallback,
            default=None if required else default,
        ))
    _check_unique_attrs(specs, f"table.{table.name}")
    return specs


def projection_field_specs(projection: ProjectionDefinition, path: str) -> List[FieldSpec]:
    """Projection rows are read-only results: every attribute is optional."""
    specs: List[FieldSpec] = []
    for column in projection.columns.values():
        mapped: PythonType = python_type(column.type, f"{path}.column.{column.name}")
        specs.append(FieldSpec(
            attr=safe_identifier(column.name),
            key=column.name,
            annotation=mapped.annotation,
            converter=mapped.converter,
            zero=mapped.zero,
            required=False,
            primary_key=False,
            is_bool=column.type == "BOOL",
            fallback="None",
        ))
    _check_unique_attrs(specs, path)
    return specs


def _check_unique_attrs(specs: List[FieldSpec], path: str) -> None:
    seen: Dict[str, str] = {}
    for spec in specs:
        if spec.attr in RESERVED_MODEL_ATTRIBUTES:
            raise GenerationError(
                f"Column '{spec.key}' clashes with the row model method '{spec.attr}'.",
                path,
            )
        if spec.attr in seen:
            raise GenerationError(
                f"Columns '{seen[spec.attr]}' and '{spec.key}' both map to attribute '{spec.attr}'.",
                path,
            )
        seen[spec.attr] = spec.key


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------


def table_model_class(table_name: str) -> str:
    return f"{to_pascal_case(table_name)}Table"


def table_model_module(table_name: str) -> str:
    return f"{to_snake_case(table_name)}_table"


def view_model_class(view: ViewDefinition) -> str:
    return f"{to_pascal_case(view.name)}View"


def view_model_module(view: ViewDefinition) -> str:
    return f"{to_snake_case(view.name)}_view"


def query_model_class(query: QueryDefinition) -> str:
    return f"{to_pascal_case(query.name)}Query"


def query_model_module(query: QueryDefinition) -> str:
    return f"{to_snake_case(query.name)}_query"


def service_class(table_name: str) -> str:
    return f"{to_pascal_case(table_name)}LocalService"


def service_module(table_name: str) -> str:
    return f"{to_snake_case(table_name)}_local_service"


def join_attr(to_table: str) -> str:
    """Attribute (and nested map key) holding a related row."""
    return safe_identifier(f"{to_table}_table")


# ---------------------------------------------------------------------------
# Joins
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class JoinSpec:
    """
    A foreign key resolved against the schema, ready for join generation.

    ``alias`` names the joined table in SQL and prefixes its result keys.
    It is the target table's own name unless the target is the owning
    table or is referenced by several keys; those joins are aliased
    ``<fk_column>_<to_table>`` and the nested attribute takes the same name.
    """

    owner: str
    foreign_key: ForeignKeyDefinition
    target: TableDefinition
    alias: str
    attr: str

    @property
    def is_self_reference(self) -> bool:
        return self.target.name == self.owner

    @property
    def model_class(self) -> str:
        return table_model_class(self.target.name)

    @property
    def model_module(self) -> str:
        return table_model_module(self.target.name)

    @property
    def clause(self) -> str:
        fk: ForeignKeyDefinition = self.foreign_key
        source: str = f"LEFT JOIN {self.target.name}"
        if self.alias != self.target.name:
            source += f" AS {self.alias}"
        return f"{source} ON {self.owner}.{fk.column_name} = {self.alias}.{fk.to_column}"


def resolve_joins(schema: Schema, table: TableDefinition) -> List[JoinSpec]:
    """
    Resolve every foreign key of ``table`` to its target table.

    Raises:
        GenerationError: when a target table or column is undeclared, or
            when two joins end up with the same alias or attribute.
    """
    references: Counter[str] = Counter(fk.to_table for fk in table.foreign_keys.values())
    joins: List[JoinSpec] = []
    aliases: Dict[str, str] = {table.name: table.name}
    attrs: Dict[str, str] = {}
    for fk in table.foreign_keys.values():
        path: str = f"table.{table.name}.foreign.{fk.column_name}"
        if fk.column_name not in table.columns:
            raise GenerationError(
                f"Foreign key column '{fk.column_name}' is not a column of '{table.name}'.", path
            )
        target: Optional[TableDefinition] = schema.get_table(fk.to_table)
        if target is None:
            raise GenerationError(f"Foreign key references unknown table '{fk.to_table}'.", path)
        if fk.to_column not in target.columns:
            raise GenerationError(
                f"Foreign key references unknown column '{fk.to_table}.{fk.to_column}'.", path
            )
        if target.name != table.name and references[target.name] == 1:
            alias: str = target.name
            attr: str = join_attr(target.name)
        else:
            alias = safe_identifier(f"{fk.column_name}_{target.name}")
            attr = alias
        if alias in aliases:
            raise GenerationError(
                f"Join alias '{alias}' of column '{fk.column_name}' is already used by '{aliases[alias]}'.",
                path,
            )
        if attr in attrs:
            raise GenerationError(
                f"Columns '{attrs[attr]}' and '{fk.column_name}' both map to joined attribute '{attr}'.",
                path,
            )
        aliases[alias] = fk.column_name
        attrs[attr] = fk.column_name
        joins.append(JoinSpec(owner=table.name, foreign_key=fk, target=target, alias=alias, attr=attr))
    return joins


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------


class BaseGenerator:
    """Common state for the source generators."""

    def __init__(self, config: GenerationConfig) -> None:
        self._config: GenerationConfig = config

    @property
    def config(self) -> GenerationConfig:
        return self._config

    @staticmethod
    def file_header(summary: str, *details: str) -> List[str]:
        """Module docstring plus the ``__future__`` import."""
        lines: List[str] = ['"""', summary]
        if details:
            lines.append("")
            lines.extend(details)
        lines.append("")
        lines.append("Generated by local2py. Do not edit by hand.")
        lines.append('"""')
        lines.append("")
        lines.append("from __future__ import annotations")
        lines.append("")
        return lines

    @staticmethod
    def finish(lines: List[str]) -> str:
        return "\n".join(lines).rstrip("\n") + "\n"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "BaseGenerator",
    "FieldSpec",
    "INDENT",
    "INDENT2",
    "INDENT3",
    "INDENT4",
    "JoinSpec",
    "PythonType",
    "RESERVED_MODEL_ATTRIBUTES",
    "join_attr",
    "projection_field_specs",
    "python_default",
    "python_type",
    "resolve_joins",
    "query_model_class",
    "query_model_module",
    "service_class",
    "service_module",
    "table_field_specs",
    "table_model_class",
    "table_model_module",
    "view_model_class",
    "view_model_module",
]

logger.debug("local2py.templates loaded.")
