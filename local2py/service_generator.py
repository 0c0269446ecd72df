# File: local2py/service_generator.py
"""
local2py - Service Generator
=============================
Emits one data-access class per table under ``services/``.

Each ``<Name>LocalService`` wraps an injected ``DatabaseInstance`` and
offers:

    * reads:   count, get, get_with_pagination, get_by_<pk>
    * writes:  insert, update, delete, upsert and the *_by_<pk> variants
    * batches: bulk_insert, bulk_update, bulk_delete (one transaction each)
    * joins:   get_with_join, get_with_join_pagination, get_by_<pk>_with_join
               (only when the table declares foreign keys)
    * one method per named query owned by the table

All SQL text comes from the generated ``utils/query_helper.py``; values in
``where_args`` are bound by sqlite3.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List, Optional, Set

from local2py.ddl import build_projection_select
from local2py.errors import GenerationError
from local2py.models import (
    ColumnDefinition,
    GenerationConfig,
    QueryDefinition,
    Schema,
    TableDefinition,
)
from local2py.templates import (
    INDENT,
    INDENT2,
    INDENT3,
    INDENT4,
    BaseGenerator,
    FieldSpec,
    JoinSpec,
    query_model_class,
    query_model_module,
    resolve_joins,
    service_class,
    service_module,
    table_field_specs,
    table_model_class,
    table_model_module,
)
from local2py.utils import build_import_block, count_placeholders, safe_identifier, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("local2py.service_generator")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_FILTER_PARAMS: Dict[str, str] = {
    "distinct": "Optional[bool] = None",
    "where": "Optional[str] = None",
    "where_args": "Sequence[Any] = ()",
    "group_by": "Optional[str] = None",
    "having": "Optional[str] = None",
    "order_by": "Optional[str] = None",
    "limit": "Optional[int] = None",
    "offset": "Optional[int] = None",
}

_PAGE_FILTERS: List[str] = ["distinct", "where", "where_args", "group_by", "having", "order_by"]

_CRUD_MEMBERS: FrozenSet[str] = frozenset({
    "table_name", "database", "get_database",
    "count", "get", "get_with_pagination",
    "insert", "bulk_insert", "upsert",
    "update", "bulk_update", "delete", "bulk_delete",
    "get_with_join", "get_with_join_pagination",
})


class ServiceGenerator(BaseGenerator):
    """Builds the ``services`` sub-package of the generated code."""

    def __init__(self, config: GenerationConfig, warnings: Optional[List[str]] = None) -> None:
        super().__init__(config)
        self._warnings: List[str] = warnings if warnings is not None else []

    @property
    def warnings(self) -> List[str]:
        return self._warnings

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate_all(self, schema: Schema) -> Dict[str, str]:
        files: Dict[str, str] = {}
        for owner in schema.queries:
            if owner not in schema.tables:
                message: str = (
                    f"Queries declared for unknown table '{owner}' are skipped "
                    f"(no service method generated)."
                )
                logger.warning(message)
                self._warnings.append(message)

        for table in schema.tables.values():
            files[f"services/{service_module(table.name)}.py"] = self.generate_service(schema, table)

        files["services/__init__.py"] = self.generate_package_init(schema)
        logger.debug("Generated %d service module(s).", len(schema.tables))
        return files

    def generate_service(self, schema: Schema, table: TableDefinition) -> str:
        fields: List[FieldSpec] = table_field_specs(table)
        joins: List[JoinSpec] = resolve_joins(schema, table)
        queries: List[QueryDefinition] = schema.queries_for(table.name)
        primary_key: Optional[FieldSpec] = next((f for f in fields if f.primary_key), None)

        members: Set[str] = set(_CRUD_MEMBERS)
        if primary_key is not None:
            members |= self._pk_members(primary_key)
        for query in queries:
            method: str = safe_identifier(to_snake_case(query.name))
            if method in members or method.startswith("column_"):
                raise GenerationError(
                    f"Query '{query.name}' collides with the service member '{method}'.",
                    f"query.{table.name}.{query.name}",
                )
            members.add(method)

        model: str = table_model_class(table.name)
        lines: List[str] = self.file_header(f"Data access for the ``{table.name}`` table.")
        lines.extend(self._imports(table, model, joins, queries))
        lines.extend(self._module_constants(table, joins, queries))
        lines.append("")
        lines.append("")
        lines.append(f"class {service_class(table.name)}:")
        lines.append(f'{INDENT}"""Reads and writes ``{table.name}`` rows through a shared connection."""')
        lines.append("")
        lines.append(f'{INDENT}table_name = "{table.name}"')
        lines.append("")
        for spec in fields:
            lines.append(f'{INDENT}column_{spec.attr} = "{spec.key}"')
        lines.extend(self._lifecycle_methods())
        lines.extend(self._read_methods(model, primary_key))
        lines.extend(self._write_methods(model, primary_key))
        if joins:
            lines.extend(self._join_methods(table, model, primary_key))
        for query in queries:
            lines.extend(self._query_method(query))
        return self.finish(lines)

    def generate_package_init(self, schema: Schema) -> str:
        lines: List[str] = ['"""Table services generated by local2py."""', ""]
        names: List[str] = sorted(schema.tables)
        for name in sorted(names, key=service_module):
            lines.append(f"from .{service_module(name)} import {service_class(name)}")
        lines.append("")
        lines.append("__all__ = [")
        for name in sorted(names, key=service_class):
            lines.append(f'{INDENT}"{service_class(name)}",')
        lines.append("]")
        return self.finish(lines)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    @staticmethod
    def _pk_members(primary_key: FieldSpec) -> Set[str]:
        name: str = to_snake_case(primary_key.key)
        return {
            f"get_by_{name}",
            f"get_by_{name}_with_join",
            f"update_by_{name}",
            f"bulk_update_by_{name}",
            f"delete_by_{name}",
            f"bulk_delete_by_{name}",
        }

    @staticmethod
    def _imports(
        table: TableDefinition,
        model: str,
        joins: List[JoinSpec],
        queries: List[QueryDefinition],
    ) -> List[str]:
        helpers: Set[str] = {
            "ConflictAlgorithm", "count_query", "delete_query", "insert_query",
            "meta_pagination", "page_offset", "select_query", "update_query",
        }
        if joins:
            helpers |= {"count_from", "join_query"}
        local: Dict[str, Set[str]] = {
            f"..models.{table_model_module(table.name)}": {model},
            "..utils.bulk_operation": {"BulkDelete", "BulkInsert", "BulkUpdate"},
            "..utils.database_instance": {"DatabaseInstance"},
            "..utils.pagination": {"LocalPagination"},
            "..utils.query_helper": helpers,
        }
        for query in queries:
            local[f"..models.{query_model_module(query)}"] = {query_model_class(query)}
        return [
            build_import_block({
                "sqlite3": set(),
                "typing": {"Any", "Dict", "List", "Optional", "Sequence"},
            }),
            "",
            build_import_block(local),
        ]

    @staticmethod
    def _module_constants(
        table: TableDefinition,
        joins: List[JoinSpec],
        queries: List[QueryDefinition],
    ) -> List[str]:
        lines: List[str] = []
        if joins:
            lines.append("")
            lines.append("_JOIN_COLUMNS = (")
            for column in table.columns.values():
                lines.append(f"{INDENT}{_aliased(table.name, column)!r},")
            for join in joins:
                for column in join.target.columns.values():
                    lines.append(f"{INDENT}{_aliased(join.alias, column)!r},")
            lines.append(")")
            lines.append("")
            lines.append("_JOIN_TABLES = (")
            for join in joins:
                lines.append(f"{INDENT}{join.clause!r},")
            lines.append(")")
        for query in queries:
            lines.append("")
            lines.append(f"{_query_constant(query)} = {build_projection_select(query, table.name)!r}")
        return lines

    @staticmethod
    def _lifecycle_methods() -> List[str]:
        return [
            "",
            f"{INDENT}def __init__(self, database: DatabaseInstance) -> None:",
            f"{INDENT2}self._database = database",
            "",
            f"{INDENT}@property",
            f"{INDENT}def database(self) -> DatabaseInstance:",
            f"{INDENT2}return self._database",
            "",
            f"{INDENT}def get_database(self) -> sqlite3.Connection:",
            f'{INDENT2}"""The shared connection, opened and created on first use."""',
            f"{INDENT2}return self._database.get_instance()",
        ]

    def _read_methods(self, model: str, primary_key: Optional[FieldSpec]) -> List[str]:
        lines: List[str] = [
            "",
            f"{INDENT}def count(",
            f"{INDENT2}self,",
            *_filter_signature(list(_FILTER_PARAMS)),
            f"{INDENT}) -> int:",
            f"{INDENT2}sql = count_query(",
            f"{INDENT3}self.table_name,",
            *_forward([p for p in _FILTER_PARAMS if p != "where_args"], INDENT3),
            f"{INDENT2})",
            f"{INDENT2}rows = self._database.query(sql, where_args)",
            f"{INDENT2}return int(rows[0][0]) if rows else 0",
            "",
            f"{INDENT}def get(",
            f"{INDENT2}self,",
            f"{INDENT2}*,",
            f"{INDENT2}columns: Optional[Sequence[str]] = None,",
            *_filter_signature(list(_FILTER_PARAMS), keyword_marker=False),
            f"{INDENT}) -> List[{model}]:",
            f"{INDENT2}sql = select_query(",
            f"{INDENT3}self.table_name,",
            f"{INDENT3}columns,",
            *_forward([p for p in _FILTER_PARAMS if p != "where_args"], INDENT3),
            f"{INDENT2})",
            f"{INDENT2}return [{model}.from_map(dict(row)) for row in self._database.query(sql, where_args)]",
            "",
            f"{INDENT}def get_with_pagination(",
            f"{INDENT2}self,",
            f"{INDENT2}page: int = 1,",
            f"{INDENT2}limit: int = 10,",
            *_filter_signature(_PAGE_FILTERS),
            f"{INDENT}) -> LocalPagination[List[{model}]]:",
            f'{INDENT2}"""One page of rows plus paging metadata; ``page`` is 1-based."""',
            f"{INDENT2}offset = page_offset(page, limit)",
            f"{INDENT2}total = self.count(",
            *_forward(_PAGE_FILTERS, INDENT3),
            f"{INDENT2})",
            f"{INDENT2}data = self.get(",
            *_forward(_PAGE_FILTERS, INDENT3),
            f"{INDENT3}limit=limit,",
            f"{INDENT3}offset=offset,",
            f"{INDENT2})",
            f"{INDENT2}return LocalPagination(data=data, meta=meta_pagination(total, page, limit, offset))",
        ]
        if primary_key is not None:
            name: str = to_snake_case(primary_key.key)
            lines.extend([
                "",
                f"{INDENT}def get_by_{name}(self, {primary_key.attr}: {primary_key.annotation}) -> Optional[{model}]:",
                f'{INDENT2}rows = self.get(where="{primary_key.key} = ?", where_args=({primary_key.attr},), limit=1)',
                f"{INDENT2}return rows[0] if rows else None",
            ])
        return lines

    def _write_methods(self, model: str, primary_key: Optional[FieldSpec]) -> List[str]:
        lines: List[str] = [
            "",
            f"{INDENT}def insert(",
            f"{INDENT2}self,",
            f"{INDENT2}row: {model},",
            f"{INDENT2}*,",
            f"{INDENT2}conflict_algorithm: Optional[ConflictAlgorithm] = None,",
            f"{INDENT}) -> int:",
            f'{INDENT2}"""Insert one row and return its rowid."""',
            f"{INDENT2}values: Dict[str, Any] = row.to_map()",
            f"{INDENT2}sql = insert_query(self.table_name, list(values), conflict_algorithm)",
            f"{INDENT2}with self._database.transaction() as connection:",
            f"{INDENT3}cursor = connection.execute(sql, tuple(values.values()))",
            f"{INDENT2}return int(cursor.lastrowid or 0)",
            "",
            f"{INDENT}def bulk_insert(self, items: Sequence[BulkInsert[{model}]]) -> List[int]:",
            f'{INDENT2}"""Insert every item in a single transaction; returns the rowids in order."""',
            f"{INDENT2}ids: List[int] = []",
            f"{INDENT2}with self._database.transaction() as connection:",
            f"{INDENT3}for item in items:",
            f"{INDENT4}values: Dict[str, Any] = item.data.to_map()",
            f"{INDENT4}sql = insert_query(self.table_name, list(values), item.conflict_algorithm)",
            f"{INDENT4}cursor = connection.execute(sql, tuple(values.values()))",
            f"{INDENT4}ids.append(int(cursor.lastrowid or 0))",
            f"{INDENT2}return ids",
            "",
            f"{INDENT}def update(",
            f"{INDENT2}self,",
            f"{INDENT2}row: {model},",
            f"{INDENT2}*,",
            f"{INDENT2}where: Optional[str] = None,",
            f"{INDENT2}where_args: Sequence[Any] = (),",
            f"{INDENT2}conflict_algorithm: Optional[ConflictAlgorithm] = None,",
            f"{INDENT}) -> int:",
            f'{INDENT2}"""Write the set fields of ``row`` to every matching row; returns the row count."""',
            f"{INDENT2}values: Dict[str, Any] = row.to_map()",
            f"{INDENT2}sql = update_query(self.table_name, list(values), where, conflict_algorithm)",
            f"{INDENT2}with self._database.transaction() as connection:",
            f"{INDENT3}cursor = connection.execute(sql, (*values.values(), *where_args))",
            f"{INDENT2}return cursor.rowcount",
            "",
            f"{INDENT}def bulk_update(self, items: Sequence[BulkUpdate[{model}]]) -> List[int]:",
            f"{INDENT2}counts: List[int] = []",
            f"{INDENT2}with self._database.transaction() as connection:",
            f"{INDENT3}for item in items:",
            f"{INDENT4}values: Dict[str, Any] = item.data.to_map()",
            f"{INDENT4}sql = update_query(self.table_name, list(values), item.where, item.conflict_algorithm)",
            f"{INDENT4}cursor = connection.execute(sql, (*values.values(), *item.where_args))",
            f"{INDENT4}counts.append(cursor.rowcount)",
            f"{INDENT2}return counts",
            "",
            f"{INDENT}def delete(self, *, where: Optional[str] = None, where_args: Sequence[Any] = ()) -> int:",
            f'{INDENT2}"""Delete matching rows (all rows when ``where`` is omitted)."""',
            f"{INDENT2}with self._database.transaction() as connection:",
            f"{INDENT3}cursor = connection.execute(delete_query(self.table_name, where), tuple(where_args))",
            f"{INDENT2}return cursor.rowcount",
            "",
            f"{INDENT}def bulk_delete(self, items: Sequence[BulkDelete]) -> List[int]:",
            f"{INDENT2}counts: List[int] = []",
            f"{INDENT2}with self._database.transaction() as connection:",
            f"{INDENT3}for item in items:",
            f"{INDENT4}sql = delete_query(self.table_name, item.where)",
            f"{INDENT4}counts.append(connection.execute(sql, tuple(item.where_args)).rowcount)",
            f"{INDENT2}return counts",
        ]
        if primary_key is not None:
            lines.extend(self._pk_write_methods(model, primary_key))
        return lines

    @staticmethod
    def _pk_write_methods(model: str, pk: FieldSpec) -> List[str]:
        name: str = to_snake_case(pk.key)
        where: str = f"{pk.key} = ?"
        return [
            "",
            f"{INDENT}def upsert(",
            f"{INDENT2}self,",
            f"{INDENT2}row: {model},",
            f"{INDENT2}*,",
            f"{INDENT2}conflict_algorithm: Optional[ConflictAlgorithm] = None,",
            f"{INDENT}) -> int:",
            f'{INDENT2}"""',
            f"{INDENT2}Update the row with the same ``{pk.key}`` if one exists, insert otherwise.",
            "",
            f"{INDENT2}Returns the updated row count or the new rowid. The existence check",
            f"{INDENT2}and the write are separate statements, so concurrent writers of the",
            f"{INDENT2}same key can race.",
            f'{INDENT2}"""',
            f'{INDENT2}if self.count(where="{where}", where_args=(row.{pk.attr},)) > 0:',
            f"{INDENT3}return self.update_by_{name}(row.{pk.attr}, row, conflict_algorithm=conflict_algorithm)",
            f"{INDENT2}return self.insert(row, conflict_algorithm=conflict_algorithm)",
            "",
            f"{INDENT}def update_by_{name}(",
            f"{INDENT2}self,",
            f"{INDENT2}{pk.attr}: {pk.annotation},",
            f"{INDENT2}row: {model},",
            f"{INDENT2}*,",
            f"{INDENT2}conflict_algorithm: Optional[ConflictAlgorithm] = None,",
            f"{INDENT}) -> int:",
            f'{INDENT2}return self.update(row, where="{where}", where_args=({pk.attr},), conflict_algorithm=conflict_algorithm)',
            "",
            f"{INDENT}def bulk_update_by_{name}(",
            f"{INDENT2}self,",
            f"{INDENT2}{pk.attr}s: Sequence[{pk.annotation}],",
            f"{INDENT2}rows: Sequence[{model}],",
            f"{INDENT}) -> List[int]:",
            f'{INDENT2}"""Pairwise update ``rows[i]`` by ``{pk.attr}s[i]`` in one transaction."""',
            f"{INDENT2}if len({pk.attr}s) != len(rows):",
            f'{INDENT3}raise ValueError("{pk.attr}s and rows must have the same length.")',
            f"{INDENT2}return self.bulk_update([",
            f'{INDENT3}BulkUpdate(data=row, where="{where}", where_args=(key,))',
            f"{INDENT3}for key, row in zip({pk.attr}s, rows)",
            f"{INDENT2}])",
            "",
            f"{INDENT}def delete_by_{name}(self, {pk.attr}: {pk.annotation}) -> int:",
            f'{INDENT2}return self.delete(where="{where}", where_args=({pk.attr},))',
            "",
            f"{INDENT}def bulk_delete_by_{name}(self, {pk.attr}s: Sequence[{pk.annotation}]) -> List[int]:",
            f'{INDENT2}return self.bulk_delete([BulkDelete(where="{where}", where_args=(key,)) for key in {pk.attr}s])',
        ]

    @staticmethod
    def _join_methods(table: TableDefinition, model: str, primary_key: Optional[FieldSpec]) -> List[str]:
        clause_params: List[str] = [p for p in _FILTER_PARAMS if p != "where_args"]
        lines: List[str] = [
            "",
            f"{INDENT}def _join_sql(",
            f"{INDENT2}self,",
            f"{INDENT2}*,",
            *[f"{INDENT2}{p}: {_FILTER_PARAMS[p]}," for p in clause_params],
            f"{INDENT}) -> str:",
            f"{INDENT2}return join_query(",
            f"{INDENT3}self.table_name,",
            f"{INDENT3}_JOIN_COLUMNS,",
            f"{INDENT3}_JOIN_TABLES,",
            *_forward(clause_params, INDENT3),
            f"{INDENT2})",
            "",
            f"{INDENT}def get_with_join(",
            f"{INDENT2}self,",
            *_filter_signature(list(_FILTER_PARAMS)),
            f"{INDENT}) -> List[{model}]:",
            f'{INDENT2}"""Rows with their related rows attached; column names are ``"<table>.<column>"``."""',
            f"{INDENT2}sql = self._join_sql(",
            *_forward(clause_params, INDENT3),
            f"{INDENT2})",
            f"{INDENT2}return [{model}.from_map_with_join(dict(row)) for row in self._database.query(sql, where_args)]",
            "",
            f"{INDENT}def get_with_join_pagination(",
            f"{INDENT2}self,",
            f"{INDENT2}page: int = 1,",
            f"{INDENT2}limit: int = 10,",
            *_filter_signature(_PAGE_FILTERS),
            f"{INDENT}) -> LocalPagination[List[{model}]]:",
            f"{INDENT2}offset = page_offset(page, limit)",
            f"{INDENT2}count_sql = count_from(self._join_sql(",
            *_forward([p for p in _PAGE_FILTERS if p != "where_args"], INDENT3),
            f"{INDENT2}))",
            f"{INDENT2}rows = self._database.query(count_sql, where_args)",
            f"{INDENT2}total = int(rows[0][0]) if rows else 0",
            f"{INDENT2}data = self.get_with_join(",
            *_forward(_PAGE_FILTERS, INDENT3),
            f"{INDENT3}limit=limit,",
            f"{INDENT3}offset=offset,",
            f"{INDENT2})",
            f"{INDENT2}return LocalPagination(data=data, meta=meta_pagination(total, page, limit, offset))",
        ]
        if primary_key is not None:
            name: str = to_snake_case(primary_key.key)
            lines.extend([
                "",
                f"{INDENT}def get_by_{name}_with_join(",
                f"{INDENT2}self,",
                f"{INDENT2}{primary_key.attr}: {primary_key.annotation},",
                f"{INDENT}) -> Optional[{model}]:",
                f"{INDENT2}rows = self.get_with_join(",
                f'{INDENT3}where="{table.name}.{primary_key.key} = ?",',
                f"{INDENT3}where_args=({primary_key.attr},),",
                f"{INDENT3}limit=1,",
                f"{INDENT2})",
                f"{INDENT2}return rows[0] if rows else None",
            ])
        return lines

    @staticmethod
    def _query_method(query: QueryDefinition) -> List[str]:
        method: str = safe_identifier(to_snake_case(query.name))
        model: str = query_model_class(query)
        args: List[str] = [f"arg{i}" for i in range(1, count_placeholders(query.where) + 1)]
        params: str = "".join(f", {arg}: Any" for arg in args)
        bound: str = f"({', '.join(args)},)" if args else "()"
        return [
            "",
            f"{INDENT}def {method}(self{params}) -> List[{model}]:",
            f'{INDENT2}"""Run the ``{query.name}`` query."""',
            f"{INDENT2}rows = self._database.query({_query_constant(query)}, {bound})",
            f"{INDENT2}return [{model}.from_map(dict(row)) for row in rows]",
        ]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _aliased(table_name: str, column: ColumnDefinition) -> str:
    return f'{table_name}.{column.name} AS "{table_name}.{column.name}"'


def _query_constant(query: QueryDefinition) -> str:
    return f"_{to_snake_case(query.name).upper()}_SQL"


def _filter_signature(params: List[str], *, keyword_marker: bool = True) -> List[str]:
    lines: List[str] = [f"{INDENT2}*,"] if keyword_marker else []
    lines.extend(f"{INDENT2}{param}: {_FILTER_PARAMS[param]}," for param in params)
    return lines


def _forward(params: List[str], pad: str) -> List[str]:
    return [f"{pad}{param}={param}," for param in params]


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = ["ServiceGenerator"]

logger.debug("local2py.service_generator loaded.")
