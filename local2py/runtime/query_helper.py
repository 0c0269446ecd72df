"""
SQL clause builder and pagination arithmetic.

Every function here is pure: it turns structured query options into SQL
text.  Clauses are always assembled in the order SQLite's grammar expects::

    WHERE -> GROUP BY -> HAVING -> ORDER BY -> LIMIT -> OFFSET

Values are normally bound by the driver: pass ``where`` with ``?``
placeholders and hand ``where_args`` to ``Connection.execute``.  Passing
``args`` to ``where_clause`` instead inlines the values as SQL literals,
which is only kept for callers that build complete SQL strings.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence

from .pagination import LocalMetaPagination


class ConflictAlgorithm(str, Enum):
    """``INSERT OR <algorithm>`` / ``UPDATE OR <algorithm>`` choices."""

    ROLLBACK = "ROLLBACK"
    ABORT = "ABORT"
    FAIL = "FAIL"
    IGNORE = "IGNORE"
    REPLACE = "REPLACE"


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------


def sql_literal(value: Any) -> str:
    """Render a Python value as an SQL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return "X'" + bytes(value).hex() + "'"
    text: str = str(value).replace("'", "''")
    return f"'{text}'"


# ---------------------------------------------------------------------------
# Single clauses
# ---------------------------------------------------------------------------


def where_clause(where: Optional[str], args: Optional[Sequence[Any]] = None) -> str:
    if not where:
        return ""
    clause: str = where
    start: int = 0
    for arg in args or ():
        index: int = clause.find("?", start)
        if index < 0:
            break
        literal: str = sql_literal(arg)
        clause = clause[:index] + literal + clause[index + 1:]
        start = index + len(literal)
    return f"WHERE {clause}"


def distinct_clause(distinct: Optional[bool]) -> str:
    return "DISTINCT" if distinct else ""


def group_by_clause(group_by: Optional[str]) -> str:
    return f"GROUP BY {group_by}" if group_by else ""


def having_clause(having: Optional[str]) -> str:
    return f"HAVING {having}" if having else ""


def order_by_clause(order_by: Optional[str]) -> str:
    return f"ORDER BY {order_by}" if order_by else ""


def limit_clause(limit: Optional[int]) -> str:
    return f"LIMIT {int(limit)}" if limit is not None else ""


def offset_clause(offset: Optional[int]) -> str:
    return f"OFFSET {int(offset)}" if offset is not None else ""


def _join_parts(parts: Iterable[str]) -> str:
    return " ".join(part for part in parts if part)


def all_conditional_clauses(
    *,
    where: Optional[str] = None,
    where_args: Optional[Sequence[Any]] = None,
    group_by: Optional[str] = None,
    having: Optional[str] = None,
    order_by: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> str:
    # SQLite only accepts OFFSET after a LIMIT; -1 means "no limit".
    if offset is not None and limit is None:
        limit = -1
    return _join_parts((
        where_clause(where, where_args),
        group_by_clause(group_by),
        having_clause(having),
        order_by_clause(order_by),
        limit_clause(limit),
        offset_clause(offset),
    ))


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------


def select_query(
    table_name: str,
    columns: Optional[Sequence[str]] = None,
    *,
    distinct: Optional[bool] = None,
    where: Optional[str] = None,
    where_args: Optional[Sequence[Any]] = None,
    group_by: Optional[str] = None,
    having: Optional[str] = None,
    order_by: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> str:
    projection: str = ", ".join(columns) if columns else "*"
    return _join_parts((
        "SELECT",
        distinct_clause(distinct),
        projection,
        f"FROM {table_name}",
        all_conditional_clauses(
            where=where,
            where_args=where_args,
            group_by=group_by,
            having=having,
            order_by=order_by,
            limit=limit,
            offset=offset,
        ),
    ))


def join_query(
    table_name: str,
    columns: Sequence[str],
    joins: Sequence[str],
    *,
    distinct: Optional[bool] = None,
    where: Optional[str] = None,
    where_args: Optional[Sequence[Any]] = None,
    group_by: Optional[str] = None,
    having: Optional[str] = None,
    order_by: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> str:
    return _join_parts((
        "SELECT",
        distinct_clause(distinct),
        ", ".join(columns) if columns else "*",
        f"FROM {table_name}",
        " ".join(joins),
        all_conditional_clauses(
            where=where,
            where_args=where_args,
            group_by=group_by,
            having=having,
            order_by=order_by,
            limit=limit,
            offset=offset,
        ),
    ))


def count_from(query: str) -> str:
    """Wrap any SELECT so that grouping and DISTINCT are counted per row."""
    return f"SELECT COUNT(*) FROM ({query})"


def count_query(
    table_name: str,
    *,
    distinct: Optional[bool] = None,
    where: Optional[str] = None,
    where_args: Optional[Sequence[Any]] = None,
    group_by: Optional[str] = None,
    having: Optional[str] = None,
    order_by: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> str:
    return count_from(select_query(
        table_name,
        distinct=distinct,
        where=where,
        where_args=where_args,
        group_by=group_by,
        having=having,
        order_by=order_by,
        limit=limit,
        offset=offset,
    ))


def _or_algorithm(conflict_algorithm: Optional[ConflictAlgorithm]) -> str:
    if conflict_algorithm is None:
        return ""
    return f"OR {ConflictAlgorithm(conflict_algorithm).value}"


def insert_query(
    table_name: str,
    columns: Sequence[str],
    conflict_algorithm: Optional[ConflictAlgorithm] = None,
) -> str:
    if not columns:
        return _join_parts(("INSERT", _or_algorithm(conflict_algorithm), f"INTO {table_name} DEFAULT VALUES"))
    placeholders: str = ", ".join("?" for _ in columns)
    return _join_parts((
        "INSERT",
        _or_algorithm(conflict_algorithm),
        f"INTO {table_name} ({', '.join(columns)}) VALUES ({placeholders})",
    ))


def update_query(
    table_name: str,
    columns: Sequence[str],
    where: Optional[str] = None,
    conflict_algorithm: Optional[ConflictAlgorithm] = None,
) -> str:
    if not columns:
        raise ValueError(f"Nothing to update in '{table_name}': no column values given.")
    assignments: str = ", ".join(f"{column} = ?" for column in columns)
    return _join_parts((
        "UPDATE",
        _or_algorithm(conflict_algorithm),
        f"{table_name} SET {assignments}",
        where_clause(where),
    ))


def delete_query(table_name: str, where: Optional[str] = None) -> str:
    return _join_parts((f"DELETE FROM {table_name}", where_clause(where)))


# ---------------------------------------------------------------------------
# Pagination arithmetic
# ---------------------------------------------------------------------------


def page_offset(page: int, limit: int) -> int:
    """Row offset of a 1-based ``page``."""
    return (page - 1) * limit


def total_pages(total: int, limit: int) -> int:
    if limit <= 0:
        return 1
    return (total + limit - 1) // limit


def meta_pagination(total: int, page: int, limit: int, offset: int) -> LocalMetaPagination:
    return LocalMetaPagination(
        total=total,
        limit=limit,
        page=page,
        offset=offset,
        current_page=page,
        total_page=total_pages(total, limit),
    )


__all__: List[str] = [
    "ConflictAlgorithm",
    "all_conditional_clauses",
    "count_from",
    "count_query",
    "delete_query",
    "distinct_clause",
    "group_by_clause",
    "having_clause",
    "insert_query",
    "join_query",
    "limit_clause",
    "meta_pagination",
    "offset_clause",
    "order_by_clause",
    "page_offset",
    "select_query",
    "sql_literal",
    "total_pages",
    "update_query",
    "where_clause",
]
