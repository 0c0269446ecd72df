# File: local2py/loader.py
"""
local2py - Schema Loader
=========================
Turns the raw document (nested dicts/lists from YAML) into the frozen
``Schema`` model.

Workflow::

    1. ``yaml.safe_load`` the file (``load_document``).
    2. Run ``validate_document``; the first error becomes a ``SchemaError``.
    3. Build the Pydantic models section by section.

Nothing here touches the output directory: a document that fails to load
never reaches a generator.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from pydantic import ValidationError as PydanticValidationError

from local2py.errors import SchemaError
from local2py.models import (
    ColumnDefinition,
    ForeignKeyDefinition,
    GenerationConfig,
    ProjectionColumn,
    QueryDefinition,
    Schema,
    SeedDefinition,
    TableDefinition,
    TriggerDefinition,
    ViewDefinition,
)
from local2py.validators import ValidationResult, validate_document

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("local2py.loader")


# ---------------------------------------------------------------------------
# Document loading
# ---------------------------------------------------------------------------


def load_document(path: Path) -> Dict[str, Any]:
    """
    Read and parse a YAML document.

    Raises:
        SchemaError: (kind ``malformed_document``) when the file is missing,
            unreadable, not valid YAML, or not a mapping at the top level.
    """
    path = Path(path)
    if not path.is_file():
        raise SchemaError("malformed_document", str(path), "Schema file not found.")

    try:
        text: str = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SchemaError("malformed_document", str(path), f"Cannot read file: {exc}") from exc

    try:
        data: Any = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise SchemaError("malformed_document", str(path), f"Invalid YAML: {exc}") from exc

    if not isinstance(data, dict):
        raise SchemaError(
            "malformed_document",
            str(path),
            f"Expected a YAML mapping at top level, got {type(data).__name__}.",
        )
    return data


# ---------------------------------------------------------------------------
# Section builders
# ---------------------------------------------------------------------------


def _blank_to_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text: str = str(value).strip()
    return text or None


def _build_column(name: str, raw: Any) -> ColumnDefinition:
    if isinstance(raw, str):
        return ColumnDefinition(name=name, type=raw)
    return ColumnDefinition(
        name=name,
        type=raw["type"],
        constraint=raw.get("constraint"),
        autoincrement=bool(raw.get("autoincrement") or False),
        nullable=raw.get("nullable", True) is not False,
        default=raw.get("default"),
        check=_blank_to_none(raw.get("check")),
    )


def _build_table(name: str, raw: Mapping[str, Any]) -> TableDefinition:
    columns: Dict[str, ColumnDefinition] = {
        str(col_name): _build_column(str(col_name), col)
        for col_name, col in raw["column"].items()
    }
    foreign_keys: Dict[str, ForeignKeyDefinition] = {
        str(col_name): ForeignKeyDefinition(
            column_name=str(col_name),
            to_table=entry["to_table"],
            to_column=entry["to_column"],
            on_update=entry.get("on_update"),
            on_delete=entry.get("on_delete"),
        )
        for col_name, entry in (raw.get("foreign") or {}).items()
    }
    return TableDefinition(
        name=name,
        create_if_not_exists=raw.get("create_if_not_exists", True) is not False,
        columns=columns,
        foreign_keys=foreign_keys,
    )


def _build_projection_columns(raw: Mapping[str, Any]) -> Dict[str, ProjectionColumn]:
    columns: Dict[str, ProjectionColumn] = {}
    for col_name, col in raw.items():
        name: str = str(col_name)
        if isinstance(col, str):
            columns[name] = ProjectionColumn(name=name, type=col, origin=name)
        else:
            columns[name] = ProjectionColumn(
                name=name,
                type=col["type"],
                origin=_blank_to_none(col.get("origin")) or name,
            )
    return columns


def _projection_fields(raw: Mapping[str, Any]) -> Dict[str, Any]:
    # Legacy misspelling "disticnt" is still read.
    distinct: Any = raw.get("distinct", raw.get("disticnt", False))
    return {
        "columns": _build_projection_columns(raw["column"]),
        "distinct": bool(distinct),
        "join": [j for j in (raw.get("join") or []) if str(j).strip()],
        "where": _blank_to_none(raw.get("where")),
        "group_by": _blank_to_none(raw.get("group_by")),
        "having": _blank_to_none(raw.get("having")),
        "order_by": _blank_to_none(raw.get("order_by")),
        "limit": raw.get("limit"),
        "offset": raw.get("offset"),
    }


def _build_seed(table_name: str, raw: Mapping[str, Any]) -> SeedDefinition:
    return SeedDefinition(
        table_name=table_name,
        columns=[str(c) for c in raw["column"]],
        rows=[str(r) for r in (raw.get("value") or [])],
    )


def _build(section: str, name: str, factory: Any, *args: Any) -> Any:
    """Call a builder, turning Pydantic failures into a located SchemaError."""
    try:
        return factory(*args)
    except PydanticValidationError as exc:
        first: Dict[str, Any] = exc.errors()[0] if exc.errors() else {}
        location: str = ".".join(str(p) for p in first.get("loc", ()))
        path: str = f"{section}.{name}" + (f".{location}" if location else "")
        raise SchemaError("invalid_schema", path, first.get("msg", str(exc))) from exc


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_schema(raw: Any, warnings: Optional[List[str]] = None) -> Schema:
    """
    Validate a raw document and build the ``Schema`` model.

    Validation warnings are logged and, when ``warnings`` is given, appended
    to it.

    Raises:
        SchemaError: carrying the first error; ``errors`` lists all of them.
    """
    result: ValidationResult = validate_document(raw)
    for warning in result.warnings:
        logger.warning("  ⚠ %s", warning)
        if warnings is not None:
            warnings.append(str(warning))
    if not result.is_valid:
        first = result.errors[0]
        for err in result.errors:
            logger.error("  ✗ %s", err)
        raise SchemaError(first.code, first.path, first.message, result.errors)

    tables: Dict[str, TableDefinition] = {
        str(name): _build("table", str(name), _build_table, str(name), body)
        for name, body in (raw.get("table") or {}).items()
    }

    queries: Dict[str, Dict[str, QueryDefinition]] = {}
    for table_name, group in (raw.get("query") or {}).items():
        queries[str(table_name)] = {
            str(q_name): _build(
                "query",
                f"{table_name}.{q_name}",
                lambda n, t, b: QueryDefinition(name=n, table=t, **_projection_fields(b)),
                str(q_name),
                str(table_name),
                body,
            )
            for q_name, body in group.items()
        }

    views: Dict[str, ViewDefinition] = {
        str(name): _build(
            "view",
            str(name),
            lambda n, b: ViewDefinition(
                name=n,
                from_table=str(b["from"]).strip(),
                create_if_not_exists=b.get("create_if_not_exists", True) is not False,
                **_projection_fields(b),
            ),
            str(name),
            body,
        )
        for name, body in (raw.get("view") or {}).items()
    }

    triggers: Dict[str, TriggerDefinition] = {
        str(name): TriggerDefinition(name=str(name), raw_sql=body["raw_sql"])
        for name, body in (raw.get("trigger") or {}).items()
    }

    seeds: Dict[str, SeedDefinition] = {
        str(name): _build("seed", str(name), _build_seed, str(name), body)
        for name, body in (raw.get("seed") or {}).items()
    }

    schema: Schema = _build(
        "schema",
        "root",
        lambda: Schema(
            version=raw.get("version", 1),
            database_directory_name=raw.get("dir_database") or "morpheme",
            foreign_key_constraints_enabled=raw.get("foreign_key_constrain_support", True) is not False,
            tables=tables,
            queries=queries,
            views=views,
            triggers=triggers,
            seeds=seeds,
        ),
    )

    logger.info(
        "Loaded schema v%d: %d table(s), %d query(ies), %d view(s), %d trigger(s), %d seed(s).",
        schema.version,
        len(schema.tables),
        len(schema.all_queries),
        len(schema.views),
        len(schema.triggers),
        len(schema.seeds),
    )
    return schema


def load_generation_config(
    raw: Mapping[str, Any],
    overrides: Optional[Mapping[str, Any]] = None,
) -> GenerationConfig:
    """Build ``GenerationConfig`` from the optional ``config`` section plus overrides."""
    section: Any = raw.get("config") or {}
    if not isinstance(section, Mapping):
        raise SchemaError("invalid_config", "config", f"'config' must be a mapping, got {type(section).__name__}.")
    data: Dict[str, Any] = dict(section)
    data.update(overrides or {})
    try:
        return GenerationConfig.model_validate(data)
    except PydanticValidationError as exc:
        first: Dict[str, Any] = exc.errors()[0] if exc.errors() else {}
        location: str = ".".join(str(p) for p in first.get("loc", ()))
        raise SchemaError("invalid_config", f"config.{location}", first.get("msg", str(exc))) from exc


def load_schema_file(
    path: Path,
    overrides: Optional[Mapping[str, Any]] = None,
    warnings: Optional[List[str]] = None,
) -> Tuple[Schema, GenerationConfig]:
    """Load a YAML file into ``(Schema, GenerationConfig)``."""
    raw: Dict[str, Any] = load_document(path)
    logger.info("Loaded schema file: %s (%d top-level keys).", path, len(raw))
    return load_schema(raw, warnings), load_generation_config(raw, overrides)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "load_document",
    "load_generation_config",
    "load_schema",
    "load_schema_file",
]

logger.debug("local2py.loader loaded.")
