# File: local2py/model_generator.py
"""
local2py - Row Model Generator
===============================
Emits one frozen dataclass per table, view and query under ``models/``.

Every model offers the same surface::

    to_map(...)          -> column-keyed dict (unset values omitted)
    from_map(data, ...)  -> model, lenient about types and missing keys
    to_json / from_json  -> JSON wrappers around the two above
    copy_with(**fields)  -> copy with some fields replaced

Table models with foreign keys additionally carry one optional attribute
per foreign key (``<to_table>_table``, or ``<fk_column>_<to_table>`` for
self references and repeated targets) and a ``from_map_with_join`` reader
for ``"<alias>.<column>"`` keyed LEFT JOIN rows.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Set, Tuple

from local2py.errors import GenerationError
from local2py.models import ProjectionDefinition, Schema, TableDefinition
from local2py.templates import (
    INDENT,
    INDENT2,
    INDENT3,
    BaseGenerator,
    FieldSpec,
    JoinSpec,
    projection_field_specs,
    query_model_class,
    query_model_module,
    resolve_joins,
    table_field_specs,
    table_model_class,
    table_model_module,
    view_model_class,
    view_model_module,
)
from local2py.utils import build_import_block

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("local2py.model_generator")


class ModelGenerator(BaseGenerator):
    """Builds the ``models`` sub-package of the generated code."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate_all(self, schema: Schema) -> Dict[str, str]:
        """Return ``{relative_path: source}`` for every model plus ``models/__init__.py``."""
        files: Dict[str, str] = {}
        exported: List[Tuple[str, str]] = []

        for table in schema.tables.values():
            module: str = table_model_module(table.name)
            files[f"models/{module}.py"] = self.generate_table_model(schema, table)
            exported.append((module, table_model_class(table.name)))

        for view in schema.views.values():
            module = view_model_module(view)
            files[f"models/{module}.py"] = self.generate_projection_model(
                view,
                view_model_class(view),
                f"Row of the ``{view.name}_view`` view.",
                f"view.{view.name}",
            )
            exported.append((module, view_model_class(view)))

        for query in schema.all_queries:
            module = query_model_module(query)
            files[f"models/{module}.py"] = self.generate_projection_model(
                query,
                query_model_class(query),
                f"Result row of the ``{query.name}`` query on ``{query.table}``.",
                f"query.{query.table}.{query.name}",
            )
            exported.append((module, query_model_class(query)))

        modules: List[str] = [module for module, _ in exported]
        if len(modules) != len(set(modules)):
            duplicates: Set[str] = {m for m in modules if modules.count(m) > 1}
            raise GenerationError(
                f"Several schema entries map to the same model module: {', '.join(sorted(duplicates))}."
            )

        files["models/__init__.py"] = self.generate_package_init(exported)
        logger.debug("Generated %d model module(s).", len(exported))
        return files

    def generate_table_model(self, schema: Schema, table: TableDefinition) -> str:
        fields: List[FieldSpec] = table_field_specs(table)
        joins: List[JoinSpec] = resolve_joins(schema, table)
        attrs: Set[str] = {spec.attr for spec in fields}
        for join in joins:
            if join.attr in attrs:
                raise GenerationError(
                    f"Column '{join.attr}' clashes with the joined row attribute for '{join.target.name}'.",
                    f"table.{table.name}",
                )

        class_name: str = table_model_class(table.name)
        converters: Set[str] = {spec.converter for spec in fields} | {"json_default"}
        typing_names: Set[str] = {"Any", "Dict", "Mapping", "Optional"}
        dataclass_names: Set[str] = {"dataclass"}
        related: List[JoinSpec] = _related_imports(joins)
        if joins:
            converters.add("strip_prefix")
            dataclass_names.add("replace")
        if related:
            typing_names.add("TYPE_CHECKING")

        lines: List[str] = self.file_header(f"Row model for the ``{table.name}`` table.")
        lines.append(build_import_block({
            "json": set(),
            "dataclasses": dataclass_names,
            "typing": typing_names,
        }))
        lines.append("")
        lines.append(build_import_block({"..utils.converters": converters}))
        if related:
            lines.append("")
            lines.append("if TYPE_CHECKING:")
            for join in related:
                lines.append(f"{INDENT}from .{join.model_module} import {join.model_class}")
        lines.append("")
        lines.append("")
        lines.append("@dataclass(frozen=True, kw_only=True)")
        lines.append(f"class {class_name}:")
        lines.append(f'{INDENT}"""Row of the ``{table.name}`` table."""')
        lines.append("")
        for spec in fields:
            lines.append(f"{INDENT}{spec.declaration}")
        for join in joins:
            lines.append(f"{INDENT}{join.attr}: Optional[{join.model_class}] = None")

        lines.extend(self._to_map(fields, joins, with_join_param=True))
        lines.extend(self._from_map(class_name, fields, joins, with_join_param=True))
        if joins:
            lines.extend(self._from_map_with_join(table, class_name, joins))
        lines.extend(self._json_methods(class_name, with_join_param=True))
        lines.extend(self._copy_with(class_name, fields, joins))
        return self.finish(lines)

    def generate_projection_model(
        self,
        projection: ProjectionDefinition,
        class_name: str,
        description: str,
        path: str,
    ) -> str:
        fields: List[FieldSpec] = projection_field_specs(projection, path)
        converters: Set[str] = {spec.converter for spec in fields} | {"json_default"}

        lines: List[str] = self.file_header(description)
        lines.append(build_import_block({
            "json": set(),
            "dataclasses": {"dataclass"},
            "typing": {"Any", "Dict", "Mapping", "Optional"},
        }))
        lines.append("")
        lines.append(build_import_block({"..utils.converters": converters}))
        lines.append("")
        lines.append("")
        lines.append("@dataclass(frozen=True, kw_only=True)")
        lines.append(f"class {class_name}:")
        lines.append(f'{INDENT}"""{description}"""')
        lines.append("")
        for spec in fields:
            lines.append(f"{INDENT}{spec.declaration}")

        lines.extend(self._to_map(fields, [], with_join_param=False))
        lines.extend(self._from_map(class_name, fields, [], with_join_param=False))
        lines.extend(self._json_methods(class_name, with_join_param=False))
        lines.extend(self._copy_with(class_name, fields, []))
        return self.finish(lines)

    def generate_package_init(self, exported: Sequence[Tuple[str, str]]) -> str:
        lines: List[str] = ['"""Row models generated by local2py."""', ""]
        for module, class_name in sorted(exported):
            lines.append(f"from .{module} import {class_name}")
        lines.append("")
        lines.append("__all__ = [")
        for _, class_name in sorted(exported, key=lambda item: item[1]):
            lines.append(f'{INDENT}"{class_name}",')
        lines.append("]")
        return self.finish(lines)

    # ------------------------------------------------------------------
    # Method builders
    # ------------------------------------------------------------------

    @staticmethod
    def _to_map(fields: List[FieldSpec], joins: List[JoinSpec], *, with_join_param: bool) -> List[str]:
        signature: str = "self, with_join: bool = False" if with_join_param else "self"
        lines: List[str] = [
            "",
            f"{INDENT}def to_map({signature}) -> Dict[str, Any]:",
            f'{INDENT2}"""Column-keyed values; unset values are left out so SQLite applies defaults."""',
            f"{INDENT2}data: Dict[str, Any] = {{}}",
        ]
        for spec in fields:
            value: str = f"1 if self.{spec.attr} else 0" if spec.is_bool else f"self.{spec.attr}"
            if spec.keeps_null:
                if spec.is_bool:
                    value = f"None if self.{spec.attr} is None else {value}"
                lines.append(f'{INDENT2}data["{spec.key}"] = {value}')
            elif spec.primary_key:
                lines.append(f"{INDENT2}if self.{spec.attr} != {spec.zero}:")
                lines.append(f'{INDENT3}data["{spec.key}"] = {value}')
            elif spec.required:
                lines.append(f'{INDENT2}data["{spec.key}"] = {value}')
            else:
                lines.append(f"{INDENT2}if self.{spec.attr} is not None:")
                lines.append(f'{INDENT3}data["{spec.key}"] = {value}')
        for join in joins:
            lines.append(f"{INDENT2}if with_join and self.{join.attr} is not None:")
            lines.append(f'{INDENT3}data["{join.attr}"] = self.{join.attr}.to_map(with_join=True)')
        lines.append(f"{INDENT2}return data")
        return lines

    @staticmethod
    def _from_map(
        class_name: str,
        fields: List[FieldSpec],
        joins: List[JoinSpec],
        *,
        with_join_param: bool,
    ) -> List[str]:
        signature: str = "cls, data: Mapping[str, Any]"
        if with_join_param:
            signature += ", with_join: bool = False"
        lines: List[str] = [
            "",
            f"{INDENT}@classmethod",
            f"{INDENT}def from_map({signature}) -> {class_name}:",
            f'{INDENT2}"""Build a row from a column-keyed mapping such as ``dict(sqlite3.Row)``."""',
        ]
        for join in joins:
            lines.append(f"{INDENT2}{join.attr}: Optional[{join.model_class}] = None")
            lines.append(f'{INDENT2}if with_join and data.get("{join.attr}") is not None:')
            lines.extend(_lazy_import(join))
            lines.append(
                f'{INDENT3}{join.attr} = {join.model_class}.from_map(data["{join.attr}"], with_join=True)'
            )
        lines.append(f"{INDENT2}return cls(")
        for spec in fields:
            if spec.keeps_null:
                lines.append(
                    f'{INDENT3}{spec.attr}={spec.converter}(data["{spec.key}"]) '
                    f'if "{spec.key}" in data else {spec.default},'
                )
            else:
                lines.append(f'{INDENT3}{spec.attr}={spec.converter}(data.get("{spec.key}"), {spec.fallback}),')
        for join in joins:
            lines.append(f"{INDENT3}{join.attr}={join.attr},")
        lines.append(f"{INDENT2})")
        return lines

    @staticmethod
    def _from_map_with_join(table: TableDefinition, class_name: str, joins: List[JoinSpec]) -> List[str]:
        lines: List[str] = [
            "",
            f"{INDENT}@classmethod",
            f"{INDENT}def from_map_with_join(cls, data: Mapping[str, Any]) -> {class_name}:",
            f'{INDENT2}"""Build a row from a LEFT JOIN result keyed ``"<table>.<column>"``."""',
            f'{INDENT2}row: {class_name} = cls.from_map(strip_prefix(data, "{table.name}."))',
        ]
        for join in joins:
            lines.append(f"{INDENT2}{join.attr}: Optional[{join.model_class}] = None")
            lines.append(
                f'{INDENT2}if data.get("{table.name}.{join.foreign_key.column_name}") is not None:'
            )
            lines.extend(_lazy_import(join))
            lines.append(
                f'{INDENT3}{join.attr} = {join.model_class}.from_map(strip_prefix(data, "{join.alias}."))'
            )
        assignments: str = ", ".join(f"{join.attr}={join.attr}" for join in joins)
        lines.append(f"{INDENT2}return replace(row, {assignments})")
        return lines

    @staticmethod
    def _json_methods(class_name: str, *, with_join_param: bool) -> List[str]:
        if with_join_param:
            return [
                "",
                f"{INDENT}def to_json(self, with_join: bool = False) -> str:",
                f"{INDENT2}return json.dumps(self.to_map(with_join=with_join), default=json_default)",
                "",
                f"{INDENT}@classmethod",
                f"{INDENT}def from_json(cls, source: str, with_join: bool = False) -> {class_name}:",
                f"{INDENT2}return cls.from_map(json.loads(source), with_join=with_join)",
            ]
        return [
            "",
            f"{INDENT}def to_json(self) -> str:",
            f"{INDENT2}return json.dumps(self.to_map(), default=json_default)",
            "",
            f"{INDENT}@classmethod",
            f"{INDENT}def from_json(cls, source: str) -> {class_name}:",
            f"{INDENT2}return cls.from_map(json.loads(source))",
        ]

    @staticmethod
    def _copy_with(class_name: str, fields: List[FieldSpec], joins: List[JoinSpec]) -> List[str]:
        lines: List[str] = ["", f"{INDENT}def copy_with("]
        lines.append(f"{INDENT2}self,")
        lines.append(f"{INDENT2}*,")
        for spec in fields:
            lines.append(f"{INDENT2}{spec.attr}: {spec.optional_annotation} = None,")
        for join in joins:
            lines.append(f"{INDENT2}{join.attr}: Optional[{join.model_class}] = None,")
        lines.append(f"{INDENT}) -> {class_name}:")
        lines.append(f'{INDENT2}"""Copy with the given fields replaced; ``None`` keeps the current value."""')
        lines.append(f"{INDENT2}return {class_name}(")
        for name in [spec.attr for spec in fields] + [join.attr for join in joins]:
            lines.append(f"{INDENT3}{name}=self.{name} if {name} is None else {name},")
        lines.append(f"{INDENT2})")
        return lines


def _related_imports(joins: List[JoinSpec]) -> List[JoinSpec]:
    """One join per imported model; the owning model never imports itself."""
    related: Dict[str, JoinSpec] = {}
    for join in joins:
        if not join.is_self_reference:
            related.setdefault(join.model_class, join)
    return list(related.values())


def _lazy_import(join: JoinSpec) -> List[str]:
    if join.is_self_reference:
        return []
    return [f"{INDENT3}from .{join.model_module} import {join.model_class}", ""]


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = ["ModelGenerator"]

logger.debug("local2py.model_generator loaded.")
