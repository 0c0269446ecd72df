# File: local2py/export_generator.py
"""
local2py - Export Aggregator
=============================
Produces the files that tie the generated package together:

    <package>/__init__.py        re-exports every model, service and helper
    <package>/utils/__init__.py  re-exports the runtime helpers
    <package>/utils/*.py         verbatim copies of ``local2py.runtime``

The runtime copies are read through ``importlib.resources`` so they work
from an installed wheel as well as from a source checkout.
"""

from __future__ import annotations

import logging
from importlib import resources
from typing import Dict, List, Tuple

from local2py.models import Schema
from local2py.runtime import RUNTIME_MODULES
from local2py.templates import (
    INDENT,
    BaseGenerator,
    query_model_class,
    query_model_module,
    service_class,
    service_module,
    table_model_class,
    table_model_module,
    view_model_class,
    view_model_module,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("local2py.export_generator")

# (module under utils/, exported names)
_UTILS_EXPORTS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("bulk_operation", ("BulkDelete", "BulkInsert", "BulkUpdate")),
    ("database_instance", ("DatabaseInstance", "DatabaseState")),
    ("pagination", ("LocalMetaPagination", "LocalPagination")),
    ("query_helper", ("ConflictAlgorithm",)),
)


def read_runtime_module(file_name: str) -> str:
    """Source text of one ``local2py.runtime`` module."""
    return resources.files("local2py.runtime").joinpath(file_name).read_text(encoding="utf-8")


class ExportGenerator(BaseGenerator):
    """Builds the package entry point and the shared ``utils`` helpers."""

    def generate_runtime(self) -> Dict[str, str]:
        """Runtime helpers plus ``utils/__init__.py``."""
        files: Dict[str, str] = {
            f"utils/{name}": read_runtime_module(name) for name in RUNTIME_MODULES
        }
        files["utils/__init__.py"] = self._utils_init()
        logger.debug("Copied %d runtime module(s).", len(RUNTIME_MODULES))
        return files

    def generate_package_init(self, schema: Schema) -> str:
        imports: List[Tuple[str, str]] = []
        for table in schema.tables.values():
            imports.append((f".models.{table_model_module(table.name)}", table_model_class(table.name)))
        for view in schema.views.values():
            imports.append((f".models.{view_model_module(view)}", view_model_class(view)))
        for query in schema.all_queries:
            imports.append((f".models.{query_model_module(query)}", query_model_class(query)))
        for table in schema.tables.values():
            imports.append((f".services.{service_module(table.name)}", service_class(table.name)))
        for module, names in _UTILS_EXPORTS:
            for name in names:
                imports.append((f".utils.{module}", name))

        grouped: Dict[str, List[str]] = {}
        for module, name in imports:
            grouped.setdefault(module, []).append(name)

        lines: List[str] = [
            '"""',
            f"Local database access layer (schema version {schema.version}).",
            "",
            "Generated by local2py. Do not edit by hand.",
            '"""',
            "",
        ]
        for module in sorted(grouped):
            lines.append(f"from {module} import {', '.join(sorted(grouped[module]))}")
        lines.append("")
        lines.append("__all__ = [")
        for name in sorted(name for _, name in imports):
            lines.append(f'{INDENT}"{name}",')
        lines.append("]")
        return self.finish(lines)

    def generate_all(self, schema: Schema) -> Dict[str, str]:
        return {"__init__.py": self.generate_package_init(schema)}

    def _utils_init(self) -> str:
        lines: List[str] = ['"""Runtime helpers shared by the generated models and services."""', ""]
        names: List[str] = []
        for module, exported in _UTILS_EXPORTS:
            lines.append(f"from .{module} import {', '.join(exported)}")
            names.extend(exported)
        lines.append("")
        lines.append("__all__ = [")
        for name in sorted(names):
            lines.append(f'{INDENT}"{name}",')
        lines.append("]")
        return self.finish(lines)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = ["ExportGenerator", "read_runtime_module"]

logger.debug("local2py.export_generator loaded.")
