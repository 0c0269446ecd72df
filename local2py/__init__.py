# File: local2py/__init__.py
"""
local2py - Local SQLite Access-Layer Generator
===============================================

Reads one YAML document describing a local SQLite database (tables,
foreign keys, named queries, views, triggers and seed rows) and writes a
Python package that creates the database and reads and writes it.

Architecture overview::

    ┌──────────────┐     ┌──────────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│ Local2PyGenerator│────▶│ Model / Service /│
    │   (cli.py)   │     │  (generator.py)  │     │ Database / Export│
    └──────────────┘     └────────┬─────────┘     │    generators    │
                                  │               └──────────────────┘
                     ┌────────────┼────────────┐
                     ▼            ▼            ▼
              ┌──────────┐ ┌───────────┐ ┌───────────┐
              │  loader  │ │  models   │ │ exporters │
              │validators│ │   ddl     │ │  (.py)    │
              └──────────┘ └───────────┘ └───────────┘

Usage::

    # As a library
    from local2py import Local2PyGenerator
    report = Local2PyGenerator().generate_from_file(Path("local2py.yaml"), Path("./build"))

    # From the command line
    python -m local2py -s local2py.yaml -o ./build -v

Public API:
    - Local2PyGenerator  - pipeline orchestrator
    - GenerationConfig   - generator settings
    - Schema             - parsed document model
    - load_schema_file   - YAML file to (Schema, GenerationConfig)
    - PackageExporter    - file-system writer
"""

from __future__ import annotations

__version__: str = "0.1.0"
__license__: str = "MIT"

from local2py.ddl import build_creation_script, build_creation_statements
from local2py.errors import GenerationError, Local2PyError, SchemaError
from local2py.exporters import ExportManifest, FileRecord, PackageExporter
from local2py.generator import GenerationReport, GenerationStepMetric, Local2PyGenerator
from local2py.loader import load_document, load_generation_config, load_schema, load_schema_file
from local2py.models import (
    ColumnConstraint,
    ColumnDefinition,
    ColumnType,
    ForeignKeyDefinition,
    GenerationConfig,
    ProjectionColumn,
    QueryDefinition,
    ReferentialAction,
    Schema,
    SeedDefinition,
    TableDefinition,
    TriggerDefinition,
    ViewDefinition,
)
from local2py.utils import Timer, safe_identifier, to_pascal_case, to_snake_case
from local2py.validators import ValidationResult, validate_document

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    # Version info
    "__version__",
    "__license__",
    # Core orchestrator
    "Local2PyGenerator",
    "GenerationReport",
    "GenerationStepMetric",
    # Models
    "ColumnConstraint",
    "ColumnDefinition",
    "ColumnType",
    "ForeignKeyDefinition",
    "GenerationConfig",
    "ProjectionColumn",
    "QueryDefinition",
    "ReferentialAction",
    "Schema",
    "SeedDefinition",
    "TableDefinition",
    "TriggerDefinition",
    "ViewDefinition",
    # Loading and validation
    "load_document",
    "load_generation_config",
    "load_schema",
    "load_schema_file",
    "validate_document",
    "ValidationResult",
    # Errors
    "Local2PyError",
    "SchemaError",
    "GenerationError",
    # SQL
    "build_creation_script",
    "build_creation_statements",
    # Exporters
    "PackageExporter",
    "ExportManifest",
    "FileRecord",
    # Utilities
    "Timer",
    "safe_identifier",
    "to_pascal_case",
    "to_snake_case",
]
