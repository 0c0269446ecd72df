"""
tests/conftest.py
Shared fixtures for the local2py test suite.

No external mocking libraries are used; real file I/O is performed
inside temporary directories managed by pytest's tmp_path fixtures.
"""

from __future__ import annotations

import copy
import itertools
import pathlib
from typing import Any, Dict, Iterator

import pytest
import yaml

from local2py.example import EXAMPLE_DOCUMENT
from local2py.loader import load_schema
from local2py.models import GenerationConfig, Schema


_PACKAGE_COUNTER: Iterator[int] = itertools.count()


# ---------------------------------------------------------------------------
# Raw document fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def raw_example_document() -> Dict[str, Any]:
    """Parse the starter document once per session."""
    data = yaml.safe_load(EXAMPLE_DOCUMENT)
    assert isinstance(data, dict), "Top-level YAML must be a mapping."
    return data


@pytest.fixture()
def example_document(raw_example_document: Dict[str, Any]) -> Dict[str, Any]:
    """Return a deep copy so each test can mutate freely."""
    return copy.deepcopy(raw_example_document)


@pytest.fixture()
def minimal_document() -> Dict[str, Any]:
    """Two tables linked by one foreign key, no projections."""
    return {
        "version": 1,
        "dir_database": "morpheme",
        "foreign_key_constrain_support": True,
        "table": {
            "category": {
                "column": {
                    "id": {"type": "INTEGER", "constraint": "PRIMARY KEY", "autoincrement": True},
                    "name": {"type": "TEXT", "nullable": False, "default": "Other"},
                },
            },
            "todo": {
                "column": {
                    "id": {"type": "INTEGER", "constraint": "PRIMARY KEY", "autoincrement": True},
                    "name": {"type": "TEXT", "nullable": False},
                    "category_id": "INTEGER",
                },
                "foreign": {
                    "category_id": {
                        "to_table": "category",
                        "to_column": "id",
                        "on_update": "CASCADE",
                        "on_delete": "CASCADE",
                    },
                },
            },
        },
    }


@pytest.fixture()
def single_table_document() -> Dict[str, Any]:
    """One table, no foreign keys."""
    return {
        "version": 1,
        "table": {
            "note": {
                "column": {
                    "id": {"type": "INTEGER", "constraint": "PRIMARY KEY", "autoincrement": True},
                    "body": {"type": "TEXT", "nullable": False},
                    "pinned": {"type": "BOOL", "nullable": False, "default": False},
                    "score": "REAL",
                    "payload": "BLOB",
                },
            },
        },
    }


# ---------------------------------------------------------------------------
# Built models
# ---------------------------------------------------------------------------


@pytest.fixture()
def example_schema(example_document: Dict[str, Any]) -> Schema:
    return load_schema(example_document)


@pytest.fixture()
def minimal_schema(minimal_document: Dict[str, Any]) -> Schema:
    return load_schema(minimal_document)


@pytest.fixture()
def single_table_schema(single_table_document: Dict[str, Any]) -> Schema:
    return load_schema(single_table_document)


@pytest.fixture()
def package_name() -> str:
    """Unique per test so imported generated packages never collide in sys.modules."""
    return f"generated_db_{next(_PACKAGE_COUNTER)}"


@pytest.fixture()
def unformatted_config(package_name: str) -> GenerationConfig:
    """Skip black so tests do not depend on a subprocess."""
    return GenerationConfig(package_name=package_name, format_output=False)


# ---------------------------------------------------------------------------
# YAML files on disk
# ---------------------------------------------------------------------------


def write_yaml(data: Dict[str, Any], path: pathlib.Path) -> pathlib.Path:
    with open(path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(data, fh, default_flow_style=False, sort_keys=False)
    return path


@pytest.fixture()
def example_yaml_path(example_document: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    return write_yaml(example_document, tmp_path / "local2py.yaml")


@pytest.fixture()
def minimal_yaml_path(minimal_document: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    return write_yaml(minimal_document, tmp_path / "minimal.yaml")


@pytest.fixture()
def output_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "build"
    path.mkdir()
    return path
