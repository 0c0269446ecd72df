"""
tests/test_validators.py
Unit tests for local2py.validators and local2py.loader.

Tests cover:
- Document shape and version checks
- Table, column and foreign key rules
- Query, view, trigger and seed sections
- Loading into the frozen Schema model
- Generation config overrides
"""

from __future__ import annotations

import pathlib
from typing import Any, Dict, List

import pytest
from pydantic import ValidationError as PydanticValidationError

from local2py.errors import SchemaError
from local2py.loader import load_document, load_generation_config, load_schema, load_schema_file
from local2py.models import Schema
from local2py.validators import (
    ValidationResult,
    validate_document,
    validate_queries,
    validate_seeds,
    validate_tables,
    validate_triggers,
    validate_version,
    validate_views,
)


def _codes(result: ValidationResult) -> List[str]:
    return [e.code for e in result.errors]


def _warning_codes(result: ValidationResult) -> List[str]:
    return [w.code for w in result.warnings]


# ===========================================================================
# Document shape
# ===========================================================================


class TestDocumentShape:
    """Tests for the top-level checks."""

    def test_example_document_is_valid(self, example_document: Dict[str, Any]) -> None:
        result = validate_document(example_document)
        assert result.is_valid, result.format_report()
        assert result.warnings == []

    def test_non_mapping_document(self) -> None:
        result = validate_document(["table"])
        assert _codes(result) == ["malformed_document"]

    def test_unknown_top_level_key_warns(self, minimal_document: Dict[str, Any]) -> None:
        minimal_document["tables"] = {}
        result = validate_document(minimal_document)
        assert result.is_valid
        assert "unknown_key" in _warning_codes(result)

    def test_dir_database_must_be_string(self, minimal_document: Dict[str, Any]) -> None:
        minimal_document["dir_database"] = 5
        assert "invalid_section" in _codes(validate_document(minimal_document))

    def test_foreign_key_flag_must_be_bool(self, minimal_document: Dict[str, Any]) -> None:
        minimal_document["foreign_key_constrain_support"] = "yes"
        assert "invalid_flag" in _codes(validate_document(minimal_document))

    @pytest.mark.parametrize("version", [0, -1, "1", 1.5, True])
    def test_invalid_version(self, version: Any) -> None:
        assert _codes(validate_version({"version": version})) == ["invalid_version"]

    def test_missing_version_is_allowed(self) -> None:
        assert validate_version({}).is_valid


# ===========================================================================
# Tables and columns
# ===========================================================================


class TestValidateTables:
    """Tests for validate_tables()."""

    def test_table_without_columns(self) -> None:
        result = validate_tables({"table": {"empty": {"column": {}}}})
        assert "missing_columns" in _codes(result)

    def test_null_table_body(self) -> None:
        result = validate_tables({"table": {"empty": None}})
        assert "missing_columns" in _codes(result)

    def test_reserved_table_name(self) -> None:
        result = validate_tables({"table": {"order": {"column": {"id": "INTEGER"}}}})
        assert "reserved_table_name" in _codes(result)

    def test_non_snake_case_table_warns(self) -> None:
        result = validate_tables({"table": {"TodoItem": {"column": {"id": "INTEGER"}}}})
        assert result.is_valid
        assert "naming_convention" in _warning_codes(result)

    def test_column_without_type(self) -> None:
        result = validate_tables({"table": {"t": {"column": {"a": {"nullable": False}}}}})
        assert "missing_column_type" in _codes(result)

    def test_unknown_column_attribute(self) -> None:
        result = validate_tables({"table": {"t": {"column": {"a": {"type": "TEXT", "size": 3}}}}})
        assert "invalid_column" in _codes(result)

    def test_unknown_constraint(self) -> None:
        column = {"type": "INTEGER", "constraint": "PRIMARY"}
        result = validate_tables({"table": {"t": {"column": {"a": column}}}})
        assert "invalid_constraint" in _codes(result)

    def test_constraint_is_case_insensitive(self) -> None:
        column = {"type": "INTEGER", "constraint": "primary  key"}
        assert validate_tables({"table": {"t": {"column": {"a": column}}}}).is_valid

    def test_autoincrement_on_text_warns_only(self) -> None:
        column = {"type": "TEXT", "constraint": "PRIMARY KEY", "autoincrement": True}
        result = validate_tables({"table": {"t": {"column": {"a": column}}}})
        assert result.is_valid
        assert "autoincrement_without_integer_pk" in _warning_codes(result)

    def test_reserved_column_name_warns(self) -> None:
        result = validate_tables({"table": {"t": {"column": {"group": "TEXT"}}}})
        assert result.is_valid
        assert "reserved_column_name" in _warning_codes(result)

    def test_foreign_key_requires_target(self) -> None:
        table = {"column": {"a": "INTEGER"}, "foreign": {"a": {"to_table": "other"}}}
        result = validate_tables({"table": {"t": table}})
        assert "invalid_foreign_key" in _codes(result)

    def test_invalid_referential_action(self) -> None:
        table = {
            "column": {"a": "INTEGER"},
            "foreign": {"a": {"to_table": "o", "to_column": "id", "on_delete": "EXPLODE"}},
        }
        assert "invalid_referential_action" in _codes(validate_tables({"table": {"t": table}}))

    def test_table_section_must_be_mapping(self) -> None:
        assert "invalid_section" in _codes(validate_tables({"table": ["todo"]}))


# ===========================================================================
# Projections, triggers, seeds
# ===========================================================================


class TestValidateProjections:
    """Tests for validate_queries() and validate_views()."""

    def test_query_without_columns(self) -> None:
        result = validate_queries({"query": {"todo": {"q": {"where": "id = ?"}}}})
        assert "missing_projection_columns" in _codes(result)

    def test_query_column_without_type(self) -> None:
        result = validate_queries({"query": {"todo": {"q": {"column": {"total": {"origin": "COUNT(*)"}}}}}})
        assert "missing_column_type" in _codes(result)

    def test_join_must_be_list_of_strings(self) -> None:
        body = {"column": {"id": "INTEGER"}, "join": "LEFT JOIN x"}
        assert "invalid_projection" in _codes(validate_queries({"query": {"todo": {"q": body}}}))

    def test_limit_must_be_int(self) -> None:
        body = {"column": {"id": "INTEGER"}, "limit": "ten"}
        assert "invalid_projection" in _codes(validate_queries({"query": {"todo": {"q": body}}}))

    def test_view_requires_from(self) -> None:
        result = validate_views({"view": {"v": {"column": {"id": "INTEGER"}}}})
        assert "missing_view_from" in _codes(result)

    def test_example_view_is_valid(self, example_document: Dict[str, Any]) -> None:
        assert validate_views(example_document).is_valid


class TestValidateTriggersAndSeeds:
    """Tests for validate_triggers() and validate_seeds()."""

    def test_trigger_requires_raw_sql(self) -> None:
        assert "invalid_trigger" in _codes(validate_triggers({"trigger": {"t": {"raw_sql": "  "}}}))

    def test_seed_row_width_mismatch(self) -> None:
        seed = {"category": {"column": ["id", "name"], "value": ["1,Work", "2"]}}
        result = validate_seeds({"seed": seed})
        assert _codes(result) == ["seed_row_mismatch"]
        assert result.errors[0].path == "seed.category.value[1]"

    def test_seed_columns_required(self) -> None:
        assert "invalid_seed" in _codes(validate_seeds({"seed": {"category": {"value": ["1"]}}}))

    def test_seed_row_must_be_string(self) -> None:
        seed = {"category": {"column": ["id"], "value": [[1]]}}
        assert "invalid_seed" in _codes(validate_seeds({"seed": seed}))


# ===========================================================================
# Loader
# ===========================================================================


class TestLoadSchema:
    """Tests for load_schema() and friends."""

    def test_example_loads(self, example_schema: Schema) -> None:
        assert example_schema.version == 1
        assert example_schema.table_names == ["category", "todo"]
        assert example_schema.database_directory_name == "morpheme"
        assert example_schema.foreign_key_constraints_enabled is True
        assert [q.name for q in example_schema.all_queries] == ["todo_count_by_category"]
        assert list(example_schema.views) == ["todo_detail"]
        assert example_schema.seeds["category"].rows == ["1,Work", "2,Home"]

    def test_column_shorthand(self, minimal_schema: Schema) -> None:
        column = minimal_schema.tables["todo"].columns["category_id"]
        assert column.type == "INTEGER"
        assert column.nullable is True
        assert column.constraint is None

    def test_primary_key_detection(self, minimal_schema: Schema) -> None:
        pk = minimal_schema.tables["category"].primary_key
        assert pk is not None and pk.name == "id"
        assert minimal_schema.tables["todo"].has_foreign_keys is True
        assert minimal_schema.tables["category"].has_foreign_keys is False
        assert minimal_schema.tables["todo"].column_names == ["id", "name", "category_id"]

    def test_projection_origin_defaults_to_name(self, example_schema: Schema) -> None:
        query = example_schema.all_queries[0]
        assert query.columns["category_id"].origin == "category_id"
        assert query.columns["total"].origin == "COUNT(*)"
        assert query.table == "todo"

    def test_misspelled_distinct_is_accepted(self, example_document: Dict[str, Any]) -> None:
        example_document["query"]["todo"]["todo_count_by_category"]["disticnt"] = True
        schema = load_schema(example_document)
        assert schema.all_queries[0].distinct is True

    def test_errors_raise_schema_error(self, minimal_document: Dict[str, Any]) -> None:
        minimal_document["table"]["category"]["column"] = {}
        minimal_document["version"] = 0
        with pytest.raises(SchemaError) as exc_info:
            load_schema(minimal_document)
        assert exc_info.value.kind == "invalid_version"
        assert len(exc_info.value.errors) == 2

    def test_warnings_are_collected(self, minimal_document: Dict[str, Any]) -> None:
        minimal_document["extra"] = True
        warnings: List[str] = []
        load_schema(minimal_document, warnings)
        assert len(warnings) == 1
        assert "extra" in warnings[0]

    def test_schema_is_frozen(self, minimal_schema: Schema) -> None:
        with pytest.raises(PydanticValidationError):
            minimal_schema.version = 2  # type: ignore[misc]

    def test_topological_order(self) -> None:
        document = {
            "table": {
                "todo": {
                    "column": {"id": "INTEGER", "category_id": "INTEGER"},
                    "foreign": {"category_id": {"to_table": "category", "to_column": "id"}},
                },
                "category": {"column": {"id": "INTEGER"}},
            },
        }
        schema = load_schema(document)
        assert schema.table_names == ["todo", "category"]
        assert schema.topological_order() == ["category", "todo"]


class TestLoadDocument:
    """Tests for load_document() / load_schema_file()."""

    def test_missing_file(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(SchemaError) as exc_info:
            load_document(tmp_path / "absent.yaml")
        assert exc_info.value.kind == "malformed_document"

    def test_invalid_yaml(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("table: [unclosed", encoding="utf-8")
        with pytest.raises(SchemaError) as exc_info:
            load_document(path)
        assert exc_info.value.kind == "malformed_document"

    def test_scalar_document(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "scalar.yaml"
        path.write_text("just text\n", encoding="utf-8")
        with pytest.raises(SchemaError):
            load_document(path)

    def test_load_schema_file(self, example_yaml_path: pathlib.Path) -> None:
        schema, config = load_schema_file(example_yaml_path, overrides={"package_name": "app_db"})
        assert schema.table_names == ["category", "todo"]
        assert config.package_name == "app_db"


class TestGenerationConfig:
    """Tests for load_generation_config()."""

    def test_defaults(self) -> None:
        config = load_generation_config({})
        assert config.package_name == "local_db"
        assert config.database_file_name == "local2py.db"
        assert config.format_output is True
        assert config.sort_tables_by_dependency is False

    def test_overrides_win(self) -> None:
        raw = {"config": {"package_name": "from_doc", "clean_output": True}}
        config = load_generation_config(raw, {"package_name": "from_cli"})
        assert config.package_name == "from_cli"
        assert config.clean_output is True

    def test_invalid_package_name(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            load_generation_config({"config": {"package_name": "not-valid"}})
        assert exc_info.value.kind == "invalid_config"

    def test_unknown_config_key(self) -> None:
        with pytest.raises(SchemaError):
            load_generation_config({"config": {"dialect": "postgres"}})

    def test_config_must_be_mapping(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            load_generation_config({"config": ["package_name"]})
        assert exc_info.value.kind == "invalid_config"
        assert exc_info.value.path == "config"
