"""
tests/test_generator.py
End-to-end tests for local2py.generator.Local2PyGenerator.

The generated package is written to tmp_path, imported from there and
driven against a real SQLite database.

Run with:
    pytest tests/ -v
"""

from __future__ import annotations

import copy
import dataclasses
import importlib
import json
import pathlib
import sqlite3
import subprocess
from types import ModuleType
from typing import Any, Dict, Iterator

import pytest

from local2py import exporters
from local2py.exporters import MANIFEST_FILE_NAME
from local2py.generator import GenerationReport, Local2PyGenerator
from local2py.loader import load_schema
from local2py.models import GenerationConfig
from local2py.utils import sha256_hex


def _generate(
    document: Dict[str, Any],
    output_dir: pathlib.Path,
    package_name: str,
    **overrides: Any,
) -> GenerationReport:
    settings: Dict[str, Any] = {"package_name": package_name, "format_output": False}
    settings.update(overrides)
    return Local2PyGenerator().generate_from_document(document, output_dir, overrides=settings)


@pytest.fixture()
def example_package(
    example_document: Dict[str, Any],
    output_dir: pathlib.Path,
    package_name: str,
    monkeypatch: pytest.MonkeyPatch,
) -> ModuleType:
    report = _generate(example_document, output_dir, package_name)
    assert report.success, report.summary()
    monkeypatch.syspath_prepend(str(output_dir))
    return importlib.import_module(package_name)


@pytest.fixture()
def database(example_package: ModuleType) -> Iterator[Any]:
    instance = example_package.DatabaseInstance(":memory:")
    yield instance
    instance.close()


# ===========================================================================
# Pipeline and report
# ===========================================================================


class TestPipeline:
    """Tests for the report and the files on disk."""

    def test_layout(self, example_document: Dict[str, Any], output_dir: pathlib.Path, package_name: str) -> None:
        report = _generate(example_document, output_dir, package_name)
        assert report.success, report.summary()
        root = output_dir / package_name
        for relative in (
            "__init__.py",
            "models/__init__.py",
            "models/category_table.py",
            "models/todo_table.py",
            "models/todo_detail_view.py",
            "models/todo_count_by_category_query.py",
            "services/__init__.py",
            "services/category_local_service.py",
            "services/todo_local_service.py",
            "utils/__init__.py",
            "utils/bulk_operation.py",
            "utils/converters.py",
            "utils/database_instance.py",
            "utils/pagination.py",
            "utils/query_helper.py",
        ):
            assert (root / relative).is_file(), relative
            assert f"{package_name}/{relative}" in report.generated_files
        assert report.total_files == len(report.generated_files)
        assert [step.step_name for step in report.step_metrics] == [
            "Validate Schema",
            "Runtime Helpers",
            "Row Models",
            "Services",
            "Database Instance",
            "Package Exports",
        ]

    def test_manifest(self, example_document: Dict[str, Any], output_dir: pathlib.Path, package_name: str) -> None:
        report = _generate(example_document, output_dir, package_name)
        manifest = json.loads((output_dir / MANIFEST_FILE_NAME).read_text(encoding="utf-8"))
        assert manifest["package_name"] == package_name
        assert manifest["schema_version"] == 1
        assert manifest["formatted"] is False
        assert manifest["total_files"] == report.total_files
        for entry in manifest["files"]:
            content = pathlib.Path(entry["absolute_path"]).read_text(encoding="utf-8")
            assert entry["sha256"] == sha256_hex(content)

    def test_no_manifest_when_disabled(
        self, example_document: Dict[str, Any], output_dir: pathlib.Path, package_name: str
    ) -> None:
        report = _generate(example_document, output_dir, package_name, generate_manifest=False)
        assert report.success
        assert not (output_dir / MANIFEST_FILE_NAME).exists()

    def test_schema_error_writes_nothing(
        self, minimal_document: Dict[str, Any], output_dir: pathlib.Path, package_name: str
    ) -> None:
        minimal_document["table"]["category"]["column"] = {}
        report = _generate(minimal_document, output_dir, package_name)
        assert report.success is False
        assert report.schema_errors
        assert report.generation_errors == []
        assert list(output_dir.iterdir()) == []

    def test_missing_file_is_input_error(self, tmp_path: pathlib.Path, output_dir: pathlib.Path) -> None:
        report = Local2PyGenerator().generate_from_file(tmp_path / "absent.yaml", output_dir)
        assert report.success is False
        assert report.input_errors
        assert list(output_dir.iterdir()) == []

    def test_generation_error_keeps_earlier_stages(
        self, minimal_document: Dict[str, Any], output_dir: pathlib.Path, package_name: str
    ) -> None:
        minimal_document["table"]["todo"]["foreign"]["category_id"]["to_table"] = "missing"
        report = _generate(minimal_document, output_dir, package_name)
        assert report.success is False
        assert report.generation_errors
        root = output_dir / package_name
        assert (root / "utils" / "query_helper.py").is_file()
        assert not (root / "services").exists()
        assert not (output_dir / MANIFEST_FILE_NAME).exists()

    def test_generate_from_file(self, example_yaml_path: pathlib.Path, output_dir: pathlib.Path) -> None:
        report = Local2PyGenerator().generate_from_file(
            example_yaml_path,
            output_dir,
            overrides={"format_output": False},
        )
        assert report.success, report.summary()
        assert report.package_name == "local_db"
        assert (output_dir / "local_db" / "__init__.py").is_file()

    def test_generate_uses_constructor_config(
        self, minimal_document: Dict[str, Any], output_dir: pathlib.Path, unformatted_config: GenerationConfig
    ) -> None:
        report = Local2PyGenerator(unformatted_config).generate(load_schema(minimal_document), output_dir)
        assert report.success, report.summary()
        assert (output_dir / unformatted_config.package_name / "services" / "todo_local_service.py").is_file()

    def test_clean_output_removes_stale_files(
        self, example_document: Dict[str, Any], output_dir: pathlib.Path, package_name: str
    ) -> None:
        stale = output_dir / package_name / "stale.py"
        stale.parent.mkdir(parents=True)
        stale.write_text("x = 1\n", encoding="utf-8")
        _generate(example_document, output_dir, package_name)
        assert stale.exists()
        _generate(example_document, output_dir, package_name, clean_output=True)
        assert not stale.exists()

    def test_orphan_query_is_warning(
        self, minimal_document: Dict[str, Any], output_dir: pathlib.Path, package_name: str
    ) -> None:
        minimal_document["query"] = {"ghost": {"everything": {"column": {"id": "INTEGER"}}}}
        report = _generate(minimal_document, output_dir, package_name)
        assert report.success
        assert any("ghost" in warning for warning in report.warnings)

    def test_formatting_with_black(
        self, example_document: Dict[str, Any], output_dir: pathlib.Path, package_name: str
    ) -> None:
        report = _generate(example_document, output_dir, package_name, format_output=True)
        assert report.success, report.summary()
        assert report.manifest is not None and report.manifest.formatted is True
        for record in report.manifest.files:
            content = pathlib.Path(record.absolute_path).read_text(encoding="utf-8")
            assert record.sha256 == sha256_hex(content)

    def test_formatter_failure_is_warning(
        self,
        example_document: Dict[str, Any],
        output_dir: pathlib.Path,
        package_name: str,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def failing_run(command: Any, **kwargs: Any) -> subprocess.CompletedProcess:
            return subprocess.CompletedProcess(command, 123, stdout="", stderr="cannot format")

        monkeypatch.setattr(exporters.subprocess, "run", failing_run)
        report = _generate(example_document, output_dir, package_name, format_output=True)
        assert report.success, report.summary()
        assert report.manifest is not None and report.manifest.formatted is False
        assert any("cannot format" in warning for warning in report.warnings)
        assert (output_dir / package_name / "services" / "todo_local_service.py").is_file()

    def test_summary(self, example_document: Dict[str, Any], output_dir: pathlib.Path, package_name: str) -> None:
        summary = _generate(example_document, output_dir, package_name).summary()
        assert "SUCCESS" in summary
        assert package_name in summary


# ===========================================================================
# Generated package, end to end
# ===========================================================================


class TestGeneratedModels:
    """Row models of the generated package."""

    def test_round_trip(self, example_package: ModuleType) -> None:
        row = example_package.TodoTable(id=4, name="write tests", done=True, category_id=2)
        data = row.to_map()
        assert data == {"id": 4, "name": "write tests", "done": 1, "category_id": 2}
        assert example_package.TodoTable.from_map(data) == row

    def test_unsaved_primary_key_is_omitted(self, example_package: ModuleType) -> None:
        row = example_package.CategoryTable(name="Errands")
        assert row.to_map() == {"name": "Errands"}

    def test_from_map_is_lenient(self, example_package: ModuleType) -> None:
        row = example_package.TodoTable.from_map({"id": "7", "done": "1"})
        assert row.id == 7
        assert row.name == ""
        assert row.done is True
        assert row.category_id is None

    def test_json(self, example_package: ModuleType) -> None:
        category = example_package.CategoryTable(id=1, name="Work")
        row = example_package.TodoTable(id=3, name="a", done=False, category_id=1, category_table=category)
        nested = json.loads(row.to_json(with_join=True))
        assert nested["category_table"] == {"id": 1, "name": "Work"}
        assert example_package.TodoTable.from_json(row.to_json(with_join=True), with_join=True) == row
        assert "category_table" not in json.loads(row.to_json())

    def test_copy_with(self, example_package: ModuleType) -> None:
        row = example_package.TodoTable(id=1, name="a", done=False)
        changed = row.copy_with(name="b", done=True)
        assert (changed.id, changed.name, changed.done) == (1, "b", True)
        assert row.name == "a"

    def test_models_are_frozen(self, example_package: ModuleType) -> None:
        row = example_package.CategoryTable(name="x")
        with pytest.raises(AttributeError):
            row.name = "y"


class TestGeneratedServices:
    """Services of the generated package against an in-memory database."""

    def test_database_is_created_with_seeds(self, example_package: ModuleType, database: Any) -> None:
        categories = example_package.CategoryLocalService(database)
        assert database.state == example_package.DatabaseState.UNINITIALIZED
        rows = categories.get(order_by="id")
        assert database.is_open
        assert [(row.id, row.name) for row in rows] == [(1, "Work"), (2, "Home")]
        assert database.query("PRAGMA user_version")[0][0] == 1

    def test_insert_and_get_by_id(self, example_package: ModuleType, database: Any) -> None:
        categories = example_package.CategoryLocalService(database)
        new_id = categories.insert(example_package.CategoryTable(name="Errands"))
        assert new_id == 3
        assert categories.get_by_id(new_id) == example_package.CategoryTable(id=3, name="Errands")
        assert categories.get_by_id(99) is None
        assert categories.count() == 3

    def test_column_default_applies_on_insert(self, example_package: ModuleType, database: Any) -> None:
        connection = database.get_instance()
        with database.transaction():
            connection.execute("INSERT INTO category DEFAULT VALUES")
        rows = example_package.CategoryLocalService(database).get(where="id = ?", where_args=(3,))
        assert rows[0].name == "Other"

    def test_trigger_runs(self, example_package: ModuleType, database: Any) -> None:
        todos = example_package.TodoLocalService(database)
        todo_id = todos.insert(example_package.TodoTable(name="  padded  ", done=False, category_id=1))
        assert todos.get_by_id(todo_id).name == "padded"

    def test_pagination(self, example_package: ModuleType, database: Any) -> None:
        todos = example_package.TodoLocalService(database)
        todos.bulk_insert([
            example_package.BulkInsert(example_package.TodoTable(name=f"t{i}", done=i % 2 == 0, category_id=1))
            for i in range(25)
        ])
        page = todos.get_with_pagination(3, 10, order_by="id")
        assert [row.name for row in page.data] == [f"t{i}" for i in range(20, 25)]
        assert page.meta.total == 25
        assert page.meta.total_page == 3
        assert page.meta.offset == 20
        assert page.meta.has_next is False
        done_page = todos.get_with_pagination(1, 10, where="done = ?", where_args=(1,))
        assert done_page.meta.total == 13

    def test_with_join(self, example_package: ModuleType, database: Any) -> None:
        todos = example_package.TodoLocalService(database)
        linked = todos.insert(example_package.TodoTable(name="linked", done=False, category_id=2))
        unlinked = todos.insert(example_package.TodoTable(name="loose", done=False))

        row = todos.get_by_id_with_join(linked)
        assert row.category_table == example_package.CategoryTable(id=2, name="Home")
        assert row.name == "linked"
        assert todos.get_by_id_with_join(unlinked).category_table is None

        page = todos.get_with_join_pagination(1, 1, order_by="todo.id")
        assert page.meta.total == 2
        assert page.meta.total_page == 2
        assert len(page.data) == 1

    def test_update_and_delete(self, example_package: ModuleType, database: Any) -> None:
        todos = example_package.TodoLocalService(database)
        todo_id = todos.insert(example_package.TodoTable(name="a", done=False, category_id=1))
        row = todos.get_by_id(todo_id)
        assert todos.update_by_id(todo_id, row.copy_with(done=True)) == 1
        assert todos.get_by_id(todo_id).done is True
        assert todos.delete_by_id(todo_id) == 1
        assert todos.count() == 0

    def test_bulk_by_primary_key(self, example_package: ModuleType, database: Any) -> None:
        categories = example_package.CategoryLocalService(database)
        rows = [example_package.CategoryTable(id=1, name="W"), example_package.CategoryTable(id=2, name="H")]
        assert categories.bulk_update_by_id([1, 2], rows) == [1, 1]
        assert [row.name for row in categories.get(order_by="id")] == ["W", "H"]
        with pytest.raises(ValueError):
            categories.bulk_update_by_id([1], rows)
        assert categories.bulk_delete_by_id([1, 2]) == [1, 1]
        assert categories.count() == 0

    def test_upsert(self, example_package: ModuleType, database: Any) -> None:
        categories = example_package.CategoryLocalService(database)
        assert categories.upsert(example_package.CategoryTable(id=1, name="Office")) == 1
        assert categories.get_by_id(1).name == "Office"
        new_id = categories.upsert(example_package.CategoryTable(name="Garden"))
        assert new_id == 3
        assert categories.count() == 3

    def test_conflict_algorithm(self, example_package: ModuleType, database: Any) -> None:
        categories = example_package.CategoryLocalService(database)
        with pytest.raises(sqlite3.IntegrityError):
            categories.insert(example_package.CategoryTable(id=1, name="Dup"))
        categories.insert(
            example_package.CategoryTable(id=1, name="Dup"),
            conflict_algorithm=example_package.ConflictAlgorithm.REPLACE,
        )
        assert categories.get_by_id(1).name == "Dup"

    def test_failed_bulk_insert_rolls_back(self, example_package: ModuleType, database: Any) -> None:
        categories = example_package.CategoryLocalService(database)
        items = [
            example_package.BulkInsert(example_package.CategoryTable(name="ok")),
            example_package.BulkInsert(example_package.CategoryTable(id=1, name="clash")),
        ]
        with pytest.raises(sqlite3.IntegrityError):
            categories.bulk_insert(items)
        assert categories.count() == 2

    def test_foreign_key_cascade(self, example_package: ModuleType, database: Any) -> None:
        todos = example_package.TodoLocalService(database)
        categories = example_package.CategoryLocalService(database)
        todos.insert(example_package.TodoTable(name="a", done=False, category_id=1))
        categories.delete_by_id(1)
        assert todos.count() == 0

    def test_query_method(self, example_package: ModuleType, database: Any) -> None:
        todos = example_package.TodoLocalService(database)
        for name in ("a", "b"):
            todos.insert(example_package.TodoTable(name=name, done=False, category_id=2))
        result = todos.todo_count_by_category(2)
        assert result == [example_package.TodoCountByCategoryQuery(category_id=2, total=2)]
        assert todos.todo_count_by_category(1) == []

    def test_view_rows(self, example_package: ModuleType, database: Any) -> None:
        todos = example_package.TodoLocalService(database)
        todos.insert(example_package.TodoTable(name="a", done=False, category_id=1))
        rows = [example_package.TodoDetailView.from_map(dict(row)) for row in database.query(
            "SELECT * FROM todo_detail_view"
        )]
        assert rows == [example_package.TodoDetailView(id=1, name="a", category_name="Work")]


# ===========================================================================
# Column shapes and aliased joins
# ===========================================================================


_RELATIONS_DOCUMENT: Dict[str, Any] = {
    "version": 1,
    "table": {
        "note": {
            "column": {
                "id": {"type": "INTEGER", "constraint": "PRIMARY KEY", "autoincrement": True},
                "body": {"type": "TEXT", "nullable": False},
                "summary": "TEXT",
                "tag": {"type": "TEXT", "default": "misc"},
                "flagged": "BOOL",
                "archived": {"type": "BOOL", "default": False},
                "payload": "BLOB",
                "score": "REAL",
                "parent_id": "INTEGER",
            },
            "foreign": {"parent_id": {"to_table": "note", "to_column": "id"}},
        },
        "member": {
            "column": {
                "id": {"type": "INTEGER", "constraint": "PRIMARY KEY", "autoincrement": True},
                "name": {"type": "TEXT", "nullable": False},
            },
        },
        "task": {
            "column": {
                "id": {"type": "INTEGER", "constraint": "PRIMARY KEY", "autoincrement": True},
                "title": {"type": "TEXT", "nullable": False},
                "created_by": "INTEGER",
                "assigned_to": "INTEGER",
            },
            "foreign": {
                "created_by": {"to_table": "member", "to_column": "id"},
                "assigned_to": {"to_table": "member", "to_column": "id"},
            },
        },
    },
}


@pytest.fixture()
def relations_package(
    output_dir: pathlib.Path,
    package_name: str,
    monkeypatch: pytest.MonkeyPatch,
) -> ModuleType:
    report = _generate(copy.deepcopy(_RELATIONS_DOCUMENT), output_dir, package_name)
    assert report.success, report.summary()
    monkeypatch.syspath_prepend(str(output_dir))
    return importlib.import_module(package_name)


@pytest.fixture()
def relations_database(relations_package: ModuleType) -> Iterator[Any]:
    instance = relations_package.DatabaseInstance(":memory:")
    yield instance
    instance.close()


class TestGeneratedColumnShapes:
    """Map and JSON round trips over every kind of column."""

    @pytest.mark.parametrize(
        "fields",
        [
            {"body": "unsaved"},
            {"id": 5, "body": "required only"},
            {"id": 5, "body": "a", "summary": None, "tag": None},
            {"id": 5, "body": "a", "tag": "work", "summary": "s"},
            {"id": 5, "body": "a", "flagged": None, "archived": None},
            {"id": 5, "body": "a", "flagged": True, "archived": True},
            {"id": 5, "body": "a", "payload": b"\x00\xffdata"},
            {"id": 5, "body": "a", "score": 3},
            {"id": 5, "body": "a", "score": 2.5, "parent_id": 1},
        ],
    )
    def test_round_trip(self, relations_package: ModuleType, fields: Dict[str, Any]) -> None:
        note_table = relations_package.NoteTable
        row = note_table(**fields)
        assert note_table.from_map(row.to_map()) == row
        assert note_table.from_json(row.to_json()) == row

    def test_declared_default_is_the_field_default(self, relations_package: ModuleType) -> None:
        row = relations_package.NoteTable(body="a")
        assert row.tag == "misc"
        assert row.archived is False
        assert row.to_map() == {"body": "a", "tag": "misc", "archived": 0}

    def test_null_with_declared_default_is_written(self, relations_package: ModuleType) -> None:
        data = relations_package.NoteTable(id=1, body="a", tag=None).to_map()
        assert data["tag"] is None
        assert relations_package.NoteTable.from_map({"body": "a"}).tag == "misc"
        assert relations_package.NoteTable.from_map({"body": "a", "tag": None}).tag is None

    def test_update_can_store_null(self, relations_package: ModuleType, relations_database: Any) -> None:
        notes = relations_package.NoteLocalService(relations_database)
        note_id = notes.insert(relations_package.NoteTable(body="a"))
        assert notes.get_by_id(note_id).tag == "misc"
        cleared = dataclasses.replace(notes.get_by_id(note_id), tag=None)
        assert notes.update_by_id(note_id, cleared) == 1
        assert notes.get_by_id(note_id) == cleared


class TestGeneratedAliasedJoins:
    """Self references and several keys to one table."""

    def test_self_reference(self, relations_package: ModuleType, relations_database: Any) -> None:
        notes = relations_package.NoteLocalService(relations_database)
        root_id = notes.insert(relations_package.NoteTable(body="root"))
        child_id = notes.insert(relations_package.NoteTable(body="child", parent_id=root_id))

        child = notes.get_by_id_with_join(child_id)
        assert child.body == "child"
        assert child.parent_id_note == relations_package.NoteTable(id=root_id, body="root")
        assert notes.get_by_id_with_join(root_id).parent_id_note is None
        assert len(notes.get_with_join(order_by="note.id")) == 2

    def test_two_keys_to_one_table(self, relations_package: ModuleType, relations_database: Any) -> None:
        members = relations_package.MemberLocalService(relations_database)
        tasks = relations_package.TaskLocalService(relations_database)
        ann = members.insert(relations_package.MemberTable(name="ann"))
        bob = members.insert(relations_package.MemberTable(name="bob"))
        task_id = tasks.insert(relations_package.TaskTable(title="ship", created_by=ann, assigned_to=bob))

        task = tasks.get_by_id_with_join(task_id)
        assert task.created_by_member == relations_package.MemberTable(id=ann, name="ann")
        assert task.assigned_to_member == relations_package.MemberTable(id=bob, name="bob")

        page = tasks.get_with_join_pagination(1, 10, where="assigned_to_member.name = ?", where_args=("bob",))
        assert page.meta.total == 1
        assert page.data == [task]

    def test_nested_json(self, relations_package: ModuleType) -> None:
        member = relations_package.MemberTable(id=1, name="ann")
        task = relations_package.TaskTable(id=2, title="ship", created_by=1, created_by_member=member)
        nested = json.loads(task.to_json(with_join=True))
        assert nested["created_by_member"] == {"id": 1, "name": "ann"}
        assert "assigned_to_member" not in nested
        assert relations_package.TaskTable.from_json(task.to_json(with_join=True), with_join=True) == task


class TestGeneratedDatabaseInstance:
    """File-backed lifecycle of the generated DatabaseInstance."""

    def test_file_location_and_reopen(self, example_package: ModuleType, tmp_path: pathlib.Path) -> None:
        instance = example_package.DatabaseInstance(base_directory=tmp_path)
        expected = tmp_path / "morpheme" / "local2py.db"
        assert instance.path_database() == str(expected)
        example_package.CategoryLocalService(instance).insert(example_package.CategoryTable(name="Kept"))
        instance.close()
        assert instance.state == example_package.DatabaseState.CLOSED
        assert expected.is_file()

        reopened = example_package.DatabaseInstance(base_directory=tmp_path)
        try:
            names = [row.name for row in example_package.CategoryLocalService(reopened).get(order_by="id")]
        finally:
            reopened.close()
        assert names == ["Work", "Home", "Kept"]

    def test_environment_variable(
        self, example_package: ModuleType, tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("LOCAL2PY_DATABASES_PATH", str(tmp_path))
        instance = example_package.DatabaseInstance()
        assert instance.path_database() == str(tmp_path / "morpheme" / "local2py.db")

    def test_context_manager(self, example_package: ModuleType) -> None:
        with example_package.DatabaseInstance(":memory:") as instance:
            assert instance.is_open
        assert instance.state == example_package.DatabaseState.CLOSED
