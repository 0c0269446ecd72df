# File: local2py/database_generator.py
"""
local2py - Database Lifecycle Generator
========================================
Emits ``utils/database_instance.py``: the creation script baked in as
constants, plus ``DatabaseInstance``, the handle every service receives.

Lifecycle of the generated handle::

    UNINITIALIZED --get_instance()--> OPENING --> OPEN --close()--> CLOSED
                                         |                            |
                                         +-- failure: previous state  +-- get_instance() reopens

The creation hook runs only while ``PRAGMA user_version`` is 0, i.e. the
first time the file is opened.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from local2py.ddl import CreationStatements, build_creation_statements
from local2py.models import Schema
from local2py.templates import BaseGenerator
from local2py.utils import format_tuple_literal

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("local2py.database_generator")

DATABASES_PATH_ENV: str = "LOCAL2PY_DATABASES_PATH"

# Fixed part of the generated module, after the schema constants.
_DATABASE_INSTANCE_BODY: str = '''

def creation_script() -> str:
    """Every creation statement in one transaction, ending with the schema version."""
    statements = (
        *CREATE_TABLE_STATEMENTS,
        *CREATE_VIEW_STATEMENTS,
        *CREATE_TRIGGER_STATEMENTS,
        *SEED_STATEMENTS,
    )
    body = "".join(f"{statement};\\n" for statement in statements)
    return f"BEGIN;\\n{body}PRAGMA user_version = {DATABASE_VERSION};\\nCOMMIT;\\n"


class DatabaseState(str, Enum):
    UNINITIALIZED = "uninitialized"
    OPENING = "opening"
    OPEN = "open"
    CLOSED = "closed"


class DatabaseInstance:
    """
    Lazily opened SQLite connection shared by all services.

    Pass ``path`` to pin the database file (``":memory:"`` works too), or
    ``base_directory`` to relocate the default
    ``<base>/<DATABASE_DIRECTORY>/<DATABASE_FILE_NAME>`` layout.
    """

    def __init__(
        self,
        path: Optional[Union[str, os.PathLike]] = None,
        *,
        base_directory: Optional[Union[str, os.PathLike]] = None,
    ) -> None:
        self._path = os.fspath(path) if path is not None else None
        self._base_directory = base_directory
        self._lock = threading.RLock()
        self._connection: Optional[sqlite3.Connection] = None
        self._state = DatabaseState.UNINITIALIZED

    @property
    def state(self) -> DatabaseState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is DatabaseState.OPEN

    def path_database(self) -> str:
        if self._path is not None:
            return self._path
        base = (
            self._base_directory
            or os.environ.get(DATABASES_PATH_ENV)
            or Path.home() / ".local2py"
        )
        return str(Path(base) / DATABASE_DIRECTORY / DATABASE_FILE_NAME)

    def get_instance(self) -> sqlite3.Connection:
        """Return the shared connection, opening and creating the database on first use."""
        with self._lock:
            if self._connection is not None:
                return self._connection
            previous = self._state
            self._state = DatabaseState.OPENING
            connection: Optional[sqlite3.Connection] = None
            try:
                path = self.path_database()
                if path != ":memory:":
                    Path(path).parent.mkdir(parents=True, exist_ok=True)
                connection = sqlite3.connect(path, check_same_thread=False)
                connection.row_factory = sqlite3.Row
                self._on_configure(connection)
                if connection.execute("PRAGMA user_version").fetchone()[0] == 0:
                    self._on_create(connection)
            except Exception:
                if connection is not None:
                    connection.close()
                self._state = previous
                raise
            self._connection = connection
            self._state = DatabaseState.OPEN
            return connection

    @staticmethod
    def _on_configure(connection: sqlite3.Connection) -> None:
        flag = "ON" if FOREIGN_KEY_CONSTRAINTS else "OFF"
        connection.execute(f"PRAGMA foreign_keys = {flag}")

    @staticmethod
    def _on_create(connection: sqlite3.Connection) -> None:
        connection.executescript(creation_script())

    def query(self, sql: str, parameters: Sequence[Any] = ()) -> List[sqlite3.Row]:
        """Run a read statement and fetch every row."""
        with self._lock:
            return self.get_instance().execute(sql, tuple(parameters)).fetchall()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the lock and commit on success, roll back on error."""
        with self._lock:
            connection = self.get_instance()
            with connection:
                yield connection

    def close(self) -> None:
        with self._lock:
            if self._state is not DatabaseState.OPEN or self._connection is None:
                return
            self._connection.close()
            self._connection = None
            self._state = DatabaseState.CLOSED

    def __enter__(self) -> DatabaseInstance:
        self.get_instance()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


__all__ = [
    "CREATE_TABLE_STATEMENTS",
    "CREATE_TRIGGER_STATEMENTS",
    "CREATE_VIEW_STATEMENTS",
    "DATABASE_DIRECTORY",
    "DATABASE_FILE_NAME",
    "DATABASE_VERSION",
    "DatabaseInstance",
    "DatabaseState",
    "FOREIGN_KEY_CONSTRAINTS",
    "SEED_STATEMENTS",
    "creation_script",
]
'''


class DatabaseGenerator(BaseGenerator):
    """Builds ``utils/database_instance.py``."""

    def generate(self, schema: Schema) -> str:
        statements: CreationStatements = build_creation_statements(
            schema,
            sort_tables_by_dependency=self.config.sort_tables_by_dependency,
        )
        lines: List[str] = self.file_header(
            "Lifecycle of the local SQLite database.",
            "The creation script runs once, when the file is new; there are no migrations.",
        )
        lines.append("import os")
        lines.append("import sqlite3")
        lines.append("import threading")
        lines.append("from contextlib import contextmanager")
        lines.append("from enum import Enum")
        lines.append("from pathlib import Path")
        lines.append("from typing import Any, Iterator, List, Optional, Sequence, Tuple, Union")
        lines.append("")
        lines.append(f"DATABASE_VERSION = {schema.version!r}")
        lines.append(f"DATABASE_DIRECTORY = {schema.database_directory_name!r}")
        lines.append(f"DATABASE_FILE_NAME = {self.config.database_file_name!r}")
        lines.append(f"FOREIGN_KEY_CONSTRAINTS = {schema.foreign_key_constraints_enabled!r}")
        lines.append(f"DATABASES_PATH_ENV = {DATABASES_PATH_ENV!r}")
        lines.append("")
        lines.append(f"CREATE_TABLE_STATEMENTS: Tuple[str, ...] = {format_tuple_literal(statements.tables)}")
        lines.append(f"CREATE_VIEW_STATEMENTS: Tuple[str, ...] = {format_tuple_literal(statements.views)}")
        lines.append(
            f"CREATE_TRIGGER_STATEMENTS: Tuple[str, ...] = {format_tuple_literal(statements.triggers)}"
        )
        lines.append(f"SEED_STATEMENTS: Tuple[str, ...] = {format_tuple_literal(statements.seeds)}")
        lines.append(_DATABASE_INSTANCE_BODY)

        logger.debug(
            "Database module: version %d, %d creation statement(s).",
            schema.version,
            len(statements.ordered()),
        )
        return self.finish(lines)

    def generate_all(self, schema: Schema) -> Dict[str, str]:
        return {"utils/database_instance.py": self.generate(schema)}


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = ["DATABASES_PATH_ENV", "DatabaseGenerator"]

logger.debug("local2py.database_generator loaded.")
