# File: local2py/example.py
"""
local2py - Starter Document
============================
The annotated YAML written by ``local2py --init``.  It doubles as a small
fixture: every section the loader understands appears at least once.
"""

from __future__ import annotations

import logging
from typing import List

logger: logging.Logger = logging.getLogger("local2py.example")

EXAMPLE_FILE_NAME: str = "local2py.yaml"

EXAMPLE_DOCUMENT: str = """\
# local2py schema document
#
# version: schema version, stored as PRAGMA user_version. The creation
#   script runs only on a new database file; there are no migrations.
# dir_database: directory (under the databases path) holding the file.
# foreign_key_constrain_support: turns on PRAGMA foreign_keys.
#
# table.<name>.column.<column>: either a bare type or a mapping with
#   type        INTEGER | INT | REAL | TEXT | BLOB | BOOL
#   constraint  PRIMARY KEY | FOREIGN KEY | UNIQUE | CHECK
#   autoincrement, nullable (true by default), default, check
# table.<name>.foreign.<column>: to_table, to_column, on_update, on_delete
#   (SET NULL | SET DEFAULT | RESTRICT | NO ACTION | CASCADE)
#
# query.<table>.<name>: read query exposed as a service method. Each
#   "?" in where becomes a positional method argument.
# view.<name>: persisted view named <name>_view.
# trigger.<name>.raw_sql: copied into the creation script as written.
# seed.<table>: rows inserted once, right after creation. Each value is
#   a comma-joined string with one entry per column.
#
# config (optional): package_name, database_file_name, format_output,
#   clean_output, generate_manifest, sort_tables_by_dependency.

version: 1
dir_database: morpheme
foreign_key_constrain_support: true

table:
  category:
    column:
      id:
        type: INTEGER
        constraint: PRIMARY KEY
        autoincrement: true
      name:
        type: TEXT
        nullable: false
        default: Other
  todo:
    column:
      id:
        type: INTEGER
        constraint: PRIMARY KEY
        autoincrement: true
      name:
        type: TEXT
        nullable: false
      done:
        type: BOOL
        nullable: false
        default: false
      category_id: INTEGER
    foreign:
      category_id:
        to_table: category
        to_column: id
        on_update: CASCADE
        on_delete: CASCADE

query:
  todo:
    todo_count_by_category:
      column:
        category_id: INTEGER
        total:
          type: INTEGER
          origin: COUNT(*)
      where: category_id = ?
      group_by: category_id

view:
  todo_detail:
    from: todo
    column:
      id:
        type: INTEGER
        origin: todo.id
      name:
        type: TEXT
        origin: todo.name
      category_name:
        type: TEXT
        origin: category.name
    join:
      - LEFT JOIN category ON category.id = todo.category_id

trigger:
  trim_todo_name:
    raw_sql: >
      CREATE TRIGGER IF NOT EXISTS trim_todo_name
      AFTER INSERT ON todo
      BEGIN
        UPDATE todo SET name = TRIM(NEW.name) WHERE id = NEW.id;
      END

seed:
  category:
    column: [id, name]
    value:
      - 1,Work
      - 2,Home
"""


__all__: List[str] = ["EXAMPLE_DOCUMENT", "EXAMPLE_FILE_NAME"]

logger.debug("local2py.example loaded.")
