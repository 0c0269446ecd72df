# File: local2py/errors.py
"""
local2py - Error Taxonomy
==========================

Two failure families surface from the pipeline:

- ``SchemaError``     : the input document is structurally invalid.  Raised
                        by the loader before any generator runs.
- ``GenerationError`` : a generator cannot produce output for an otherwise
                        valid schema (unsupported type, unknown FK target...).

Filesystem failures are plain ``OSError`` and are recorded per file by the
exporter.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

logger: logging.Logger = logging.getLogger("local2py.errors")


class Local2PyError(Exception):
    """Base class for every error raised by local2py."""


class SchemaError(Local2PyError):
    """
    Structural validation failure.

    Attributes:
        kind:    Stable machine-readable code (e.g. ``"missing_columns"``).
        path:    Dotted location inside the document (``"table.todo.column.id"``).
        message: Human-readable description.
        errors:  Every problem found in the same validation pass.
    """

    def __init__(
        self,
        kind: str,
        path: str,
        message: str,
        errors: Optional[Sequence[Any]] = None,
    ) -> None:
        self.kind: str = kind
        self.path: str = path
        self.message: str = message
        self.errors: List[Any] = list(errors or [])
        super().__init__(f"{kind} at '{path}': {message}" if path else f"{kind}: {message}")


class GenerationError(Local2PyError):
    """A generator could not emit code for a valid schema."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.message: str = message
        self.path: Optional[str] = path
        super().__init__(f"{message} ({path})" if path else message)


__all__: List[str] = [
    "GenerationError",
    "Local2PyError",
    "SchemaError",
]

logger.debug("local2py.errors loaded.")
