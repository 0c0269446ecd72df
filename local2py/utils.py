# File: local2py/utils.py
"""
local2py - Utility Functions & Helpers
=======================================
String transformation, code-layout and hashing helpers shared by every
generator, plus the ``Timer`` used to profile pipeline steps.

All name conversions are pure and called repeatedly for the same table
and column names, so they are memoised with ``functools.lru_cache``.
"""

from __future__ import annotations

import functools
import hashlib
import keyword
import logging
import re
import time
from typing import Dict, Iterable, List, Optional, Set, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("local2py.utils")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns
# ---------------------------------------------------------------------------

_CAMEL_TO_SNAKE_RE1: re.Pattern[str] = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_TO_SNAKE_RE2: re.Pattern[str] = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALPHANUM_RE: re.Pattern[str] = re.compile(r"[^a-zA-Z0-9]")
_MULTI_UNDERSCORE_RE: re.Pattern[str] = re.compile(r"_{2,}")
_LEADING_TRAILING_UNDERSCORE_RE: re.Pattern[str] = re.compile(r"^_+|_+$")
_SPLIT_WORDS_RE: re.Pattern[str] = re.compile(
    r"[A-Z]?[a-z]+|[A-Z]+(?=[A-Z][a-z]|\d|\b)|[A-Z]|\d+"
)
_SNAKE_CASE_RE: re.Pattern[str] = re.compile(r"^[a-z][a-z0-9]*(_[a-z0-9]+)*$")
_WHITESPACE_RE: re.Pattern[str] = re.compile(r"\s+")
_PLACEHOLDER_RE: re.Pattern[str] = re.compile(r"\?")


# ---------------------------------------------------------------------------
# Cached string transformation functions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def to_snake_case(name: str) -> str:
    """
    Convert any string to snake_case.

    Examples:
        >>> to_snake_case("TodoItem")
        'todo_item'
        >>> to_snake_case("categoryId")
        'category_id'
        >>> to_snake_case("already_snake")
        'already_snake'
    """
    if not name:
        return ""
    s: str = _CAMEL_TO_SNAKE_RE1.sub(r"\1_\2", name)
    s = _CAMEL_TO_SNAKE_RE2.sub(r"\1_\2", s)
    s = _NON_ALPHANUM_RE.sub("_", s)
    s = _MULTI_UNDERSCORE_RE.sub("_", s)
    s = _LEADING_TRAILING_UNDERSCORE_RE.sub("", s)
    return s.lower()


@functools.lru_cache(maxsize=None)
def to_pascal_case(name: str) -> str:
    """
    Convert any string to PascalCase.

    Examples:
        >>> to_pascal_case("todo_item")
        'TodoItem'
        >>> to_pascal_case("category")
        'Category'
    """
    if not name:
        return ""
    words: Tuple[str, ...] = _extract_words(name)
    return "".join(word.capitalize() for word in words)


@functools.lru_cache(maxsize=None)
def _extract_words(name: str) -> Tuple[str, ...]:
    """Split any casing style into a tuple of lowercase words."""
    cleaned: str = _NON_ALPHANUM_RE.sub(" ", name)
    words: List[str] = _SPLIT_WORDS_RE.findall(cleaned)
    return tuple(w.lower() for w in words if w)


def is_snake_case(name: str) -> bool:
    return bool(_SNAKE_CASE_RE.match(name))


@functools.lru_cache(maxsize=None)
def safe_identifier(name: str) -> str:
    """
    Turn a column or query name into a usable Python attribute name.

    - Converts to snake_case
    - Prefixes with underscore if it starts with a digit
    - Appends underscore if it is a Python keyword

    Builtins such as ``id`` or ``type`` are left alone: they are valid
    attribute and parameter names and read naturally on row models.
    """
    result: str = to_snake_case(name)
    if not result:
        return "_unnamed"
    if result[0].isdigit():
        result = f"_{result}"
    if keyword.iskeyword(result):
        result = f"{result}_"
    return result


def collapse_whitespace(text: str) -> str:
    """Fold every run of whitespace into one space and strip the ends."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def count_placeholders(sql: Optional[str]) -> int:
    """Number of positional ``?`` placeholders in an SQL fragment."""
    if not sql:
        return 0
    return len(_PLACEHOLDER_RE.findall(sql))


# ---------------------------------------------------------------------------
# Code layout helpers
# ---------------------------------------------------------------------------


def build_import_block(imports: Dict[str, Set[str]]) -> str:
    """
    Build a sorted, de-duplicated ``from x import a, b`` block.

    Example:
        >>> build_import_block({"typing": {"List", "Optional"}, "json": set()})
        'import json\\nfrom typing import List, Optional'
    """
    plain: List[str] = []
    from_lines: List[str] = []
    for module in sorted(imports.keys()):
        names: List[str] = sorted(imports[module])
        if names:
            from_lines.append(f"from {module} import {', '.join(names)}")
        else:
            plain.append(f"import {module}")
    return "\n".join(plain + from_lines)


def format_tuple_literal(items: Iterable[str], level: int = 0) -> str:
    """
    Render a tuple of string literals one item per line.

    An empty iterable gives ``()``.
    """
    values: List[str] = [repr(item) for item in items]
    if not values:
        return "()"
    pad: str = " " * ((level + 1) * 4)
    closing: str = " " * (level * 4)
    body: str = "\n".join(f"{pad}{value}," for value in values)
    return f"(\n{body}\n{closing})"


# ---------------------------------------------------------------------------
# Hashing / metrics
# ---------------------------------------------------------------------------


def sha256_hex(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def count_lines(content: str) -> int:
    """Count lines the way editors do: a trailing newline adds no line."""
    if not content:
        return 0
    return content.count("\n") + (0 if content.endswith("\n") else 1)


# ---------------------------------------------------------------------------
# Timer
# ---------------------------------------------------------------------------


class Timer:
    """
    Simple context-manager timer for profiling generation steps.

    Usage:
        with Timer("generate models") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.info("Timer [%s]: %.4f seconds", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "Timer",
    "build_import_block",
    "collapse_whitespace",
    "count_lines",
    "count_placeholders",
    "format_tuple_literal",
    "is_snake_case",
    "safe_identifier",
    "sha256_hex",
    "to_pascal_case",
    "to_snake_case",
]

logger.debug("local2py.utils loaded.")
