"""Argument wrappers for batched insert, update and delete calls."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Optional, Sequence, TypeVar

from .query_helper import ConflictAlgorithm

T = TypeVar("T")


@dataclass(frozen=True)
class BulkInsert(Generic[T]):
    data: T
    conflict_algorithm: Optional[ConflictAlgorithm] = None


@dataclass(frozen=True)
class BulkUpdate(Generic[T]):
    data: T
    where: Optional[str] = None
    where_args: Sequence[Any] = field(default_factory=tuple)
    conflict_algorithm: Optional[ConflictAlgorithm] = None


@dataclass(frozen=True)
class BulkDelete:
    where: Optional[str] = None
    where_args: Sequence[Any] = field(default_factory=tuple)


__all__ = ["BulkDelete", "BulkInsert", "BulkUpdate"]
