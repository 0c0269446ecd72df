"""Offset pagination result types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class LocalMetaPagination:
    """Paging metadata returned next to every paginated result."""

    total: int
    limit: int
    page: int
    offset: int
    current_page: int
    total_page: int

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_page

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1


@dataclass(frozen=True)
class LocalPagination(Generic[T]):
    data: T
    meta: LocalMetaPagination


__all__ = ["LocalMetaPagination", "LocalPagination"]
