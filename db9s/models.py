"""Shared dataclasses used across adapter/state modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence

from .windows import WindowType

Selections = Mapping[WindowType, Sequence[str]]


@dataclass(frozen=True, slots=True)
class Table:
    """A table (or index, for search backends) exposed by an adapter."""

    id: str
    name: str


@dataclass(frozen=True, slots=True)
class Schema:
    id: str
    name: str


@dataclass(frozen=True, slots=True)
class DatabaseInfo:
    id: str
    name: str


@dataclass(frozen=True, slots=True)
class QueryResultRow:
    """One result row; `id` identifies the row for selection purposes."""

    id: str
    cells: tuple[str | None, ...]


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Normalized query output returned by every adapter."""

    columns: tuple[str, ...] = ()
    rows: tuple[QueryResultRow, ...] = ()


@dataclass(frozen=True, slots=True)
class WindowDataRow:
    id: str
    cells: tuple[str | None, ...]

    @classmethod
    def from_value(cls, value: str) -> WindowDataRow:
        """Single-cell row whose id is the displayed value."""

        return cls(id=value, cells=(value,))


@dataclass(frozen=True, slots=True)
class WindowData:
    """Column headers plus rows rendered for the active window."""

    columns: tuple[str, ...] = ()
    rows: tuple[WindowDataRow, ...] = field(default_factory=tuple)

    @classmethod
    def from_names(cls, names: Sequence[str], *, header: str = "Name") -> WindowData:
        return cls(columns=(header,), rows=tuple(WindowDataRow.from_value(name) for name in names))

    @classmethod
    def from_query_result(cls, result: QueryResult) -> WindowData:
        return cls(
            columns=result.columns,
            rows=tuple(WindowDataRow(id=row.id, cells=row.cells) for row in result.rows),
        )


__all__ = [
    "DatabaseInfo",
    "QueryResult",
    "QueryResultRow",
    "Schema",
    "Selections",
    "Table",
    "WindowData",
    "WindowDataRow",
]
