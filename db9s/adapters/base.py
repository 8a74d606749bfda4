"""Adapter contract shared by every backend plus the cell coercion rules."""

from __future__ import annotations

import struct
from datetime import datetime
from typing import Callable, Protocol, Sequence, runtime_checkable
from uuid import UUID

from ..config import ConnectionConfig
from ..dsn import Dsn, DsnError, parse_dsn
from ..models import DatabaseInfo, QueryResult, QueryResultRow, Schema, Selections, Table
from ..windows import WindowType

DEFAULT_LIMIT = 50
UNSELECTED_TABLE = "_unselected_"
MISSING_ROW_ID = "missing"

_I32 = (-(2**31), 2**31 - 1)
_I64 = (-(2**63), 2**63 - 1)


class AdapterError(RuntimeError):
    """Raised when a backend cannot connect or a query fails."""


@runtime_checkable
class ConnectionAdapter(Protocol):
    """Uniform list/describe/query surface implemented per backend."""

    def list_tables(self) -> list[Table]:
        """Tables (or the backend's equivalent) in the current scope."""

    def list_schemas(self) -> list[Schema]:
        """Schemas; empty when the backend has none."""

    def list_databases(self) -> list[DatabaseInfo]:
        """Databases; empty when the backend has none."""

    def list_columns(self) -> list[str]:
        """Columns of the selected table."""

    def default_query_string(self) -> str:
        """Query run when no custom query is set."""

    def query(self) -> QueryResult:
        """Run the custom query, or the default one."""


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _fits_f32(value: float) -> bool:
    try:
        return struct.unpack("f", struct.pack("f", value))[0] == value
    except OverflowError:
        return False


def _format_float(value: float) -> str:
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


_NO_MATCH = object()


def _as_string(value: object) -> object:
    return str.__str__(value) if isinstance(value, str) else _NO_MATCH


def _as_uuid(value: object) -> object:
    return str(value) if isinstance(value, UUID) else _NO_MATCH


def _as_timestamp(value: object) -> object:
    return str(value) if isinstance(value, datetime) else _NO_MATCH


def _as_i32(value: object) -> object:
    if _is_int(value) and _I32[0] <= value <= _I32[1]:  # type: ignore[operator]
        return str(value)
    return _NO_MATCH


def _as_i64(value: object) -> object:
    if _is_int(value) and _I64[0] <= value <= _I64[1]:  # type: ignore[operator]
        return str(value)
    return _NO_MATCH


def _as_f32(value: object) -> object:
    if isinstance(value, float) and _fits_f32(value):
        return _format_float(value)
    return _NO_MATCH


def _as_f64(value: object) -> object:
    return _format_float(value) if isinstance(value, float) else _NO_MATCH


def _as_bool(value: object) -> object:
    if isinstance(value, bool):
        return "true" if value else "false"
    return _NO_MATCH


# Precedence controls how ambiguous values are displayed; keep the order.
CELL_EXTRACTORS: tuple[tuple[str, Callable[[object], object]], ...] = (
    ("string", _as_string),
    ("uuid", _as_uuid),
    ("timestamp", _as_timestamp),
    ("int32", _as_i32),
    ("int64", _as_i64),
    ("float32", _as_f32),
    ("float64", _as_f64),
    ("bool", _as_bool),
)


def coerce_cell(value: object) -> str | None:
    """Stringify `value` via the first extractor that accepts it, else None."""

    if value is None:
        return None
    for _, extractor in CELL_EXTRACTORS:
        result = extractor(value)
        if result is not _NO_MATCH:
            return result  # type: ignore[return-value]
    return None


def build_row(values: Sequence[object]) -> QueryResultRow:
    """Coerce a raw driver row; the first cell doubles as the row id."""

    cells = tuple(coerce_cell(value) for value in values)
    row_id = cells[0] if cells and cells[0] is not None else MISSING_ROW_ID
    return QueryResultRow(id=row_id, cells=cells)


def build_select(
    table: str | None,
    columns: Sequence[str] = (),
    *,
    sort_by: str | None = None,
    limit: int = DEFAULT_LIMIT,
) -> str:
    """Compose the default SELECT; identifiers are interpolated verbatim."""

    projection = ",".join(columns) if columns else "*"
    query = f"SELECT {projection} FROM {table or UNSELECTED_TABLE}"
    if sort_by:
        query = f"{query} ORDER BY {sort_by}"
    return f"{query} LIMIT {limit}"


class AdapterBase:
    """Common state for adapters: connection, selections and custom query."""

    def __init__(
        self,
        connection: ConnectionConfig,
        selections: Selections | None = None,
        custom_query: str | None = None,
    ) -> None:
        self._connection = connection
        self._selections: dict[WindowType, tuple[str, ...]] = {
            window: tuple(values) for window, values in (selections or {}).items()
        }
        self._custom_query = custom_query
        try:
            self._dsn: Dsn = parse_dsn(connection.dsn)
        except DsnError as exc:
            raise AdapterError(f"Invalid DSN for '{connection.name}': {exc}") from exc

    @property
    def connection(self) -> ConnectionConfig:
        return self._connection

    @property
    def custom_query(self) -> str | None:
        return self._custom_query

    def selection(self, window: WindowType) -> str | None:
        """First selected value for `window`, if any."""

        values = self._selections.get(window)
        if not values:
            return None
        return values[0]

    def selected(self, window: WindowType) -> tuple[str, ...]:
        return self._selections.get(window, ())

    def query_string(self) -> str:
        if self._custom_query is not None:
            return self._custom_query
        return self.default_query_string()

    def default_query_string(self) -> str:
        return build_select(self.selection(WindowType.TABLES), self.selected(WindowType.COLUMNS))

    def list_tables(self) -> list[Table]:
        return []

    def list_schemas(self) -> list[Schema]:
        return []

    def list_databases(self) -> list[DatabaseInfo]:
        return []

    def list_columns(self) -> list[str]:
        return []

    def query(self) -> QueryResult:  # pragma: no cover - overridden by every backend
        raise NotImplementedError

    def _error(self, action: str, exc: BaseException) -> AdapterError:
        return AdapterError(f"Failed to {action} on '{self._connection.name}': {exc}")


__all__ = [
    "AdapterBase",
    "AdapterError",
    "CELL_EXTRACTORS",
    "ConnectionAdapter",
    "DEFAULT_LIMIT",
    "MISSING_ROW_ID",
    "UNSELECTED_TABLE",
    "build_row",
    "build_select",
    "coerce_cell",
]
