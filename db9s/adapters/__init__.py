"""Backend adapters and the dispatch that picks one per connection."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, assert_never

from ..config import ConnectionConfig
from ..dsn import BackendKind, DsnError, backend_kind
from ..models import Selections
from ..windows import WindowType
from .base import AdapterBase, AdapterError, ConnectionAdapter, build_select, coerce_cell
from .elasticsearch import ElasticsearchAdapter
from .mysql import MySQLAdapter
from .postgres import PostgresAdapter
from .redis import RedisAdapter
from .sqlite import SQLiteAdapter

_ALWAYS = frozenset({WindowType.CONNECTIONS, WindowType.HISTORY})

FEATURE_MATRIX: Mapping[BackendKind, frozenset[WindowType]] = MappingProxyType(
    {
        BackendKind.POSTGRES: frozenset(WindowType),
        BackendKind.MYSQL: _ALWAYS
        | {WindowType.DATABASES, WindowType.TABLES, WindowType.COLUMNS, WindowType.QUERY},
        BackendKind.SQLITE: _ALWAYS | {WindowType.TABLES, WindowType.COLUMNS, WindowType.QUERY},
        BackendKind.REDIS: _ALWAYS | {WindowType.DATABASES, WindowType.QUERY},
        BackendKind.ELASTICSEARCH: _ALWAYS
        | {WindowType.TABLES, WindowType.COLUMNS, WindowType.QUERY},
    }
)


def supported_windows(connection: ConnectionConfig | None) -> frozenset[WindowType]:
    """Feature matrix entry for the connection's backend."""

    if connection is None:
        return _ALWAYS
    try:
        return FEATURE_MATRIX[backend_kind(connection.dsn)]
    except DsnError:
        return _ALWAYS


def build_adapter(
    connection: ConnectionConfig,
    selections: Selections | None = None,
    custom_queries: Mapping[str, str] | None = None,
) -> AdapterBase:
    """Construct the adapter for the connection's driver (no I/O happens here)."""

    try:
        kind = backend_kind(connection.dsn)
    except DsnError as exc:
        raise AdapterError(f"Invalid DSN for '{connection.name}': {exc}") from exc
    query = (custom_queries or {}).get(connection.id)
    if kind is BackendKind.POSTGRES:
        return PostgresAdapter(connection, selections, query)
    elif kind is BackendKind.MYSQL:
        return MySQLAdapter(connection, selections, query)
    elif kind is BackendKind.SQLITE:
        return SQLiteAdapter(connection, selections, query)
    elif kind is BackendKind.REDIS:
        return RedisAdapter(connection, selections, query)
    elif kind is BackendKind.ELASTICSEARCH:
        return ElasticsearchAdapter(connection, selections, query)
    else:
        assert_never(kind)


__all__ = [
    "AdapterBase",
    "AdapterError",
    "ConnectionAdapter",
    "ElasticsearchAdapter",
    "FEATURE_MATRIX",
    "MySQLAdapter",
    "PostgresAdapter",
    "RedisAdapter",
    "SQLiteAdapter",
    "build_adapter",
    "build_select",
    "coerce_cell",
    "supported_windows",
]
