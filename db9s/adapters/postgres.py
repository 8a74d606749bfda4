"""PostgreSQL adapter built on asyncpg."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Sequence, TypeVar

import asyncpg

from ..models import DatabaseInfo, QueryResult, Schema, Table
from ..windows import WindowType
from .base import AdapterBase, build_row

LOG = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PORT = 5432
DEFAULT_SCHEMA = "public"


class PostgresAdapter(AdapterBase):
    """Runs catalog and user queries against PostgreSQL via asyncpg."""

    _TABLES_QUERY = """
        SELECT table_name
        FROM information_schema.tables
        WHERE table_schema = $1
        ORDER BY table_name
    """

    _SCHEMAS_QUERY = """
        SELECT schema_name
        FROM information_schema.schemata
        ORDER BY schema_name
    """

    _DATABASES_QUERY = """
        SELECT datname
        FROM pg_database
        WHERE datistemplate = false
        ORDER BY datname
    """

    _COLUMNS_QUERY = """
        SELECT column_name
        FROM information_schema.columns
        WHERE table_schema = $1 AND table_name = $2
        ORDER BY ordinal_position
    """

    connect_timeout: float = 5.0

    def list_tables(self) -> list[Table]:
        records = self._fetch(self._TABLES_QUERY, self._schema())
        return [Table(id=str(record[0]), name=str(record[0])) for record in records]

    def list_schemas(self) -> list[Schema]:
        records = self._fetch(self._SCHEMAS_QUERY)
        return [Schema(id=str(record[0]), name=str(record[0])) for record in records]

    def list_databases(self) -> list[DatabaseInfo]:
        records = self._fetch(self._DATABASES_QUERY)
        return [DatabaseInfo(id=str(record[0]), name=str(record[0])) for record in records]

    def list_columns(self) -> list[str]:
        table = self.selection(WindowType.TABLES) or ""
        records = self._fetch(self._COLUMNS_QUERY, self._schema(), table)
        return [str(record[0]) for record in records]

    def query(self) -> QueryResult:
        statement = self.query_string()
        LOG.debug("Running query on %s: %s", self.connection.name, statement)
        records = self._fetch(statement)
        if not records:
            return QueryResult()
        first = records[0]
        columns = tuple(str(key) for key in first.keys())
        if not columns:
            return QueryResult()
        positions = range(len(columns))
        rows = tuple(build_row([record[index] for index in positions]) for record in records)
        return QueryResult(columns=columns, rows=rows)

    def database_name(self) -> str:
        """Selected database, else the DSN subject, else `postgres`."""

        return self.selection(WindowType.DATABASES) or self._dsn.subject or "postgres"

    def _schema(self) -> str:
        return self.selection(WindowType.SCHEMAS) or DEFAULT_SCHEMA

    def _connect_kwargs(self) -> dict[str, object]:
        return {
            "host": self._dsn.host or "localhost",
            "port": self._dsn.port or DEFAULT_PORT,
            "user": self._dsn.username or "postgres",
            "password": self._dsn.password or "",
            "database": self.database_name(),
            "timeout": self.connect_timeout,
        }

    def _fetch(self, query: str, *args: object) -> Sequence[Any]:
        return _run(self._afetch(query, *args))

    async def _afetch(self, query: str, *args: object) -> Sequence[Any]:
        try:
            conn = await asyncpg.connect(**self._connect_kwargs())
        except Exception as exc:
            raise self._error("connect", exc) from exc
        try:
            return await conn.fetch(query, *args)
        except Exception as exc:
            raise self._error("run query", exc) from exc
        finally:
            try:
                await conn.close()
            except Exception:  # pragma: no cover - best effort cleanup
                LOG.debug("Ignoring error while closing connection", exc_info=True)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Drive an asyncpg coroutine from a worker thread."""

    return asyncio.run(coro)


__all__ = ["PostgresAdapter"]
