"""MySQL adapter built on PyMySQL."""

from __future__ import annotations

import logging
from typing import Any

import pymysql

from ..models import DatabaseInfo, QueryResult, Table
from ..windows import WindowType
from .base import AdapterBase, build_row

LOG = logging.getLogger(__name__)

DEFAULT_PORT = 3306


class MySQLAdapter(AdapterBase):
    """MySQL has databases but no schemas; databases switch the connection target."""

    connect_timeout: int = 5

    def list_tables(self) -> list[Table]:
        _, rows = self._execute("SHOW TABLES")
        return [Table(id=str(row[0]), name=str(row[0])) for row in rows]

    def list_databases(self) -> list[DatabaseInfo]:
        _, rows = self._execute("SHOW DATABASES")
        return [DatabaseInfo(id=str(row[0]), name=str(row[0])) for row in rows]

    def list_columns(self) -> list[str]:
        table = self.selection(WindowType.TABLES)
        if not table:
            return []
        _, rows = self._execute(f"SHOW COLUMNS FROM {table}")
        return [str(row[0]) for row in rows]

    def query(self) -> QueryResult:
        statement = self.query_string()
        LOG.debug("Running query on %s: %s", self.connection.name, statement)
        columns, rows = self._execute(statement)
        if not columns or not rows:
            return QueryResult()
        return QueryResult(columns=columns, rows=tuple(build_row(row) for row in rows))

    def database_name(self) -> str | None:
        return self.selection(WindowType.DATABASES) or self._dsn.subject

    def _connect(self) -> Any:
        kwargs: dict[str, Any] = {
            "host": self._dsn.host or "localhost",
            "port": self._dsn.port or DEFAULT_PORT,
            "user": self._dsn.username or "root",
            "password": self._dsn.password or "",
            "connect_timeout": self.connect_timeout,
        }
        database = self.database_name()
        if database:
            kwargs["database"] = database
        try:
            return pymysql.connect(**kwargs)
        except Exception as exc:
            raise self._error("connect", exc) from exc

    def _execute(self, statement: str) -> tuple[tuple[str, ...], tuple[tuple[Any, ...], ...]]:
        conn = self._connect()
        try:
            with conn.cursor() as cursor:
                cursor.execute(statement)
                description = cursor.description or ()
                columns = tuple(str(column[0]) for column in description)
                rows = tuple(tuple(row) for row in cursor.fetchall())
        except Exception as exc:
            raise self._error("run query", exc) from exc
        finally:
            conn.close()
        return columns, rows


__all__ = ["MySQLAdapter"]
