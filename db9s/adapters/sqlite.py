"""SQLite adapter backed by the standard library driver."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import closing
from pathlib import Path

from ..models import QueryResult, Table
from ..windows import WindowType
from .base import AdapterBase, build_row

LOG = logging.getLogger(__name__)


class SQLiteAdapter(AdapterBase):
    """The DSN location (`sqlite://file.db`, `sqlite:///abs/file.db`) is the database path."""

    _TABLES_QUERY = "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"

    @property
    def path(self) -> str:
        return self._dsn.location

    def list_tables(self) -> list[Table]:
        _, rows = self._execute(self._TABLES_QUERY)
        return [Table(id=str(row[0]), name=str(row[0])) for row in rows]

    def list_columns(self) -> list[str]:
        table = self.selection(WindowType.TABLES)
        if not table:
            return []
        _, rows = self._execute(f"PRAGMA table_info({table})")
        return [str(row[1]) for row in rows]

    def query(self) -> QueryResult:
        statement = self.query_string()
        LOG.debug("Running query on %s: %s", self.connection.name, statement)
        columns, rows = self._execute(statement)
        if not columns or not rows:
            return QueryResult()
        return QueryResult(columns=columns, rows=tuple(build_row(row) for row in rows))

    def uri(self) -> str:
        """Read-write URI for an existing file; sqlite never creates it."""

        return f"{Path(self.path).resolve().as_uri()}?mode=rw"

    def _connect(self) -> sqlite3.Connection:
        LOG.debug("Opening connection to %s", self.path)
        try:
            return sqlite3.connect(self.uri(), uri=True)
        except sqlite3.Error as exc:
            raise self._error(f"open database {self.path}", exc) from exc

    def _execute(self, statement: str) -> tuple[tuple[str, ...], list[tuple[object, ...]]]:
        with closing(self._connect()) as conn:
            try:
                cursor = conn.execute(statement)
                columns = tuple(str(column[0]) for column in cursor.description or ())
                rows = [tuple(row) for row in cursor.fetchall()]
            except sqlite3.Error as exc:
                raise self._error("run query", exc) from exc
        return columns, rows


__all__ = ["SQLiteAdapter"]
