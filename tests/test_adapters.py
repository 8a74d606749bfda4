"""Tests for the backend adapters and cell coercion."""

from __future__ import annotations

import io
import json
import sqlite3
import struct
import urllib.error
import uuid
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

from db9s.adapters import (
    FEATURE_MATRIX,
    AdapterError,
    ConnectionAdapter,
    ElasticsearchAdapter,
    MySQLAdapter,
    PostgresAdapter,
    RedisAdapter,
    SQLiteAdapter,
    build_adapter,
    build_select,
    coerce_cell,
    supported_windows,
)
from db9s.adapters.base import build_row
from db9s.config import ConnectionConfig
from db9s.dsn import BackendKind
from db9s.windows import WindowType


def _connection(dsn: str, name: str = "test") -> ConnectionConfig:
    return ConnectionConfig(id="conn-1", name=name, dsn=dsn)


# Coercion --------------------------------------------------------------------


class _Label(str):
    def __str__(self) -> str:
        return "overridden"


def test_coerce_none_stays_none() -> None:
    assert coerce_cell(None) is None


def test_strings_win_over_other_interpretations() -> None:
    assert coerce_cell("42") == "42"
    assert coerce_cell("true") == "true"
    assert coerce_cell(_Label("raw")) == "raw"


def test_coerce_scalars() -> None:
    ident = uuid.UUID("12345678-1234-5678-1234-567812345678")
    stamp = datetime(2024, 1, 2, 3, 4, 5)

    assert coerce_cell(ident) == "12345678-1234-5678-1234-567812345678"
    assert coerce_cell(stamp) == "2024-01-02 03:04:05"
    assert coerce_cell(7) == "7"
    assert coerce_cell(2**40) == str(2**40)
    assert coerce_cell(1.5) == "1.5"
    assert coerce_cell(2.0) == "2"
    assert coerce_cell(True) == "true"
    assert coerce_cell(False) == "false"


def test_float32_representable_values_match_float64_rendering() -> None:
    value = struct.unpack("f", struct.pack("f", 0.1))[0]

    assert coerce_cell(value) == repr(value)
    assert coerce_cell(0.1) == "0.1"


def test_unsupported_values_become_none() -> None:
    assert coerce_cell(Decimal("1.5")) is None
    assert coerce_cell(b"bytes") is None
    assert coerce_cell(2**70) is None


def test_build_row_uses_first_cell_as_id() -> None:
    assert build_row(("a", 1)).id == "a"
    assert build_row((None, 1)).id == "missing"
    assert build_row(()).id == "missing"


def test_build_select_defaults() -> None:
    assert build_select(None) == "SELECT * FROM _unselected_ LIMIT 50"
    assert build_select("users", ["id", "email"]) == "SELECT id,email FROM users LIMIT 50"
    assert build_select("users", sort_by="id", limit=5) == "SELECT * FROM users ORDER BY id LIMIT 5"


# Dispatch --------------------------------------------------------------------


@pytest.mark.parametrize(
    ("dsn", "adapter_type"),
    [
        ("postgres://localhost/app", PostgresAdapter),
        ("postgresql://localhost/app", PostgresAdapter),
        ("mysql://localhost/app", MySQLAdapter),
        ("sqlite://app.db", SQLiteAdapter),
        ("redis://localhost", RedisAdapter),
        ("elasticsearch://localhost", ElasticsearchAdapter),
    ],
)
def test_build_adapter_dispatches_on_driver(dsn: str, adapter_type: type) -> None:
    adapter = build_adapter(_connection(dsn))

    assert isinstance(adapter, adapter_type)
    assert isinstance(adapter, ConnectionAdapter)


def test_build_adapter_rejects_invalid_dsn() -> None:
    with pytest.raises(AdapterError):
        build_adapter(_connection("oracle://localhost"))


def test_build_adapter_picks_override_for_connection() -> None:
    connection = _connection("sqlite://app.db")

    adapter = build_adapter(connection, {}, {"conn-1": "SELECT 1", "other": "SELECT 2"})

    assert adapter.query_string() == "SELECT 1"


def test_feature_matrix_always_includes_connections_and_history() -> None:
    for kind in BackendKind:
        assert {WindowType.CONNECTIONS, WindowType.HISTORY} <= FEATURE_MATRIX[kind]
    assert FEATURE_MATRIX[BackendKind.POSTGRES] == frozenset(WindowType)
    assert WindowType.TABLES not in FEATURE_MATRIX[BackendKind.REDIS]


def test_supported_windows_without_connection() -> None:
    assert supported_windows(None) == {WindowType.CONNECTIONS, WindowType.HISTORY}
    assert supported_windows(_connection("bogus")) == {WindowType.CONNECTIONS, WindowType.HISTORY}


def test_default_query_uses_selected_table_and_columns() -> None:
    selections = {WindowType.TABLES: ["users"], WindowType.COLUMNS: ["id", "email"]}

    adapter = build_adapter(_connection("postgres://localhost/app"), selections)

    assert adapter.default_query_string() == "SELECT id,email FROM users LIMIT 50"
    assert adapter.query_string() == adapter.default_query_string()


# SQLite ----------------------------------------------------------------------


@pytest.fixture
def sqlite_dsn(tmp_path: Path) -> str:
    path = tmp_path / "sample.db"
    with sqlite3.connect(path) as conn:
        conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, email TEXT, score REAL)")
        conn.execute("CREATE TABLE orders (id INTEGER PRIMARY KEY, total REAL)")
        conn.executemany(
            "INSERT INTO users (id, email, score) VALUES (?, ?, ?)",
            [(1, "ada@example.com", 1.5), (2, None, 2.0)],
        )
    conn.close()
    return f"sqlite://{path}"


def test_sqlite_lists_tables_and_columns(sqlite_dsn: str) -> None:
    adapter = SQLiteAdapter(_connection(sqlite_dsn), {WindowType.TABLES: ["users"]})

    assert [table.name for table in adapter.list_tables()] == ["orders", "users"]
    assert adapter.list_columns() == ["id", "email", "score"]
    assert adapter.list_schemas() == []
    assert adapter.list_databases() == []


def test_sqlite_query_coerces_rows(sqlite_dsn: str) -> None:
    adapter = SQLiteAdapter(_connection(sqlite_dsn), {WindowType.TABLES: ["users"]})

    result = adapter.query()

    assert result.columns == ("id", "email", "score")
    assert [row.cells for row in result.rows] == [("1", "ada@example.com", "1.5"), ("2", None, "2")]
    assert [row.id for row in result.rows] == ["1", "2"]


def test_sqlite_empty_result_has_no_columns(sqlite_dsn: str) -> None:
    adapter = SQLiteAdapter(_connection(sqlite_dsn), {}, "SELECT * FROM orders")

    result = adapter.query()

    assert result.columns == ()
    assert result.rows == ()


def test_sqlite_errors_are_wrapped(sqlite_dsn: str) -> None:
    adapter = SQLiteAdapter(_connection(sqlite_dsn), {}, "SELECT * FROM missing_table")

    with pytest.raises(AdapterError, match="missing_table"):
        adapter.query()


def test_sqlite_missing_file_is_an_error_and_not_created(tmp_path: Path) -> None:
    path = tmp_path / "typo.db"
    adapter = SQLiteAdapter(_connection(f"sqlite://{path}", name="lite"))

    with pytest.raises(AdapterError, match="Failed to open database"):
        adapter.list_tables()

    assert not path.exists()


# PostgreSQL ------------------------------------------------------------------


class _Record:
    """Mimics asyncpg.Record: positional access plus possibly repeated keys."""

    def __init__(self, values: dict[str, Any] | None = None, *, pairs: list[tuple[str, Any]] | None = None) -> None:
        self._pairs = pairs if pairs is not None else list((values or {}).items())

    def __getitem__(self, key: int | str) -> Any:
        if isinstance(key, int):
            return self._pairs[key][1]
        return next(value for name, value in self._pairs if name == key)

    def keys(self) -> list[str]:
        return [name for name, _ in self._pairs]


class _FakePgConnection:
    def __init__(self, responses: dict[str, list[_Record]]) -> None:
        self._responses = responses
        self.calls: list[tuple[str, tuple[object, ...]]] = []
        self.closed = False

    async def fetch(self, query: str, *args: object) -> list[_Record]:
        self.calls.append((query, args))
        for needle, records in self._responses.items():
            if needle in query:
                return records
        raise RuntimeError(f"unexpected query: {query}")

    async def close(self) -> None:
        self.closed = True


def _patch_asyncpg(monkeypatch: pytest.MonkeyPatch, conn: _FakePgConnection) -> list[dict[str, Any]]:
    seen: list[dict[str, Any]] = []

    async def _connect(**kwargs: Any) -> _FakePgConnection:
        seen.append(kwargs)
        return conn

    monkeypatch.setattr("db9s.adapters.postgres.asyncpg.connect", _connect)
    return seen


def test_postgres_lists_catalog(monkeypatch: pytest.MonkeyPatch) -> None:
    conn = _FakePgConnection(
        {
            "information_schema.tables": [_Record({"table_name": "accounts"})],
            "information_schema.schemata": [_Record({"schema_name": "public"})],
            "pg_database": [_Record({"datname": "app"})],
            "information_schema.columns": [_Record({"column_name": "id"}), _Record({"column_name": "email"})],
        }
    )
    seen = _patch_asyncpg(monkeypatch, conn)
    selections = {
        WindowType.DATABASES: ["analytics"],
        WindowType.SCHEMAS: ["sales"],
        WindowType.TABLES: ["accounts"],
    }
    adapter = PostgresAdapter(_connection("postgres://bob:pw@db.local:6000/app"), selections)

    assert [table.name for table in adapter.list_tables()] == ["accounts"]
    assert [schema.name for schema in adapter.list_schemas()] == ["public"]
    assert [database.name for database in adapter.list_databases()] == ["app"]
    assert adapter.list_columns() == ["id", "email"]
    assert conn.calls[0][1] == ("sales",)
    assert conn.calls[-1][1] == ("sales", "accounts")
    assert seen[0]["database"] == "analytics"
    assert seen[0]["host"] == "db.local"
    assert seen[0]["port"] == 6000
    assert seen[0]["user"] == "bob"
    assert conn.closed is True


def test_postgres_query_builds_rows(monkeypatch: pytest.MonkeyPatch) -> None:
    stamp = datetime(2024, 5, 1, 12, 0, 0)
    conn = _FakePgConnection(
        {"SELECT": [_Record({"id": 1, "created": stamp}), _Record({"id": 2, "created": None})]}
    )
    _patch_asyncpg(monkeypatch, conn)
    adapter = PostgresAdapter(_connection("postgres://localhost/app"), {WindowType.TABLES: ["accounts"]})

    result = adapter.query()

    assert conn.calls[0][0] == "SELECT * FROM accounts LIMIT 50"
    assert result.columns == ("id", "created")
    assert [row.cells for row in result.rows] == [("1", "2024-05-01 12:00:00"), ("2", None)]


def test_postgres_query_keeps_duplicate_column_names_apart(monkeypatch: pytest.MonkeyPatch) -> None:
    conn = _FakePgConnection({"SELECT": [_Record(pairs=[("id", 1), ("id", 2)])]})
    _patch_asyncpg(monkeypatch, conn)
    adapter = PostgresAdapter(_connection("postgres://localhost/app"), {}, "SELECT a.id, b.id FROM a, b")

    result = adapter.query()

    assert result.columns == ("id", "id")
    assert result.rows[0].cells == ("1", "2")


def test_postgres_connect_failure_is_wrapped(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _connect(**kwargs: Any) -> None:
        raise OSError("connection refused")

    monkeypatch.setattr("db9s.adapters.postgres.asyncpg.connect", _connect)
    adapter = PostgresAdapter(_connection("postgres://localhost/app", name="pg"))

    with pytest.raises(AdapterError, match="Failed to connect on 'pg'"):
        adapter.list_tables()


def test_postgres_database_falls_back_to_dsn_then_default() -> None:
    assert PostgresAdapter(_connection("postgres://localhost/app")).database_name() == "app"
    assert PostgresAdapter(_connection("postgres://localhost")).database_name() == "postgres"


# MySQL -----------------------------------------------------------------------


class _FakeCursor:
    def __init__(self, conn: _FakeMySQLConnection) -> None:
        self._conn = conn
        self.description: tuple[tuple[str], ...] | None = None
        self._rows: list[tuple[Any, ...]] = []

    def __enter__(self) -> _FakeCursor:
        return self

    def __exit__(self, *exc: object) -> None:
        return None

    def execute(self, statement: str) -> None:
        self._conn.statements.append(statement)
        columns, rows = self._conn.responses[statement]
        self.description = tuple((column,) for column in columns) or None
        self._rows = rows

    def fetchall(self) -> list[tuple[Any, ...]]:
        return self._rows


class _FakeMySQLConnection:
    def __init__(self, responses: dict[str, tuple[tuple[str, ...], list[tuple[Any, ...]]]]) -> None:
        self.responses = responses
        self.statements: list[str] = []
        self.closed = False

    def cursor(self) -> _FakeCursor:
        return _FakeCursor(self)

    def close(self) -> None:
        self.closed = True


def test_mysql_lists_and_queries(monkeypatch: pytest.MonkeyPatch) -> None:
    conn = _FakeMySQLConnection(
        {
            "SHOW TABLES": (("Tables_in_shop",), [("orders",)]),
            "SHOW DATABASES": (("Database",), [("shop",), ("mysql",)]),
            "SHOW COLUMNS FROM orders": (("Field", "Type"), [("id", "int"), ("total", "decimal")]),
            "SELECT * FROM orders LIMIT 50": (("id", "total"), [(1, 9.5)]),
        }
    )
    seen: list[dict[str, Any]] = []

    def _connect(**kwargs: Any) -> _FakeMySQLConnection:
        seen.append(kwargs)
        return conn

    monkeypatch.setattr("db9s.adapters.mysql.pymysql.connect", _connect)
    adapter = MySQLAdapter(_connection("mysql://root:pw@localhost/shop"), {WindowType.TABLES: ["orders"]})

    assert [table.name for table in adapter.list_tables()] == ["orders"]
    assert [database.name for database in adapter.list_databases()] == ["shop", "mysql"]
    assert adapter.list_columns() == ["id", "total"]
    result = adapter.query()
    assert result.columns == ("id", "total")
    assert result.rows[0].cells == ("1", "9.5")
    assert seen[0]["database"] == "shop"
    assert seen[0]["port"] == 3306
    assert conn.closed is True


def test_mysql_columns_empty_without_table(monkeypatch: pytest.MonkeyPatch) -> None:
    def _connect(**kwargs: Any) -> None:
        raise AssertionError("should not connect")

    monkeypatch.setattr("db9s.adapters.mysql.pymysql.connect", _connect)

    assert MySQLAdapter(_connection("mysql://localhost")).list_columns() == []


def test_mysql_connect_failure_is_wrapped(monkeypatch: pytest.MonkeyPatch) -> None:
    def _connect(**kwargs: Any) -> None:
        raise OSError("refused")

    monkeypatch.setattr("db9s.adapters.mysql.pymysql.connect", _connect)

    with pytest.raises(AdapterError, match="refused"):
        MySQLAdapter(_connection("mysql://localhost")).list_tables()


# Redis -----------------------------------------------------------------------


class _FakeRedis:
    def __init__(self, replies: dict[str, Any], values: dict[str, Any] | None = None) -> None:
        self.replies = replies
        self.values = values or {}
        self.commands: list[tuple[str, ...]] = []
        self.closed = False

    def execute_command(self, *args: str) -> Any:
        self.commands.append(args)
        return self.replies[args[0].upper()]

    def mget(self, keys: list[str]) -> list[Any]:
        return [self.values.get(key) for key in keys]

    def close(self) -> None:
        self.closed = True


def _patch_redis(monkeypatch: pytest.MonkeyPatch, client: _FakeRedis) -> None:
    monkeypatch.setattr("db9s.adapters.redis.redis.Redis.from_url", lambda *args, **kwargs: client)


def test_redis_default_query_scans_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    client = _FakeRedis({"SCAN": ("0", ["a", "b"])}, {"a": "1", "b": "two"})
    _patch_redis(monkeypatch, client)
    adapter = RedisAdapter(_connection("redis://localhost:6379"))

    result = adapter.query()

    assert adapter.default_query_string() == "SCAN 0 COUNT 50"
    assert client.commands == [("SCAN", "0", "COUNT", "50")]
    assert result.columns == ("key", "value")
    assert [(row.id, row.cells) for row in result.rows] == [("a", ("a", "1")), ("b", ("b", "two"))]
    assert client.closed is True


def test_redis_generic_replies(monkeypatch: pytest.MonkeyPatch) -> None:
    client = _FakeRedis({"HGETALL": {"field": "value"}, "LRANGE": ["x", "y"], "GET": "scalar"})
    _patch_redis(monkeypatch, client)
    connection = _connection("redis://localhost")

    hash_result = RedisAdapter(connection, {}, "HGETALL user:1").query()
    list_result = RedisAdapter(connection, {}, "LRANGE items 0 -1").query()
    scalar_result = RedisAdapter(connection, {}, "GET key").query()

    assert hash_result.rows[0].cells == ("field", "value")
    assert [row.cells for row in list_result.rows] == [("x",), ("y",)]
    assert [row.id for row in list_result.rows] == ["0", "1"]
    assert scalar_result.rows[0].cells == ("scalar",)


def test_redis_empty_command_is_an_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_redis(monkeypatch, _FakeRedis({}))

    with pytest.raises(AdapterError):
        RedisAdapter(_connection("redis://localhost"), {}, "   ").query()


def test_redis_has_no_catalog() -> None:
    adapter = RedisAdapter(_connection("redis://localhost"))

    assert adapter.list_tables() == []
    assert adapter.list_databases() == []
    assert adapter.list_columns() == []


# Elasticsearch ---------------------------------------------------------------


class _FakeResponse:
    def __init__(self, payload: Any) -> None:
        self._payload = payload

    def __enter__(self) -> _FakeResponse:
        return self

    def __exit__(self, *exc: object) -> None:
        return None

    def read(self) -> bytes:
        return json.dumps(self._payload).encode("utf-8")


def _patch_urlopen(monkeypatch: pytest.MonkeyPatch, routes: dict[str, Any]) -> list[Any]:
    requests: list[Any] = []

    def _urlopen(request: Any, timeout: float | None = None) -> _FakeResponse:
        requests.append(request)
        for suffix, payload in routes.items():
            if request.full_url.endswith(suffix):
                return _FakeResponse(payload)
        raise OSError(f"no route for {request.full_url}")

    monkeypatch.setattr("db9s.adapters.elasticsearch.urllib.request.urlopen", _urlopen)
    return requests


_MAPPING = {"logs": {"mappings": {"properties": {"level": {"type": "keyword"}, "meta": {"type": "object"}}}}}


def test_elasticsearch_lists_indices_sorted(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_urlopen(monkeypatch, {"_cat/indices?format=json": [{"index": "zeta"}, {"index": "alpha"}]})
    adapter = ElasticsearchAdapter(_connection("elasticsearch://localhost"))

    assert [table.name for table in adapter.list_tables()] == ["alpha", "zeta"]


def test_elasticsearch_columns_and_search(monkeypatch: pytest.MonkeyPatch) -> None:
    requests = _patch_urlopen(
        monkeypatch,
        {
            "logs/_mapping": _MAPPING,
            "logs/_search": {
                "hits": {"hits": [{"_id": "1", "_source": {"level": "info", "meta": {"a": 1}}}]}
            },
        },
    )
    adapter = ElasticsearchAdapter(
        _connection("elasticsearch://elastic:pw@search:9201"), {WindowType.TABLES: ["logs"]}
    )

    assert adapter.list_columns() == ["level", "meta"]
    result = adapter.query()

    assert result.columns == ("level", "meta")
    assert result.rows[0].id == "1"
    assert result.rows[0].cells == ("info", '{"a": 1}')
    search = next(request for request in requests if request.full_url.endswith("_search"))
    assert search.full_url == "http://search:9201/logs/_search"
    assert search.get_method() == "POST"
    assert json.loads(search.data) == {"query": {"match_all": {}}, "size": 50}
    assert search.get_header("Authorization").startswith("Basic ")


def test_elasticsearch_requires_selected_index() -> None:
    with pytest.raises(AdapterError, match="No index selected"):
        ElasticsearchAdapter(_connection("elasticsearch://localhost")).query()


def test_elasticsearch_transport_errors_are_wrapped(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_urlopen(monkeypatch, {})

    with pytest.raises(AdapterError, match="no route"):
        ElasticsearchAdapter(_connection("elasticsearch://localhost")).list_tables()


def test_elasticsearch_http_errors_carry_the_server_reason(monkeypatch: pytest.MonkeyPatch) -> None:
    body = {
        "error": {"type": "parsing_exception", "reason": "Unknown key for a START_OBJECT in [qury]."},
        "status": 400,
    }

    def _urlopen(request: Any, timeout: float | None = None) -> None:
        raise urllib.error.HTTPError(
            request.full_url, 400, "Bad Request", None, io.BytesIO(json.dumps(body).encode("utf-8"))
        )

    monkeypatch.setattr("db9s.adapters.elasticsearch.urllib.request.urlopen", _urlopen)
    adapter = ElasticsearchAdapter(
        _connection("elasticsearch://localhost", name="es"), {WindowType.TABLES: ["logs"]}, "{}"
    )

    with pytest.raises(AdapterError) as excinfo:
        adapter.query()

    message = str(excinfo.value)
    assert "HTTP 400" in message
    assert "parsing_exception: Unknown key for a START_OBJECT in [qury]." in message
