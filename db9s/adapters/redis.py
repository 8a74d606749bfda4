"""Redis adapter built on redis-py."""

from __future__ import annotations

import logging
from typing import Any

import redis

from ..models import QueryResult, QueryResultRow
from .base import DEFAULT_LIMIT, AdapterBase, build_row, coerce_cell

LOG = logging.getLogger(__name__)

KEY_LISTING_COMMANDS = frozenset({"SCAN", "KEYS"})


class RedisAdapter(AdapterBase):
    """Key-value store: no tables, schemas or columns; queries are raw commands."""

    connect_timeout: float = 5.0

    def default_query_string(self) -> str:
        return f"SCAN 0 COUNT {DEFAULT_LIMIT}"

    def query(self) -> QueryResult:
        tokens = self.query_string().split()
        if not tokens:
            raise self._error("run query", ValueError("empty command"))
        command = tokens[0].upper()
        LOG.debug("Running command on %s: %s", self.connection.name, " ".join(tokens))
        client = self._client()
        try:
            reply = client.execute_command(*tokens)
            if command in KEY_LISTING_COMMANDS:
                keys = _keys_from_reply(command, reply)
                values = client.mget(keys) if keys else []
                return _key_value_result(keys, values)
        except (redis.RedisError, TypeError, ValueError) as exc:
            raise self._error("run command", exc) from exc
        finally:
            client.close()
        return _reply_result(reply)

    def _client(self) -> redis.Redis:
        try:
            return redis.Redis.from_url(
                self.connection.dsn,
                decode_responses=True,
                socket_connect_timeout=self.connect_timeout,
            )
        except (redis.RedisError, ValueError) as exc:
            raise self._error("connect", exc) from exc


def _keys_from_reply(command: str, reply: Any) -> list[str]:
    if command == "SCAN":
        _, keys = reply
        return [str(key) for key in keys]
    return [str(key) for key in reply or ()]


def _key_value_result(keys: list[str], values: list[Any]) -> QueryResult:
    rows = tuple(
        QueryResultRow(id=key, cells=(key, coerce_cell(value)))
        for key, value in zip(keys, values)
    )
    return QueryResult(columns=("key", "value"), rows=rows)


def _reply_result(reply: Any) -> QueryResult:
    if isinstance(reply, dict):
        rows = tuple(build_row((key, value)) for key, value in reply.items())
        return QueryResult(columns=("key", "value"), rows=rows)
    if isinstance(reply, (list, tuple, set)):
        items = list(reply)
    else:
        items = [reply]
    rows = tuple(
        QueryResultRow(id=str(index), cells=(coerce_cell(item),))
        for index, item in enumerate(items)
    )
    return QueryResult(columns=("value",), rows=rows)


__all__ = ["RedisAdapter"]
