"""Elasticsearch adapter speaking the REST API over urllib."""

from __future__ import annotations

import base64
import json
import logging
import urllib.error
import urllib.request
from typing import Any

from ..models import QueryResult, QueryResultRow, Table
from ..windows import WindowType
from .base import DEFAULT_LIMIT, AdapterBase, AdapterError, coerce_cell

LOG = logging.getLogger(__name__)

DEFAULT_PORT = 9200


class ElasticsearchAdapter(AdapterBase):
    """Indexes stand in for tables and mapped fields for columns."""

    timeout: float = 10.0

    def list_tables(self) -> list[Table]:
        payload = self._request("GET", "_cat/indices?format=json")
        names = sorted(str(entry["index"]) for entry in payload or () if "index" in entry)
        return [Table(id=name, name=name) for name in names]

    def list_columns(self) -> list[str]:
        index = self._selected_index()
        payload = self._request("GET", f"{index}/_mapping")
        try:
            mappings = payload[index]["mappings"]
        except (KeyError, TypeError) as exc:
            raise self._error("read mapping", exc) from exc
        columns: list[str] = []
        for value in mappings.values():
            if isinstance(value, dict):
                columns.extend(str(key) for key in value)
        return columns

    def default_query_string(self) -> str:
        return json.dumps({"query": {"match_all": {}}, "size": DEFAULT_LIMIT})

    def query(self) -> QueryResult:
        index = self._selected_index()
        body = self.query_string()
        LOG.debug("Searching %s on %s: %s", index, self.connection.name, body)
        payload = self._request("POST", f"{index}/_search", body=body.encode("utf-8"))
        columns = list(self.selected(WindowType.COLUMNS)) or self.list_columns()
        try:
            hits = payload["hits"]["hits"]
        except (KeyError, TypeError) as exc:
            raise self._error("read search results", exc) from exc
        rows = tuple(_hit_row(hit, columns) for hit in hits)
        return QueryResult(columns=tuple(columns), rows=rows)

    def base_url(self) -> str:
        return f"http://{self._dsn.host}:{self._dsn.port or DEFAULT_PORT}"

    def _selected_index(self) -> str:
        index = self.selection(WindowType.TABLES)
        if not index:
            raise AdapterError("No index selected")
        return index

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._dsn.username:
            token = f"{self._dsn.username}:{self._dsn.password or ''}".encode("utf-8")
            headers["Authorization"] = f"Basic {base64.b64encode(token).decode('ascii')}"
        return headers

    def _request(self, method: str, path: str, *, body: bytes | None = None) -> Any:
        url = f"{self.base_url()}/{path}"
        request = urllib.request.Request(url, data=body, headers=self._headers(), method=method)
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                raw = response.read()
        except urllib.error.HTTPError as exc:
            reason = _error_reason(exc)
            raise AdapterError(
                f"Failed to {method} {path} on '{self.connection.name}': HTTP {exc.code}: {reason}"
            ) from exc
        except (urllib.error.URLError, OSError) as exc:
            raise self._error(f"{method} {path}", exc) from exc
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise self._error(f"decode {path}", exc) from exc


def _error_reason(exc: urllib.error.HTTPError) -> str:
    """Pull `error.reason` out of an Elasticsearch error body, else the HTTP reason."""

    try:
        payload = json.loads(exc.read().decode("utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return str(exc.reason)
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("reason"):
        kind = error.get("type")
        return f"{kind}: {error['reason']}" if kind else str(error["reason"])
    if isinstance(error, str):
        return error
    return str(exc.reason)


def _hit_row(hit: dict[str, Any], columns: list[str]) -> QueryResultRow:
    source = hit.get("_source") or {}
    cells = tuple(_source_cell(source.get(column)) for column in columns)
    return QueryResultRow(id=str(hit.get("_id", "missing")), cells=cells)


def _source_cell(value: Any) -> str | None:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return coerce_cell(value)


__all__ = ["ElasticsearchAdapter"]
