"""Persisted connection settings and the store that owns them."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationError

from .dsn import DsnError, parse_dsn

SETTINGS_FILE = Path.home() / ".db9s" / "settings.json"
MAX_QUERY_HISTORY = 100

LOG = logging.getLogger(__name__)


class SettingsDirectoryError(RuntimeError):
    """Raised when the settings directory cannot be created."""


class SettingsFileError(RuntimeError):
    """Raised when an existing settings file cannot be parsed."""


class ConnectionConfig(BaseModel):
    """A named connection plus its query history (oldest first)."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    dsn: str
    query_history: list[str] = Field(default_factory=list)

    @property
    def driver(self) -> str:
        try:
            return parse_dsn(self.dsn).driver
        except DsnError:
            return "unknown"

    @property
    def address(self) -> str:
        try:
            return parse_dsn(self.dsn).address
        except DsnError:
            return "unknown"

    def with_query(self, query: str) -> ConnectionConfig:
        """Return a copy with `query` appended, keeping history bounded and unique."""

        if query in self.query_history:
            return self
        history = [*self.query_history, query]
        if len(history) > MAX_QUERY_HISTORY:
            history = history[len(history) - MAX_QUERY_HISTORY :]
        return self.model_copy(update={"query_history": history})


class PersistentData(BaseModel):
    """Shape of the settings file."""

    connections: list[ConnectionConfig] = Field(default_factory=list)

    def connection(self, connection_id: str) -> ConnectionConfig | None:
        for connection in self.connections:
            if connection.id == connection_id:
                return connection
        return None

    def with_connection(self, connection: ConnectionConfig) -> PersistentData:
        return self.model_copy(update={"connections": [*self.connections, connection]})

    def without_connection(self, connection_id: str) -> PersistentData:
        remaining = [entry for entry in self.connections if entry.id != connection_id]
        return self.model_copy(update={"connections": remaining})

    def with_query_history(self, connection_id: str, query: str) -> PersistentData:
        connections = [
            entry.with_query(query) if entry.id == connection_id else entry
            for entry in self.connections
        ]
        return self.model_copy(update={"connections": connections})


def ensure_settings_directory(path: Path | None = None) -> Path:
    """Create the directory holding the settings file."""

    target = path or SETTINGS_FILE
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise SettingsDirectoryError(f"Cannot create settings directory {target.parent}: {exc}") from exc
    return target.parent


def load_data(path: Path | None = None) -> PersistentData:
    """Load settings from disk; a missing file yields an empty connection list.

    A file that exists but does not parse raises `SettingsFileError` and is
    left untouched on disk.
    """

    target = path or SETTINGS_FILE
    try:
        text = target.read_text(encoding="utf-8")
    except FileNotFoundError:
        return PersistentData()
    except (OSError, UnicodeDecodeError) as exc:
        raise SettingsFileError(f"Cannot read settings file {target}: {exc}") from exc
    try:
        return PersistentData.model_validate_json(text)
    except (ValidationError, json.JSONDecodeError) as exc:
        raise SettingsFileError(f"Cannot read settings file {target}: {exc}") from exc


def save_data(data: PersistentData, path: Path | None = None) -> None:
    """Rewrite the whole settings file."""

    target = path or SETTINGS_FILE
    ensure_settings_directory(target)
    target.write_text(data.model_dump_json(indent=2), encoding="utf-8")


class ConnectionStore:
    """Thread-safe owner of the persisted connection list.

    Every mutation rewrites the settings file before returning.
    """

    def __init__(self, data: PersistentData | None = None, *, path: Path | None = None) -> None:
        self._data = data or PersistentData()
        self._path = path
        self._lock = threading.Lock()

    @classmethod
    def open(cls, path: Path | None = None) -> ConnectionStore:
        return cls(load_data(path), path=path)

    @property
    def data(self) -> PersistentData:
        with self._lock:
            return self._data

    @property
    def connections(self) -> tuple[ConnectionConfig, ...]:
        with self._lock:
            return tuple(self._data.connections)

    def get(self, connection_id: str) -> ConnectionConfig | None:
        with self._lock:
            return self._data.connection(connection_id)

    def add_connection(self, name: str, dsn: str) -> ConnectionConfig:
        """Validate and persist a new connection."""

        clean_name = name.strip()
        if not clean_name:
            raise ValueError("Connection name is required.")
        clean_dsn = dsn.strip()
        parse_dsn(clean_dsn)
        connection = ConnectionConfig(name=clean_name, dsn=clean_dsn)
        with self._lock:
            self._data = self._data.with_connection(connection)
            save_data(self._data, self._path)
        LOG.info("Added connection %s (%s)", connection.name, connection.driver)
        return connection

    def remove_connection(self, connection_id: str) -> ConnectionConfig | None:
        with self._lock:
            removed = self._data.connection(connection_id)
            if removed is None:
                return None
            self._data = self._data.without_connection(connection_id)
            save_data(self._data, self._path)
        LOG.info("Removed connection %s", removed.name)
        return removed

    def add_query_history(self, connection_id: str, query: str) -> bool:
        """Append `query` to the connection's history; returns False for no-ops."""

        with self._lock:
            current = self._data.connection(connection_id)
            if current is None or query in current.query_history:
                return False
            self._data = self._data.with_query_history(connection_id, query)
            save_data(self._data, self._path)
        return True


__all__ = [
    "ConnectionConfig",
    "ConnectionStore",
    "MAX_QUERY_HISTORY",
    "PersistentData",
    "SETTINGS_FILE",
    "SettingsDirectoryError",
    "SettingsFileError",
    "ensure_settings_directory",
    "load_data",
    "save_data",
]
