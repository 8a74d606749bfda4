"""Navigation state machine driving background fetches through adapters."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Mapping

from .adapters import AdapterError, ConnectionAdapter, build_adapter, supported_windows
from .config import ConnectionConfig, ConnectionStore
from .models import Selections, WindowData, WindowDataRow
from .windows import SelectionCardinality, WindowType, get_next_window, window_spec

LOG = logging.getLogger(__name__)

AdapterFactory = Callable[[ConnectionConfig, Selections, Mapping[str, str]], ConnectionAdapter]

NO_ACTIVE_CONNECTION = "No active connection"


@dataclass(frozen=True, slots=True)
class LayoutSnapshot:
    """Read-only view of the state handed to the renderer."""

    active_window: WindowType
    data: WindowData
    selections: Mapping[WindowType, tuple[str, ...]]
    position: int
    error: str | None
    active_connection: ConnectionConfig | None
    custom_query: str | None

    def selection(self, window: WindowType) -> tuple[str, ...]:
        return self.selections.get(window, ())


@dataclass(frozen=True, slots=True)
class _FetchRequest:
    """Inputs captured under the lock so the fetch itself runs lock-free."""

    window: WindowType
    generation: int
    connection: ConnectionConfig | None
    selections: Mapping[WindowType, tuple[str, ...]] = field(default_factory=dict)
    custom_queries: Mapping[str, str] = field(default_factory=dict)

    @property
    def custom_query(self) -> str | None:
        if self.connection is None:
            return None
        return self.custom_queries.get(self.connection.id)


class LayoutState:
    """Owns selections, the cached window data, cursor positions and query overrides.

    Mutators run on the UI thread; fetches run on `executor`. Every fetch is
    tagged with a generation number and its result is dropped unless it is
    still the latest request.
    """

    def __init__(
        self,
        store: ConnectionStore,
        *,
        adapter_factory: AdapterFactory = build_adapter,
        executor: Executor | None = None,
    ) -> None:
        self._store = store
        self._adapter_factory = adapter_factory
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="db9s-fetch")
        self._lock = threading.RLock()
        self._active_window = WindowType.CONNECTIONS
        self._selections: dict[WindowType, list[str]] = {}
        self._custom_queries: dict[str, str] = {}
        self._data: WindowData | None = None
        self._positions: dict[WindowType, int] = {}
        self._dirty = True
        self._error: str | None = None
        self._generation = 0
        self._pending: Future[None] | None = None

    @property
    def store(self) -> ConnectionStore:
        return self._store

    @property
    def active_window(self) -> WindowType:
        with self._lock:
            return self._active_window

    @property
    def error(self) -> str | None:
        with self._lock:
            return self._error

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def selection(self, window: WindowType) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._selections.get(window, ()))

    def window_data(self) -> WindowData:
        with self._lock:
            return self._data or WindowData()

    def custom_query(self) -> str | None:
        with self._lock:
            connection = self._active_connection_locked()
            if connection is None:
                return None
            return self._custom_queries.get(connection.id)

    def active_connection(self) -> ConnectionConfig | None:
        with self._lock:
            return self._active_connection_locked()

    def is_dirty(self) -> bool:
        with self._lock:
            return self._dirty

    def mark_dirty(self) -> None:
        with self._lock:
            self._dirty = True

    def consume_dirty(self) -> bool:
        """Return the dirty flag and reset it."""

        with self._lock:
            dirty = self._dirty
            self._dirty = False
            return dirty

    def snapshot(self) -> LayoutSnapshot:
        with self._lock:
            connection = self._active_connection_locked()
            return LayoutSnapshot(
                active_window=self._active_window,
                data=self._data or WindowData(),
                selections=MappingProxyType(
                    {window: tuple(values) for window, values in self._selections.items()}
                ),
                position=self._positions.get(self._active_window, -1),
                error=self._error,
                active_connection=connection,
                custom_query=self._custom_queries.get(connection.id) if connection else None,
            )

    # Cursor -----------------------------------------------------------------

    @property
    def position(self) -> int:
        with self._lock:
            return self._positions.get(self._active_window, -1)

    def set_position(self, position: int) -> None:
        """Move the highlight, clamped to the cached rows (-1 means none)."""

        with self._lock:
            rows = len(self._data.rows) if self._data else 0
            if position < 0:
                clamped = -1
            else:
                clamped = min(position, rows - 1)
            self._positions[self._active_window] = clamped
            self._dirty = True

    def move_position(self, delta: int) -> None:
        with self._lock:
            current = self._positions.get(self._active_window, -1)
            if current == -1:
                if delta > 0:
                    self.set_position(0)
                return
            self.set_position(max(current + delta, 0))

    def move_to_top(self) -> None:
        self.set_position(0)

    def move_to_bottom(self) -> None:
        with self._lock:
            rows = len(self._data.rows) if self._data else 0
            self.set_position(rows - 1)

    def current_row_value(self) -> str | None:
        with self._lock:
            position = self._positions.get(self._active_window, -1)
            rows = self._data.rows if self._data else ()
            if position < 0 or position >= len(rows):
                return None
            return rows[position].id

    # Mutators ---------------------------------------------------------------

    def change_window(self, window: WindowType) -> Future[None]:
        """Switch windows, discard the cached data and fetch the new window."""

        with self._lock:
            self._active_window = window
            self._data = None
            self._dirty = True
            return self._schedule_fetch_locked()

    def refresh(self) -> Future[None]:
        """Fetch the current window again without touching selections."""

        with self._lock:
            self._dirty = True
            return self._schedule_fetch_locked()

    def select_current(self) -> None:
        """Toggle (multi) or replace (single) the selection with the highlighted row."""

        value = self.current_row_value()
        if value is None:
            return
        with self._lock:
            window = self._active_window
            cardinality = window_spec(window).cardinality
            if window is WindowType.HISTORY or cardinality is SelectionCardinality.NONE:
                return
            if cardinality is SelectionCardinality.MULTI:
                selected = self._selections.setdefault(window, [])
                if value in selected:
                    selected.remove(value)
                else:
                    selected.append(value)
            else:
                self._selections[window] = [value]
            self._dirty = True

    def select_for_next_window(self) -> Future[None] | None:
        """Commit the highlighted row, invalidate dependents and advance.

        History rows become the custom query of the active connection instead
        of a selection. Returns the fetch future when a transition happens.
        """

        value = self.current_row_value()
        if value is None:
            return None
        with self._lock:
            window = self._active_window
            spec = window_spec(window)
            if window is WindowType.HISTORY:
                connection = self._active_connection_locked()
                if connection is not None:
                    self._custom_queries[connection.id] = value
            elif spec.cardinality is SelectionCardinality.SINGLE:
                self._selections[window] = [value]
            elif spec.cardinality is SelectionCardinality.MULTI:
                selected = self._selections.setdefault(window, [])
                if value not in selected:
                    selected.append(value)
            for cleared in spec.clears:
                self._selections.pop(cleared, None)
            self._dirty = True
            features = supported_windows(self._active_connection_locked())
            target = get_next_window(window, features)
            if target is None:
                return None
            return self.change_window(target)

    def activate_connection(self, connection_id: str) -> Future[None] | None:
        """Make `connection_id` the active connection and open its first window."""

        if self._store.get(connection_id) is None:
            return None
        with self._lock:
            self._selections[WindowType.CONNECTIONS] = [connection_id]
            for cleared in window_spec(WindowType.CONNECTIONS).clears:
                self._selections.pop(cleared, None)
            self._dirty = True
            features = supported_windows(self._active_connection_locked())
            target = get_next_window(WindowType.CONNECTIONS, features) or WindowType.CONNECTIONS
            return self.change_window(target)

    def update_custom_query(self, text: str | None) -> None:
        """Set or clear the override for the active connection; does not fetch."""

        with self._lock:
            connection = self._active_connection_locked()
            if connection is None:
                return
            if text is None:
                self._custom_queries.pop(connection.id, None)
            else:
                self._custom_queries[connection.id] = text
            self._dirty = True

    def current_query(self) -> str:
        """The override for the active connection, else the adapter default."""

        with self._lock:
            request = self._request_locked(self._active_window)
        if request.connection is None:
            return ""
        try:
            adapter = self._adapter_factory(request.connection, request.selections, request.custom_queries)
        except AdapterError:
            return request.custom_query or ""
        if request.custom_query is not None:
            return request.custom_query
        return adapter.default_query_string()

    def save_custom_query(self) -> Future[None]:
        """Keep the edited query; an unedited one is dropped as an override."""

        with self._lock:
            connection = self._active_connection_locked()
            custom = self._custom_queries.get(connection.id) if connection else None
            selections = self._selections_copy_locked()
        if connection is not None and custom is not None:
            try:
                default = self._adapter_factory(connection, selections, {}).default_query_string()
            except AdapterError:
                default = None
            if default is not None and custom.strip() == default.strip():
                self.update_custom_query(None)
        return self.refresh()

    def add_connection(self, name: str, dsn: str) -> ConnectionConfig:
        connection = self._store.add_connection(name, dsn)
        if self.active_window is WindowType.CONNECTIONS:
            self.refresh()
        return connection

    def delete_current_connection(self) -> ConnectionConfig | None:
        """Remove the highlighted connection from the store."""

        if self.active_window is not WindowType.CONNECTIONS:
            return None
        connection_id = self.current_row_value()
        if connection_id is None:
            return None
        removed = self._store.remove_connection(connection_id)
        if removed is None:
            return None
        with self._lock:
            self._custom_queries.pop(removed.id, None)
            if self._selections.get(WindowType.CONNECTIONS) == [removed.id]:
                self._selections.pop(WindowType.CONNECTIONS, None)
                for cleared in window_spec(WindowType.CONNECTIONS).clears:
                    self._selections.pop(cleared, None)
        self.refresh()
        return removed

    def shutdown(self, *, wait: bool = False) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait, cancel_futures=True)

    # Fetching ---------------------------------------------------------------

    def _schedule_fetch_locked(self) -> Future[None]:
        self._generation += 1
        if self._pending is not None:
            self._pending.cancel()
        request = self._request_locked(self._active_window)
        future = self._executor.submit(self._run_fetch, request)
        self._pending = future
        return future

    def _request_locked(self, window: WindowType) -> _FetchRequest:
        return _FetchRequest(
            window=window,
            generation=self._generation,
            connection=self._active_connection_locked(),
            selections=MappingProxyType(self._selections_copy_locked()),
            custom_queries=MappingProxyType(dict(self._custom_queries)),
        )

    def _selections_copy_locked(self) -> dict[WindowType, tuple[str, ...]]:
        return {window: tuple(values) for window, values in self._selections.items()}

    def _active_connection_locked(self) -> ConnectionConfig | None:
        selected = self._selections.get(WindowType.CONNECTIONS)
        if not selected:
            return None
        return self._store.get(selected[0])

    def _run_fetch(self, request: _FetchRequest) -> None:
        try:
            data = self._load(request)
        except AdapterError as exc:
            LOG.warning("Fetching %s failed: %s", request.window.value, exc)
            self._fail(request, str(exc))
            return
        except Exception as exc:
            LOG.exception("Unexpected error while fetching %s", request.window.value)
            self._fail(request, str(exc) or exc.__class__.__name__)
            return
        self._apply(request, data)

    def _load(self, request: _FetchRequest) -> WindowData:
        window = request.window
        if window is WindowType.CONNECTIONS:
            return WindowData(
                columns=("Name", "Type", "Address"),
                rows=tuple(
                    WindowDataRow(id=entry.id, cells=(entry.name, entry.driver, entry.address))
                    for entry in self._store.connections
                ),
            )
        connection = request.connection
        if connection is None:
            raise AdapterError(NO_ACTIVE_CONNECTION)
        if window is WindowType.HISTORY:
            current = self._store.get(connection.id) or connection
            return WindowData(
                columns=("Query",),
                rows=tuple(
                    WindowDataRow(id=query, cells=(" ".join(query.split()),))
                    for query in reversed(current.query_history)
                ),
            )
        adapter = self._adapter_factory(connection, request.selections, request.custom_queries)
        if window is WindowType.TABLES:
            return WindowData.from_names([table.name for table in adapter.list_tables()])
        if window is WindowType.SCHEMAS:
            return WindowData.from_names([schema.name for schema in adapter.list_schemas()])
        if window is WindowType.DATABASES:
            return WindowData.from_names([database.name for database in adapter.list_databases()])
        if window is WindowType.COLUMNS:
            return WindowData.from_names(adapter.list_columns())
        result = adapter.query()
        if request.custom_query is not None:
            self._store.add_query_history(connection.id, request.custom_query)
        return WindowData.from_query_result(result)

    def _apply(self, request: _FetchRequest, data: WindowData) -> None:
        with self._lock:
            if request.generation != self._generation:
                LOG.debug("Dropping stale %s result (generation %s)", request.window.value, request.generation)
                return
            self._data = data
            self._error = None
            position = self._positions.get(request.window, -1)
            if position >= len(data.rows):
                self._positions[request.window] = len(data.rows) - 1
            self._dirty = True

    def _fail(self, request: _FetchRequest, message: str) -> None:
        with self._lock:
            if request.generation != self._generation:
                LOG.debug("Dropping stale %s error (generation %s)", request.window.value, request.generation)
                return
            self._error = message
            self._dirty = True


__all__ = ["LayoutSnapshot", "LayoutState", "NO_ACTIVE_CONNECTION"]
