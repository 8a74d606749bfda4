"""Window catalog and the navigation graph between browser windows."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import AbstractSet, Mapping


class WindowType(str, Enum):
    """Navigable views of the browser."""

    CONNECTIONS = "connections"
    DATABASES = "databases"
    SCHEMAS = "schemas"
    TABLES = "tables"
    COLUMNS = "columns"
    QUERY = "query"
    HISTORY = "history"


class SelectionCardinality(str, Enum):
    """How many concurrent selections a window accepts."""

    NONE = "none"
    SINGLE = "single"
    MULTI = "multi"


@dataclass(frozen=True, slots=True)
class WindowSpec:
    """Static description of one window."""

    window: WindowType
    title: str
    cardinality: SelectionCardinality
    clears: frozenset[WindowType] = frozenset()

    @property
    def command(self) -> str:
        return self.window.value


@dataclass(frozen=True, slots=True)
class NavigationEdge:
    """Default transition; ungated edges ignore the feature matrix."""

    target: WindowType
    gated: bool = True


def _build_catalog() -> Mapping[WindowType, WindowSpec]:
    specs = (
        WindowSpec(
            WindowType.CONNECTIONS,
            "Connections",
            SelectionCardinality.SINGLE,
            frozenset(
                {WindowType.TABLES, WindowType.SCHEMAS, WindowType.DATABASES, WindowType.COLUMNS}
            ),
        ),
        WindowSpec(
            WindowType.DATABASES,
            "Databases",
            SelectionCardinality.SINGLE,
            frozenset({WindowType.TABLES, WindowType.SCHEMAS, WindowType.COLUMNS}),
        ),
        WindowSpec(
            WindowType.SCHEMAS,
            "Schemas",
            SelectionCardinality.SINGLE,
            frozenset({WindowType.TABLES, WindowType.COLUMNS}),
        ),
        WindowSpec(
            WindowType.TABLES,
            "Tables",
            SelectionCardinality.SINGLE,
            frozenset({WindowType.QUERY, WindowType.COLUMNS}),
        ),
        WindowSpec(WindowType.COLUMNS, "Columns", SelectionCardinality.MULTI),
        WindowSpec(WindowType.QUERY, "Query", SelectionCardinality.NONE),
        WindowSpec(WindowType.HISTORY, "History", SelectionCardinality.SINGLE),
    )
    return MappingProxyType({spec.window: spec for spec in specs})


WINDOW_CATALOG: Mapping[WindowType, WindowSpec] = _build_catalog()

NAVIGATION_EDGES: Mapping[WindowType, NavigationEdge] = MappingProxyType(
    {
        WindowType.CONNECTIONS: NavigationEdge(WindowType.TABLES),
        WindowType.DATABASES: NavigationEdge(WindowType.TABLES),
        WindowType.SCHEMAS: NavigationEdge(WindowType.TABLES),
        WindowType.TABLES: NavigationEdge(WindowType.QUERY, gated=False),
        WindowType.COLUMNS: NavigationEdge(WindowType.QUERY),
        WindowType.HISTORY: NavigationEdge(WindowType.QUERY),
    }
)

# Order matters for prefix completion: the first match wins.
COMMAND_ORDER: tuple[WindowType, ...] = (
    WindowType.TABLES,
    WindowType.CONNECTIONS,
    WindowType.QUERY,
    WindowType.SCHEMAS,
    WindowType.DATABASES,
    WindowType.COLUMNS,
    WindowType.HISTORY,
)

COMMAND_ALIASES: Mapping[str, WindowType] = MappingProxyType({"conns": WindowType.CONNECTIONS})


def window_spec(window: WindowType) -> WindowSpec:
    return WINDOW_CATALOG[window]


def get_next_window(
    current: WindowType,
    supported: AbstractSet[WindowType],
) -> WindowType | None:
    """Follow default edges from `current` until a supported window is reached.

    Returns None when the chain runs out, in which case callers stay put.
    """

    visited = {current}
    edge = NAVIGATION_EDGES.get(current)
    while edge is not None and edge.target not in visited:
        if not edge.gated or edge.target in supported:
            return edge.target
        visited.add(edge.target)
        edge = NAVIGATION_EDGES.get(edge.target)
    return None


def complete_command(prefix: str) -> str | None:
    """Return the first window command that starts with `prefix`."""

    needle = prefix.lstrip(":").strip().lower()
    for window in COMMAND_ORDER:
        if window.value.startswith(needle):
            return window.value
    return None


def window_for_command(command: str) -> WindowType | None:
    """Resolve an exact command name (or alias) to its window."""

    name = command.lstrip(":").strip().lower()
    if name in COMMAND_ALIASES:
        return COMMAND_ALIASES[name]
    try:
        return WindowType(name)
    except ValueError:
        return None


__all__ = [
    "COMMAND_ALIASES",
    "COMMAND_ORDER",
    "NAVIGATION_EDGES",
    "NavigationEdge",
    "SelectionCardinality",
    "WINDOW_CATALOG",
    "WindowSpec",
    "WindowType",
    "complete_command",
    "get_next_window",
    "window_for_command",
    "window_spec",
]
