"""Tests for the window catalog and navigation graph."""

from __future__ import annotations

import pytest

from db9s.adapters import FEATURE_MATRIX
from db9s.dsn import BackendKind
from db9s.windows import (
    COMMAND_ORDER,
    NAVIGATION_EDGES,
    WINDOW_CATALOG,
    SelectionCardinality,
    WindowType,
    complete_command,
    get_next_window,
    window_for_command,
    window_spec,
)


def test_catalog_covers_every_window() -> None:
    assert set(WINDOW_CATALOG) == set(WindowType)
    assert set(COMMAND_ORDER) == set(WindowType)


def test_cardinalities_match_window_roles() -> None:
    assert window_spec(WindowType.COLUMNS).cardinality is SelectionCardinality.MULTI
    assert window_spec(WindowType.QUERY).cardinality is SelectionCardinality.NONE
    for window in (WindowType.CONNECTIONS, WindowType.DATABASES, WindowType.SCHEMAS, WindowType.TABLES):
        assert window_spec(window).cardinality is SelectionCardinality.SINGLE


def test_connection_change_clears_dependent_selections() -> None:
    clears = window_spec(WindowType.CONNECTIONS).clears

    assert clears == {WindowType.TABLES, WindowType.SCHEMAS, WindowType.DATABASES, WindowType.COLUMNS}
    assert window_spec(WindowType.TABLES).clears == {WindowType.QUERY, WindowType.COLUMNS}


def test_no_window_clears_itself() -> None:
    for window, spec in WINDOW_CATALOG.items():
        assert window not in spec.clears


def test_postgres_walks_connections_tables_query() -> None:
    supported = FEATURE_MATRIX[BackendKind.POSTGRES]

    assert get_next_window(WindowType.CONNECTIONS, supported) is WindowType.TABLES
    assert get_next_window(WindowType.TABLES, supported) is WindowType.QUERY
    assert get_next_window(WindowType.COLUMNS, supported) is WindowType.QUERY
    assert get_next_window(WindowType.HISTORY, supported) is WindowType.QUERY


def test_tables_to_query_ignores_feature_matrix() -> None:
    assert get_next_window(WindowType.TABLES, frozenset()) is WindowType.QUERY


def test_redis_skips_unsupported_tables() -> None:
    supported = FEATURE_MATRIX[BackendKind.REDIS]

    assert get_next_window(WindowType.CONNECTIONS, supported) is WindowType.QUERY


def test_query_has_no_default_transition() -> None:
    assert WindowType.QUERY not in NAVIGATION_EDGES
    assert get_next_window(WindowType.QUERY, frozenset(WindowType)) is None


@pytest.mark.parametrize("kind", list(BackendKind))
def test_next_window_is_supported_or_the_ungated_query_edge(kind: BackendKind) -> None:
    supported = FEATURE_MATRIX[kind]
    for window in WindowType:
        target = get_next_window(window, supported)
        if target is None:
            continue
        assert target != window
        assert target in supported or target is WindowType.QUERY


@pytest.mark.parametrize(
    ("prefix", "expected"),
    [
        ("t", "tables"),
        ("c", "connections"),
        ("co", "connections"),
        ("col", "columns"),
        ("q", "query"),
        ("s", "schemas"),
        ("d", "databases"),
        ("h", "history"),
        (":ta", "tables"),
        ("", "tables"),
        ("x", None),
    ],
)
def test_complete_command_prefers_command_order(prefix: str, expected: str | None) -> None:
    assert complete_command(prefix) == expected


def test_window_for_command_resolves_names_and_alias() -> None:
    assert window_for_command("tables") is WindowType.TABLES
    assert window_for_command(":conns") is WindowType.CONNECTIONS
    assert window_for_command("QUERY") is WindowType.QUERY
    assert window_for_command("nope") is None
