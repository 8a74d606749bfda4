"""Strip summarising the active window and the current selections."""

from __future__ import annotations

from textual.widgets import Static

from ..state import LayoutSnapshot
from ..windows import WindowType, window_spec

_SUMMARY_WINDOWS = (WindowType.DATABASES, WindowType.SCHEMAS, WindowType.TABLES, WindowType.COLUMNS)


class SelectionBar(Static):
    DEFAULT_CSS = """
    SelectionBar {
        height: 1;
        padding: 0 1;
        background: $surface-darken-3;
        color: $text;
    }
    """

    def __init__(self) -> None:
        super().__init__("", id="selection-bar")
        self.text = ""

    def show_snapshot(self, snapshot: LayoutSnapshot) -> None:
        self.text = describe_selections(snapshot)
        self.update(self.text)


def describe_selections(snapshot: LayoutSnapshot) -> str:
    """Render `[Window] Connection: x | Tables: y` style summaries."""

    parts = [f"[{window_spec(snapshot.active_window).title}]"]
    connection = snapshot.active_connection
    parts.append(f"Connection: {connection.name if connection else '-'}")
    for window in _SUMMARY_WINDOWS:
        values = snapshot.selection(window)
        if values:
            parts.append(f"{window_spec(window).title}: {', '.join(values)}")
    if snapshot.custom_query is not None:
        parts.append("Custom query")
    return " | ".join(parts)


__all__ = ["SelectionBar", "describe_selections"]
