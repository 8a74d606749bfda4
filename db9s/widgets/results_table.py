"""Table rendering the cached rows of the active window."""

from __future__ import annotations

from textual.widgets import DataTable

from ..state import LayoutSnapshot
from ..windows import WindowType, window_spec

SELECTED_MARKER = "*"


class ResultsTable(DataTable):
    """Read-only view; the cursor mirrors the state's highlighted row.

    Keys are handled by the app, so the table never takes focus.
    """

    DEFAULT_CSS = """
    ResultsTable {
        height: 1fr;
        border: round $primary 40%;
    }
    """

    can_focus = False

    def __init__(self) -> None:
        super().__init__(id="results", zebra_stripes=True, cursor_type="row")
        self.row_ids: list[str] = []

    def show_snapshot(self, snapshot: LayoutSnapshot) -> None:
        window = snapshot.active_window
        self.border_title = window_spec(window).title
        selected = set(_marked_ids(snapshot))
        self.clear(columns=True)
        self.row_ids = [row.id for row in snapshot.data.rows]
        if not snapshot.data.columns:
            self.show_cursor = False
            return
        self.add_columns("", *snapshot.data.columns)
        for row in snapshot.data.rows:
            marker = SELECTED_MARKER if row.id in selected else ""
            self.add_row(marker, *(_format_cell(cell) for cell in row.cells))
        self.show_cursor = snapshot.position >= 0
        if snapshot.position >= 0:
            self.move_cursor(row=snapshot.position)


def _marked_ids(snapshot: LayoutSnapshot) -> tuple[str, ...]:
    if snapshot.active_window is WindowType.HISTORY:
        return ()
    return snapshot.selection(snapshot.active_window)


def _format_cell(value: str | None) -> str:
    if value is None:
        return "NULL"
    return value


__all__ = ["ResultsTable", "SELECTED_MARKER"]
