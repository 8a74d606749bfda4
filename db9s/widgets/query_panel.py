"""Read-only view of the query behind the Query window."""

from __future__ import annotations

from textual.widgets import Static

from ..windows import WindowType


class QueryPanel(Static):
    """Shows the override or default query while the Query window is active."""

    DEFAULT_CSS = """
    QueryPanel {
        height: auto;
        max-height: 6;
        padding: 0 1;
        border: round $accent;
        border-title-color: $accent;
    }
    """

    def __init__(self) -> None:
        super().__init__("", id="query-panel", markup=False)
        self.text = ""
        self.border_title = "Query"
        self.display = False

    def show_query(self, window: WindowType, query: str, *, custom: bool) -> None:
        if window is not WindowType.QUERY or not query:
            self.text = ""
            self.display = False
            self.update("")
            return
        self.text = query
        self.border_title = "Custom query" if custom else "Query"
        self.update(query)
        self.display = True


__all__ = ["QueryPanel"]
