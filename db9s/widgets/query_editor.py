"""Overlay editor for the active connection's custom query."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.message import Message
from textual.widgets import Static, TextArea

from ..state import LayoutState


class QueryEditor(Container):
    """Every edit is written to the state as the override; nothing runs until asked."""

    DEFAULT_CSS = """
    QueryEditor {
        layout: vertical;
        height: 12;
        border: round $primary;
        padding: 0 1;
        background: $surface;
    }

    QueryEditor .panel-title {
        text-style: bold;
    }

    QueryEditor TextArea {
        height: 1fr;
    }
    """

    BINDINGS = [
        Binding("ctrl+r", "run_query", "Run query", priority=True),
        Binding("ctrl+s", "save_query", "Save query", priority=True),
        Binding("escape", "cancel", "Cancel", priority=True),
    ]

    class Closed(Message):
        """Posted when the editor hides itself."""

    def __init__(self, state: LayoutState) -> None:
        super().__init__(id="query-editor")
        self._state = state
        self._initial = ""
        self.display = False

    def compose(self) -> ComposeResult:
        yield Static("Edit query (ctrl+r run, ctrl+s save, esc cancel)", classes="panel-title")
        yield TextArea(id="query-text")

    @property
    def text_area(self) -> TextArea:
        return self.query_one("#query-text", TextArea)

    @property
    def is_open(self) -> bool:
        return bool(self.display)

    def open(self) -> None:
        self._initial = self._state.current_query()
        self.text_area.load_text(self._initial)
        self.display = True
        self.text_area.focus()

    def close(self) -> None:
        self.app.set_focus(None)
        self.display = False
        self.post_message(self.Closed())

    def on_text_area_changed(self, event: TextArea.Changed) -> None:
        if not self.display:
            return
        if event.text_area.text == self._initial and self._state.custom_query() is None:
            return
        self._state.update_custom_query(event.text_area.text)

    def action_run_query(self) -> None:
        self._state.update_custom_query(self.text_area.text)
        self._state.refresh()

    def action_save_query(self) -> None:
        self._state.update_custom_query(self.text_area.text)
        self._state.save_custom_query()
        self.close()

    def action_cancel(self) -> None:
        self._state.update_custom_query(None)
        self._state.refresh()
        self.close()


__all__ = ["QueryEditor"]
