"""Textual application entry point for db9s."""

from __future__ import annotations

import argparse
import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Sequence

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Footer, Header

from . import config
from .commands import CommandInput, ConnectionForm, FormStep, InputValidationError
from .config import ConnectionStore, SettingsDirectoryError, SettingsFileError, ensure_settings_directory
from .dsn import DsnError
from .providers import ConnectionSwitchProvider, RefreshProvider, WindowSwitchProvider
from .state import LayoutState
from .widgets import CommandBar, ErrorBanner, QueryEditor, QueryPanel, ResultsTable, SelectionBar
from .windows import WindowType

LOG = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s][%(name)s][%(levelname)s] %(message)s"
POLL_INTERVAL = 0.05
COMMAND_HELP = "Commands: " + " ".join(f":{window.value}" for window in WindowType)


class InputMode(str, Enum):
    NORMAL = "normal"
    COMMAND = "command"
    NEW_CONNECTION = "new_connection"
    CONFIRM_DELETE = "confirm_delete"
    EDIT_QUERY = "edit_query"


class Db9sApp(App[None]):
    """Keyboard driven browser over the saved connections."""

    TITLE = "db9s"
    COMMANDS = App.COMMANDS | {WindowSwitchProvider, ConnectionSwitchProvider, RefreshProvider}
    CSS = """
    Screen {
        layout: vertical;
    }
    """

    BINDINGS = [
        ("ctrl+c", "quit", "Quit"),
        ("ctrl+p", "command_palette", "Command Palette"),
        Binding("j,down", "cursor_down", "Down", key_display="j"),
        Binding("k,up", "cursor_up", "Up", key_display="k"),
        Binding("ctrl+j", "cursor_bottom", "Bottom"),
        Binding("ctrl+k", "cursor_top", "Top"),
        Binding("space", "select", "Select"),
        Binding("enter", "open", "Open"),
        Binding("r", "refresh", "Refresh"),
        Binding("colon", "command_mode", "Command", key_display=":"),
        Binding("n", "new_connection", "New"),
        Binding("d", "delete_connection", "Delete"),
        Binding("e", "edit_query", "Edit"),
    ]

    def __init__(self, store: ConnectionStore | None = None, *, state: LayoutState | None = None) -> None:
        super().__init__()
        self._state = state or LayoutState(store or ConnectionStore.open())
        self._mode = InputMode.NORMAL
        self._command = CommandInput()
        self._form: ConnectionForm | None = None
        self._form_buffer = ""

    def compose(self) -> ComposeResult:
        yield Header()
        yield SelectionBar()
        yield ErrorBanner()
        yield QueryPanel()
        yield ResultsTable()
        yield QueryEditor(self._state)
        yield CommandBar()
        yield Footer()

    async def on_mount(self) -> None:
        self.set_interval(POLL_INTERVAL, self._poll_state)
        self._state.refresh()

    def on_unmount(self) -> None:
        self._state.shutdown()

    @property
    def layout_state(self) -> LayoutState:
        """Expose the layout state for providers and tests."""

        return self._state

    @property
    def mode(self) -> InputMode:
        return self._mode

    def action_refresh(self) -> None:
        self._state.refresh()

    def redraw(self) -> None:
        """Render the current snapshot into every widget."""

        snapshot = self._state.snapshot()
        self.query_one(SelectionBar).show_snapshot(snapshot)
        self.query_one(ErrorBanner).show_error(snapshot.error)
        query = self._state.current_query() if snapshot.active_window is WindowType.QUERY else ""
        self.query_one(QueryPanel).show_query(
            snapshot.active_window, query, custom=snapshot.custom_query is not None
        )
        self.query_one(ResultsTable).show_snapshot(snapshot)
        self._render_prompt()

    def _poll_state(self) -> None:
        if self._state.consume_dirty():
            self.redraw()

    # Actions ----------------------------------------------------------------

    def _normal(self) -> bool:
        return self._mode is InputMode.NORMAL

    def action_cursor_down(self) -> None:
        if self._normal():
            self._state.move_position(1)

    def action_cursor_up(self) -> None:
        if self._normal():
            self._state.move_position(-1)

    def action_cursor_bottom(self) -> None:
        if self._normal():
            self._state.move_to_bottom()

    def action_cursor_top(self) -> None:
        if self._normal():
            self._state.move_to_top()

    def action_select(self) -> None:
        if self._normal():
            self._state.select_current()

    def action_open(self) -> None:
        if self._normal():
            self._state.select_for_next_window()

    def action_command_mode(self) -> None:
        if self._normal():
            self._command.activate()
            self._mode = InputMode.COMMAND
            self._render_prompt()

    def action_new_connection(self) -> None:
        if self._normal() and self._state.active_window is WindowType.CONNECTIONS:
            self._form = ConnectionForm()
            self._form_buffer = ""
            self._mode = InputMode.NEW_CONNECTION
            self._render_prompt()

    def action_delete_connection(self) -> None:
        state = self._state
        if not self._normal() or state.active_window is not WindowType.CONNECTIONS:
            return
        if state.current_row_value() is None:
            return
        self._mode = InputMode.CONFIRM_DELETE
        self._render_prompt()

    def action_edit_query(self) -> None:
        if self._normal() and self._state.active_window is WindowType.QUERY:
            self._mode = InputMode.EDIT_QUERY
            self.query_one(QueryEditor).open()

    # Keys -------------------------------------------------------------------

    _NORMAL_KEYS = {
        "j": "cursor_down",
        "down": "cursor_down",
        "k": "cursor_up",
        "up": "cursor_up",
        "ctrl+j": "cursor_bottom",
        "ctrl+k": "cursor_top",
        "space": "select",
        "enter": "open",
        "r": "refresh",
        "colon": "command_mode",
        "n": "new_connection",
        "d": "delete_connection",
        "e": "edit_query",
    }

    def on_key(self, event: events.Key) -> None:
        if self._mode is InputMode.EDIT_QUERY:
            return
        if self._mode is InputMode.COMMAND:
            handled = self._handle_command_key(event)
        elif self._mode is InputMode.NEW_CONNECTION:
            handled = self._handle_form_key(event)
        elif self._mode is InputMode.CONFIRM_DELETE:
            handled = self._handle_confirm_key(event)
        else:
            handled = self._handle_normal_key(event)
        if handled:
            event.stop()
            event.prevent_default()
            self._render_prompt()

    def _handle_normal_key(self, event: events.Key) -> bool:
        key = "colon" if event.character == ":" else event.key
        action = self._NORMAL_KEYS.get(key)
        if action is None:
            return False
        getattr(self, f"action_{action}")()
        return True


    def _handle_command_key(self, event: events.Key) -> bool:
        key = event.key
        if key == "escape":
            self._command.cancel()
        elif key == "backspace":
            self._command.pop()
        elif key == "tab":
            self._command.complete()
        elif key == "enter":
            try:
                window = self._command.submit()
            except InputValidationError as exc:
                self.notify(str(exc), severity="error")
            else:
                self._state.change_window(window)
        elif event.is_printable and event.character:
            self._command.push(event.character)
        if not self._command.active:
            self._mode = InputMode.NORMAL
        return True

    def _handle_form_key(self, event: events.Key) -> bool:
        form = self._form
        if form is None:
            self._mode = InputMode.NORMAL
            return True
        key = event.key
        if key == "escape":
            self._close_form()
        elif key == "backspace":
            self._form_buffer = self._form_buffer[:-1]
        elif key == "enter":
            self._submit_form(form)
        elif event.is_printable and event.character:
            self._form_buffer += event.character
        return True

    def _submit_form(self, form: ConnectionForm) -> None:
        try:
            completed = form.submit(self._form_buffer)
        except InputValidationError:
            return
        self._form_buffer = ""
        if completed is None:
            return
        name, dsn = completed
        try:
            connection = self._state.add_connection(name, dsn)
        except (DsnError, ValueError) as exc:
            form.message = str(exc)
            form.step = FormStep.DSN
            return
        except OSError as exc:
            LOG.exception("Failed to save connection %s", name)
            self.notify(f"Could not save connection: {exc}", severity="error")
        else:
            self.notify(f"Added connection: {connection.name}", severity="information")
        self._close_form()

    def _close_form(self) -> None:
        self._form = None
        self._form_buffer = ""
        self._mode = InputMode.NORMAL

    def _handle_confirm_key(self, event: events.Key) -> bool:
        self._mode = InputMode.NORMAL
        if event.key != "y":
            return True
        try:
            removed = self._state.delete_current_connection()
        except OSError as exc:
            LOG.exception("Failed to delete connection")
            self.notify(f"Could not delete connection: {exc}", severity="error")
            return True
        if removed is not None:
            self.notify(f"Deleted connection: {removed.name}", severity="information")
        return True

    def on_query_editor_closed(self, event: QueryEditor.Closed) -> None:
        self._mode = InputMode.NORMAL
        event.stop()

    def _render_prompt(self) -> None:
        bar = self.query_one(CommandBar)
        if self._mode is InputMode.COMMAND:
            bar.show_text(f":{self._command.buffer}")
        elif self._mode is InputMode.NEW_CONNECTION and self._form is not None:
            text = f"{self._form.prompt}: {self._form_buffer}"
            if self._form.message:
                text = f"{text}  ({self._form.message})"
            bar.show_text(text)
        elif self._mode is InputMode.CONFIRM_DELETE:
            bar.show_text("Delete connection? (y/n)")
        elif self._mode is InputMode.NORMAL:
            bar.show_text(COMMAND_HELP)
        else:
            bar.show_text("")


def configure_logging(log_file: Path, level: str = "INFO") -> None:
    """Send log records to a file so they never touch the terminal UI."""

    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(log_file),
        format=LOG_FORMAT,
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="db9s", description="Keyboard driven database browser.")
    parser.add_argument("--settings", type=Path, default=None, help="Path to settings.json")
    parser.add_argument("--log-file", type=Path, default=None, help="Path to the log file")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Invoke the Textual application."""

    args = build_parser().parse_args(argv)
    settings_path: Path = args.settings or config.SETTINGS_FILE
    try:
        directory = ensure_settings_directory(settings_path)
    except SettingsDirectoryError as exc:
        print(exc, file=sys.stderr)
        return 1
    configure_logging(args.log_file or directory / "db9s.log", args.log_level)
    LOG.info("Starting db9s with settings %s", settings_path)
    try:
        store = ConnectionStore.open(settings_path)
    except SettingsFileError as exc:
        LOG.error("%s", exc)
        print(exc, file=sys.stderr)
        return 1
    Db9sApp(store).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
