"""Prompt line used by command mode, the connection form and confirmations."""

from __future__ import annotations

from textual.widgets import Static


class CommandBar(Static):
    DEFAULT_CSS = """
    CommandBar {
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }
    """

    def __init__(self) -> None:
        super().__init__("", id="command-bar")
        self.text = ""

    def show_text(self, text: str) -> None:
        self.text = text
        self.update(text)


__all__ = ["CommandBar"]
