"""Banner that surfaces the last fetch error."""

from __future__ import annotations

from textual.widgets import Static


class ErrorBanner(Static):
    """One line error strip; hidden while there is nothing to report."""

    DEFAULT_CSS = """
    ErrorBanner {
        height: auto;
        padding: 0 1;
        background: $error;
        color: $text;
    }
    """

    def __init__(self) -> None:
        super().__init__("", id="error-banner")
        self.message: str | None = None
        self.display = False

    def show_error(self, message: str | None) -> None:
        self.message = message
        if not message:
            self.display = False
            self.update("")
            return
        self.update(f"Error: {message.splitlines()[0]}")
        self.display = True


__all__ = ["ErrorBanner"]
