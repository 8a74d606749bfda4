"""Widget library for the Textual UI."""

from __future__ import annotations

from .command_bar import CommandBar
from .error_banner import ErrorBanner
from .query_editor import QueryEditor
from .query_panel import QueryPanel
from .results_table import ResultsTable
from .selection_bar import SelectionBar

__all__ = ["CommandBar", "ErrorBanner", "QueryEditor", "QueryPanel", "ResultsTable", "SelectionBar"]
