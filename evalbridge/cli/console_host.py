"""Terminal stand-in for the editing environment."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from evalbridge.session.contracts import ProgressState, SourceSelection, TextRange
from evalbridge.session.dispatcher import DiagnosticSurface


class ConsoleEditorHost:
    """Serves one prepared selection and prints notifications with rich."""

    def __init__(self, console: Console, selection: SourceSelection | None = None):
        self.console = console
        self.selection = selection
        self.in_progress: set[Any] = set()

    def get_source_selection(self, context: Any) -> SourceSelection:
        if self.selection is None:
            raise LookupError(f"no selection prepared for {context!r}")
        return self.selection

    def notify_progress(self, context: Any, state: ProgressState) -> None:
        if state is ProgressState.STARTED:
            self.in_progress.add(context)
        else:
            self.in_progress.discard(context)

    def render_diagnostic(self, surface: DiagnosticSurface) -> None:
        self.console.print(Panel(Text(surface.text), title=surface.name, border_style="red"))

    def notify(self, context: Any, message: str) -> None:
        self.console.print(Text(message, style="yellow"))

    def flash_region(self, text_range: TextRange) -> None:
        return
