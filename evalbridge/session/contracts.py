"""Contracts for the editing environment that drives a session."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .dispatcher import DiagnosticSurface


class ProgressState(Enum):
    STARTED = "started"
    STOPPED = "stopped"


@dataclass(slots=True)
class TextRange:
    """Half-open character range inside an editor context."""

    start: int
    end: int


@dataclass(slots=True)
class SourceSelection:
    """What the editor wants evaluated, and where."""

    namespace: Any
    text: str
    range: TextRange | None = None


@runtime_checkable
class EditorHost(Protocol):
    def get_source_selection(self, context: Any) -> SourceSelection: ...
    def notify_progress(self, context: Any, state: ProgressState) -> None: ...
    def render_diagnostic(self, surface: DiagnosticSurface) -> None: ...
    def notify(self, context: Any, message: str) -> None: ...
    def flash_region(self, text_range: TextRange) -> None: ...


class NullEditorHost:
    """Editor stand-in that ignores every notification."""

    def get_source_selection(self, context: Any) -> SourceSelection:
        raise LookupError(f"no editor attached to provide a selection for {context!r}")

    def notify_progress(self, context: Any, state: ProgressState) -> None:
        return

    def render_diagnostic(self, surface: DiagnosticSurface) -> None:
        return

    def notify(self, context: Any, message: str) -> None:
        return

    def flash_region(self, text_range: TextRange) -> None:
        return
