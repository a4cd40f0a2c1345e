"""Session runtime: staging, tracking, dispatch, transport."""

from .bootstrap import PromptWatcher, bootstrap_server
from .connection import Connection
from .contracts import EditorHost, NullEditorHost, ProgressState, SourceSelection, TextRange
from .dispatcher import DiagnosticSurface, ResponseDispatcher
from .manager import SessionManager
from .stager import PayloadStager, StagedPayload
from .tracker import RequestTracker, TrackedRequest

__all__ = [
    "Connection",
    "DiagnosticSurface",
    "EditorHost",
    "NullEditorHost",
    "PayloadStager",
    "ProgressState",
    "PromptWatcher",
    "RequestTracker",
    "ResponseDispatcher",
    "SessionManager",
    "SourceSelection",
    "StagedPayload",
    "TextRange",
    "TrackedRequest",
    "bootstrap_server",
]
