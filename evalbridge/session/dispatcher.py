"""Response dispatch: decode events, complete tracked requests, run callbacks."""

from __future__ import annotations

import codecs
from collections.abc import Iterable
from typing import Any

from loguru import logger

from evalbridge.protocol.events import StreamDecoder
from evalbridge.protocol.types import EvalResult, FailureReport, ResponseEvent, SuccessEvent
from evalbridge.utils.exceptions import EvalBridgeError, ProtocolDecodeError, sanitize_error_message

from .contracts import EditorHost, ProgressState
from .stager import PayloadStager
from .tracker import RequestTracker, TrackedRequest


class DiagnosticSurface:
    """Read-only text surface that holds the latest failure report of a connection."""

    def __init__(self, name: str):
        self.name = name
        self.read_only = True
        self.revision = 0
        self._text = ""

    @property
    def text(self) -> str:
        return self._text

    def show(self, text: str) -> None:
        """Replace the surface contents."""
        self._text = text
        self.revision += 1

    def clear(self) -> None:
        self.show("")


class ResponseDispatcher:
    """Consumes the response stream of one connection."""

    def __init__(
        self,
        tracker: RequestTracker,
        stager: PayloadStager,
        editor: EditorHost,
        surface: DiagnosticSurface,
        *,
        show_diagnostics: bool = True,
    ):
        self.tracker = tracker
        self.stager = stager
        self.editor = editor
        self.surface = surface
        self.show_diagnostics = show_diagnostics
        self._decoder = StreamDecoder()
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: bytes | str) -> int:
        """Append received data; dispatch every event it completes. Returns the count dispatched."""
        text = self._utf8.decode(chunk) if isinstance(chunk, bytes) else chunk
        dispatched = 0
        for item in self._decoder.feed(text):
            if isinstance(item, ProtocolDecodeError):
                logger.warning("Dropping malformed response frame: {} {!r}", item.message, item.details.get("frame"))
                continue
            if self.dispatch(item):
                dispatched += 1
        return dispatched

    def dispatch(self, event: ResponseEvent) -> bool:
        """Complete the request an event refers to. False when the id is not outstanding."""
        request = self.tracker.complete(event.request_id)
        if request is None:
            logger.debug("Ignoring response for unknown request {}", event.request_id)
            return False
        if isinstance(event, SuccessEvent):
            logger.debug("Request {} succeeded", request.request_id)
            self._finish(request, request.on_success, EvalResult(request_id=request.request_id, value=event.value))
            return True
        report = FailureReport(
            request_id=request.request_id,
            message=event.message,
            stack_frames=list(event.stack_frames),
        )
        logger.info("Request {} failed: {}", request.request_id, sanitize_error_message(event.message))
        try:
            if self.show_diagnostics:
                self.surface.show(report.render())
                self.editor.render_diagnostic(self.surface)
            else:
                self.editor.notify(request.origin, event.message)
        except Exception:
            logger.exception("Editor failed to present the failure of request {}", request.request_id)
        self._finish(request, request.on_failure, report)
        return True

    def fail_all(self, requests: Iterable[TrackedRequest], error_for: Any) -> int:
        """Deliver a synthesized failure to each drained request.

        `error_for(request_id)` builds the exception recorded on each report.
        """
        count = 0
        for request in requests:
            error: EvalBridgeError = error_for(request.request_id)
            report = FailureReport(request_id=request.request_id, message=error.message, error=error)
            try:
                self.editor.notify(request.origin, error.message)
            except Exception:
                logger.exception("Editor failed to present the failure of request {}", request.request_id)
            self._finish(request, request.on_failure, report)
            count += 1
        return count

    def _finish(self, request: TrackedRequest, callback: Any, outcome: EvalResult | FailureReport) -> None:
        try:
            if callback is not None:
                callback(outcome)
        except Exception:
            logger.exception("Callback for request {} raised", request.request_id)
        finally:
            if request.staged is not None:
                self.stager.release(request.staged)
            try:
                self.editor.notify_progress(request.origin, ProgressState.STOPPED)
            except Exception:
                logger.exception("Editor failed to stop progress for request {}", request.request_id)
