"""Wire-level models shared by the send and receive paths."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


@dataclass(slots=True)
class RequestFrame:
    """One evaluation request, before line framing."""

    request_id: str
    namespace: tuple[str, ...]
    code: str


@dataclass(slots=True)
class SuccessEvent:
    """Terminal success response: `(success "id" ["value"])`."""

    request_id: str
    value: str | None = None


@dataclass(slots=True)
class FailureEvent:
    """Terminal failure response: `(failure "id" "message" ("frame" ...))`."""

    request_id: str
    message: str
    stack_frames: list[str] = field(default_factory=list)


ResponseEvent = Union[SuccessEvent, FailureEvent]


@dataclass(slots=True)
class EvalResult:
    """Outcome handed to success callbacks."""

    request_id: str
    value: str | None = None


@dataclass(slots=True)
class FailureReport:
    """Structured failure handed to failure callbacks and diagnostic surfaces."""

    request_id: str
    message: str
    stack_frames: list[str] = field(default_factory=list)
    error: Exception | None = None

    def render(self) -> str:
        """Message followed by one stack frame per line."""
        return "\n".join([self.message, *self.stack_frames])
