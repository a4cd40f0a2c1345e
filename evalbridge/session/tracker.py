"""Table of in-flight requests for one connection."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from evalbridge.protocol.types import EvalResult, FailureReport
from evalbridge.utils.exceptions import DuplicateRequestId

from .stager import StagedPayload

SuccessCallback = Callable[[EvalResult], Any]
FailureCallback = Callable[[FailureReport], Any]


@dataclass(slots=True)
class TrackedRequest:
    """Metadata kept for a request until its terminal response."""

    request_id: str
    namespace: tuple[str, ...]
    code: str
    origin: Any = None
    on_success: SuccessCallback | None = None
    on_failure: FailureCallback | None = None
    staged: StagedPayload | None = None
    sent_at: float = field(default_factory=time.monotonic)


class RequestTracker:
    """Request id -> TrackedRequest; an id leaves the table exactly once."""

    def __init__(self) -> None:
        self._requests: dict[str, TrackedRequest] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)

    def __contains__(self, request_id: object) -> bool:
        with self._lock:
            return request_id in self._requests

    def outstanding(self) -> list[str]:
        with self._lock:
            return list(self._requests)

    def register(self, request: TrackedRequest) -> None:
        with self._lock:
            if request.request_id in self._requests:
                raise DuplicateRequestId(request.request_id)
            self._requests[request.request_id] = request

    def lookup(self, request_id: str) -> TrackedRequest | None:
        with self._lock:
            return self._requests.get(request_id)

    def complete(self, request_id: str) -> TrackedRequest | None:
        """Remove and return the entry; None when unknown or already completed."""
        with self._lock:
            return self._requests.pop(request_id, None)

    def drain(self) -> list[TrackedRequest]:
        """Remove and return every outstanding entry in registration order."""
        with self._lock:
            drained = list(self._requests.values())
            self._requests.clear()
            return drained
