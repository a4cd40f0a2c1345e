"""
Exception hierarchy and error handling utilities for evalbridge.

Provides:
- Custom exception classes with error codes
- Error categorization (recoverable, retryable, fatal)
- Safe error message formatting (no sensitive data leak)
"""

from __future__ import annotations

import re
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from evalbridge.protocol.types import FailureReport


class ErrorCategory(Enum):
    """Error categories for classification."""
    RECOVERABLE = "recoverable"
    RETRYABLE = "retryable"
    FATAL = "fatal"
    VALIDATION = "validation"
    TIMEOUT = "timeout"


class EvalBridgeError(Exception):
    """Base exception for all evalbridge errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class MalformedNamespaceSpec(EvalBridgeError):
    """Namespace specification that cannot be encoded (caller bug)."""

    def __init__(self, message: str, spec: Any = None):
        super().__init__(
            message,
            code="MALFORMED_NAMESPACE",
            category=ErrorCategory.VALIDATION,
            details={"spec": repr(spec)},
        )


class StagingIOError(EvalBridgeError):
    """Scratch file for a staged payload could not be created."""

    def __init__(self, message: str, directory: str | None = None):
        super().__init__(
            message,
            code="STAGING_IO_ERROR",
            category=ErrorCategory.RECOVERABLE,
            details={"directory": directory},
        )


class DuplicateRequestId(EvalBridgeError):
    """A request id was registered twice on the same connection."""

    def __init__(self, request_id: str):
        super().__init__(
            f"request id already tracked: {request_id}",
            code="DUPLICATE_REQUEST_ID",
            category=ErrorCategory.FATAL,
            details={"request_id": request_id},
        )


class ProtocolDecodeError(EvalBridgeError):
    """A response frame from the interpreter could not be decoded."""

    def __init__(self, message: str, frame: str | None = None):
        super().__init__(
            message,
            code="PROTOCOL_DECODE_ERROR",
            category=ErrorCategory.VALIDATION,
            details={"frame": (frame or "")[:200]},
        )


class BootstrapTimeout(EvalBridgeError):
    """The interpreter prompt did not reappear within the bootstrap bound."""

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(
            f"Operation '{operation}' timed out after {timeout_seconds}s",
            code="BOOTSTRAP_TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details={"operation": operation, "timeout_seconds": timeout_seconds},
        )


class ConnectionClosed(EvalBridgeError):
    """Synthesized failure for requests outstanding when a connection is torn down."""

    def __init__(self, address: str, request_id: str | None = None):
        super().__init__(
            f"connection to {address} closed before a response arrived",
            code="CONNECTION_CLOSED",
            category=ErrorCategory.RETRYABLE,
            details={"address": address, "request_id": request_id},
        )


class BridgeConnectionError(EvalBridgeError):
    """Transport-level failure: connect refused, write failed, not open."""

    def __init__(self, address: str, message: str):
        super().__init__(
            f"Connection '{address}' error: {message}",
            code="CONNECTION_ERROR",
            category=ErrorCategory.RETRYABLE,
            details={"address": address},
        )


class EvaluationFailed(EvalBridgeError):
    """Raised by awaitable evaluation when the interpreter reports a failure."""

    def __init__(self, report: FailureReport):
        super().__init__(
            report.message,
            code="EVALUATION_FAILED",
            category=ErrorCategory.RECOVERABLE,
            details={"request_id": report.request_id, "stack_frames": list(report.stack_frames)},
        )
        self.report = report


_SENSITIVE_PATTERNS = [
    re.compile(r"(api[_-]?key|token|secret|password|auth)[=:]\s*['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove sensitive information from error messages before logging them."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized
