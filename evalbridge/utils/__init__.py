"""Utility modules for evalbridge."""

from evalbridge.utils.exceptions import EvalBridgeError, ErrorCategory, sanitize_error_message

__all__ = ["EvalBridgeError", "ErrorCategory", "sanitize_error_message"]
