"""Wire protocol: namespace literals, request framing, response events."""

from .events import StreamDecoder, decode_event
from .framing import (
    encode_request_line,
    escape_string,
    include_instruction,
    new_request_id,
    unescape_string,
)
from .namespace import ROOT_NAMESPACE, decode_namespace, encode_namespace, normalize_namespace
from .types import EvalResult, FailureEvent, FailureReport, RequestFrame, ResponseEvent, SuccessEvent

__all__ = [
    "ROOT_NAMESPACE",
    "EvalResult",
    "FailureEvent",
    "FailureReport",
    "RequestFrame",
    "ResponseEvent",
    "StreamDecoder",
    "SuccessEvent",
    "decode_event",
    "decode_namespace",
    "encode_namespace",
    "encode_request_line",
    "escape_string",
    "include_instruction",
    "new_request_id",
    "normalize_namespace",
    "unescape_string",
]
