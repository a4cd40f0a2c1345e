"""Response event decoding.

The interpreter answers with s-expressions, one per terminal response:

    (success "0a1b2c3d")
    (success "0a1b2c3d" "2")
    (failure "0a1b2c3d" "UndefVarError: z not defined" ("at line 3" "at top-level"))

Events may be split across or packed into socket reads, so `StreamDecoder`
buffers text and yields each event as soon as its closing paren arrives.
Nothing received here is ever executed.
"""

from __future__ import annotations

from typing import Any

from evalbridge.utils.exceptions import ProtocolDecodeError

from .framing import unescape_string
from .types import FailureEvent, ResponseEvent, SuccessEvent

_DELIMITERS = frozenset('()"')

# A form still open after this much buffered text is dropped as garbage.
MAX_PENDING_CHARS = 1 << 20


class Symbol(str):
    """Bare atom in a response form (tags, `nil`)."""

    __slots__ = ()


NIL = Symbol("nil")


def _scan_string(text: str, start: int, stop_at_newline: bool = False) -> tuple[int, int]:
    """Scan the string literal opening at `start`.

    Returns `(end, -1)` with `end` just past the closing quote, `(-1, -1)` when
    the text runs out first, or `(-1, i)` when `stop_at_newline` is set and a
    raw newline at `i` cuts the literal off.
    """
    i = start + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == '"':
            return i + 1, -1
        if ch == "\n" and stop_at_newline:
            return -1, i
        i += 1
    return -1, -1


def _scan_list(text: str, start: int) -> tuple[int, int]:
    """Scan the list opening at `start`, with the same result shape as `_scan_string`.

    Responses escape their newlines, so a raw newline inside an open form
    means the form was truncated.
    """
    depth = 0
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == '"':
            end, cut = _scan_string(text, i, stop_at_newline=True)
            if end < 0:
                return -1, cut
            i = end
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i + 1, -1
        elif ch == "\n":
            return -1, i
        i += 1
    return -1, -1


def _scan_atom(text: str, start: int) -> int:
    i = start
    n = len(text)
    while i < n and not text[i].isspace() and text[i] not in _DELIMITERS:
        i += 1
    return i


class _Reader:
    """Recursive-descent reader for one complete form."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def _skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def read(self) -> Any:
        self._skip_ws()
        if self.pos >= len(self.text):
            raise ProtocolDecodeError("unexpected end of form", self.text)
        ch = self.text[self.pos]
        if ch == "(":
            self.pos += 1
            items: list[Any] = []
            while True:
                self._skip_ws()
                if self.pos >= len(self.text):
                    raise ProtocolDecodeError("unterminated list", self.text)
                if self.text[self.pos] == ")":
                    self.pos += 1
                    return items
                items.append(self.read())
        if ch == ")":
            raise ProtocolDecodeError("unbalanced ')'", self.text)
        if ch == '"':
            end, _ = _scan_string(self.text, self.pos)
            if end < 0:
                raise ProtocolDecodeError("unterminated string", self.text)
            body = self.text[self.pos + 1 : end - 1]
            self.pos = end
            try:
                return unescape_string(body)
            except ValueError as exc:
                raise ProtocolDecodeError(f"bad string literal: {exc}", self.text) from exc
        end = _scan_atom(self.text, self.pos)
        atom = Symbol(self.text[self.pos : end])
        self.pos = end
        return atom


def read_form(text: str) -> Any:
    """Read exactly one form from text; trailing content is an error."""
    reader = _Reader(text)
    form = reader.read()
    reader._skip_ws()
    if reader.pos != len(text):
        raise ProtocolDecodeError("trailing data after form", text)
    return form


def _is_string(value: Any) -> bool:
    return isinstance(value, str) and not isinstance(value, Symbol)


def event_from_form(form: Any, raw: str = "") -> ResponseEvent:
    """Map a parsed form onto a tagged response event."""
    if not isinstance(form, list) or not form or not isinstance(form[0], Symbol):
        raise ProtocolDecodeError("response must be a tagged list", raw)
    tag, args = form[0], form[1:]
    if not args or not _is_string(args[0]) or not args[0]:
        raise ProtocolDecodeError(f"{tag} event without a request id", raw)
    request_id = args[0]
    if tag == "success":
        if len(args) > 2:
            raise ProtocolDecodeError("success takes an id and an optional value", raw)
        value = args[1] if len(args) == 2 else None
        if isinstance(value, Symbol):
            value = None if value == NIL else str(value)
        elif isinstance(value, list):
            raise ProtocolDecodeError("success value must be a string", raw)
        return SuccessEvent(request_id=request_id, value=value)
    if tag == "failure":
        if len(args) not in (2, 3) or not _is_string(args[1]):
            raise ProtocolDecodeError("failure takes an id, a message and a frame list", raw)
        frames_raw = args[2] if len(args) == 3 else []
        if frames_raw == NIL:
            frames_raw = []
        if not isinstance(frames_raw, list) or not all(_is_string(f) for f in frames_raw):
            raise ProtocolDecodeError("failure stack must be a list of strings", raw)
        return FailureEvent(request_id=request_id, message=args[1], stack_frames=list(frames_raw))
    raise ProtocolDecodeError(f"unknown event tag: {tag}", raw)


def decode_event(raw: str) -> ResponseEvent:
    """Decode one complete response form."""
    return event_from_form(read_form(raw), raw)


class StreamDecoder:
    """Incremental splitter turning appended text into decoded events.

    `feed` returns events and decode errors in arrival order; errors are
    values so one bad frame never hides the frames after it.
    """

    def __init__(self, max_pending: int = MAX_PENDING_CHARS) -> None:
        self._buffer = ""
        self.max_pending = max_pending

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, text: str) -> list[ResponseEvent | ProtocolDecodeError]:
        self._buffer += text
        out: list[ResponseEvent | ProtocolDecodeError] = []
        buf = self._buffer
        pos = 0
        n = len(buf)
        while True:
            while pos < n and buf[pos].isspace():
                pos += 1
            if pos >= n:
                break
            ch = buf[pos]
            if ch == "(":
                end, cut = _scan_list(buf, pos)
                if cut >= 0:
                    out.append(ProtocolDecodeError("response form cut off by a newline", buf[pos:cut]))
                    pos = cut + 1
                    continue
                if end < 0:
                    break
                raw = buf[pos:end]
                pos = end
                try:
                    out.append(decode_event(raw))
                except ProtocolDecodeError as exc:
                    out.append(exc)
                continue
            if ch == '"':
                end, cut = _scan_string(buf, pos, stop_at_newline=True)
                if cut >= 0:
                    end = cut
                elif end < 0:
                    break
            elif ch == ")":
                end = pos + 1
            else:
                end = _scan_atom(buf, pos)
                if end >= n:
                    # The atom may continue in the next read.
                    break
            out.append(ProtocolDecodeError("stray data outside a response form", buf[pos:end]))
            pos = end
        self._buffer = buf[pos:]
        if len(self._buffer) > self.max_pending:
            out.append(ProtocolDecodeError("partial response form too large", self._buffer))
            self._buffer = ""
        return out

    def reset(self) -> str:
        """Drop and return any buffered partial form."""
        rest, self._buffer = self._buffer, ""
        return rest
