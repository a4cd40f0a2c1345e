"""Line framing for evaluation requests.

A request is a single line holding a named-tuple literal the interpreter's
reader can parse directly:

    (ns = [:Main], reqid = "0a1b2c3d", code = "1 + 1")
"""

from __future__ import annotations

import secrets
from collections.abc import Container

from .namespace import encode_namespace
from .types import RequestFrame

REQUEST_ID_BYTES = 4  # 8 lowercase hex digits

_SIMPLE_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "$": "\\$",
    "\n": "\\n",
    "\t": "\\t",
    "\r": "\\r",
}
_SIMPLE_UNESCAPES = {
    "\\": "\\",
    '"': '"',
    "$": "$",
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "0": "\0",
}


def escape_string(text: str) -> str:
    """Render text as a double-quoted literal with no raw control characters."""
    out = ['"']
    for ch in text:
        simple = _SIMPLE_ESCAPES.get(ch)
        if simple is not None:
            out.append(simple)
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\x{ord(ch):02x}")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


def unescape_string(body: str) -> str:
    """Inverse of `escape_string` for the body between the quotes."""
    out: list[str] = []
    i = 0
    n = len(body)
    while i < n:
        ch = body[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        if i + 1 >= n:
            raise ValueError("dangling backslash in string literal")
        nxt = body[i + 1]
        if nxt in _SIMPLE_UNESCAPES:
            out.append(_SIMPLE_UNESCAPES[nxt])
            i += 2
        elif nxt == "x":
            digits = body[i + 2 : i + 4]
            if len(digits) != 2:
                raise ValueError(f"truncated \\x escape: {body[i:i + 4]!r}")
            out.append(chr(int(digits, 16)))
            i += 4
        elif nxt == "u":
            digits = body[i + 2 : i + 6]
            if len(digits) != 4:
                raise ValueError(f"truncated \\u escape: {body[i:i + 6]!r}")
            out.append(chr(int(digits, 16)))
            i += 6
        else:
            raise ValueError(f"unknown escape \\{nxt}")
    return "".join(out)


def new_request_id(outstanding: Container[str] = ()) -> str:
    """Random 8-hex-digit id that does not collide with an outstanding one."""
    while True:
        request_id = secrets.token_hex(REQUEST_ID_BYTES)
        if request_id not in outstanding:
            return request_id


def encode_request_line(frame: RequestFrame) -> str:
    """Encode a request frame into one line (without the trailing newline)."""
    return (
        f"(ns = {encode_namespace(frame.namespace)}, "
        f"reqid = {escape_string(frame.request_id)}, "
        f"code = {escape_string(frame.code)})"
    )


def include_instruction(path: str) -> str:
    """Interpreter instruction that loads and evaluates a file."""
    return f"include({escape_string(path)})"


def activate_instruction(path: str) -> str:
    """Interpreter instruction that activates a project environment."""
    return f"import Pkg; Pkg.activate({escape_string(path)})"
