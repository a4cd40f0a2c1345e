"""Namespace path encoding for the interpreter's `[:Mod, :Sub]` literal form."""

from __future__ import annotations

import re
from typing import Any

from evalbridge.utils.exceptions import MalformedNamespaceSpec

ROOT_NAMESPACE: tuple[str, ...] = ("Main",)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_!]*$")
_LITERAL = re.compile(r"^\[\s*(.*?)\s*\]$", re.DOTALL)


def is_identifier(name: str) -> bool:
    return bool(_IDENTIFIER.match(name))


def normalize_namespace(spec: Any) -> tuple[str, ...]:
    """Turn None, a single name, or a sequence of names into a namespace path."""
    if spec is None:
        return ROOT_NAMESPACE
    if isinstance(spec, str):
        names: tuple[Any, ...] = (spec,)
    elif isinstance(spec, (list, tuple)):
        if not spec:
            return ROOT_NAMESPACE
        names = tuple(spec)
    else:
        raise MalformedNamespaceSpec(
            f"namespace must be None, a name, or a list of names; got {type(spec).__name__}", spec
        )
    for name in names:
        if not isinstance(name, str) or not is_identifier(name):
            raise MalformedNamespaceSpec(f"invalid namespace element: {name!r}", spec)
    return names


def encode_namespace(spec: Any) -> str:
    """Encode a namespace specification as a wire literal, e.g. `[:Foo, :Bar]`."""
    path = normalize_namespace(spec)
    return "[" + ", ".join(f":{name}" for name in path) + "]"


def decode_namespace(literal: str) -> tuple[str, ...]:
    """Parse a wire literal produced by `encode_namespace` back into a path."""
    match = _LITERAL.match(literal.strip())
    if not match:
        raise MalformedNamespaceSpec(f"not a namespace literal: {literal!r}", literal)
    body = match.group(1)
    if not body:
        return ROOT_NAMESPACE
    names = []
    for token in body.split(","):
        token = token.strip()
        if not token.startswith(":") or not is_identifier(token[1:]):
            raise MalformedNamespaceSpec(f"invalid symbol token {token!r} in {literal!r}", literal)
        names.append(token[1:])
    return tuple(names)
