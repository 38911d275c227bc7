"""Immutable JSON documents threaded through a workflow execution.

A document is a tree of read-only mappings (``MappingProxyType``) and
tuples.  States never edit a document in place: they read from it with
``select`` and produce a new one with ``merge`` or by returning a fresh
document from a projection.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Union

Document = Mapping[str, Any]
PathPart = Union[str, int]


class DocumentPathError(LookupError):
    """Raised when a path does not resolve inside a document."""

    def __init__(self, path: tuple[PathPart, ...], reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{format_path(path)}: {reason}")


def format_path(path: tuple[PathPart, ...]) -> str:
    """Render a path as ``$.a.b[0].c`` for error messages."""
    out = "$"
    for part in path:
        out += f"[{part}]" if isinstance(part, int) else f".{part}"
    return out


def freeze(value: Any) -> Any:
    """Deep-copy plain JSON data into its immutable form."""
    if isinstance(value, Mapping):
        return MappingProxyType({str(k): freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Convert a frozen document back into plain dicts and lists."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw(v) for v in value]
    return value


def select(document: Document, *path: PathPart) -> Any:
    """Read the value at ``path``, raising ``DocumentPathError`` if absent.

    String parts index mappings, integer parts index sequences.  Unlike a
    lenient lookup, a missing key or an out-of-range index is an error so
    that a step never silently continues with a defaulted value.
    """
    value: Any = document
    for i, part in enumerate(path):
        walked = path[: i + 1]
        if isinstance(part, int):
            if not isinstance(value, tuple):
                raise DocumentPathError(walked, "not a list")
            if part >= len(value) or part < -len(value):
                raise DocumentPathError(walked, f"index out of range (length {len(value)})")
            value = value[part]
        else:
            if not isinstance(value, Mapping):
                raise DocumentPathError(walked, "not an object")
            if part not in value:
                raise DocumentPathError(walked, "missing field")
            value = value[part]
    return value


def select_str(document: Document, *path: PathPart) -> str:
    """``select`` that also requires the value to be a string."""
    value = select(document, *path)
    if not isinstance(value, str):
        raise DocumentPathError(path, f"expected string, got {type(value).__name__}")
    return value


def merge(document: Document, key: str, value: Any) -> Document:
    """Return a new document with ``value`` stored under ``key``."""
    merged = dict(document)
    merged[key] = freeze(value)
    return MappingProxyType(merged)
