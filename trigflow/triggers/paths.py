"""
Dotted-path lookups against an event context.

A path starting with ``$.`` walks nested mappings; anything else is a
literal and comes back unchanged, so variable mappings can mix literals and
lookups in one schema:

    >>> resolve_path("$.entity.id", {"entity": {"id": "e1"}})
    'e1'
    >>> resolve_path("manual", {})
    'manual'
    >>> resolve_path("$.entity.id", {"entity": None}) is MISSING
    True
"""

from collections.abc import Mapping
from typing import Any

PATH_PREFIX = "$."


class _Missing:
    """Sentinel for a path that resolved to nothing (distinct from None)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def is_path(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(PATH_PREFIX)


def resolve_path(path: Any, context: Mapping[str, Any] | None) -> Any:
    """
    Resolve a ``$.a.b`` path against ``context``.

    Returns:
        The value found, the literal itself for non-path input, or MISSING
        when the path is empty or any segment is absent or None.
    """
    if not path:
        return MISSING

    if not is_path(path):
        return path

    current: Any = context
    for part in path[len(PATH_PREFIX):].split("."):
        if current is None or current is MISSING:
            return MISSING
        if not isinstance(current, Mapping):
            return MISSING
        current = current.get(part, MISSING)

    return current
