"""
chartkit.chart.maptree — Dotted-path access to nested value trees.

    >>> tree = MapTree({})
    >>> tree.put("a.b.c", 3)
    >>> tree.get("a.b.c")
    3

A path segment addresses exactly one level of map nesting. There is
no escaping: keys containing dots cannot be addressed.
"""

from __future__ import annotations

from typing import Any


def split_path(path: str) -> list[str]:
    return [p for p in path.split(".") if p]


class MapTree:
    """Wraps (does not copy) a nested dict."""

    def __init__(self, data: dict[str, Any] | None):
        self.data = data

    def get(self, path: str, type_: type | tuple[type, ...] = object) -> Any:
        """Return the value at ``path`` if it exists and is a ``type_``."""
        if not self.data or not path:
            return None
        keys = split_path(path)
        if not keys:
            return None
        current: Any = self.data
        for key in keys:
            if not isinstance(current, dict):
                return None
            current = current.get(key)
        if current is None or not isinstance(current, type_):
            return None
        return current

    def get_map(self, path: str) -> dict[str, Any] | None:
        return self.get(path, dict)

    def put(self, path: str, value: Any) -> Any:
        """Store ``value`` at ``path``, creating intermediate maps.

        A non-map found on the way is replaced by a new map. Returns the
        previous value at ``path``, or None.
        """
        if self.data is None:
            return None
        keys = split_path(path)
        if not keys:
            return None
        current = self.data
        for key in keys[:-1]:
            child = current.get(key)
            if not isinstance(child, dict):
                child = {}
                current[key] = child
            current = child
        previous = current.get(keys[-1])
        current[keys[-1]] = value
        return previous


def new_map_chain(path: str, data: Any) -> dict[str, Any] | None:
    """Wrap ``data`` in one map per path segment.

    ``new_map_chain("a.b", x)`` is ``{"a": {"b": x}}``; the path ``"."``
    returns ``data`` itself.
    """
    if path == ".":
        return data
    keys = split_path(path)
    if not keys:
        return None
    result: Any = data
    for key in reversed(keys):
        result = {key: result}
    return result
