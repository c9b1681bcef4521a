"""Path addressing — pure helpers for nested values.

A *path* is an ordered list of string segments.  Dict nodes are indexed by
key, list nodes by the integer value of the segment.  An empty path means
"the whole value".

None of these functions mutate their input: writes and removals copy every
container along the path and return the new root.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

_MISSING = object()


def parse(path: str | Sequence[str] | None) -> list[str]:
    """Normalise ``None``, ``"a.b.c"`` or ``["a", "b", "c"]`` to a segment list."""
    if path is None:
        return []
    if isinstance(path, str):
        return [segment for segment in path.split(".") if segment]
    return [str(segment) for segment in path]


def _index(segment: str) -> int | None:
    try:
        index = int(segment)
    except ValueError:
        return None
    return index if index >= 0 else None


def _child(node: Any, segment: str) -> Any:
    if isinstance(node, dict):
        return node.get(segment, _MISSING)
    if isinstance(node, list):
        index = _index(segment)
        if index is None or index >= len(node):
            return _MISSING
        return node[index]
    return _MISSING


def read(value: Any, path: Sequence[str], default: Any = None) -> Any:
    """Return the value at *path*, or *default* when it does not resolve."""
    node = value
    for segment in path:
        node = _child(node, segment)
        if node is _MISSING:
            return default
    return node


def exists(value: Any, path: Sequence[str]) -> bool:
    node = value
    for segment in path:
        node = _child(node, segment)
        if node is _MISSING:
            return False
    return True


def write(value: Any, path: Sequence[str], new_value: Any) -> Any:
    """Return a copy of *value* with *new_value* placed at *path*.

    Missing intermediate nodes are created as dicts.  A non-container found
    in the way is replaced by a dict.  List segments must be an index in
    range, or exactly ``len(list)`` to append.

    Raises:
        IndexError: a segment that lands on a list is not a valid index.
    """
    if not path:
        return new_value

    segment, rest = path[0], path[1:]

    if isinstance(value, list):
        index = _index(segment)
        if index is None or index > len(value):
            raise IndexError(f"'{segment}' is not a valid index for a list of length {len(value)}")
        copied = list(value)
        current = copied[index] if index < len(copied) else None
        child = write(current, rest, new_value)
        if index == len(copied):
            copied.append(child)
        else:
            copied[index] = child
        return copied

    copied_map: dict[str, Any] = dict(value) if isinstance(value, dict) else {}
    copied_map[segment] = write(copied_map.get(segment), rest, new_value)
    return copied_map


def remove(value: Any, path: Sequence[str]) -> Any:
    """Return a copy of *value* with the leaf at *path* removed.

    Raises:
        ValueError: *path* is empty (delete the key itself instead).
        KeyError:   *path* does not resolve.
    """
    if not path:
        raise ValueError("Cannot remove at an empty path; delete the key instead")

    segment, rest = path[0], path[1:]
    child = _child(value, segment)
    if child is _MISSING:
        raise KeyError(segment)

    if isinstance(value, list):
        index = int(segment)
        copied_list = list(value)
        if rest:
            copied_list[index] = remove(child, rest)
        else:
            del copied_list[index]
        return copied_list

    copied_map = dict(value)
    if rest:
        copied_map[segment] = remove(child, rest)
    else:
        del copied_map[segment]
    return copied_map


def render(key: str, path: Sequence[str]) -> str:
    """Human-readable ``key.path`` used in error messages."""
    return ".".join([key, *path])
