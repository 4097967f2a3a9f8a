"""
Dot-path access into nested dict/list trees, e.g. "directors.0.email".
A segment made only of digits addresses a list index; missing containers are
created on write, as a list when the following segment is numeric and as a
dict otherwise.
"""
from __future__ import annotations

import copy
from typing import Any


def split_path(path: str) -> list[str]:
    parts = [p for p in path.split(".") if p != ""]
    if not parts:
        raise ValueError("Empty field path")
    return parts


def _is_index(segment: str) -> bool:
    return segment.isdigit()


def _container_for(existing: Any, next_segment: str, path: str) -> Any:
    wanted = list if _is_index(next_segment) else dict
    if isinstance(existing, wanted):
        return existing
    if existing is None or (isinstance(existing, (dict, list)) and not existing):
        return wanted()
    raise TypeError(f"Cannot descend into {type(existing).__name__} at '{path}'")


def _ensure_index(items: list, index: int) -> None:
    # Holes before the target index become empty maps (director slots)
    while len(items) <= index:
        items.append({})


def assign_path(tree: dict[str, Any], path: str, value: Any) -> dict[str, Any]:
    """
    Return a deep copy of tree with value written at path.
    The input tree is never mutated.
    """
    result = copy.deepcopy(tree)
    parts = split_path(path)
    current: Any = result

    for segment, next_segment in zip(parts, parts[1:]):
        if _is_index(segment):
            if not isinstance(current, list):
                raise TypeError(f"Cannot index non-list with '{segment}' in '{path}'")
            index = int(segment)
            _ensure_index(current, index)
            current[index] = _container_for(current[index], next_segment, path)
            current = current[index]
        else:
            if not isinstance(current, dict):
                raise TypeError(f"Cannot read key '{segment}' from non-mapping in '{path}'")
            current[segment] = _container_for(current.get(segment), next_segment, path)
            current = current[segment]

    last = parts[-1]
    if _is_index(last):
        if not isinstance(current, list):
            raise TypeError(f"Cannot index non-list with '{last}' in '{path}'")
        index = int(last)
        _ensure_index(current, index)
        current[index] = value
    else:
        if not isinstance(current, dict):
            raise TypeError(f"Cannot set key '{last}' on non-mapping in '{path}'")
        current[last] = value
    return result


def read_path(tree: Any, path: str, default: Any = None) -> Any:
    """Read the value at path, or default when any segment is missing."""
    current = tree
    for segment in split_path(path):
        if isinstance(current, list) and _is_index(segment):
            index = int(segment)
            if index >= len(current):
                return default
            current = current[index]
        elif isinstance(current, dict):
            if segment not in current:
                return default
            current = current[segment]
        else:
            return default
    return current
