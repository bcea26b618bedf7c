from __future__ import annotations

from typing import Any


def split_path(path: str) -> list[str]:
    return [part for part in path.split(".") if part]


def deep_get(document: Any, path: str) -> Any:
    current = document
    for part in split_path(path):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def deep_set(document: dict[str, Any], path: str, value: Any) -> dict[str, Any]:
    """Set ``value`` at ``path``, creating intermediate objects; mutates and returns ``document``."""
    parts = split_path(path)
    if not parts:
        raise ValueError("empty path")
    current = document
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value
    return document
