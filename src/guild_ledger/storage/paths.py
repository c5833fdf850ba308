"""Dotted-path access into the nested storage document.

Paths address the document as ``"<guildID>.<memberID>.<field>"``. The helpers
are pure functions over the mapping they are given; persisting the result is
the caller's job.
"""

from __future__ import annotations

from typing import Any

from guild_ledger.errors import InvalidArgumentError


def _split(path: str) -> list[str]:
    if not isinstance(path, str) or not path.strip():
        raise InvalidArgumentError(f"path must be a non-empty string. Received: {path!r}")
    parts = path.split(".")
    if any(part == "" for part in parts):
        raise InvalidArgumentError(f"path contains an empty segment: {path!r}")
    return parts


def get_path(doc: dict[str, Any], path: str) -> Any:
    """Return the value at ``path`` or ``None`` if any segment is absent."""
    node: Any = doc
    for part in _split(path):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def has_path(doc: dict[str, Any], path: str) -> bool:
    node: Any = doc
    for part in _split(path):
        if not isinstance(node, dict) or part not in node:
            return False
        node = node[part]
    return True


def set_path(doc: dict[str, Any], path: str, value: Any) -> dict[str, Any]:
    """Set ``value`` at ``path``, creating intermediate mappings as needed.

    A non-mapping value sitting on an intermediate segment is replaced by a
    fresh mapping.

    Returns:
        The same ``doc`` object, mutated.
    """
    parts = _split(path)
    node = doc
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value
    return doc


def delete_path(doc: dict[str, Any], path: str) -> bool:
    """Remove the key at ``path``; return ``False`` when it was absent."""
    parts = _split(path)
    parent = get_path(doc, ".".join(parts[:-1])) if len(parts) > 1 else doc
    if not isinstance(parent, dict) or parts[-1] not in parent:
        return False
    del parent[parts[-1]]
    return True
