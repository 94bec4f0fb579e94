"""Merge strategies for nested key/value trees.

``deep_merge`` is the semantics used for manifests and config files: nested
mappings merge key by key, everything else (scalars *and* lists) is replaced
by the incoming value.  None of the helpers mutate their inputs.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any


class MergeStrategy(str, Enum):
    """How a partial tree is combined with an existing one."""

    DEEP = "deep-merge"
    SHALLOW = "shallow-merge"
    REPLACE = "replace"

    @classmethod
    def _missing_(cls, value: object) -> "MergeStrategy | None":
        # Modifiers spell the strategies without the "-merge" suffix.
        if isinstance(value, str):
            for member in cls:
                if member.value.split("-", 1)[0] == value.lower():
                    return member
        return None


def deep_merge(base: Mapping[str, Any], incoming: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge *incoming* into a copy of *base*."""
    result: dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in incoming.items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def shallow_merge(base: Mapping[str, Any], incoming: Mapping[str, Any]) -> dict[str, Any]:
    """Overlay the top-level keys of *incoming* onto *base*."""
    result = copy.deepcopy(dict(base))
    result.update(copy.deepcopy(dict(incoming)))
    return result


def replace(base: Mapping[str, Any], incoming: Mapping[str, Any]) -> dict[str, Any]:
    return copy.deepcopy(dict(incoming))


_STRATEGIES = {
    MergeStrategy.DEEP: deep_merge,
    MergeStrategy.SHALLOW: shallow_merge,
    MergeStrategy.REPLACE: replace,
}


def apply_strategy(
    strategy: MergeStrategy | str,
    base: Mapping[str, Any],
    incoming: Mapping[str, Any],
) -> dict[str, Any]:
    """Combine *base* and *incoming* using the named strategy."""
    return _STRATEGIES[MergeStrategy(strategy)](base, incoming)


# ---------------------------------------------------------------------------
# Key paths
# ---------------------------------------------------------------------------


def split_key_path(key_path: str | Sequence[str] | None) -> list[str]:
    """Normalise ``"a.b"`` / ``["a", "b"]`` / ``None`` into a list of keys."""
    if key_path is None:
        return []
    if isinstance(key_path, str):
        return [part for part in key_path.split(".") if part]
    return [str(part) for part in key_path]


def merge_at_path(
    tree: Mapping[str, Any],
    key_path: str | Sequence[str] | None,
    incoming: Mapping[str, Any],
    strategy: MergeStrategy | str = MergeStrategy.DEEP,
) -> dict[str, Any]:
    """Merge *incoming* into the mapping found at *key_path* inside *tree*.

    Missing intermediate keys (or non-mapping values in the way) are replaced
    by empty mappings.  An empty key path merges at the root.
    """
    keys = split_key_path(key_path)
    if not keys:
        return apply_strategy(strategy, tree, incoming)

    head, rest = keys[0], keys[1:]
    result = copy.deepcopy(dict(tree))
    child = result.get(head)
    if not isinstance(child, Mapping):
        child = {}
    result[head] = merge_at_path(child, rest, incoming, strategy)
    return result
