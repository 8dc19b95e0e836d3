"""Additive, depth bounded merge of property trees."""

from __future__ import annotations

from typing import Any, Mapping, MutableMapping

from .compare import values_equal


def merge_properties(
    target: MutableMapping[str, Any] | None,
    source: Mapping[str, Any] | None,
    max_depth: int,
) -> bool:
    """Merge ``source`` into ``target`` in place and report whether it changed.

    Keys are only added or overwritten, never removed. Nested maps are merged
    while ``max_depth`` allows; at depth zero they are left alone. Empty
    source values are not introduced as new keys.
    """
    if target is None or not source:
        return False
    changed = False
    for key, value in source.items():
        if key not in target:
            if value is None or value == "":
                continue
            target[key] = value
            changed = True
            continue

        existing = target[key]
        if isinstance(value, Mapping):
            if max_depth <= 0:
                continue
            if isinstance(existing, MutableMapping):
                if merge_properties(existing, value, max_depth - 1):
                    changed = True
            else:
                target[key] = value
                changed = True
            continue

        if not values_equal(existing, value):
            target[key] = value
            changed = True
    return changed
