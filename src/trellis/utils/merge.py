"""
Recursive merging of configuration mappings.
"""

import collections.abc as _abc
import typing as _typing


def deep_merge(
    *layers: _abc.Mapping[str, _typing.Any] | None,
) -> dict[str, _typing.Any]:
    """
    Merge mappings, later layers taking precedence.

    Nested mappings are merged key by key. Any other value (lists
    included) from a later layer replaces the earlier value outright.
    Inputs are not modified.

    Example:
        >>> deep_merge({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}, "b": [1]})
        {'a': {'x': 1, 'y': 3}, 'b': [1]}
    """
    merged: dict[str, _typing.Any] = {}
    for layer in layers:
        if not layer:
            continue
        for key, value in layer.items():
            current = merged.get(key)
            if isinstance(value, _abc.Mapping) and isinstance(current, _abc.Mapping):
                merged[key] = deep_merge(current, value)
            elif isinstance(value, _abc.Mapping):
                merged[key] = deep_merge(value)
            else:
                merged[key] = value
    return merged
