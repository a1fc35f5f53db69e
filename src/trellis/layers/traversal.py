"""
Depth-first traversal of the layer tree.

``visit_layer`` is the primitive every tree mutation is built on. It never
changes its input: a node is rebuilt only when the visitor, or a visit
somewhere below it, returned something new. Untouched subtrees come back
as the very same objects.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import typing as _typing

import trellis.layers.types as types

Visitor = _abc.Callable[[types.Layer, _typing.Optional[types.Layer]], types.Layer]


def has_layer_children(layer: types.Layer) -> bool:
    """Check whether a layer's children are a sequence of layers."""
    return isinstance(layer.children, tuple)


def visit_layer(
    layer: types.Layer,
    parent: types.Layer | None,
    visitor: Visitor,
) -> types.Layer:
    """
    Apply ``visitor`` to a layer and, pre-order, to its whole subtree.

    The visitor's returned node is the one whose children are walked next,
    so a visitor that replaces children sees the replacement.

    Args:
        layer: Root of the subtree to visit.
        parent: Parent of ``layer`` (None for a page).
        visitor: Called as ``visitor(layer, parent)``; returns the layer to
            keep in its place.

    Returns:
        The rebuilt subtree, or ``layer`` itself when nothing changed.
    """
    updated = visitor(layer, parent)
    if not has_layer_children(updated):
        return updated

    old_children = _typing.cast(tuple[types.Layer, ...], updated.children)
    new_children = tuple(visit_layer(child, updated, visitor) for child in old_children)
    if all(new is old for new, old in zip(new_children, old_children)):
        return updated
    return _dataclasses.replace(updated, children=new_children)


def iter_layers(layers: _abc.Iterable[types.Layer]) -> _abc.Iterator[types.Layer]:
    """Yield every layer in ``layers`` and their descendants, pre-order."""
    for layer in layers:
        yield layer
        if has_layer_children(layer):
            yield from iter_layers(_typing.cast(tuple[types.Layer, ...], layer.children))


def count_layers(layers: _abc.Iterable[types.Layer]) -> int:
    """
    Count layers in a sequence, including all descendants.

    Text children do not count. Call on ``page.children`` to count the
    contents of a page without the page itself.
    """
    total = 0
    for layer in layers:
        total += 1
        if has_layer_children(layer):
            total += count_layers(_typing.cast(tuple[types.Layer, ...], layer.children))
    return total


def find_layer_recursive(
    layers: _abc.Iterable[types.Layer],
    layer_id: str,
) -> types.Layer | None:
    """Find a layer by id, depth-first."""
    for layer in layers:
        if layer.id == layer_id:
            return layer
        if has_layer_children(layer):
            found = find_layer_recursive(
                _typing.cast(tuple[types.Layer, ...], layer.children), layer_id
            )
            if found is not None:
                return found
    return None


def find_all_parent_layers_recursive(
    layers: _abc.Iterable[types.Layer],
    layer_id: str,
) -> list[types.Layer]:
    """
    Collect the ancestors of a layer.

    Returns:
        Ancestors ordered from the outermost one to the immediate parent.
        Empty when ``layer_id`` is one of ``layers`` or is not found.
    """
    path: list[types.Layer] = []

    def walk(siblings: _abc.Iterable[types.Layer]) -> bool:
        for layer in siblings:
            if layer.id == layer_id:
                return True
            if has_layer_children(layer):
                path.append(layer)
                if walk(_typing.cast(tuple[types.Layer, ...], layer.children)):
                    return True
                path.pop()
        return False

    if walk(layers):
        return path
    return []


def find_parent_layer(
    layers: _abc.Iterable[types.Layer],
    layer_id: str,
) -> types.Layer | None:
    """Find the immediate parent of a layer, or None for roots and unknown ids."""
    parents = find_all_parent_layers_recursive(layers, layer_id)
    return parents[-1] if parents else None


def collect_ids(layers: _abc.Iterable[types.Layer]) -> set[str]:
    """Collect the ids of every layer in a forest."""
    return {layer.id for layer in iter_layers(layers)}
