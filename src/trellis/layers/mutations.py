"""
Pure mutation algorithms over the layer tree.

Every function takes a sequence of root layers (the pages of a document)
and returns a new list. Inputs are never modified; only the path from a
root down to the changed node is rebuilt and every sibling subtree is
shared by reference.

Not-found conditions are reported through the module logger and leave the
tree unchanged. Removing the only remaining root raises ``LastPageError``.
"""

from __future__ import annotations

import collections.abc as _abc
import copy as _copy
import dataclasses as _dataclasses
import logging as _logging
import typing as _typing

import trellis.constants as constants
import trellis.errors as errors
import trellis.layers.ids as ids
import trellis.layers.traversal as traversal
import trellis.layers.types as types

if _typing.TYPE_CHECKING:
    import trellis.registry.components as components

_logger = _logging.getLogger(__name__)

# Fields of a layer that update_layer may overwrite besides props
UPDATABLE_FIELDS = frozenset({"type", "name", "children"})


def accepts_children(layer: types.Layer) -> bool:
    """Check whether a child layer can be inserted under ``layer``.

    Absent children, an empty string and an empty sequence can all become
    a child sequence. Text content cannot.
    """
    children = layer.children
    if children is None or isinstance(children, tuple):
        return True
    if isinstance(children, str):
        return children == ""
    return False


def _insert_at(
    children: tuple[types.Layer, ...],
    new_layer: types.Layer,
    position: int | None,
) -> tuple[types.Layer, ...]:
    if position is None or position >= len(children):
        return (*children, new_layer)
    if position < 0:
        return (new_layer, *children)
    return (*children[:position], new_layer, *children[position:])


def add_layer(
    roots: _abc.Sequence[types.Layer],
    new_layer: types.Layer,
    parent_id: str | None,
    position: int | None = None,
) -> list[types.Layer]:
    """
    Insert ``new_layer`` as a child of the layer with id ``parent_id``.

    Args:
        roots: Root layers to search.
        new_layer: Layer to insert (kept as is, ids included).
        parent_id: Id of the parent layer.
        position: Index among the parent's children. None or past the end
            appends, a negative value prepends.

    Returns:
        New root list. Unchanged when the parent is missing or holds text.
    """

    def insert(layer: types.Layer, _parent: types.Layer | None) -> types.Layer:
        if layer.id != parent_id or not accepts_children(layer):
            return layer
        current = layer.children if isinstance(layer.children, tuple) else ()
        return _dataclasses.replace(
            layer, children=_insert_at(current, new_layer, position)
        )

    if parent_id is None:
        return list(roots)
    return [traversal.visit_layer(root, None, insert) for root in roots]


def remove_layer(
    roots: _abc.Sequence[types.Layer],
    layer_id: str,
) -> list[types.Layer]:
    """
    Remove the layer with id ``layer_id`` along with its subtree.

    A root is dropped entirely when other roots remain.

    Raises:
        LastPageError: If ``layer_id`` is the only remaining root.
    """
    if any(root.id == layer_id for root in roots):
        if len(roots) <= 1:
            raise errors.LastPageError(
                f"Cannot remove page '{layer_id}': a document needs at least one page"
            )
        return [root for root in roots if root.id != layer_id]

    def prune(layer: types.Layer, _parent: types.Layer | None) -> types.Layer:
        if not traversal.has_layer_children(layer):
            return layer
        children = _typing.cast(tuple[types.Layer, ...], layer.children)
        if not any(child.id == layer_id for child in children):
            return layer
        return _dataclasses.replace(
            layer, children=tuple(child for child in children if child.id != layer_id)
        )

    return [traversal.visit_layer(root, None, prune) for root in roots]


def _clone_with_new_ids(layer: types.Layer, taken: set[str]) -> types.Layer:
    children = layer.children
    if isinstance(children, tuple):
        children = tuple(_clone_with_new_ids(child, taken) for child in children)
    return _dataclasses.replace(
        layer,
        id=ids.create_unique_id(taken),
        props=_copy.deepcopy(layer.props),
        children=children,
    )


def duplicate_with_new_ids(
    layer: types.Layer,
    name_suffix: str = constants.COPY_SUFFIX,
    taken: set[str] | None = None,
) -> types.Layer:
    """
    Deep-clone a subtree, giving every node a fresh id.

    ``name_suffix`` is appended to the name of the clone's root only;
    names further down are kept verbatim.

    Args:
        layer: Root of the subtree to clone.
        name_suffix: Suffix for the root's name (when it has one).
        taken: Ids the clone must avoid. New ids are added to it.
    """
    if taken is None:
        taken = traversal.collect_ids([layer])
    clone = _clone_with_new_ids(layer, taken)
    if layer.name:
        clone = _dataclasses.replace(clone, name=f"{layer.name}{name_suffix}")
    return clone


def duplicate_layer(
    roots: _abc.Sequence[types.Layer],
    layer_id: str,
) -> tuple[list[types.Layer], types.Layer | None]:
    """
    Duplicate the layer with id ``layer_id``.

    A duplicated root is appended to the roots. Any other layer is inserted
    right after the original, under the same parent.

    Returns:
        Tuple of (new roots, clone). The clone is None and the roots are
        unchanged when ``layer_id`` is not found.
    """
    taken = traversal.collect_ids(roots)

    for root in roots:
        if root.id == layer_id:
            clone = duplicate_with_new_ids(root, taken=taken)
            return [*roots, clone], clone

    original = traversal.find_layer_recursive(roots, layer_id)
    parent = traversal.find_parent_layer(roots, layer_id)
    if original is None or parent is None:
        _logger.warning("Layer with ID %s not found.", layer_id)
        return list(roots), None

    siblings = _typing.cast(tuple[types.Layer, ...], parent.children)
    position = next(i for i, child in enumerate(siblings) if child is original) + 1
    clone = duplicate_with_new_ids(original, taken=taken)
    return add_layer(roots, clone, parent.id, position), clone


def move_layer(
    roots: _abc.Sequence[types.Layer],
    source_id: str,
    target_parent_id: str,
    target_position: int | None = None,
) -> list[types.Layer]:
    """
    Move a subtree under a new parent.

    The moved layer keeps its identity; it is not cloned. The position is
    interpreted like ``add_layer`` after the source has been taken out.

    Returns:
        New root list, or the roots unchanged when the move is not possible.
    """
    source = traversal.find_layer_recursive(roots, source_id)
    if source is None:
        _logger.warning("Cannot move layer %s: layer not found.", source_id)
        return list(roots)
    if any(root.id == source_id for root in roots):
        _logger.warning("Cannot move layer %s: pages cannot be moved.", source_id)
        return list(roots)

    target = traversal.find_layer_recursive(roots, target_parent_id)
    if target is None:
        _logger.warning(
            "Cannot move layer %s: target parent %s not found.", source_id, target_parent_id
        )
        return list(roots)
    if target is source or traversal.find_layer_recursive([source], target_parent_id):
        _logger.warning(
            "Cannot move layer %s into itself or one of its descendants.", source_id
        )
        return list(roots)
    if not accepts_children(target):
        _logger.warning(
            "Cannot move layer %s: target %s has text children.", source_id, target_parent_id
        )
        return list(roots)

    without_source = remove_layer(roots, source_id)
    return add_layer(without_source, source, target_parent_id, target_position)


def _patch(
    layer: types.Layer,
    props_patch: _abc.Mapping[str, types.PropValue],
    fields_patch: _abc.Mapping[str, _typing.Any],
) -> types.Layer:
    return _dataclasses.replace(
        layer,
        props={**layer.props, **props_patch},
        **fields_patch,
    )


def update_layer(
    pages: _abc.Sequence[types.Layer],
    selected_page_id: str,
    layer_id: str,
    props_patch: _abc.Mapping[str, types.PropValue],
    fields_patch: _abc.Mapping[str, _typing.Any] | None = None,
) -> list[types.Layer] | None:
    """
    Shallow-merge props into a layer of the selected page.

    Args:
        pages: Pages of the document.
        selected_page_id: The page whose layers are searched. The page
            itself can be updated by passing its id as ``layer_id``.
        layer_id: Layer to update.
        props_patch: Props merged over the layer's props.
        fields_patch: Other fields to overwrite (``type``, ``name``,
            ``children``).

    Returns:
        New page list, or None when no layer matched.

    Raises:
        ValueError: If ``fields_patch`` names a field that cannot be updated.
    """
    fields = dict(fields_patch or {})
    invalid = set(fields) - UPDATABLE_FIELDS
    if invalid:
        raise ValueError(f"Cannot update layer fields: {', '.join(sorted(invalid))}")

    page = next((p for p in pages if p.id == selected_page_id), None)
    if page is None:
        return None

    if layer_id == selected_page_id:
        updated_page = _patch(page, props_patch, fields)
        return [updated_page if p is page else p for p in pages]

    if not traversal.has_layer_children(page):
        return None

    matched = False

    def apply(layer: types.Layer, _parent: types.Layer | None) -> types.Layer:
        nonlocal matched
        if layer.id != layer_id:
            return layer
        matched = True
        return _patch(layer, props_patch, fields)

    updated_page = traversal.visit_layer(page, None, apply)
    if not matched:
        return None
    return [updated_page if p is page else p for p in pages]


def create_component_layer(
    layer_type: str,
    registry: components.ComponentRegistry,
    *,
    layer_id: str | None = None,
    name: str | None = None,
    apply_variable_bindings: bool = False,
    variables: _abc.Iterable[types.Variable] = (),
) -> types.Layer:
    """
    Create a new layer of ``layer_type`` from its registry definition.

    Props start from the schema defaults (a ``children`` field is left to
    the children slot). Default child layers are cloned with fresh ids.

    Args:
        layer_type: Component registry key.
        registry: Component registry to read the definition from.
        layer_id: Explicit id (generated when omitted).
        name: Explicit name (defaults to ``layer_type``).
        apply_variable_bindings: Bind props listed in the definition's
            default variable bindings, for variables that exist.
        variables: Variables of the document.

    Raises:
        UnknownComponentTypeError: If ``layer_type`` is not registered.
    """
    definition = registry.get_or_raise(layer_type)

    props: dict[str, types.PropValue] = {
        key: value
        for key, value in registry.get_default_props(layer_type).items()
        if key != "children"
    }

    children: types.Children
    default_children = definition.default_children
    if isinstance(default_children, (str, types.VariableReference)):
        children = default_children
    elif default_children:
        taken = traversal.collect_ids(default_children)
        children = tuple(_clone_with_new_ids(child, taken) for child in default_children)
    else:
        children = ()

    if apply_variable_bindings:
        known = {variable.id for variable in variables}
        for binding in definition.default_variable_bindings:
            if binding.variable_id in known:
                props[binding.prop_name] = types.VariableReference(binding.variable_id)

    return types.Layer(
        id=layer_id or ids.create_id(),
        type=layer_type,
        name=name or layer_type,
        props=props,
        children=children,
    )
