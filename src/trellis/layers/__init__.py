"""
Layer tree model and algorithms.

Layers are immutable; the traversal and mutation functions here return new
trees that share every unchanged subtree with their input.
"""

from trellis.layers.ids import create_id, create_unique_id
from trellis.layers.mutations import (
    accepts_children,
    add_layer,
    create_component_layer,
    duplicate_layer,
    duplicate_with_new_ids,
    move_layer,
    remove_layer,
    update_layer,
)
from trellis.layers.traversal import (
    collect_ids,
    count_layers,
    find_all_parent_layers_recursive,
    find_layer_recursive,
    find_parent_layer,
    has_layer_children,
    iter_layers,
    visit_layer,
)
from trellis.layers.types import (
    VARIABLE_TYPES,
    Layer,
    PropValue,
    Variable,
    VariableReference,
    VariableType,
    decode_prop_value,
    decode_props,
    encode_props,
)

__all__ = [
    "VARIABLE_TYPES",
    "Layer",
    "PropValue",
    "Variable",
    "VariableReference",
    "VariableType",
    "accepts_children",
    "add_layer",
    "collect_ids",
    "count_layers",
    "create_component_layer",
    "create_id",
    "create_unique_id",
    "decode_prop_value",
    "decode_props",
    "duplicate_layer",
    "duplicate_with_new_ids",
    "encode_props",
    "find_all_parent_layers_recursive",
    "find_layer_recursive",
    "find_parent_layer",
    "has_layer_children",
    "iter_layers",
    "move_layer",
    "remove_layer",
    "update_layer",
    "visit_layer",
]
