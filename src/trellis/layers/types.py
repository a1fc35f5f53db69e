"""
Layer tree data model.

Layers, variables and variable references are frozen dataclasses. A layer is
never changed in place: mutations build a new layer with
``dataclasses.replace`` and share every untouched subtree by reference.

The persisted form is a tree of plain dicts using the camelCase keys of the
document format. Variable references are stored there as
``{"__variableRef": "<variable id>"}``; they are decoded into
``VariableReference`` objects once, when a document is loaded, and encoded
back when it is saved. Nothing past the codec looks for the reserved key.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import typing as _typing

import trellis.constants as constants

VariableType = _typing.Literal["string", "number", "boolean", "function"]

VARIABLE_TYPES: tuple[str, ...] = ("string", "number", "boolean", "function")
"""Valid values for ``Variable.type``."""


@_dataclasses.dataclass(frozen=True, slots=True)
class VariableReference:
    """A prop value (or text children) that points at a Variable by id."""

    variable_id: str

    def to_dict(self) -> dict[str, str]:
        """Convert to the persisted marker form."""
        return {constants.VARIABLE_REF_KEY: self.variable_id}


PropValue = (
    str
    | int
    | float
    | bool
    | None
    | VariableReference
    | dict[str, _typing.Any]
    | list[_typing.Any]
    | _abc.Callable[..., _typing.Any]
)
"""A prop value: literal, variable reference, nested map or sequence.

Callables only appear in resolved props handed to a renderer; they are
never persisted.
"""

Children = _typing.Union["tuple[Layer, ...]", str, VariableReference, None]


@_dataclasses.dataclass(frozen=True, slots=True)
class Layer:
    """
    A node in the document tree.

    Attributes:
        id: Unique id within the document.
        type: Component registry key.
        props: Prop values keyed by prop name. Treat as read-only.
        children: Child layers, text content, a variable supplying the text,
            or None for a layer without children.
        name: Human readable label.
    """

    id: str
    type: str
    props: dict[str, PropValue] = _dataclasses.field(default_factory=dict)
    children: Children = None
    name: str | None = None

    def __post_init__(self) -> None:
        # Accept any sequence of layers; store a tuple
        if isinstance(self.children, list):
            object.__setattr__(self, "children", tuple(self.children))

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to the persisted dict form."""
        d: dict[str, _typing.Any] = {
            "id": self.id,
            "type": self.type,
        }
        if self.name is not None:
            d["name"] = self.name
        d["props"] = encode_props(self.props)
        if isinstance(self.children, tuple):
            d["children"] = [child.to_dict() for child in self.children]
        elif isinstance(self.children, VariableReference):
            d["children"] = self.children.to_dict()
        elif self.children is not None:
            d["children"] = self.children
        return d

    @classmethod
    def from_dict(cls, data: _abc.Mapping[str, _typing.Any]) -> Layer:
        """Create from the persisted dict form."""
        return cls(
            id=data["id"],
            type=data["type"],
            name=data.get("name"),
            props=decode_props(data.get("props") or {}),
            children=decode_children(data.get("children")),
        )


@_dataclasses.dataclass(frozen=True, slots=True)
class Variable:
    """
    A named, typed value that layer props can reference.

    For ``type == "function"`` the default value is the key of an entry in
    the function registry, not a callable.
    """

    id: str
    name: str
    type: VariableType
    default_value: _typing.Any = None

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to the persisted dict form."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "defaultValue": self.default_value,
        }

    @classmethod
    def from_dict(cls, data: _abc.Mapping[str, _typing.Any]) -> Variable:
        """Create from the persisted dict form."""
        return cls(
            id=data["id"],
            name=data["name"],
            type=data["type"],
            default_value=data.get("defaultValue"),
        )


# =============================================================================
# Codec
# =============================================================================


def is_variable_reference_dict(value: _typing.Any) -> bool:
    """Check whether a raw persisted value is a variable reference marker."""
    return isinstance(value, _abc.Mapping) and constants.VARIABLE_REF_KEY in value


def decode_prop_value(value: _typing.Any) -> PropValue:
    """Decode one persisted prop value.

    Reference markers become ``VariableReference`` and nested maps are
    decoded recursively. Sequences are kept as they are.
    """
    if is_variable_reference_dict(value):
        return VariableReference(str(value[constants.VARIABLE_REF_KEY]))
    if isinstance(value, _abc.Mapping):
        return {key: decode_prop_value(item) for key, item in value.items()}
    return value


def decode_props(props: _abc.Mapping[str, _typing.Any]) -> dict[str, PropValue]:
    """Decode a persisted props map."""
    return {key: decode_prop_value(value) for key, value in props.items()}


def decode_children(children: _typing.Any) -> Children:
    """Decode persisted children: a layer list, text, a reference or absent."""
    if children is None:
        return None
    if is_variable_reference_dict(children):
        return VariableReference(str(children[constants.VARIABLE_REF_KEY]))
    if isinstance(children, str):
        return children
    return tuple(Layer.from_dict(child) for child in children)


_STRIPPED = object()


def _encode_value(value: _typing.Any) -> _typing.Any:
    if isinstance(value, VariableReference):
        return value.to_dict()
    if callable(value):
        return _STRIPPED
    if isinstance(value, _abc.Mapping):
        return _encode_mapping(value)
    if isinstance(value, (list, tuple)):
        return [
            encoded for encoded in (_encode_value(item) for item in value)
            if encoded is not _STRIPPED
        ]
    return value


def _encode_mapping(mapping: _abc.Mapping[str, _typing.Any]) -> dict[str, _typing.Any]:
    encoded: dict[str, _typing.Any] = {}
    for key, value in mapping.items():
        item = _encode_value(value)
        if item is not _STRIPPED:
            encoded[key] = item
    return encoded


def encode_props(props: _abc.Mapping[str, PropValue]) -> dict[str, _typing.Any]:
    """Encode props for persistence.

    References become marker dicts and callables are dropped, at any depth.
    """
    return _encode_mapping(props)
