"""
Component registry.

Maps a layer ``type`` to its definition: a pydantic model describing the
component's props, optional default children and optional default variable
bindings. The document engine never renders; it only asks the registry
which props a type declares and what their defaults are.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import typing as _typing

import pydantic as _pydantic

import trellis.errors as errors
import trellis.layers.types as types


@_dataclasses.dataclass(frozen=True)
class VariableBinding:
    """A prop that new layers of a component bind to a variable."""

    prop_name: str
    variable_id: str
    immutable: bool = False
    """Whether users may unbind the prop."""


@_dataclasses.dataclass
class ComponentDefinition:
    """
    Registry entry for one component type.

    Attributes:
        schema: Pydantic model whose fields are the component's props.
            None for components without declared props.
        default_children: Children given to new layers: child layers,
            text, or a variable reference.
        default_variable_bindings: Props bound to variables on creation.
        description: Human readable description.
    """

    schema: type[_pydantic.BaseModel] | None = None
    default_children: tuple[types.Layer, ...] | str | types.VariableReference | None = None
    default_variable_bindings: list[VariableBinding] = _dataclasses.field(default_factory=list)
    description: str = ""

    def __post_init__(self) -> None:
        if isinstance(self.default_children, list):
            self.default_children = tuple(self.default_children)

    def _fields(self) -> dict[str, _typing.Any]:
        """Declared fields keyed by prop name (alias when set)."""
        if self.schema is None:
            return {}
        return {
            info.alias or name: info for name, info in self.schema.model_fields.items()
        }

    def field_names(self) -> frozenset[str]:
        """Names of all declared props."""
        return frozenset(self._fields())

    def has_field(self, field_name: str) -> bool:
        """Check whether the component declares a prop."""
        return field_name in self._fields()

    def default_props(self) -> dict[str, _typing.Any]:
        """Defaults for every declared prop that has one."""
        defaults: dict[str, _typing.Any] = {}
        for prop_name, info in self._fields().items():
            if info.is_required():
                continue
            defaults[prop_name] = info.get_default(call_default_factory=True)
        return defaults


class ComponentRegistry:
    """
    Registry of component definitions keyed by layer type.

    Lookups for unknown types are not errors: ``has_field`` answers False
    and ``get_default_props`` returns an empty dict. Only ``get_or_raise``
    raises.
    """

    def __init__(
        self,
        definitions: _abc.Mapping[str, ComponentDefinition] | None = None,
    ) -> None:
        self._definitions: dict[str, ComponentDefinition] = dict(definitions or {})

    def register(
        self,
        layer_type: str,
        definition: ComponentDefinition,
        *,
        replace: bool = False,
    ) -> None:
        """
        Register a component definition.

        Args:
            layer_type: Layer type the definition applies to.
            definition: The definition.
            replace: Overwrite an existing definition instead of raising.

        Raises:
            ValueError: If the type is already registered and ``replace``
                is False.
        """
        if layer_type in self._definitions and not replace:
            raise ValueError(f"Component type '{layer_type}' is already registered")
        self._definitions[layer_type] = definition

    def get(self, layer_type: str) -> ComponentDefinition | None:
        """Get a definition, or None for unknown types."""
        return self._definitions.get(layer_type)

    def get_or_raise(self, layer_type: str) -> ComponentDefinition:
        """
        Get a definition, raising for unknown types.

        Raises:
            UnknownComponentTypeError: If the type is not registered.
        """
        definition = self._definitions.get(layer_type)
        if definition is None:
            raise errors.UnknownComponentTypeError(layer_type, self.list_types())
        return definition

    def has_field(self, layer_type: str, field_name: str) -> bool:
        """Check whether ``layer_type`` declares the prop ``field_name``."""
        definition = self._definitions.get(layer_type)
        return definition is not None and definition.has_field(field_name)

    def get_default_props(self, layer_type: str) -> dict[str, _typing.Any]:
        """Get schema defaults for a type (empty for unknown types)."""
        definition = self._definitions.get(layer_type)
        if definition is None:
            return {}
        return definition.default_props()

    def get_default_value(self, layer_type: str, field_name: str) -> tuple[bool, _typing.Any]:
        """
        Look up the schema default of one prop.

        Returns:
            Tuple of (found, value). ``found`` is False when the type is
            unknown, the prop is not declared, or it has no default.
        """
        if not self.has_field(layer_type, field_name):
            return False, None
        defaults = self.get_default_props(layer_type)
        if field_name not in defaults:
            return False, None
        return True, defaults[field_name]

    def list_types(self) -> list[str]:
        """List registered types, sorted."""
        return sorted(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, layer_type: object) -> bool:
        return layer_type in self._definitions

    def __iter__(self) -> _typing.Iterator[str]:
        return iter(self.list_types())
