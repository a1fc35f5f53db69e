"""
Component registry loading from YAML.

A registry file maps component types to their prop declarations:

    components:
      Button:
        description: A clickable button
        props:
          label: {type: string, default: "Click me"}
          disabled: {type: boolean, default: false}
          variant: {type: string, default: default, choices: [default, outline]}
        default_children: "Button"
        default_variable_bindings:
          - {prop_name: label, variable_id: button-text, immutable: true}

Each component's props become a pydantic model built with
``pydantic.create_model``. ``default_children`` is either text or a list of
layers in the persisted document format.
"""

from __future__ import annotations

import keyword as _keyword
import pathlib as _pathlib
import re as _re
import typing as _typing

import pydantic as _pydantic
import yaml as _yaml

import trellis.errors as errors
import trellis.layers.types as types
import trellis.registry.components as components

# Prop type names accepted in registry files
_PROP_TYPES: dict[str, _typing.Any] = {
    "string": str,
    "number": float,
    "integer": int,
    "boolean": bool,
    "object": dict[str, _typing.Any],
    "array": list[_typing.Any],
    "any": _typing.Any,
}


class PropSpec(_pydantic.BaseModel):
    """Declaration of one prop in a registry file."""

    model_config = _pydantic.ConfigDict(extra="forbid")

    type: _typing.Literal["string", "number", "integer", "boolean", "object", "array", "any"] = "any"
    default: _typing.Any = _pydantic.Field(default=None, description="Omit for required props")
    choices: list[_typing.Any] | None = None
    description: str = ""

    def is_required(self) -> bool:
        """A prop without a default is required."""
        return "default" not in self.model_fields_set


class BindingSpec(_pydantic.BaseModel):
    """Declaration of a default variable binding."""

    model_config = _pydantic.ConfigDict(extra="forbid")

    prop_name: str = _pydantic.Field(..., min_length=1)
    variable_id: str = _pydantic.Field(..., min_length=1)
    immutable: bool = False


class ComponentSpec(_pydantic.BaseModel):
    """Declaration of one component in a registry file."""

    model_config = _pydantic.ConfigDict(extra="forbid")

    description: str = ""
    props: dict[str, PropSpec] = _pydantic.Field(default_factory=dict)
    default_children: str | list[dict[str, _typing.Any]] | None = None
    default_variable_bindings: list[BindingSpec] = _pydantic.Field(default_factory=list)


class RegistryFile(_pydantic.BaseModel):
    """Top level of a registry file."""

    model_config = _pydantic.ConfigDict(extra="forbid")

    components: dict[str, ComponentSpec] = _pydantic.Field(default_factory=dict)


def _field_name(prop_name: str) -> str:
    """Turn a prop name into a valid pydantic field name."""
    name = _re.sub(r"\W", "_", prop_name)
    if not name or name[0].isdigit() or name.startswith("_") or _keyword.iskeyword(name):
        name = f"prop_{name.lstrip('_')}"
    return name


def build_schema(layer_type: str, props: dict[str, PropSpec]) -> type[_pydantic.BaseModel]:
    """Build a pydantic model for a component's props."""
    fields: dict[str, _typing.Any] = {}
    for prop_name, spec in props.items():
        annotation = _PROP_TYPES[spec.type]
        if spec.choices:
            annotation = _typing.Literal[tuple(spec.choices)]
        field_name = _field_name(prop_name)
        fields[field_name] = (
            annotation,
            _pydantic.Field(
                default=... if spec.is_required() else spec.default,
                alias=prop_name if field_name != prop_name else None,
                description=spec.description or None,
            ),
        )
    model_name = f"{_re.sub(r'[^0-9A-Za-z]', '', layer_type) or 'Component'}Props"
    return _pydantic.create_model(model_name, **fields)


def build_definition(layer_type: str, spec: ComponentSpec) -> components.ComponentDefinition:
    """Turn a parsed component declaration into a registry definition."""
    default_children: tuple[types.Layer, ...] | str | None
    if isinstance(spec.default_children, list):
        default_children = tuple(types.Layer.from_dict(child) for child in spec.default_children)
    else:
        default_children = spec.default_children

    return components.ComponentDefinition(
        schema=build_schema(layer_type, spec.props),
        default_children=default_children,
        default_variable_bindings=[
            components.VariableBinding(
                prop_name=binding.prop_name,
                variable_id=binding.variable_id,
                immutable=binding.immutable,
            )
            for binding in spec.default_variable_bindings
        ],
        description=spec.description,
    )


def parse_component_registry(
    data: _typing.Any,
    registry: components.ComponentRegistry | None = None,
) -> components.ComponentRegistry:
    """
    Build a registry from already-parsed registry file content.

    Args:
        data: Parsed YAML (or JSON) content.
        registry: Registry to add to. A new one is created when omitted.

    Raises:
        pydantic.ValidationError: If the content does not match the format.
        ValueError: If a component type is already registered.
    """
    parsed = RegistryFile.model_validate(data or {})
    if registry is None:
        registry = components.ComponentRegistry()
    for layer_type, spec in parsed.components.items():
        registry.register(layer_type, build_definition(layer_type, spec))
    return registry


def load_component_registry(
    path: _pathlib.Path | str,
    registry: components.ComponentRegistry | None = None,
) -> components.ComponentRegistry:
    """
    Load a component registry from a YAML file.

    Raises:
        RegistryFileError: If the file cannot be read, is malformed YAML,
            or does not match the registry format.
    """
    path = _pathlib.Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise errors.RegistryFileError(path, f"cannot read file: {e}") from e

    try:
        data = _yaml.safe_load(content)
    except _yaml.YAMLError as e:
        raise errors.RegistryFileError(path, f"invalid YAML: {e}") from e

    if data is not None and not isinstance(data, dict):
        raise errors.RegistryFileError(
            path, f"registry must be a YAML mapping (dict), got {type(data).__name__}"
        )

    try:
        return parse_component_registry(data, registry)
    except (_pydantic.ValidationError, ValueError, KeyError) as e:
        raise errors.RegistryFileError(path, str(e)) from e
