"""
Variable resolution for rendering.

Layer props may hold ``VariableReference`` values instead of literals. The
resolver swaps each reference for a concrete value: an override supplied by
the caller, the variable's default, or, for function-type variables, the
callable registered in the function registry.

A broken reference never raises. It resolves to None (or an empty string
for text children) and a warning is logged, so one bad binding degrades a
single rendered value instead of the whole tree.
"""

from __future__ import annotations

import collections.abc as _abc
import logging as _logging
import typing as _typing

import trellis.constants as constants
import trellis.layers.types as types
import trellis.registry.functions as functions

_logger = _logging.getLogger(__name__)

FunctionLookup = _abc.Mapping[str, functions.FunctionDefinition]


def _find_variable(
    variables: _abc.Iterable[types.Variable],
    variable_id: str,
) -> types.Variable | None:
    return next((v for v in variables if v.id == variable_id), None)


def _lookup_function(
    function_id: str,
    function_registry: FunctionLookup | None,
    context: str,
) -> _abc.Callable[..., _typing.Any] | None:
    if function_registry is None:
        _logger.warning("No function registry provided to resolve %s", context)
        return None
    definition = function_registry.get(function_id)
    if definition is None:
        _logger.warning('Function "%s" not found in function registry (%s)', function_id, context)
        return None
    return definition.fn


def _override_or_default(
    variable: types.Variable,
    override_values: _abc.Mapping[str, _typing.Any] | None,
) -> _typing.Any:
    if override_values is not None:
        value = override_values.get(variable.id)
        if value is not None:
            return value
    return variable.default_value


def resolve_reference(
    reference: types.VariableReference,
    variables: _abc.Sequence[types.Variable],
    override_values: _abc.Mapping[str, _typing.Any] | None = None,
    function_registry: FunctionLookup | None = None,
) -> _typing.Any:
    """Resolve a single variable reference to its value (None if unknown)."""
    variable = _find_variable(variables, reference.variable_id)
    if variable is None:
        _logger.warning("Variable %s not found", reference.variable_id)
        return None
    if variable.type == "function":
        return _lookup_function(
            str(variable.default_value),
            function_registry,
            f"variable '{variable.name}'",
        )
    return _override_or_default(variable, override_values)


def resolve_variable_references(
    props: _abc.Mapping[str, _typing.Any],
    variables: _abc.Sequence[types.Variable],
    override_values: _abc.Mapping[str, _typing.Any] | None = None,
    function_registry: FunctionLookup | None = None,
) -> dict[str, _typing.Any]:
    """
    Resolve variable references in a props map.

    Rules, per entry:
    - A ``VariableReference`` becomes the override value for its variable,
      else the variable's default. Function-type variables become the
      registered callable. Unknown variables and missing functions give None.
    - Nested maps are resolved recursively.
    - Everything else, lists included, is passed through untouched.
    - A ``__function_<name>`` key is always dropped. When its value is a
      function id, ``<name>`` is set to the callable it names, taking
      precedence over a literal ``<name>``.

    Args:
        props: Props to resolve (not modified).
        variables: Variables of the document.
        override_values: Values by variable id that replace defaults.
        function_registry: Function id to definition mapping.

    Returns:
        A new dict with references resolved.
    """
    resolved: dict[str, _typing.Any] = {}
    function_props: dict[str, _typing.Any] = {}

    for key, value in props.items():
        if key.startswith(constants.FUNCTION_PROP_PREFIX):
            if isinstance(value, str):
                prop_name = key[len(constants.FUNCTION_PROP_PREFIX):]
                function_props[prop_name] = _lookup_function(
                    value, function_registry, f"prop '{prop_name}'"
                )
            continue

        if isinstance(value, types.VariableReference):
            resolved[key] = resolve_reference(
                value, variables, override_values, function_registry
            )
        elif isinstance(value, _abc.Mapping):
            resolved[key] = resolve_variable_references(
                value, variables, override_values, function_registry
            )
        else:
            resolved[key] = value

    resolved.update(function_props)
    return resolved


def _stringify(value: _typing.Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def resolve_children_variable_reference(
    children: types.Children,
    variables: _abc.Sequence[types.Variable],
    override_values: _abc.Mapping[str, _typing.Any] | None = None,
) -> types.Children:
    """
    Resolve a layer's children when they are a variable reference.

    The resolved value is always returned as text: numbers and booleans are
    stringified and an unknown variable gives an empty string. Text and
    child layers are returned unchanged.
    """
    if not isinstance(children, types.VariableReference):
        return children
    variable = _find_variable(variables, children.variable_id)
    if variable is None:
        _logger.warning("Variable %s not found for children", children.variable_id)
        return ""
    return _stringify(_override_or_default(variable, override_values))
