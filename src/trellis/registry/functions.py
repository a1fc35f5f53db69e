"""
Function registry.

Function-type variables and ``__function_<prop>`` metadata props store the
id of a registry entry rather than a callable. The variable resolver looks
the callable up here at render time.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import typing as _typing

import pydantic as _pydantic


@_dataclasses.dataclass(frozen=True)
class FunctionDefinition:
    """A callable that layer props can refer to by id."""

    name: str
    fn: _abc.Callable[..., _typing.Any]
    schema: type[_pydantic.BaseModel] | None = None
    """Arguments the callable expects, if declared."""
    description: str = ""


class FunctionRegistry(_abc.Mapping[str, FunctionDefinition]):
    """
    Read-mostly mapping of function id to definition.

    Any ``Mapping[str, FunctionDefinition]`` works with the resolver; this
    class adds registration with duplicate detection.
    """

    def __init__(
        self,
        definitions: _abc.Mapping[str, FunctionDefinition] | None = None,
    ) -> None:
        self._definitions: dict[str, FunctionDefinition] = dict(definitions or {})

    def register(
        self,
        function_id: str,
        fn: _abc.Callable[..., _typing.Any],
        *,
        name: str | None = None,
        schema: type[_pydantic.BaseModel] | None = None,
        description: str = "",
    ) -> FunctionDefinition:
        """
        Register a callable under ``function_id``.

        Raises:
            ValueError: If the id is already registered.
        """
        if function_id in self._definitions:
            raise ValueError(f"Function '{function_id}' is already registered")
        definition = FunctionDefinition(
            name=name or function_id,
            fn=fn,
            schema=schema,
            description=description,
        )
        self._definitions[function_id] = definition
        return definition

    def __getitem__(self, function_id: str) -> FunctionDefinition:
        return self._definitions[function_id]

    def __iter__(self) -> _typing.Iterator[str]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)
