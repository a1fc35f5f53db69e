"""
Trellis - Layer-Tree Document Engine

The document model behind a visual UI builder: a tree of typed component
layers, variable bindings, undo/redo history and versioned persistence.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("trellis")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)
__author__ = "Trellis Contributors"

from trellis.config import Settings  # noqa: E402
from trellis.layers import Layer, Variable, VariableReference  # noqa: E402
from trellis.registry import ComponentDefinition, ComponentRegistry, FunctionRegistry  # noqa: E402
from trellis.store import DocumentManager, DocumentState, DocumentStore  # noqa: E402

__all__ = [
    "__version__",
    "__version_info__",
    "ComponentDefinition",
    "ComponentRegistry",
    "DocumentManager",
    "DocumentState",
    "DocumentStore",
    "FunctionRegistry",
    "Layer",
    "Settings",
    "Variable",
    "VariableReference",
]
