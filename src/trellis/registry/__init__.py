"""
Component and function registries.

The document engine consumes these catalogs only for prop defaults,
declared-prop checks and function lookups. It never renders components.
"""

from trellis.registry.components import (
    ComponentDefinition,
    ComponentRegistry,
    VariableBinding,
)
from trellis.registry.functions import FunctionDefinition, FunctionRegistry
from trellis.registry.loader import (
    build_schema,
    load_component_registry,
    parse_component_registry,
)

__all__ = [
    "ComponentDefinition",
    "ComponentRegistry",
    "FunctionDefinition",
    "FunctionRegistry",
    "VariableBinding",
    "build_schema",
    "load_component_registry",
    "parse_component_registry",
]
