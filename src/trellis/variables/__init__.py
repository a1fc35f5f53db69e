"""
Variable binding resolution.

Turns props holding variable references into concrete values for a
renderer.
"""

from trellis.variables.resolver import (
    resolve_children_variable_reference,
    resolve_reference,
    resolve_variable_references,
)

__all__ = [
    "resolve_children_variable_reference",
    "resolve_reference",
    "resolve_variable_references",
]
