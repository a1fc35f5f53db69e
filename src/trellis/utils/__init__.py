"""
Utility functions for Trellis.

General-purpose helpers that don't belong to a specific domain.
"""

from trellis.utils.merge import deep_merge

__all__ = ["deep_merge"]
