"""
CLI module for Trellis.

Provides the command-line interface using Click.
"""

from trellis.cli.main import cli, main

__all__ = ["main", "cli"]
