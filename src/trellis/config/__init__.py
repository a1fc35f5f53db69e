"""
Configuration module for Trellis.

Uses pydantic-settings for environment variable loading.
"""

from trellis.config.settings import Settings, find_project_root
from trellis.config.sources import ConfigFileError

__all__ = ["ConfigFileError", "Settings", "find_project_root"]
