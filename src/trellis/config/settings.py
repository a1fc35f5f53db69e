"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with TRELLIS_ prefix
3. .env file (if present)
4. Layered YAML config files:
   - Project config: .trellis/config.yaml (highest)
   - User config: ~/.config/trellis/config.yaml
5. Field defaults (lowest)

Nested config uses double underscore delimiter:
  TRELLIS_HISTORY__LIMIT=100
  TRELLIS_PERSISTENCE__DIR=/srv/documents
"""

import getpass as _getpass
import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import trellis.config.sources as sources
import trellis.config.types as types
import trellis.registry.components as components
import trellis.registry.loader as loader

# Files and directories that mark a project root
_PROJECT_MARKERS = (sources.PROJECT_DIR_NAME, ".git", "pyproject.toml")


def _get_env_file() -> str | None:
    """Determine which .env file to load.

    TRELLIS_ENV_FILE names the file explicitly; otherwise no .env is loaded
    and configuration comes from the environment and YAML files.
    """
    if env_file := _os.environ.get("TRELLIS_ENV_FILE"):
        if _pathlib.Path(env_file).exists():
            return env_file
    return None


def _get_username() -> str:
    """Get the current username for directory naming."""
    try:
        return _getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


def find_project_root(start_path: _pathlib.Path | None = None) -> _pathlib.Path:
    """
    Find the project root directory.

    Walks up from ``start_path`` (default: cwd) looking for a ``.trellis``
    directory, a git checkout or a ``pyproject.toml``. Falls back to the
    starting directory.
    """
    start = (start_path or _pathlib.Path.cwd()).resolve()
    current = start
    while current != current.parent:
        if any((current / marker).exists() for marker in _PROJECT_MARKERS):
            return current
        current = current.parent
    return start


class Settings(_pydantic_settings.BaseSettings):
    """
    Trellis configuration settings.

    All settings can be overridden via environment variables with TRELLIS_ prefix.
    For nested config, use double underscore: TRELLIS_HISTORY__LIMIT=100

    Config precedence (highest to lowest):
    1. Constructor arguments
    2. Environment variables (TRELLIS_*)
    3. .env file
    4. Project config (.trellis/config.yaml)
    5. User config (~/.config/trellis/config.yaml)
    6. Field defaults
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="TRELLIS_",
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",  # TRELLIS_HISTORY__LIMIT
        extra="allow",  # Preserve unknown fields for config auditing
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[_pydantic_settings.BaseSettings],
        init_settings: _pydantic_settings.PydanticBaseSettingsSource,
        env_settings: _pydantic_settings.PydanticBaseSettingsSource,
        dotenv_settings: _pydantic_settings.PydanticBaseSettingsSource,
        file_secret_settings: _pydantic_settings.PydanticBaseSettingsSource,
    ) -> tuple[_pydantic_settings.PydanticBaseSettingsSource, ...]:
        """
        Configure settings sources with precedence:
        1. init_settings (constructor args), highest
        2. env_settings (TRELLIS_* env vars)
        3. dotenv_settings (.env file)
        4. yaml_settings (project and user config.yaml)
        5. defaults via Field definitions, lowest
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            sources.LayeredYamlSettingsSource(settings_cls, find_project_root()),
            file_secret_settings,
        )

    @classmethod
    def construct_without_dotenv(cls, **kwargs: _typing.Any) -> "Settings":
        """Create Settings without loading a .env file.

        Useful for test isolation and for reproducing issues without .env
        interference.
        """
        return cls(_env_file=None, **kwargs)  # type: ignore[call-arg]

    # =========================================================================
    # Nested config sections
    # =========================================================================

    history: types.HistoryConfig = _pydantic.Field(default_factory=types.HistoryConfig)
    """Undo/redo settings."""

    persistence: types.PersistenceConfig = _pydantic.Field(
        default_factory=types.PersistenceConfig
    )
    """Document storage settings."""

    logging: types.LoggingConfig = _pydantic.Field(default_factory=types.LoggingConfig)
    """Logging settings."""

    registry: types.RegistryConfig = _pydantic.Field(default_factory=types.RegistryConfig)
    """Component registry settings."""

    # =========================================================================
    # Directory settings (computed at runtime)
    # =========================================================================

    @property
    def config_dir(self) -> _pathlib.Path:
        """User configuration directory (~/.config/trellis/)."""
        return sources.get_user_config_dir()

    @property
    def project_root(self) -> _pathlib.Path:
        """Project root directory."""
        return find_project_root()

    @property
    def documents_dir(self) -> _pathlib.Path:
        """Directory for persisted documents."""
        if self.persistence.dir:
            return _pathlib.Path(self.persistence.dir).expanduser()
        return self.config_dir / "documents"

    @property
    def logs_dir(self) -> _pathlib.Path:
        """Directory for change journal files.

        Default: /tmp/trellis-logs-{username}
        The username suffix prevents accidental log sharing in multi-user systems.
        """
        if self.logging.dir:
            return _pathlib.Path(self.logging.dir).expanduser()
        username = _get_username()
        return _pathlib.Path(f"/tmp/trellis-logs-{username}")

    @property
    def components_file(self) -> _pathlib.Path | None:
        """Component registry file, resolved against the project root."""
        if not self.registry.components_file:
            return None
        path = _pathlib.Path(self.registry.components_file).expanduser()
        if not path.is_absolute():
            path = self.project_root / path
        return path

    # =========================================================================
    # Helper methods
    # =========================================================================

    def load_component_registry(self) -> components.ComponentRegistry:
        """
        Load the configured component registry.

        Returns an empty registry when no file is configured.

        Raises:
            RegistryFileError: If the configured file cannot be loaded.
        """
        path = self.components_file
        if path is None:
            return components.ComponentRegistry()
        return loader.load_component_registry(path)

    # =========================================================================
    # Introspection (for config auditing)
    # =========================================================================

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Get unknown fields at the top level of Settings."""
        return dict(self.model_extra) if self.model_extra else {}

    def collect_all_extra_fields(self) -> dict[str, _typing.Any]:
        """
        Recursively collect all unknown fields from Settings and its sections.

        Returns a flat dict with dotted paths as keys, e.g.
        ``{"histroy": {...}, "logging.levl": "debug"}``.
        """
        result: dict[str, _typing.Any] = dict(self.get_extra_fields())
        for field_name in ["history", "persistence", "logging", "registry"]:
            nested = getattr(self, field_name, None)
            if isinstance(nested, types.ConfigBase):
                result.update(nested.collect_all_extra_fields(prefix=field_name))
        return result

    def has_extra_fields(self) -> bool:
        """Check if there are any unknown fields anywhere in the config."""
        return bool(self.collect_all_extra_fields())

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert settings to dictionary (for JSON output)."""
        components_file = self.components_file
        return {
            "config_dir": str(self.config_dir),
            "project_root": str(self.project_root),
            "history_limit": self.history.limit,
            "persistence_enabled": self.persistence.enabled,
            "documents_dir": str(self.documents_dir),
            "log_changes": self.logging.enabled,
            "log_dir": str(self.logs_dir),
            "log_dir_private": self.logging.private,
            "log_level": self.logging.level,
            "components_file": str(components_file) if components_file else None,
        }
