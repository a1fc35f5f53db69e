"""Configuration section types for Trellis settings.

Each section is a Pydantic model nested in ``Settings``:

- HistoryConfig: undo depth
- PersistenceConfig: where documents are stored
- LoggingConfig: change journal and log level
- RegistryConfig: component registry file

All types use ``extra="allow"`` so unknown keys are kept rather than
dropped. ``collect_all_extra_fields()`` reports them, which catches typos
in config files.
"""

import typing as _typing

import pydantic as _pydantic

# =============================================================================
# Base class with introspection
# =============================================================================


class ConfigBase(_pydantic.BaseModel):
    """
    Base class for all config sections.

    Unknown fields are preserved so they can be audited.
    """

    model_config = _pydantic.ConfigDict(extra="allow")

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Return fields that were provided but are not in the schema."""
        return dict(self.model_extra) if self.model_extra else {}

    def has_extra_fields(self) -> bool:
        """Check if this section has any unrecognized fields."""
        return bool(self.model_extra)

    def collect_all_extra_fields(
        self,
        prefix: str = "",
    ) -> dict[str, _typing.Any]:
        """
        Recursively collect extra fields from this section and nested ones.

        Returns a flat dict keyed by dotted path, e.g.
        ``{"history.limt": 50}``.
        """
        result: dict[str, _typing.Any] = {}

        for key, value in self.get_extra_fields().items():
            path = f"{prefix}.{key}" if prefix else key
            result[path] = value

        for field_name in self.__class__.model_fields:
            value = getattr(self, field_name, None)
            if isinstance(value, ConfigBase):
                child_prefix = f"{prefix}.{field_name}" if prefix else field_name
                result.update(value.collect_all_extra_fields(child_prefix))

        return result


# =============================================================================
# History Settings
# =============================================================================


class HistoryConfig(ConfigBase):
    """
    Undo/redo settings.

    YAML section: history.*
    """

    limit: int | None = _pydantic.Field(default=None, ge=1)
    """Maximum undo depth. None keeps every change."""


# =============================================================================
# Persistence Settings
# =============================================================================


class PersistenceConfig(ConfigBase):
    """
    Document storage settings.

    YAML section: persistence.*
    """

    enabled: bool = True
    """Read and write documents on disk."""

    dir: str | None = None
    """Documents directory. None = <config dir>/documents."""


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingConfig(ConfigBase):
    """
    Logging settings.

    YAML section: logging.*
    """

    enabled: bool = False
    """Write a change journal of committed store mutations."""

    dir: str | None = None
    """Journal directory. None = use default."""

    level: _typing.Literal["debug", "info", "warning", "error"] = "warning"
    """Log level for the trellis loggers."""

    private: bool = True
    """Lock journal directory to owner-only (drwx------)."""


# =============================================================================
# Registry Settings
# =============================================================================


class RegistryConfig(ConfigBase):
    """
    Component registry settings.

    YAML section: registry.*
    """

    components_file: str | None = None
    """YAML component registry. Relative paths resolve against the project root."""
