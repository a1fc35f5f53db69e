"""
Shared constants for Trellis.

This module provides a single source of truth for values that are used
across the layer model, the store and the migration pipeline.
"""

# Identifier generation
ID_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
"""Alphabet used for generated layer and variable ids."""

ID_LENGTH = 7
"""Length of generated ids."""

# Reserved prop encodings
VARIABLE_REF_KEY = "__variableRef"
"""Reserved key marking a persisted prop value as a variable reference."""

FUNCTION_PROP_PREFIX = "__function_"
"""Prefix of metadata props that name a function registry entry.

A prop ``__function_onClick: "submit"`` resolves ``onClick`` to the
callable registered under ``submit``.
"""

# Layer defaults
COPY_SUFFIX = " (Copy)"
"""Suffix appended to the name of a duplicated layer."""

PAGE_LAYER_TYPE = "div"
"""Component type used for new pages."""

DEFAULT_PAGE_PROPS: dict[str, str] = {
    "className": "h-screen p-4 flex flex-col gap-2 bg-background overflow-y-scroll",
}
"""Props given to every new page."""

DEFAULT_PAGE_ID = "1"
"""Id of the page in a freshly constructed document."""

DEFAULT_PAGE_NAME = "Page 1"
"""Name of the page in a freshly constructed document."""

# Persistence
CURRENT_SCHEMA_VERSION = 6
"""Schema version written by this release.

Older persisted documents are upgraded by the migration pipeline.
"""
