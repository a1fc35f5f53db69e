"""
Schema migrations for persisted documents.

Each step upgrades a plain-dict document by exactly one version. Steps are
pure (the input is never modified) and total: unexpected shapes are copied
through rather than rejected, so a step never raises.

``MIGRATIONS[v - 1]`` upgrades version ``v`` to ``v + 1``. ``migrate`` folds
the table from the stored version up to ``CURRENT_VERSION``.
"""

from __future__ import annotations

import collections.abc as _abc
import logging as _logging
import typing as _typing

import trellis.constants as constants
import trellis.errors as errors

_logger = _logging.getLogger(__name__)

CURRENT_VERSION = constants.CURRENT_SCHEMA_VERSION

Document = dict[str, _typing.Any]
Migration = _abc.Callable[[Document], Document]

# Page props renamed to namespaced data attributes in version 6
_PAGE_THEME_KEYS: dict[str, str] = {
    "mode": "data-mode",
    "colorTheme": "data-color-theme",
    "borderRadius": "data-border-radius",
}


def _map_layer(
    layer: _typing.Any,
    transform: _abc.Callable[[dict[str, _typing.Any]], dict[str, _typing.Any]],
) -> _typing.Any:
    """Apply ``transform`` to a raw layer dict and its descendants, pre-order."""
    if not isinstance(layer, _abc.Mapping):
        return layer
    transformed = transform(dict(layer))
    children = transformed.get("children")
    if isinstance(children, list):
        transformed["children"] = [_map_layer(child, transform) for child in children]
    return transformed


def _pages(document: Document) -> list[_typing.Any]:
    pages = document.get("pages")
    return list(pages) if isinstance(pages, list) else []


def migrate_v1_to_v2(document: Document) -> Document:
    """Replace dedicated text layers with ``span`` (or ``Markdown``) layers.

    The text of a ``_text_`` layer becomes its string children.
    """

    def convert(layer: dict[str, _typing.Any]) -> dict[str, _typing.Any]:
        if layer.get("type") != "_text_":
            return layer
        converted: dict[str, _typing.Any] = {
            "id": layer.get("id"),
            "type": "Markdown" if layer.get("textType") == "markdown" else "span",
            "props": dict(layer.get("props") or {}),
            "children": layer.get("text", ""),
        }
        if layer.get("name") is not None:
            converted["name"] = layer["name"]
        return converted

    return {**document, "pages": [_map_layer(page, convert) for page in _pages(document)]}


def migrate_v2_to_v3(document: Document) -> Document:
    """Turn ``_page_`` roots into ordinary ``div`` layers."""
    pages = []
    for page in _pages(document):
        if isinstance(page, _abc.Mapping) and page.get("type") == "_page_":
            page = {**page, "type": constants.PAGE_LAYER_TYPE}
        pages.append(page)
    return {**document, "pages": pages}


def migrate_v3_to_v4(document: Document) -> Document:
    """Introduce the variable list."""
    variables = document.get("variables")
    return {**document, "variables": list(variables) if isinstance(variables, list) else []}


def migrate_v4_to_v5(document: Document) -> Document:
    """Introduce immutable bindings."""
    bindings = document.get("immutableBindings")
    return {
        **document,
        "immutableBindings": dict(bindings) if isinstance(bindings, _abc.Mapping) else {},
    }


def migrate_v5_to_v6(document: Document) -> Document:
    """Rename page theme props to their ``data-`` attribute form.

    When both spellings are present the namespaced one is kept.
    """
    pages = []
    for page in _pages(document):
        if isinstance(page, _abc.Mapping) and isinstance(page.get("props"), _abc.Mapping):
            props = dict(page["props"])
            for old_key, new_key in _PAGE_THEME_KEYS.items():
                if old_key in props:
                    value = props.pop(old_key)
                    props.setdefault(new_key, value)
            page = {**page, "props": props}
        pages.append(page)
    return {**document, "pages": pages}


MIGRATIONS: tuple[Migration, ...] = (
    migrate_v1_to_v2,
    migrate_v2_to_v3,
    migrate_v3_to_v4,
    migrate_v4_to_v5,
    migrate_v5_to_v6,
)


def stored_version(document: _abc.Mapping[str, _typing.Any]) -> int:
    """
    Read the schema version of a persisted document.

    Documents without a version predate versioning and count as version 1.

    Raises:
        DocumentFormatError: If the version is not a positive integer.
    """
    version = document.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise errors.DocumentFormatError(f"Invalid document version: {version!r}")
    return version


def needs_migration(document: _abc.Mapping[str, _typing.Any]) -> bool:
    """Check whether a document is older than the current schema."""
    return stored_version(document) < CURRENT_VERSION


def migrate(
    document: _abc.Mapping[str, _typing.Any],
    version: int | None = None,
) -> Document:
    """
    Upgrade a persisted document to ``CURRENT_VERSION``.

    Args:
        document: Raw document (not modified).
        version: Stored version. Read from ``document["version"]`` when
            omitted.

    Returns:
        The upgraded document, stamped with the current version. A current
        document is returned as an equal copy.

    Raises:
        UnsupportedVersionError: If the document is newer than this release.
        DocumentFormatError: If the stored version is invalid.
    """
    if version is None:
        version = stored_version(document)
    elif version < 1:
        raise errors.DocumentFormatError(f"Invalid document version: {version!r}")
    if version > CURRENT_VERSION:
        raise errors.UnsupportedVersionError(
            f"Document version {version} is newer than supported version {CURRENT_VERSION}"
        )

    migrated: Document = dict(document)
    for step in MIGRATIONS[version - 1:]:
        _logger.debug("Applying %s", step.__name__)
        migrated = step(migrated)

    if version < CURRENT_VERSION:
        _logger.info("Migrated document from version %d to %d", version, CURRENT_VERSION)
    migrated["version"] = CURRENT_VERSION
    return migrated
