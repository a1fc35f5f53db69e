"""
Document persistence.

Documents are stored as JSON files named ``<name>.json`` in a documents
directory. Files are written in the current schema and upgraded through the
migration pipeline when they are loaded.
"""

from __future__ import annotations

import collections.abc as _abc
import datetime as _datetime
import json as _json
import logging as _logging
import pathlib as _pathlib
import re as _re
import typing as _typing

import trellis.errors as errors
import trellis.layers.traversal as traversal
import trellis.store.document_store as document_store
import trellis.store.migrations as migrations

_logger = _logging.getLogger(__name__)

_NAME_PATTERN = _re.compile(r"^[a-zA-Z0-9_-]{1,100}$")


def validate_document_name(name: str) -> str:
    """Validate a document name to prevent path traversal.

    Names are 1-100 characters of ``[a-zA-Z0-9_-]``.

    Returns:
        The name, unchanged.

    Raises:
        InvalidDocumentNameError: If the name format is invalid.
    """
    if _NAME_PATTERN.match(name):
        return name
    raise errors.InvalidDocumentNameError(
        f"Invalid document name: '{name}'. "
        "Names must be alphanumeric with hyphens/underscores (max 100 chars)."
    )


class DocumentManager:
    """
    Saves, loads and lists persisted documents.

    ``enabled=False`` turns the manager into a no-op store: saves are
    skipped and nothing is ever found.
    """

    def __init__(self, documents_dir: _pathlib.Path, *, enabled: bool = True) -> None:
        self.documents_dir = documents_dir
        self.enabled = enabled

    def _ensure_dir(self) -> None:
        self.documents_dir.mkdir(parents=True, exist_ok=True)

    def _document_path(self, name: str) -> _pathlib.Path:
        """Get the file path of a document.

        Raises:
            InvalidDocumentNameError: If the name format is invalid.
        """
        validate_document_name(name)
        return self.documents_dir / f"{name}.json"

    def exists(self, name: str) -> bool:
        """Check if a document exists."""
        if not self.enabled:
            return False
        try:
            return self._document_path(name).exists()
        except errors.InvalidDocumentNameError:
            return False

    def save(
        self,
        name: str,
        document: document_store.DocumentStore | _abc.Mapping[str, _typing.Any],
    ) -> _pathlib.Path | None:
        """
        Write a document to disk.

        Args:
            name: Document name.
            document: A store, or a document already in persisted form.

        Returns:
            Path written, or None when persistence is disabled.
        """
        path = self._document_path(name)
        if not self.enabled:
            return None
        if isinstance(document, document_store.DocumentStore):
            data = document.to_dict()
        else:
            data = dict(document)
        self._ensure_dir()
        path.write_text(_json.dumps(data, indent=2), encoding="utf-8")
        _logger.debug("Saved document %s to %s", name, path)
        return path

    def load_raw(self, name: str) -> dict[str, _typing.Any] | None:
        """
        Read a document as stored, without migrating it.

        Raises:
            DocumentFormatError: If the file is not a JSON object.
        """
        path = self._document_path(name)
        if not self.enabled or not path.exists():
            return None
        try:
            data = _json.loads(path.read_text(encoding="utf-8"))
        except _json.JSONDecodeError as e:
            raise errors.DocumentFormatError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(data, dict):
            raise errors.DocumentFormatError(
                f"Document {path} must be a JSON object, got {type(data).__name__}"
            )
        return data

    def load(self, name: str) -> dict[str, _typing.Any] | None:
        """
        Read a document and migrate it to the current schema.

        Returns:
            The migrated document, or None if it does not exist.

        Raises:
            DocumentFormatError: If the file is malformed.
            UnsupportedVersionError: If the document is newer than supported.
        """
        data = self.load_raw(name)
        if data is None:
            return None
        return migrations.migrate(data)

    def load_into(self, name: str, store: document_store.DocumentStore) -> bool:
        """
        Load a document into a store.

        Returns:
            True if the document existed.
        """
        data = self.load(name)
        if data is None:
            return False
        store.initialize_from_dict(data)
        return True

    def migrate(self, name: str) -> tuple[int, int] | None:
        """
        Upgrade a stored document in place.

        Returns:
            Tuple of (old version, new version), or None if it does not exist.
        """
        data = self.load_raw(name)
        if data is None:
            return None
        old_version = migrations.stored_version(data)
        if old_version < migrations.CURRENT_VERSION:
            self.save(name, migrations.migrate(data))
        return old_version, migrations.CURRENT_VERSION

    def delete(self, name: str) -> bool:
        """Delete a document from disk."""
        path = self._document_path(name)
        if self.enabled and path.exists():
            path.unlink()
            return True
        return False

    def list_documents(self) -> list[str]:
        """List document names, most recently modified first."""
        if not self.enabled or not self.documents_dir.is_dir():
            return []
        paths = [
            path
            for path in self.documents_dir.glob("*.json")
            if _NAME_PATTERN.match(path.stem)
        ]
        paths.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        return [path.stem for path in paths]

    def summary(self, name: str) -> dict[str, _typing.Any] | None:
        """Summarize a stored document (for listing)."""
        path = self._document_path(name)
        try:
            data = self.load_raw(name)
        except errors.DocumentFormatError as e:
            _logger.warning("Skipping unreadable document %s: %s", name, e)
            return None
        if data is None:
            return None

        pages = data.get("pages") if isinstance(data.get("pages"), list) else []
        try:
            version = migrations.stored_version(data)
            state = document_store.DocumentState.from_dict(migrations.migrate(data))
            layer_count = traversal.count_layers(state.pages)
        except (errors.DocumentFormatError, errors.UnsupportedVersionError) as e:
            _logger.warning("Cannot summarize document %s: %s", name, e)
            version = data.get("version")
            layer_count = None

        modified = _datetime.datetime.fromtimestamp(path.stat().st_mtime, _datetime.UTC)
        return {
            "name": name,
            "version": version,
            "page_count": len(pages),
            "layer_count": layer_count,
            "variable_count": len(data.get("variables") or []),
            "modified": modified.isoformat(),
        }

    def list_summaries(self) -> list[dict[str, _typing.Any]]:
        """List document summaries (for CLI display)."""
        summaries = [self.summary(name) for name in self.list_documents()]
        return [s for s in summaries if s is not None]

    def autosave_listener(self, name: str) -> document_store.Listener:
        """
        Build a store listener that saves the document after every change.

        Usage:
            store.subscribe(manager.autosave_listener("landing-page"))
        """
        validate_document_name(name)

        def listener(event: document_store.StoreEvent) -> None:
            self.save(name, event.state.to_dict())

        return listener
