"""
Exception types for Trellis.

Not-found conditions and broken variable references are never raised; they
are logged and the document is left unchanged. The exceptions here cover
hard refusals and malformed input.
"""

from __future__ import annotations

import pathlib as _pathlib


class TrellisError(Exception):
    """Base class for all Trellis errors."""

    pass


class LastPageError(TrellisError):
    """Raised when an operation would leave a document without pages."""

    pass


class UnknownComponentTypeError(TrellisError, KeyError):
    """Raised when a component type is not in the component registry."""

    def __init__(self, layer_type: str, available: list[str] | None = None) -> None:
        self.layer_type = layer_type
        message = f"Component type '{layer_type}' not found in registry"
        if available:
            message += f". Available: {', '.join(available)}"
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class UnsupportedVersionError(TrellisError, ValueError):
    """Raised when a persisted document is newer than this release understands."""

    pass


class DocumentFormatError(TrellisError, ValueError):
    """Raised when persisted document data has the wrong shape."""

    pass


class InvalidDocumentNameError(TrellisError, ValueError):
    """Raised when a document name has an invalid format."""

    pass


class RegistryFileError(TrellisError):
    """Error loading or parsing a component registry file."""

    def __init__(self, path: _pathlib.Path, message: str) -> None:
        self.path = path
        super().__init__(f"Error in registry file {path}: {message}")
