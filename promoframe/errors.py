"""Exception hierarchy shared by the editor components.

Every exception carries a short, human-readable message that names the cause
(``str(exc)`` is safe to show to users).  Callers that only care about "the
editor failed" can catch :class:`EditorError`; callers that need to react to a
specific condition catch the subclass.
"""

from __future__ import annotations


class EditorError(RuntimeError):
    """Base class for all editor failures."""


class ImageValidationError(EditorError, ValueError):
    """Raised when uploaded bytes cannot become the current image."""


class UnsupportedFileTypeError(ImageValidationError):
    """Raised for files that are not JPEG, PNG or WebP."""


class FileTooLargeError(ImageValidationError):
    """Raised when an upload exceeds the configured byte limit."""


class CorruptImageError(ImageValidationError):
    """Raised when image data cannot be decoded."""


class InvalidTransformError(EditorError, ValueError):
    """Raised for unknown transform fields or non-numeric values."""


class InvalidStateNameError(EditorError, ValueError):
    """Raised when a saved state name is blank."""


class StorageError(EditorError):
    """Base class for failures that leave the saved states unchanged."""


class StorageLimitError(StorageError):
    """Raised when an operation would exceed the configured storage caps."""


class PersistenceError(StorageError):
    """Raised when the persistence backend rejects a read or write."""


class ImportFormatError(EditorError, ValueError):
    """Raised for malformed or schema-invalid import documents."""


class UnknownStateError(EditorError, LookupError):
    """Raised when a saved state id does not exist."""


class NothingToRenderError(EditorError):
    """Raised when rendering or exporting without a loaded image."""


class StaleOperationError(EditorError):
    """Raised for async results superseded by a newer upload or reset."""


__all__ = [
    "EditorError",
    "ImageValidationError",
    "UnsupportedFileTypeError",
    "FileTooLargeError",
    "CorruptImageError",
    "InvalidTransformError",
    "InvalidStateNameError",
    "StorageError",
    "StorageLimitError",
    "PersistenceError",
    "ImportFormatError",
    "UnknownStateError",
    "NothingToRenderError",
    "StaleOperationError",
]
