"""Exception hierarchy for cms-transfer.

Every error raised by the transfer engine derives from ``TransferError`` so
callers can catch the whole family with one clause. Errors fall into four
groups:

- Fatal errors abort the operation with no partial effect
  (``FormatError``, ``ExportError``, ``StoreError``, ``RemapError``,
  ``ImportCancelledError``, ``ImportAbortedError``).
- ``SnapshotInvalidError`` blocks an import because validation found errors.
- ``EntityApplyError`` subclasses are recovered per entity by the importer.
- Boundary errors (``UploadRejectedError``, ``NoStagedImportError``,
  ``ConfigurationError``) are raised before any engine work starts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models.results import ImportResult, ValidationResult


class TransferError(Exception):
    """Base exception for all transfer engine errors.

    Attributes:
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(TransferError):
    """Invalid or missing configuration."""


class ExportError(TransferError):
    """Export failed; no snapshot was produced."""


class FormatError(TransferError):
    """Uploaded document is not a structurally valid snapshot."""


class UnsupportedFormatVersionError(FormatError):
    """Snapshot declares a format version this engine cannot read."""

    def __init__(self, version: int, supported: frozenset[int]) -> None:
        super().__init__(
            f"Unsupported format version {version} "
            f"(supported: {', '.join(str(v) for v in sorted(supported))})",
            details={"version": version},
        )
        self.version = version


class SnapshotInvalidError(TransferError):
    """Snapshot has validation errors and cannot be applied."""

    def __init__(self, validation: ValidationResult) -> None:
        super().__init__(
            f"Snapshot has {len(validation.errors)} validation error(s)",
            details={"errors": [str(issue) for issue in validation.errors]},
        )
        self.validation = validation


class UploadRejectedError(TransferError):
    """Uploaded file was refused before validation (extension or size)."""


class NoStagedImportError(TransferError):
    """Apply was requested but no validated snapshot is staged."""


class StoreError(TransferError):
    """Destination store failed (connection loss, driver error)."""


class StoreConstraintError(StoreError):
    """A write violated a store constraint (unique, foreign key, not null)."""


class EntityApplyError(TransferError):
    """A single entity could not be applied; the import continues."""


class RenameExhaustedError(EntityApplyError):
    """No free identity key was found within the rename attempt bound."""


class UnresolvedReferenceError(EntityApplyError):
    """A required reference points to an entity that failed to apply."""


class RemapError(TransferError):
    """A reference was looked up before its target was applied.

    This signals out-of-order application or a validation gap, never a
    user data problem.
    """


class ImportCancelledError(TransferError):
    """The caller cancelled the import between entities."""


class ImportAbortedError(TransferError):
    """A fatal error aborted the import and rolled back every write.

    Attributes:
        result: Final import result, always with ``success=False``
    """

    def __init__(self, message: str, result: ImportResult) -> None:
        super().__init__(message)
        self.result = result
