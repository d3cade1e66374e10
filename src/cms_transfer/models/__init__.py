"""Data models for cms-transfer.

This package contains Pydantic models for:
- Configuration
- Snapshot documents and entity envelopes
- Export and import options
- Validation and import results
"""

from .config import TransferConfig
from .envelopes import (
    ENVELOPE_TYPES,
    CategoryEnvelope,
    ConfigEnvelope,
    Envelope,
    ExcludedRef,
    FormEnvelope,
    FormFieldEnvelope,
    FormSubmissionEnvelope,
    LanguageEnvelope,
    MediaEnvelope,
    MediaFolderEnvelope,
    MediaVariant,
    MenuEnvelope,
    MenuItemEnvelope,
    PageEnvelope,
    RedirectEnvelope,
    TagEnvelope,
    UserEnvelope,
)
from .options import ConflictStrategy, ExportOptions, ImportOptions, PageStatus
from .results import (
    EntityIssue,
    ImportResult,
    ImportResultBuilder,
    TypeCounts,
    ValidationResult,
)
from .schema import DEPENDENCY_ORDER, EntityType, RefSpec
from .snapshot import FORMAT_VERSION, SUPPORTED_FORMAT_VERSIONS, Snapshot, SnapshotSource

__all__ = [
    # Configuration
    "TransferConfig",
    # Schema
    "EntityType",
    "DEPENDENCY_ORDER",
    "RefSpec",
    # Snapshot
    "Snapshot",
    "SnapshotSource",
    "FORMAT_VERSION",
    "SUPPORTED_FORMAT_VERSIONS",
    # Envelopes
    "Envelope",
    "ExcludedRef",
    "ENVELOPE_TYPES",
    "LanguageEnvelope",
    "UserEnvelope",
    "CategoryEnvelope",
    "TagEnvelope",
    "MediaFolderEnvelope",
    "MediaEnvelope",
    "MediaVariant",
    "PageEnvelope",
    "MenuEnvelope",
    "MenuItemEnvelope",
    "FormEnvelope",
    "FormFieldEnvelope",
    "FormSubmissionEnvelope",
    "RedirectEnvelope",
    "ConfigEnvelope",
    # Options
    "ExportOptions",
    "ImportOptions",
    "ConflictStrategy",
    "PageStatus",
    # Results
    "EntityIssue",
    "ValidationResult",
    "TypeCounts",
    "ImportResult",
    "ImportResultBuilder",
]
