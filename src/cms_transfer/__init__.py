"""cms-transfer: portable export and conflict-aware import of CMS content.

This package provides:
- Export of a selectable subset of the content graph to one JSON document
- Validation of uploaded snapshots without touching the store
- Dependency-ordered, transactional import with identifier remapping
- Skip, overwrite and rename conflict strategies, plus dry runs
- A SQLAlchemy-backed content store
"""

from .__version__ import __version__
from .config_factory import ConfigFactory, create_config, load_config
from .exceptions import (
    ConfigurationError,
    EntityApplyError,
    ExportError,
    FormatError,
    ImportAbortedError,
    ImportCancelledError,
    NoStagedImportError,
    RemapError,
    RenameExhaustedError,
    SnapshotInvalidError,
    StoreConstraintError,
    StoreError,
    TransferError,
    UnresolvedReferenceError,
    UnsupportedFormatVersionError,
    UploadRejectedError,
)
from .export import (
    ConflictResolver,
    Exporter,
    IdentifierRemapper,
    ImportOrchestrator,
    SnapshotValidator,
    SnapshotWriter,
)
from .models import (
    ConflictStrategy,
    EntityType,
    ExportOptions,
    ImportOptions,
    ImportResult,
    PageStatus,
    Snapshot,
    TransferConfig,
    ValidationResult,
)
from .protocols import ConfigProvider, ContentStore, ContentTransaction, StagingStore
from .service import ExportAttachment, TransferService
from .staging import InMemoryStagingStore
from .store import SQLAlchemyContentStore

__all__ = [
    "__version__",
    # Configuration
    "TransferConfig",
    "ConfigFactory",
    "create_config",
    "load_config",
    # Service
    "TransferService",
    "ExportAttachment",
    # Export/Import
    "Exporter",
    "SnapshotWriter",
    "SnapshotValidator",
    "ImportOrchestrator",
    "IdentifierRemapper",
    "ConflictResolver",
    # Models
    "Snapshot",
    "EntityType",
    "ExportOptions",
    "ImportOptions",
    "ConflictStrategy",
    "PageStatus",
    "ValidationResult",
    "ImportResult",
    # Storage
    "SQLAlchemyContentStore",
    "InMemoryStagingStore",
    # Protocols (for dependency injection)
    "ContentStore",
    "ContentTransaction",
    "StagingStore",
    "ConfigProvider",
    # Exceptions
    "TransferError",
    "ConfigurationError",
    "ExportError",
    "FormatError",
    "UnsupportedFormatVersionError",
    "SnapshotInvalidError",
    "UploadRejectedError",
    "NoStagedImportError",
    "StoreError",
    "StoreConstraintError",
    "EntityApplyError",
    "RenameExhaustedError",
    "UnresolvedReferenceError",
    "RemapError",
    "ImportCancelledError",
    "ImportAbortedError",
]
