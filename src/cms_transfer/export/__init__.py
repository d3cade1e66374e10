"""Export and import functionality for CMS content.

This package provides tools for:
- Exporting the content graph to a portable snapshot
- Validating uploaded snapshots
- Importing snapshots with identifier remapping and conflict resolution
"""

from cms_transfer.export.conflicts import ConflictResolver, Resolution, ResolutionAction
from cms_transfer.export.exporter import Exporter
from cms_transfer.export.importer import ImportOrchestrator
from cms_transfer.export.remapper import IdentifierRemapper, ResolvedReferences
from cms_transfer.export.snapshot_writer import SnapshotWriter
from cms_transfer.export.validator import SnapshotValidator, parse_snapshot

__all__ = [
    "Exporter",
    "ImportOrchestrator",
    "SnapshotValidator",
    "SnapshotWriter",
    "parse_snapshot",
    "IdentifierRemapper",
    "ResolvedReferences",
    "ConflictResolver",
    "Resolution",
    "ResolutionAction",
]
