#!/usr/bin/env python3
"""Site Migration Example

A simple example for copying content from one CMS database to another.
Runs a dry run first and only applies the snapshot when it is clean.

Usage:
    1. Update SOURCE_DATABASE_URL and TARGET_DATABASE_URL below
    2. Run: python site_migration.py

Environment Variables (optional):
    SOURCE_DATABASE_URL: Override SOURCE_URL
    TARGET_DATABASE_URL: Override TARGET_URL
    CONFLICT_STRATEGY: skip, overwrite or rename (default: skip)
"""

import os
from datetime import datetime

from cms_transfer import Exporter, ImportOrchestrator, SQLAlchemyContentStore
from cms_transfer.exceptions import ImportAbortedError, SnapshotInvalidError, TransferError
from cms_transfer.models import ConflictStrategy, ExportOptions, ImportOptions

# ============================================================================
# CONFIGURATION - Update these values or use environment variables
# ============================================================================

SOURCE_URL = os.getenv("SOURCE_DATABASE_URL", "sqlite:///source.db")
TARGET_URL = os.getenv("TARGET_DATABASE_URL", "sqlite:///target.db")
STRATEGY = os.getenv("CONFLICT_STRATEGY", "skip")

# ============================================================================


def validate_config() -> ConflictStrategy:
    """Validate configuration before migration.

    Returns:
        Parsed conflict strategy

    Raises:
        ValueError: If required configuration is missing or invalid.
    """
    if not SOURCE_URL:
        raise ValueError("SOURCE_URL cannot be empty.")
    if not TARGET_URL:
        raise ValueError("TARGET_URL cannot be empty.")
    if SOURCE_URL == TARGET_URL:
        raise ValueError("SOURCE_URL and TARGET_URL must point at different databases.")
    try:
        return ConflictStrategy(STRATEGY)
    except ValueError:
        raise ValueError(
            f"Unknown CONFLICT_STRATEGY {STRATEGY!r}; use skip, overwrite or rename."
        ) from None


def print_progress(current: int, total: int, message: str) -> None:
    print(f"  [{current}/{total}] {message}")


def main() -> None:
    """Perform a migration from source to target."""
    print("Starting Site Migration")
    print("=" * 60)

    try:
        strategy = validate_config()
    except ValueError as e:
        print(f"Configuration error: {e}")
        return

    run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    backup_file = f"migration_backup_{run_id}.json"

    # Step 1: Export from source
    print(f"\nExporting from {SOURCE_URL}...")
    source = SQLAlchemyContentStore(SOURCE_URL)
    try:
        exporter = Exporter(source)
        snapshot = exporter.export(
            ExportOptions(include_submissions=True), progress_callback=print_progress
        )
        exporter.save_to_file(snapshot, backup_file)
        print(f"  Exported {snapshot.get_entity_count()} entities")
        print(f"  Saved backup to {backup_file}")
    except TransferError as e:
        print(f"Export failed: {e}")
        return
    finally:
        source.dispose()

    # Step 2: Dry run, then import into target
    print(f"\nImporting to {TARGET_URL} ({strategy.value})...")
    target = SQLAlchemyContentStore(TARGET_URL)
    try:
        target.create_schema()
        orchestrator = ImportOrchestrator(target)

        preview = orchestrator.apply(
            snapshot, ImportOptions(dry_run=True, conflict_strategy=strategy)
        )
        if preview.errors:
            print(f"  Dry run reported {len(preview.errors)} errors:")
            for issue in preview.errors:
                print(f"    - {issue}")
            print(f"Export data saved to {backup_file} - fix the errors and retry.")
            return

        result = orchestrator.apply(
            snapshot,
            ImportOptions(conflict_strategy=strategy, progress_callback=print_progress),
        )

        print(f"  Created {result.total_created} entities")
        print(f"  Updated {result.total_updated} entities")
        print(f"  Skipped {result.total_skipped} entities")
        for issue in result.warnings:
            print(f"  Warning: {issue}")
    except SnapshotInvalidError as e:
        print(f"Snapshot is invalid: {e}")
        for issue in e.validation.errors:
            print(f"    - {issue}")
        return
    except ImportAbortedError as e:
        print(f"Import failed: {e}")
        print(f"Export data saved to {backup_file} - you can retry import later.")
        return
    except TransferError as e:
        print(f"Unexpected error during import: {e}")
        return
    finally:
        target.dispose()

    print("\nMigration complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
