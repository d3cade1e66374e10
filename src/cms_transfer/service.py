"""Request-level entry points for export and the two-step import.

``TransferService`` is what an HTTP layer calls. It turns submitted form
fields into options, enforces upload limits, stages validated snapshots
between the validate and apply steps, and renders result summaries.
Routing, sessions and rendering stay with the caller.
"""

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from pathlib import PurePath

from .exceptions import (
    ConfigurationError,
    ExportError,
    NoStagedImportError,
    UploadRejectedError,
)
from .export.exporter import Exporter
from .export.importer import ImportOrchestrator
from .export.validator import SnapshotValidator
from .models.config import TransferConfig
from .models.options import TYPE_GROUPS, ConflictStrategy, ExportOptions, ImportOptions, PageStatus
from .models.results import ImportResult, ValidationResult
from .protocols import ContentStore, StagingStore
from .staging import InMemoryStagingStore

logger = logging.getLogger(__name__)

TRUTHY = frozenset({"on", "true", "1", "yes"})

# Groups without a checkbox on the standard forms follow a related group
# when their field is absent
EXPORT_FALLBACKS = {"redirects": "config"}
IMPORT_FALLBACKS = {"submissions": "forms", "redirects": "config"}


def form_flag(form: Mapping[str, str], name: str) -> bool:
    """Read a checkbox; absent or unchecked means False."""
    return form.get(name, "").strip().lower() in TRUTHY


def group_flags(
    form: Mapping[str, str], prefix: str, fallbacks: Mapping[str, str]
) -> dict[str, bool]:
    """Read the per-group flags of an export or import form.

    Args:
        form: Submitted form fields
        prefix: ``include`` or ``import``
        fallbacks: Group -> group whose flag applies when the field is absent

    Returns:
        Option field name -> value, for every type group
    """
    flags: dict[str, bool] = {}
    for group in TYPE_GROUPS:
        name = f"{prefix}_{group}"
        source = name
        if name not in form and group in fallbacks:
            source = f"{prefix}_{fallbacks[group]}"
        flags[name] = form_flag(form, source)
    return flags


@dataclass(frozen=True)
class ExportAttachment:
    """Export document ready to send as a download."""

    filename: str
    content_type: str
    body: bytes

    @property
    def content_disposition(self) -> str:
        return f'attachment; filename="{self.filename}"'


class TransferService:
    """Export, validate-upload and apply-staged operations for one site.

    Example:
        >>> service = TransferService(store, config=config)
        >>> attachment = service.export_attachment({"include_pages": "on"})
        >>> validation = service.validate_upload(session_id, "site.json", body)
        >>> result = service.apply_staged(session_id, {"conflict_strategy": "rename"})
        >>> TransferService.summarize(result)
        'Import completed: 12 created, 0 updated, 3 skipped'
    """

    def __init__(
        self,
        store: ContentStore,
        *,
        staging: StagingStore | None = None,
        config: TransferConfig | None = None,
    ) -> None:
        """Initialize service.

        Args:
            store: Content store
            staging: Storage for validated uploads (in-memory if None)
            config: Transfer configuration (defaults apply if None)
        """
        self.config = config or TransferConfig()
        self.store = store
        self.staging = (
            staging if staging is not None else InMemoryStagingStore(self.config.staging_ttl_seconds)
        )
        self.exporter = Exporter(store, self.config)
        self.validator = SnapshotValidator()
        self.orchestrator = ImportOrchestrator(store, self.config)

    # Export

    def export_attachment(self, form: Mapping[str, str] | None = None) -> ExportAttachment:
        """Export the selected content as a JSON attachment.

        Args:
            form: Submitted export form; None exports with default options

        Raises:
            ConfigurationError: If ``page_status`` is not a known status
            ExportError: With a generic message; details are logged
        """
        options = self.export_options_from_form(form) if form is not None else ExportOptions()

        try:
            body = self.exporter.export_to_bytes(options)
        except ExportError as e:
            logger.exception(f"Export failed: {e.message}")
            raise ExportError("Failed to export content") from e

        filename = f"{self.config.source_name}-export-{date.today().isoformat()}.json"
        return ExportAttachment(filename=filename, content_type="application/json", body=body)

    @staticmethod
    def export_options_from_form(form: Mapping[str, str]) -> ExportOptions:
        flags = group_flags(form, "include", EXPORT_FALLBACKS)
        raw_status = form.get("page_status", "").strip() or PageStatus.ALL.value
        try:
            page_status = PageStatus(raw_status)
        except ValueError:
            raise ConfigurationError(f"Unknown page status '{raw_status}'") from None
        return ExportOptions(page_status=page_status, **flags)

    # Import

    def validate_upload(self, token: str, filename: str, content: bytes) -> ValidationResult:
        """Validate an uploaded snapshot and stage it for apply.

        Only a snapshot without validation errors is staged; an invalid
        upload clears whatever was staged under the token before.

        Args:
            token: Session key the snapshot is staged under
            filename: Client-side file name
            content: Uploaded bytes

        Returns:
            Validation result

        Raises:
            UploadRejectedError: If the file is not .json or too large
            FormatError: If the document is structurally invalid
        """
        if PurePath(filename).suffix.lower() != ".json":
            raise UploadRejectedError("Only .json files are accepted")
        if len(content) > self.config.max_upload_bytes:
            raise UploadRejectedError(
                f"File exceeds the {self.config.max_upload_bytes} byte upload limit"
            )

        snapshot, result = self.validator.validate(content)
        if result.valid:
            self.staging.put(token, snapshot)
        else:
            self.staging.clear(token)
        return result

    def apply_staged(
        self,
        token: str,
        form: Mapping[str, str],
        *,
        cancel_event: threading.Event | None = None,
    ) -> ImportResult:
        """Apply the snapshot staged under a token.

        The staged snapshot is cleared once a non-dry run has committed.

        Raises:
            NoStagedImportError: If nothing is staged under the token
            ConfigurationError: If ``conflict_strategy`` is unknown
            SnapshotInvalidError: If the selection leaves validation errors
            ImportAbortedError: If the run was aborted and rolled back
        """
        snapshot = self.staging.get(token)
        if snapshot is None:
            raise NoStagedImportError("No import data found. Please upload a file first.")

        options = self.import_options_from_form(form)
        result = self.orchestrator.apply(snapshot, options, cancel_event=cancel_event)

        if not options.dry_run:
            self.staging.clear(token)
        return result

    def import_options_from_form(self, form: Mapping[str, str]) -> ImportOptions:
        flags = group_flags(form, "import", IMPORT_FALLBACKS)
        raw_strategy = form.get("conflict_strategy", "").strip()
        if not raw_strategy:
            strategy = self.config.default_conflict_strategy
        else:
            try:
                strategy = ConflictStrategy(raw_strategy)
            except ValueError:
                raise ConfigurationError(f"Unknown conflict strategy '{raw_strategy}'") from None
        return ImportOptions(
            dry_run=form_flag(form, "dry_run"),
            conflict_strategy=strategy,
            **flags,
        )

    @staticmethod
    def summarize(result: ImportResult) -> str:
        """One-line message for the user after an apply."""
        if result.dry_run:
            if result.errors:
                return (
                    f"Dry run completed with {len(result.errors)} errors. No changes were made."
                )
            return "Dry run completed successfully. No changes were made."
        if result.errors:
            return f"Import completed with {len(result.errors)} errors"
        return (
            f"Import completed: {result.total_created} created, "
            f"{result.total_updated} updated, {result.total_skipped} skipped"
        )
