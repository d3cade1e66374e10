"""Main import orchestration for CMS content.

This module applies a snapshot to the destination store in dependency
order, inside one transaction, remapping identifiers and resolving
conflicts as it goes.
"""

import logging
import threading
from collections.abc import Mapping
from typing import Any

from ..exceptions import (
    EntityApplyError,
    ImportAbortedError,
    ImportCancelledError,
    SnapshotInvalidError,
    StoreConstraintError,
)
from ..models.config import TransferConfig
from ..models.envelopes import Envelope
from ..models.options import ImportOptions, ordered
from ..models.results import EntityIssue, ImportResult, ImportResultBuilder
from ..models.schema import EntityType
from ..models.snapshot import Snapshot
from ..protocols import ContentStore, ContentTransaction
from .conflicts import ConflictResolver, Resolution, ResolutionAction
from .remapper import IdentifierRemapper
from .validator import SnapshotValidator, parent_first, self_reference

logger = logging.getLogger(__name__)


class ImportOrchestrator:
    """Apply snapshots to a content store.

    The whole run happens in one transaction: every write becomes visible on
    commit, or none does. Each entity is applied inside its own savepoint,
    so a constraint violation, a failed rename or an unresolvable required
    reference only fails that entity. Anything else (store failure,
    cancellation, remap invariant violation) aborts and rolls back the run.

    Links between entities of one type (translations) are written once every
    entity of that type has been applied, so they may point either way.

    A dry run walks exactly the same steps against a read-only transaction,
    assigning hypothetical negative ids instead of writing.

    Example:
        >>> orchestrator = ImportOrchestrator(store)
        >>> result = orchestrator.apply(
        ...     snapshot,
        ...     ImportOptions(conflict_strategy=ConflictStrategy.RENAME),
        ... )
        >>> print(f"Created {result.total_created} entities")
    """

    def __init__(self, store: ContentStore, config: TransferConfig | None = None) -> None:
        """Initialize orchestrator.

        Args:
            store: Destination content store
            config: Transfer configuration (defaults apply if None)
        """
        self.store = store
        self.config = config or TransferConfig()
        self.validator = SnapshotValidator()

    def apply(
        self,
        snapshot: Snapshot,
        options: ImportOptions | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> ImportResult:
        """Apply a snapshot.

        Args:
            snapshot: Parsed snapshot
            options: Import options (uses defaults if None)
            cancel_event: Checked between entities; when set, the run aborts

        Returns:
            Frozen ImportResult

        Raises:
            SnapshotInvalidError: If the snapshot has validation errors for
                the selected types; nothing is read or written
            ImportAbortedError: If a fatal error aborted the run; all writes
                are rolled back and ``error.result.success`` is False
        """
        if options is None:
            options = ImportOptions()

        selection = options.selected_types()
        validation = self.validator.check(snapshot, selection=selection)
        if not validation.valid:
            raise SnapshotInvalidError(validation)

        builder = ImportResultBuilder(dry_run=options.dry_run)
        types = [t for t in ordered(selection) if t in snapshot.entities]
        unselected = [
            t.value
            for t in ordered(frozenset(snapshot.entities) - selection)
            if snapshot.envelopes(t)
        ]
        if unselected:
            logger.info(f"Leaving unselected types out of the import: {', '.join(unselected)}")
        mode = "dry run" if options.dry_run else "import"
        logger.info(
            f"Starting {mode} of {sum(len(snapshot.envelopes(t)) for t in types)} entities "
            f"({options.conflict_strategy.value})"
        )

        try:
            with self.store.transaction(read_only=options.dry_run) as tx:
                run = _ImportRun(tx, options, selection, builder, self.config, cancel_event)
                for idx, entity_type in enumerate(types):
                    if options.progress_callback:
                        options.progress_callback(
                            idx, len(types), f"Importing {entity_type.value}"
                        )
                    run.apply_type(entity_type, snapshot.envelopes(entity_type))

        except Exception as e:
            message = f"Import aborted: {e}"
            builder.add_error(EntityIssue(message=message))
            result = builder.build(success=False)
            logger.error(f"{message} (all changes rolled back)")
            raise ImportAbortedError(message, result) from e

        if options.progress_callback:
            options.progress_callback(len(types), len(types), "Import complete")

        result = builder.build()
        logger.info(
            f"Finished {mode}: {result.total_created} created, {result.total_updated} updated, "
            f"{result.total_skipped} skipped, {len(result.errors)} errors"
        )
        return result


class _ImportRun:
    """State of one apply invocation: remap table, claimed keys, counters."""

    def __init__(
        self,
        tx: ContentTransaction,
        options: ImportOptions,
        selection: frozenset[EntityType],
        builder: ImportResultBuilder,
        config: TransferConfig,
        cancel_event: threading.Event | None,
    ) -> None:
        self.tx = tx
        self.dry_run = options.dry_run
        self.selection = selection
        self.builder = builder
        self.cancel_event = cancel_event
        self.remapper = IdentifierRemapper()
        self.resolver = ConflictResolver(
            options.conflict_strategy, self._lookup, config.rename_max_attempts
        )
        # Identities written (or simulated) during this run
        self._claimed: dict[EntityType, dict[tuple[Any, ...], int]] = {}
        self._next_hypothetical_id = -1

    def apply_type(self, entity_type: EntityType, envelopes: list[Envelope]) -> None:
        self.builder.start_type(entity_type)
        if not envelopes:
            return

        envelope_cls = type(envelopes[0])
        own_ref = self_reference(envelope_cls)
        if own_ref is not None:
            envelopes = parent_first(envelopes, own_ref)

        written: list[tuple[Envelope, int]] = []
        for envelope in envelopes:
            self._check_cancelled()
            destination_id = self._apply_entity(entity_type, envelope)
            if destination_id is not None:
                written.append((envelope, destination_id))

        if any(spec.deferred for spec in envelope_cls.references.values()):
            for envelope, destination_id in written:
                self._check_cancelled()
                self._apply_deferred(entity_type, envelope, destination_id)

    def _apply_entity(self, entity_type: EntityType, envelope: Envelope) -> int | None:
        """Apply one envelope.

        Returns:
            Destination id when the entity was created or updated, else None
        """
        try:
            refs = self.remapper.rewrite(envelope, self.selection)
            for warning in refs.warnings:
                self.builder.add_warning(self._issue(envelope, warning))

            resolution = self.resolver.resolve(entity_type, envelope.identity(refs.values))
            values = {**envelope.field_values(), **refs.values}
            if resolution.renamed and envelope.rename_field:
                values[envelope.rename_field] = resolution.identity[envelope.rename_field]

            destination_id, outcome = self._execute(entity_type, resolution, values)

        except (EntityApplyError, StoreConstraintError) as e:
            self.remapper.mark_failed(entity_type, envelope.local_id)
            self.builder.increment(entity_type, "failed")
            self.builder.add_error(self._issue(envelope, e.message))
            logger.warning(f"Failed to import {entity_type.value} {envelope.display_key()}: {e}")
            return None

        self.remapper.record(entity_type, envelope.local_id, destination_id)
        self._claimed.setdefault(entity_type, {})[tuple(resolution.identity.values())] = (
            destination_id
        )
        self.builder.increment(entity_type, outcome)

        if resolution.renamed:
            logger.info(
                f"Renamed {entity_type.value} '{resolution.renamed_from}' to "
                f"'{values[envelope.rename_field]}'"
            )

        return destination_id if outcome in ("created", "updated") else None

    def _apply_deferred(
        self, entity_type: EntityType, envelope: Envelope, destination_id: int
    ) -> None:
        refs = self.remapper.rewrite_deferred(envelope, self.selection)
        for warning in refs.warnings:
            self.builder.add_warning(self._issue(envelope, warning))
        if self.dry_run:
            return

        try:
            with self.tx.savepoint():
                self.tx.update(entity_type, destination_id, refs.values)
        except StoreConstraintError as e:
            self.builder.add_error(self._issue(envelope, e.message))
            logger.warning(
                f"Failed to link {entity_type.value} {envelope.display_key()}: {e}"
            )

    def _execute(
        self, entity_type: EntityType, resolution: Resolution, values: dict[str, Any]
    ) -> tuple[int, str]:
        if resolution.action is ResolutionAction.SKIP:
            return resolution.existing_id, "skipped"

        if resolution.action is ResolutionAction.OVERWRITE:
            destination_id = resolution.existing_id
            if not self.dry_run:
                with self.tx.savepoint():
                    self.tx.update(entity_type, destination_id, values)
            return destination_id, "updated"

        if self.dry_run:
            destination_id = self._next_hypothetical_id
            self._next_hypothetical_id -= 1
        else:
            with self.tx.savepoint():
                destination_id = self.tx.insert(entity_type, values)
        return destination_id, "created"

    def _lookup(self, entity_type: EntityType, identity: Mapping[str, Any]) -> int | None:
        claimed = self._claimed.get(entity_type, {}).get(tuple(identity.values()))
        if claimed is not None:
            return claimed
        return self.tx.find_id(entity_type, identity)

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ImportCancelledError("Import cancelled")

    @staticmethod
    def _issue(envelope: Envelope, message: str) -> EntityIssue:
        return EntityIssue(
            entity_type=envelope.entity_type,
            local_id=envelope.local_id,
            key=envelope.display_key(),
            message=message,
        )
