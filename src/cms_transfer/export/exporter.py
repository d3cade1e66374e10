"""Export orchestration for CMS content.

This module reads the content store under an inclusion policy and builds a
snapshot whose references use snapshot-local ids.
"""

import io
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any

from ..exceptions import ExportError
from ..models.config import TransferConfig
from ..models.envelopes import ENVELOPE_TYPES, Envelope, ExcludedRef
from ..models.options import ExportOptions, PageStatus, ordered
from ..models.schema import EntityType
from ..models.snapshot import Snapshot, SnapshotSource
from ..protocols import ContentStore, ContentTransaction
from .snapshot_writer import SnapshotWriter
from .validator import parse_snapshot

logger = logging.getLogger(__name__)

# Config keys describing the exporting site
SITE_CONFIG_KEYS = {"name": "site_name", "description": "site_description", "url": "site_url"}


def natural_key(entity_type: EntityType, row: dict[str, Any]) -> str:
    """Human-readable key of a stored row, used in excluded markers."""
    envelope_cls = ENVELOPE_TYPES[entity_type]
    parts = [
        str(row.get(name, ""))
        for name in envelope_cls.identity_fields
        if name not in envelope_cls.references
    ]
    return "/".join(parts)


class Exporter:
    """Export CMS content to a portable snapshot.

    Every included type is read in dependency order inside one read-only
    transaction. References into excluded types (or to pages filtered out by
    status) become excluded markers carrying the target's natural key.
    Envelopes are sorted by identity key and numbered 1..n per type.

    Example:
        >>> exporter = Exporter(store)
        >>> snapshot = exporter.export(ExportOptions(include_users=False))
        >>> with open("export.json", "w") as f:
        ...     exporter.export_to_writer(ExportOptions(), f)
    """

    def __init__(self, store: ContentStore, config: TransferConfig | None = None) -> None:
        """Initialize exporter.

        Args:
            store: Content store to read from
            config: Transfer configuration (defaults apply if None)
        """
        self.store = store
        self.config = config or TransferConfig()

    def export(
        self,
        options: ExportOptions | None = None,
        *,
        progress_callback: Callable[[int, int, str], None] | None = None,
    ) -> Snapshot:
        """Build a snapshot of the selected content.

        Args:
            options: Inclusion flags and page status filter
            progress_callback: Optional callback(current, total, message)

        Returns:
            Complete snapshot

        Raises:
            ExportError: If any read fails; no partial snapshot is produced
        """
        if options is None:
            options = ExportOptions()

        included = options.included_types()
        if options.include_submissions and not options.include_forms:
            logger.info("Submissions requested without forms; submissions are omitted")

        types = ordered(included)
        try:
            with self.store.transaction(read_only=True) as tx:
                rows: dict[EntityType, list[dict[str, Any]]] = {}
                for idx, entity_type in enumerate(types):
                    if progress_callback:
                        progress_callback(idx, len(types), f"Reading {entity_type.value}")
                    rows[entity_type] = list(
                        tx.iter_rows(entity_type, page_status=options.page_status)
                    )
                lookups = self._read_lookups(tx, rows, included, options.page_status)
                source = self._read_source(tx)

            entities = self._build_envelopes(rows, lookups)

        except Exception as e:
            raise ExportError(f"Export failed: {e}") from e

        snapshot = Snapshot(
            exported_at=datetime.now(timezone.utc),
            source=source,
            entities=entities,
        )

        if progress_callback:
            progress_callback(len(types), len(types), "Export complete")

        logger.info(
            f"Exported {snapshot.get_entity_count()} entities "
            f"across {len(entities)} types"
        )
        return snapshot

    def export_to_writer(
        self,
        options: ExportOptions | None,
        sink: IO[str],
    ) -> Snapshot:
        """Export and stream the document to a text sink.

        The snapshot is fully built before the first byte is written, so a
        failed export never leaves partial output behind.

        Returns:
            The exported snapshot
        """
        snapshot = self.export(options)
        with SnapshotWriter(sink) as writer:
            writer.write_snapshot(snapshot)
        return snapshot

    def export_to_bytes(self, options: ExportOptions | None = None) -> bytes:
        """Export to an in-memory UTF-8 JSON document."""
        buffer = io.StringIO()
        self.export_to_writer(options, buffer)
        return buffer.getvalue().encode("utf-8")

    def export_to_file(self, options: ExportOptions | None, file_path: str | Path) -> Snapshot:
        """Export straight to a JSON file."""
        snapshot = self.export(options)
        self.save_to_file(snapshot, file_path)
        return snapshot

    @staticmethod
    def save_to_file(snapshot: Snapshot, file_path: str | Path) -> None:
        """Save a snapshot to a JSON file.

        Example:
            >>> Exporter.save_to_file(snapshot, "backup.json")
        """
        path = Path(file_path)
        with SnapshotWriter(path) as writer:
            writer.write_snapshot(snapshot)
        logger.info(f"Export saved to {path}")

    @staticmethod
    def load_from_file(file_path: str | Path) -> Snapshot:
        """Load a snapshot from a JSON file.

        Raises:
            FormatError: If the file is not a valid snapshot
            ExportError: If the file cannot be read

        Example:
            >>> snapshot = Exporter.load_from_file("backup.json")
        """
        try:
            raw = Path(file_path).read_bytes()
        except OSError as e:
            raise ExportError(f"Failed to load export file: {e}") from e
        return parse_snapshot(raw)

    def _read_lookups(
        self,
        tx: ContentTransaction,
        rows: dict[EntityType, list[dict[str, Any]]],
        included: frozenset[EntityType],
        page_status: PageStatus,
    ) -> dict[EntityType, dict[int, str]]:
        """Natural keys of rows that references may point at but are not exported."""
        needed: set[EntityType] = set()
        for entity_type in rows:
            for spec in ENVELOPE_TYPES[entity_type].references.values():
                filtered = spec.target is EntityType.PAGES and page_status is not PageStatus.ALL
                if spec.target not in included or filtered:
                    needed.add(spec.target)

        return {
            target: {row["id"]: natural_key(target, row) for row in tx.iter_rows(target)}
            for target in ordered(frozenset(needed))
        }

    def _read_source(self, tx: ContentTransaction) -> SnapshotSource:
        values = {row["key"]: row["value"] for row in tx.iter_rows(EntityType.CONFIG)}
        return SnapshotSource(
            name=values.get(SITE_CONFIG_KEYS["name"], self.config.source_name),
            description=values.get(SITE_CONFIG_KEYS["description"], ""),
            url=values.get(SITE_CONFIG_KEYS["url"], ""),
        )

    def _build_envelopes(
        self,
        rows: dict[EntityType, list[dict[str, Any]]],
        lookups: dict[EntityType, dict[int, str]],
    ) -> dict[EntityType, list[Envelope]]:
        # destination id -> local id, per type, filled as each type is numbered
        local_ids: dict[EntityType, dict[int, int]] = {}
        entities: dict[EntityType, list[Envelope]] = {}

        for entity_type, type_rows in rows.items():
            envelope_cls = ENVELOPE_TYPES[entity_type]
            own_refs = [
                name
                for name, spec in envelope_cls.references.items()
                if spec.target is entity_type
            ]
            exported_ids = {row["id"] for row in type_rows}

            provisional = [
                self._to_envelope(entity_type, row, exported_ids, lookups, local_ids)
                for row in type_rows
            ]
            provisional.sort(key=lambda envelope: envelope.sort_key())

            mapping = {
                envelope.local_id: position
                for position, envelope in enumerate(provisional, start=1)
            }
            local_ids[entity_type] = mapping

            numbered = []
            for envelope in provisional:
                update: dict[str, Any] = {"local_id": mapping[envelope.local_id]}
                for name in own_refs:
                    value = getattr(envelope, name)
                    if isinstance(value, list):
                        update[name] = _sorted_refs(
                            [mapping[v] if isinstance(v, int) else v for v in value]
                        )
                    elif isinstance(value, int):
                        update[name] = mapping[value]
                numbered.append(envelope.model_copy(update=update))

            entities[entity_type] = numbered
            logger.debug(f"Built {len(numbered)} {entity_type.value} envelopes")

        return entities

    def _to_envelope(
        self,
        entity_type: EntityType,
        row: dict[str, Any],
        exported_ids: set[int],
        lookups: dict[EntityType, dict[int, str]],
        local_ids: dict[EntityType, dict[int, int]],
    ) -> Envelope:
        """Convert a row; references to own type keep destination ids until numbering."""
        envelope_cls = ENVELOPE_TYPES[entity_type]
        data: dict[str, Any] = {"local_id": row["id"]}

        for name in envelope_cls.model_fields:
            if name == "local_id" or name in envelope_cls.references:
                continue
            if name in row:
                data[name] = row[name]

        for name, spec in envelope_cls.references.items():
            raw = row.get(name)
            if spec.many:
                destination_ids = list(raw or [])
            else:
                destination_ids = [raw]

            values = []
            for destination_id in destination_ids:
                if destination_id is None:
                    continue
                if spec.target is entity_type and destination_id in exported_ids:
                    values.append(destination_id)
                elif spec.target in local_ids and destination_id in local_ids[spec.target]:
                    values.append(local_ids[spec.target][destination_id])
                elif destination_id in lookups.get(spec.target, {}):
                    key = lookups[spec.target][destination_id]
                    values.append(ExcludedRef(excluded=spec.target, key=key))
                    logger.debug(
                        f"{entity_type.value} #{row['id']} '{name}' references "
                        f"excluded {spec.target.value} '{key}'"
                    )
                else:
                    logger.warning(
                        f"{entity_type.value} #{row['id']} '{name}' references missing "
                        f"{spec.target.value} {destination_id}; dropped"
                    )
            if spec.many:
                data[name] = _sorted_refs(values)
            else:
                data[name] = values[0] if values else None

        return envelope_cls.model_validate(data)


def _sorted_refs(values: list[int | ExcludedRef]) -> list[int | ExcludedRef]:
    # Link tables are unordered; list local ids ascending, markers last
    local = sorted(value for value in values if isinstance(value, int))
    markers = sorted(
        (value for value in values if isinstance(value, ExcludedRef)),
        key=lambda marker: marker.key,
    )
    return [*local, *markers]
