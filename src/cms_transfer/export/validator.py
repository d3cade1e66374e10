"""Snapshot validation.

Validation is a pure function of the uploaded bytes: it never reads or
writes the destination store, so it can be re-run at will and against any
destination.

Structural problems (bad JSON, unsupported version, malformed envelope,
unknown type) are fatal and raise ``FormatError``. Uniqueness and reference
problems are collected into a ``ValidationResult`` returned together with
the parsed snapshot.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from ..exceptions import FormatError, UnsupportedFormatVersionError
from ..models.envelopes import ENVELOPE_TYPES, Envelope, ExcludedRef, flatten_ref
from ..models.results import EntityIssue, ValidationResult
from ..models.schema import EntityType
from ..models.snapshot import SUPPORTED_FORMAT_VERSIONS, Snapshot

logger = logging.getLogger(__name__)


def parse_snapshot(raw: bytes | str) -> Snapshot:
    """Parse raw JSON into a snapshot.

    Args:
        raw: Uploaded document

    Returns:
        Parsed snapshot

    Raises:
        FormatError: If the document is not valid JSON, not an object, or
            holds a malformed envelope or unknown entity type
        UnsupportedFormatVersionError: If the format version is not supported
    """
    try:
        document = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FormatError(f"Invalid JSON: {e}") from e

    if not isinstance(document, dict):
        raise FormatError(f"Expected a JSON object, got {type(document).__name__}")

    version = document.get("format_version")
    if isinstance(version, bool) or not isinstance(version, int):
        raise FormatError("Missing or invalid 'format_version'")
    if version not in SUPPORTED_FORMAT_VERSIONS:
        raise UnsupportedFormatVersionError(version, SUPPORTED_FORMAT_VERSIONS)

    try:
        return Snapshot.model_validate(document)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise FormatError(
            f"Invalid snapshot at {location or '<root>'}: {first['msg']}",
            details={"errors": e.error_count()},
        ) from e


def self_reference(envelope_cls: type[Envelope]) -> str | None:
    """Name of the reference field pointing at the envelope's own type, if any."""
    for name, spec in envelope_cls.references.items():
        if spec.target is envelope_cls.entity_type and not spec.many:
            return name
    return None


def parent_first(envelopes: list[Envelope], field: str) -> list[Envelope]:
    """Order envelopes so every parent precedes its children.

    Keeps the input order otherwise. Cycles must have been rejected by
    validation; members of a cycle are emitted in input order.
    """
    by_id = {envelope.local_id: envelope for envelope in envelopes}
    emitted: set[int] = set()
    ordered: list[Envelope] = []

    for envelope in envelopes:
        chain: list[Envelope] = []
        current: Envelope | None = envelope
        while current is not None and current.local_id not in emitted:
            if any(item.local_id == current.local_id for item in chain):
                break
            chain.append(current)
            parent = getattr(current, field)
            current = by_id.get(parent) if isinstance(parent, int) else None
        for item in reversed(chain):
            emitted.add(item.local_id)
            ordered.append(item)

    return ordered


class SnapshotValidator:
    """Checks uploaded snapshots for structural and referential problems.

    Example:
        >>> validator = SnapshotValidator()
        >>> snapshot, result = validator.validate(raw_bytes)
        >>> if not result.valid:
        ...     for issue in result.errors:
        ...         print(issue)
    """

    def validate(
        self, raw: bytes | str, *, selection: frozenset[EntityType] | None = None
    ) -> tuple[Snapshot, ValidationResult]:
        """Parse and check an uploaded snapshot.

        Args:
            raw: Uploaded document
            selection: Entity types that will be imported; references into
                other types are reported as warnings. None means all types.

        Returns:
            Tuple of (parsed snapshot, validation result)

        Raises:
            FormatError: If the document is structurally invalid
        """
        snapshot = parse_snapshot(raw)
        result = self.check(snapshot, selection=selection)
        logger.info(
            f"Validated snapshot: {snapshot.get_entity_count()} entities, "
            f"{len(result.errors)} errors, {len(result.warnings)} warnings"
        )
        return snapshot, result

    def check(
        self, snapshot: Snapshot, *, selection: frozenset[EntityType] | None = None
    ) -> ValidationResult:
        """Check uniqueness and references of an already parsed snapshot.

        Types outside ``selection`` are not checked, only counted.
        """
        errors: list[EntityIssue] = []
        warnings: list[EntityIssue] = []

        local_ids: dict[EntityType, set[int]] = {
            entity_type: {envelope.local_id for envelope in envelopes}
            for entity_type, envelopes in snapshot.entities.items()
        }

        for entity_type, envelopes in snapshot.entities.items():
            if selection is not None and entity_type not in selection:
                continue
            errors.extend(self._check_uniqueness(entity_type, envelopes))
            for envelope in envelopes:
                self._check_references(envelope, snapshot, local_ids, selection, errors, warnings)
            errors.extend(self._check_cycles(entity_type, envelopes))

        return ValidationResult(
            valid=not errors,
            errors=tuple(errors),
            warnings=tuple(warnings),
            counts=snapshot.counts(),
        )

    @staticmethod
    def _issue(envelope: Envelope, message: str) -> EntityIssue:
        return EntityIssue(
            entity_type=envelope.entity_type,
            local_id=envelope.local_id,
            key=envelope.display_key(),
            message=message,
        )

    def _check_uniqueness(
        self, entity_type: EntityType, envelopes: list[Envelope]
    ) -> Iterable[EntityIssue]:
        seen_ids: set[int] = set()
        seen_keys: dict[tuple[Any, ...], int] = {}

        for envelope in envelopes:
            if envelope.local_id in seen_ids:
                yield self._issue(envelope, f"Duplicate local id {envelope.local_id}")
            seen_ids.add(envelope.local_id)

            key = envelope.identity_key()
            if key in seen_keys:
                yield self._issue(
                    envelope,
                    f"Duplicate {entity_type.value} identity key "
                    f"(also used by #{seen_keys[key]})",
                )
            else:
                seen_keys[key] = envelope.local_id

    def _check_references(
        self,
        envelope: Envelope,
        snapshot: Snapshot,
        local_ids: dict[EntityType, set[int]],
        selection: frozenset[EntityType] | None,
        errors: list[EntityIssue],
        warnings: list[EntityIssue],
    ) -> None:
        for name, spec in envelope.references.items():
            target = spec.target
            values = flatten_ref(getattr(envelope, name))

            if not values and spec.required:
                errors.append(self._issue(envelope, f"Missing required reference '{name}'"))

            for value in values:
                if isinstance(value, ExcludedRef):
                    if value.excluded is not target:
                        errors.append(
                            self._issue(
                                envelope,
                                f"'{name}' must reference {target.value}, "
                                f"marker names {value.excluded.value}",
                            )
                        )
                        continue
                    reason = f"'{name}' references excluded {target.value} '{value.key}'"
                elif selection is not None and target not in selection:
                    reason = f"'{name}' references {target.value} #{value}, not selected"
                elif value not in local_ids.get(target, set()):
                    errors.append(
                        self._issue(
                            envelope, f"Dangling reference '{name}' to {target.value} #{value}"
                        )
                    )
                    continue
                else:
                    continue

                if spec.required:
                    errors.append(self._issue(envelope, f"Required reference {reason}"))
                else:
                    warnings.append(self._issue(envelope, f"{reason}; it will be nulled"))

    def _check_cycles(
        self, entity_type: EntityType, envelopes: list[Envelope]
    ) -> Iterable[EntityIssue]:
        field = self_reference(ENVELOPE_TYPES[entity_type])
        if field is None:
            return

        parents: dict[int, int] = {}
        for envelope in envelopes:
            parent = getattr(envelope, field)
            if isinstance(parent, int):
                parents[envelope.local_id] = parent

        by_id = {envelope.local_id: envelope for envelope in envelopes}
        done: set[int] = set()
        for start in parents:
            path: list[int] = []
            node: int | None = start
            while node is not None and node not in done and node not in path:
                path.append(node)
                node = parents.get(node)
            if node is not None and node in path:
                cycle = path[path.index(node):]
                chain = " -> ".join(f"#{local_id}" for local_id in [*cycle, node])
                for local_id in cycle:
                    yield self._issue(by_id[local_id], f"'{field}' forms a cycle: {chain}")
            done.update(path)
