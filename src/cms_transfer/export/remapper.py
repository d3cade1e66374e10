"""Identifier remapping for import operations.

Imported entities receive new destination ids, so every reference inside an
envelope is rewritten to the destination id of its already-applied target
before the entity itself is written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..exceptions import RemapError, UnresolvedReferenceError
from ..models.envelopes import Envelope, ExcludedRef
from ..models.schema import EntityType, RefSpec

logger = logging.getLogger(__name__)


@dataclass
class ResolvedReferences:
    """Destination-side reference values of one envelope.

    Attributes:
        values: Reference name -> destination id, list of ids, or None
        warnings: References nulled while rewriting
    """

    values: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


class IdentifierRemapper:
    """Per-import table translating snapshot-local ids to destination ids.

    The table is filled strictly in dependency order. Entities that failed
    to apply are tracked so their dependants get a per-entity error rather
    than an invariant violation.

    Example:
        >>> remapper = IdentifierRemapper()
        >>> remapper.record(EntityType.LANGUAGES, 1, 42)
        >>> remapper.resolve(EntityType.LANGUAGES, 1)
        42
        >>> remapper.get(EntityType.LANGUAGES, 2) is None
        True
    """

    def __init__(self) -> None:
        self._table: dict[EntityType, dict[int, int]] = {}
        self._failed: dict[EntityType, set[int]] = {}

    def record(self, entity_type: EntityType, local_id: int, destination_id: int) -> None:
        """Remember where a snapshot entity landed in the destination."""
        self._table.setdefault(entity_type, {})[local_id] = destination_id

    def get(self, entity_type: EntityType, local_id: int) -> int | None:
        """Destination id of a local id, or None if not recorded."""
        return self._table.get(entity_type, {}).get(local_id)

    def resolve(self, entity_type: EntityType, local_id: int) -> int:
        """Destination id of a local id.

        Raises:
            RemapError: If the id was never recorded; this means entities were
                applied out of order or validation missed a dangling reference
        """
        destination_id = self.get(entity_type, local_id)
        if destination_id is None:
            raise RemapError(
                f"No destination id recorded for {entity_type.value} #{local_id}",
                details={"entity_type": entity_type.value, "local_id": local_id},
            )
        return destination_id

    def mark_failed(self, entity_type: EntityType, local_id: int) -> None:
        """Record that an entity could not be applied."""
        self._failed.setdefault(entity_type, set()).add(local_id)

    def is_failed(self, entity_type: EntityType, local_id: int) -> bool:
        return local_id in self._failed.get(entity_type, set())

    @property
    def id_mapping(self) -> dict[EntityType, dict[int, int]]:
        """Copy of the remap table."""
        return {entity_type: dict(ids) for entity_type, ids in self._table.items()}

    def rewrite(
        self, envelope: Envelope, selection: frozenset[EntityType] | None = None
    ) -> ResolvedReferences:
        """Rewrite the references of an envelope to destination ids.

        Deferred references are left out; see ``rewrite_deferred``. Excluded
        references, and references into types outside ``selection``,
        are nulled with a warning. Optional references to failed entities are
        nulled with a warning too.

        Args:
            envelope: Envelope whose references to rewrite
            selection: Entity types being imported; None means all

        Returns:
            Resolved reference values and warnings

        Raises:
            UnresolvedReferenceError: If a required reference cannot be
                satisfied (excluded, unselected or failed target)
            RemapError: If a reference target was never applied
        """
        return self._rewrite(envelope, selection, deferred=False)

    def rewrite_deferred(
        self, envelope: Envelope, selection: frozenset[EntityType] | None = None
    ) -> ResolvedReferences:
        """Rewrite only the deferred references of an envelope.

        Called once every envelope of the type has been applied, so links
        between entities of that type can point either way. Targets that
        failed are nulled with a warning.
        """
        return self._rewrite(envelope, selection, deferred=True)

    def _rewrite(
        self, envelope: Envelope, selection: frozenset[EntityType] | None, deferred: bool
    ) -> ResolvedReferences:
        resolved = ResolvedReferences()

        for name, spec in envelope.references.items():
            if spec.deferred != deferred:
                continue
            raw = getattr(envelope, name)
            if spec.many:
                ids = []
                for item in raw:
                    destination_id = self._rewrite_one(name, spec, item, selection, resolved)
                    if destination_id is not None:
                        ids.append(destination_id)
                resolved.values[name] = ids
            else:
                resolved.values[name] = self._rewrite_one(name, spec, raw, selection, resolved)

        return resolved

    def _rewrite_one(
        self,
        name: str,
        spec: RefSpec,
        value: int | ExcludedRef | None,
        selection: frozenset[EntityType] | None,
        resolved: ResolvedReferences,
    ) -> int | None:
        target = spec.target.value

        if value is None:
            if spec.required:
                raise UnresolvedReferenceError(f"Required reference '{name}' is missing")
            return None

        if isinstance(value, ExcludedRef):
            return self._null(
                name, spec, resolved, f"'{name}' references excluded {target} '{value.key}'"
            )

        if selection is not None and spec.target not in selection:
            return self._null(
                name, spec, resolved, f"'{name}' references {target} #{value}, not selected"
            )

        if self.is_failed(spec.target, value):
            return self._null(
                name, spec, resolved, f"'{name}' references {target} #{value}, which failed"
            )

        return self.resolve(spec.target, value)

    @staticmethod
    def _null(name: str, spec: RefSpec, resolved: ResolvedReferences, reason: str) -> None:
        if spec.required:
            raise UnresolvedReferenceError(f"Required reference {reason}")
        resolved.warnings.append(f"Reference nulled: {reason}")
        logger.debug(f"Nulled reference {name}: {reason}")
        return None
