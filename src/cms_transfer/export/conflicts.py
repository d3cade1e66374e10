"""Conflict resolution against existing destination content."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..exceptions import RenameExhaustedError
from ..models.envelopes import ENVELOPE_TYPES
from ..models.options import ConflictStrategy
from ..models.schema import EntityType
from ..utils.keys import candidate_keys, format_identity

logger = logging.getLogger(__name__)

IdentityLookup = Callable[[EntityType, Mapping[str, Any]], int | None]


class ResolutionAction(str, Enum):
    """What the importer does with one entity."""

    SKIP = "skip"
    OVERWRITE = "overwrite"
    CREATE = "create"


@dataclass(frozen=True)
class Resolution:
    """Outcome of conflict resolution for one entity.

    Attributes:
        action: Skip, overwrite or create
        identity: Identity to write; differs from the input when renamed
        destination_id: Existing row for skip and overwrite
        renamed_from: Original value of the renamed identity component
    """

    action: ResolutionAction
    identity: dict[str, Any]
    destination_id: int | None = None
    renamed_from: str | None = None

    @property
    def renamed(self) -> bool:
        return self.renamed_from is not None

    @property
    def existing_id(self) -> int:
        """Destination row a skip or overwrite applies to.

        Raises:
            ValueError: If the resolution carries no destination row
        """
        if self.destination_id is None:
            raise ValueError(f"{self.action.value} resolution has no destination row")
        return self.destination_id


class ConflictResolver:
    """Decides skip, overwrite or create for entities by identity key.

    Under ``rename``, a collision is resolved by suffixing the type's rename
    component (``about`` -> ``about-2`` -> ``about-3`` ...) until the lookup
    reports a free key. Types without a rename component are skipped.

    Example:
        >>> existing = {("about",)}
        >>> lookup = lambda t, ident: 7 if tuple(ident.values()) in existing else None
        >>> resolver = ConflictResolver(ConflictStrategy.RENAME, lookup)
        >>> resolver.resolve(EntityType.CATEGORIES, {"slug": "about"}).identity
        {'slug': 'about-2'}
    """

    def __init__(
        self,
        strategy: ConflictStrategy,
        lookup: IdentityLookup,
        max_attempts: int = 100,
    ) -> None:
        """Initialize resolver.

        Args:
            strategy: Policy applied when an identity already exists
            lookup: Destination lookup by identity, returning an id or None
            max_attempts: Rename candidates tried before giving up
        """
        self.strategy = strategy
        self.lookup = lookup
        self.max_attempts = max_attempts

    def resolve(self, entity_type: EntityType, identity: Mapping[str, Any]) -> Resolution:
        """Resolve one entity.

        Args:
            entity_type: Type of the entity
            identity: Destination-side identity (references as destination ids)

        Returns:
            Resolution to execute

        Raises:
            RenameExhaustedError: If no free key is found within max_attempts
        """
        identity = dict(identity)
        existing_id = self.lookup(entity_type, identity)

        if existing_id is None:
            return Resolution(ResolutionAction.CREATE, identity)

        if self.strategy is ConflictStrategy.OVERWRITE:
            return Resolution(ResolutionAction.OVERWRITE, identity, existing_id)

        if self.strategy is ConflictStrategy.RENAME:
            rename_field = ENVELOPE_TYPES[entity_type].rename_field
            if rename_field is not None:
                return self._rename(entity_type, identity, rename_field)
            logger.debug(f"{entity_type.value} cannot be renamed, skipping")

        return Resolution(ResolutionAction.SKIP, identity, existing_id)

    def _rename(
        self, entity_type: EntityType, identity: dict[str, Any], rename_field: str
    ) -> Resolution:
        original = str(identity[rename_field])

        for candidate in candidate_keys(original, self.max_attempts):
            renamed = {**identity, rename_field: candidate}
            if self.lookup(entity_type, renamed) is None:
                logger.debug(f"Renamed {entity_type.value} '{original}' to '{candidate}'")
                return Resolution(ResolutionAction.CREATE, renamed, renamed_from=original)

        raise RenameExhaustedError(
            f"No free {rename_field} for {format_identity(identity)} "
            f"after {self.max_attempts} attempts",
            details={"entity_type": entity_type.value, "value": original},
        )
