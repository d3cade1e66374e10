"""Validation and import results.

Both result types are frozen once returned. The importer accumulates its
outcome in an ``ImportResultBuilder`` and freezes it with ``build()``.
"""

from pydantic import BaseModel, Field

from .schema import DEPENDENCY_ORDER, EntityType


class EntityIssue(BaseModel):
    """An error or warning tied to one envelope.

    Attributes:
        entity_type: Type of the affected envelope, if any
        local_id: Snapshot-local id of the affected envelope, if any
        key: Human-readable identity key
        message: What went wrong
    """

    model_config = {"frozen": True}

    entity_type: EntityType | None = None
    local_id: int | None = None
    key: str = ""
    message: str

    def __str__(self) -> str:
        if self.entity_type is None:
            return self.message
        where = self.entity_type.value
        if self.local_id is not None:
            where = f"{where}#{self.local_id}"
        if self.key:
            where = f"{where} ({self.key})"
        return f"{where}: {self.message}"


class ValidationResult(BaseModel):
    """Outcome of validating an uploaded snapshot.

    Attributes:
        valid: True when there are no errors
        errors: Problems that block applying the snapshot
        warnings: Informational problems (nulled references)
        counts: Envelopes per entity type
    """

    model_config = {"frozen": True}

    valid: bool
    errors: tuple[EntityIssue, ...] = ()
    warnings: tuple[EntityIssue, ...] = ()
    counts: dict[EntityType, int] = Field(default_factory=dict)

    def warnings_for(self, entity_type: EntityType) -> list[EntityIssue]:
        """Warnings recorded against one entity type."""
        return [w for w in self.warnings if w.entity_type == entity_type]


class TypeCounts(BaseModel):
    """Per-type import counters."""

    model_config = {"frozen": True}

    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.created + self.updated + self.skipped + self.failed


class ImportResult(BaseModel):
    """Result of one apply invocation.

    Attributes:
        success: True when the run committed (or, for a dry run, finished)
            with no per-entity errors
        dry_run: Whether this was a simulation
        per_type: Counters per processed entity type
        errors: Per-entity failures, plus the fatal error of an aborted run
        warnings: References nulled during apply
    """

    model_config = {"frozen": True}

    success: bool
    dry_run: bool = False
    per_type: dict[EntityType, TypeCounts] = Field(default_factory=dict)
    errors: tuple[EntityIssue, ...] = ()
    warnings: tuple[EntityIssue, ...] = ()

    def counts_for(self, entity_type: EntityType) -> TypeCounts:
        """Counters for one type, zeros when the type was not processed."""
        return self.per_type.get(entity_type, TypeCounts())

    @property
    def total_created(self) -> int:
        return sum(c.created for c in self.per_type.values())

    @property
    def total_updated(self) -> int:
        return sum(c.updated for c in self.per_type.values())

    @property
    def total_skipped(self) -> int:
        return sum(c.skipped for c in self.per_type.values())

    @property
    def total_failed(self) -> int:
        return sum(c.failed for c in self.per_type.values())


class ImportResultBuilder:
    """Mutable accumulator for an in-progress import."""

    def __init__(self, dry_run: bool) -> None:
        self.dry_run = dry_run
        self._counts: dict[EntityType, dict[str, int]] = {}
        self.errors: list[EntityIssue] = []
        self.warnings: list[EntityIssue] = []

    def start_type(self, entity_type: EntityType) -> None:
        """Register a type so it reports zero counts even when empty."""
        self._counts.setdefault(
            entity_type, {"created": 0, "updated": 0, "skipped": 0, "failed": 0}
        )

    def increment(self, entity_type: EntityType, outcome: str) -> None:
        """Bump one counter (created, updated, skipped or failed)."""
        self.start_type(entity_type)
        self._counts[entity_type][outcome] += 1

    def add_error(self, issue: EntityIssue) -> None:
        self.errors.append(issue)

    def add_warning(self, issue: EntityIssue) -> None:
        self.warnings.append(issue)

    def build(self, success: bool | None = None) -> ImportResult:
        """Freeze the accumulated outcome.

        Args:
            success: Override for the success flag; by default success
                means no errors were recorded
        """
        if success is None:
            success = not self.errors
        per_type = {
            entity_type: TypeCounts(**self._counts[entity_type])
            for entity_type in DEPENDENCY_ORDER
            if entity_type in self._counts
        }
        return ImportResult(
            success=success,
            dry_run=self.dry_run,
            per_type=per_type,
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
        )
