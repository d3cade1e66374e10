"""Snapshot document model.

A snapshot is the portable JSON document produced by export and consumed by
import::

    {
        "format_version": 1,
        "exported_at": "2024-01-01T00:00:00Z",
        "source": {"name": "ocms", "description": "", "url": ""},
        "entities": {"languages": [...], "pages": [...]}
    }
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, SerializeAsAny, ValidationError, field_validator

from .envelopes import ENVELOPE_TYPES, Envelope
from .schema import DEPENDENCY_ORDER, EntityType

FORMAT_VERSION = 1
SUPPORTED_FORMAT_VERSIONS: frozenset[int] = frozenset({FORMAT_VERSION})


class SnapshotSource(BaseModel):
    """Site the snapshot was exported from."""

    name: str = ""
    description: str = ""
    url: str = ""


class Snapshot(BaseModel):
    """Transferable content graph.

    Attributes:
        format_version: Document format version
        exported_at: Export timestamp (UTC)
        source: Exporting site, when known
        entities: Envelopes per entity type, in dependency order
    """

    format_version: int = FORMAT_VERSION
    exported_at: datetime
    source: SnapshotSource | None = None
    entities: dict[EntityType, list[SerializeAsAny[Envelope]]] = Field(default_factory=dict)

    @field_validator("entities", mode="before")
    @classmethod
    def _dispatch_envelopes(cls, value: Any) -> Any:
        """Parse raw envelope dicts into the envelope class of their type."""
        if not isinstance(value, dict):
            return value

        parsed: dict[EntityType, list[Envelope]] = {}
        for raw_type, items in value.items():
            try:
                entity_type = EntityType(raw_type)
            except ValueError:
                raise ValueError(f"unknown entity type '{raw_type}'") from None

            if not isinstance(items, list):
                raise ValueError(f"entities.{entity_type.value} must be a list")

            envelope_cls = ENVELOPE_TYPES[entity_type]
            envelopes: list[Envelope] = []
            for index, item in enumerate(items):
                if isinstance(item, envelope_cls):
                    envelopes.append(item)
                    continue
                try:
                    envelopes.append(envelope_cls.model_validate(item))
                except ValidationError as e:
                    raise ValueError(
                        f"entities.{entity_type.value}[{index}]: "
                        f"{e.error_count()} invalid field(s): {_summarize(e)}"
                    ) from None
            parsed[entity_type] = envelopes

        # Keep document order independent of the uploaded key order
        return {t: parsed[t] for t in DEPENDENCY_ORDER if t in parsed}

    def envelopes(self, entity_type: EntityType) -> list[Envelope]:
        """Envelopes of one type, empty when the type is absent."""
        return self.entities.get(entity_type, [])

    def counts(self) -> dict[EntityType, int]:
        """Number of envelopes per present type."""
        return {entity_type: len(items) for entity_type, items in self.entities.items()}

    def get_entity_count(self) -> int:
        """Total number of envelopes."""
        return sum(len(items) for items in self.entities.values())


def _summarize(error: ValidationError) -> str:
    parts = []
    for detail in error.errors()[:3]:
        location = ".".join(str(part) for part in detail["loc"]) or "<envelope>"
        parts.append(f"{location}: {detail['msg']}")
    return "; ".join(parts)
