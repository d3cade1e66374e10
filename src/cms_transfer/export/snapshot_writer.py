"""Streaming snapshot writer.

Writes a snapshot as one JSON document, one envelope per line, so exports
diff cleanly and large snapshots are never serialized into a single string.

Layout::

    {
      "format_version": 1,
      "exported_at": "...",
      "source": {...},
      "entities": {
        "languages": [
          {"local_id": 1, "code": "en", ...},
          {"local_id": 2, "code": "fr", ...}
        ],
        "pages": [
          ...
        ]
      }
    }
"""

import json
import logging
from pathlib import Path
from typing import IO, Any

from ..exceptions import ExportError
from ..models.envelopes import Envelope
from ..models.schema import EntityType
from ..models.snapshot import Snapshot

logger = logging.getLogger(__name__)


class SnapshotWriter:
    """Streaming snapshot writer.

    Accepts a file path (opened and closed by the writer) or an open text
    sink (left open).

    Example:
        >>> with SnapshotWriter("export.json") as writer:
        ...     writer.write_snapshot(snapshot)
        >>> buffer = io.StringIO()
        >>> with SnapshotWriter(buffer) as writer:
        ...     writer.write_snapshot(snapshot)
    """

    def __init__(self, target: str | Path | IO[str]) -> None:
        """Initialize writer.

        Args:
            target: Output file path or writable text stream
        """
        if isinstance(target, (str, Path)):
            self.file_path: Path | None = Path(target)
            self._file: IO[str] | None = None
        else:
            self.file_path = None
            self._file = target
        self._owns_file = self.file_path is not None
        self._open = False
        self._current_type: EntityType | None = None
        self._types_written = 0
        self._in_type = 0
        self._entity_count = 0
        self._type_counts: dict[str, int] = {}

    def __enter__(self) -> "SnapshotWriter":
        """Open the output for writing."""
        if self._owns_file:
            assert self.file_path is not None
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.file_path, "w", encoding="utf-8")
        self._open = True
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Close the output if the writer opened it."""
        self._open = False
        if self._owns_file and self._file:
            self._file.close()
            self._file = None

    def write_snapshot(self, snapshot: Snapshot) -> None:
        """Write a complete snapshot document."""
        self.begin(snapshot)
        for entity_type, envelopes in snapshot.entities.items():
            self.begin_type(entity_type)
            for envelope in envelopes:
                self.write_envelope(envelope)
        self.end()
        logger.debug(f"Wrote snapshot with {self._entity_count} entities")

    def begin(self, snapshot: Snapshot) -> None:
        """Write the document header (everything before the first entity type)."""
        header = snapshot.model_dump(mode="json", exclude={"entities"})
        self._write("{\n")
        for name, value in header.items():
            self._write(f"  {json.dumps(name)}: {self._dumps(value)},\n")
        self._write('  "entities": {')

    def begin_type(self, entity_type: EntityType) -> None:
        """Start the envelope list of one entity type."""
        self._close_type()
        separator = "," if self._types_written else ""
        self._write(f"{separator}\n    {json.dumps(entity_type.value)}: [")
        self._current_type = entity_type
        self._types_written += 1
        self._in_type = 0

    def write_envelope(self, envelope: Envelope) -> None:
        """Write one envelope into the current entity type list."""
        if self._current_type is None:
            raise ExportError("begin_type() must be called before write_envelope()")
        if envelope.entity_type is not self._current_type:
            raise ExportError(
                f"Envelope of type {envelope.entity_type.value} written "
                f"into {self._current_type.value}"
            )

        separator = "," if self._in_type else ""
        self._write(f"{separator}\n      {self._dumps(envelope.model_dump(mode='json'))}")
        self._in_type += 1
        self._entity_count += 1
        key = self._current_type.value
        self._type_counts[key] = self._type_counts.get(key, 0) + 1

    def end(self) -> None:
        """Close the document."""
        self._close_type()
        closing = "\n  }\n}\n" if self._types_written else "}\n}\n"
        self._write(closing)

    def _close_type(self) -> None:
        if self._current_type is not None:
            self._write("\n    ]" if self._in_type else "]")
            self._current_type = None

    @staticmethod
    def _dumps(value: Any) -> str:
        return json.dumps(value, ensure_ascii=False, default=str)

    def _write(self, text: str) -> None:
        if not self._open or self._file is None:
            raise ExportError("Writer not opened - use context manager")
        self._file.write(text)

    @property
    def entity_count(self) -> int:
        """Get total envelopes written."""
        return self._entity_count

    @property
    def type_counts(self) -> dict[str, int]:
        """Get envelope counts per entity type."""
        return self._type_counts.copy()
