"""Protocol definitions for dependency injection.

The engine talks to its collaborators (content store, staging storage,
configuration) only through these protocols, so tests and host
applications can supply their own implementations.
"""

from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager
from typing import Any, Protocol, runtime_checkable

from .models.options import ConflictStrategy, PageStatus
from .models.schema import EntityType
from .models.snapshot import Snapshot


@runtime_checkable
class ContentTransaction(Protocol):
    """Typed CRUD access to the content store inside one transaction.

    Rows are plain mappings. Reference columns hold destination ids under
    the envelope's reference names (``language``, ``parent``, ``form``);
    many-valued references hold lists of ids.
    """

    def iter_rows(
        self, entity_type: EntityType, *, page_status: PageStatus = PageStatus.ALL
    ) -> Iterator[dict[str, Any]]:
        """Yield every row of a type, each with its destination ``id``."""
        ...

    def find_id(self, entity_type: EntityType, identity: Mapping[str, Any]) -> int | None:
        """Return the id of the row matching an identity, if any."""
        ...

    def insert(self, entity_type: EntityType, values: Mapping[str, Any]) -> int:
        """Insert a row and return its new id."""
        ...

    def update(self, entity_type: EntityType, row_id: int, values: Mapping[str, Any]) -> None:
        """Overwrite a row's fields in place."""
        ...

    def savepoint(self) -> AbstractContextManager[None]:
        """Nested scope whose writes roll back alone if the block raises."""
        ...


@runtime_checkable
class ContentStore(Protocol):
    """Destination store participating in ACID transactions."""

    def transaction(self, *, read_only: bool = False) -> AbstractContextManager[ContentTransaction]:
        """Open a transaction.

        Args:
            read_only: Always roll back on exit, even on success
        """
        ...


@runtime_checkable
class StagingStore(Protocol):
    """Short-lived storage for validated uploads awaiting apply."""

    def put(self, token: str, snapshot: Snapshot) -> None: ...

    def get(self, token: str) -> Snapshot | None: ...

    def clear(self, token: str) -> None: ...


@runtime_checkable
class ConfigProvider(Protocol):
    """Configuration consumed by the engine."""

    @property
    def source_name(self) -> str: ...

    @property
    def max_upload_bytes(self) -> int: ...

    @property
    def rename_max_attempts(self) -> int: ...

    @property
    def default_conflict_strategy(self) -> ConflictStrategy: ...
