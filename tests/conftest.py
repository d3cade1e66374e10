"""Pytest configuration and shared fixtures."""

from collections.abc import Callable, Iterator
from typing import Any

import pytest

from cms_transfer import SQLAlchemyContentStore, TransferConfig
from cms_transfer.models import Snapshot

SnapshotFactory = Callable[..., Snapshot]


@pytest.fixture
def transfer_config() -> TransferConfig:
    """Create a test transfer configuration.

    Returns:
        Configuration with a short rename budget
    """
    return TransferConfig(source_name="Test Site", rename_max_attempts=5)


@pytest.fixture
def store() -> Iterator[SQLAlchemyContentStore]:
    """Create an empty in-memory content store.

    Yields:
        Store with every content table created
    """
    content_store = SQLAlchemyContentStore("sqlite:///:memory:")
    content_store.create_schema()
    yield content_store
    content_store.dispose()


@pytest.fixture
def make_snapshot() -> SnapshotFactory:
    """Build snapshots from raw envelope dicts.

    Returns:
        Callable taking entity type names as keyword arguments, e.g.
        ``make_snapshot(languages=[{"local_id": 1, "code": "en", "name": "English"}])``
    """

    def _make(**entities: list[dict[str, Any]]) -> Snapshot:
        return Snapshot.model_validate(
            {"format_version": 1, "exported_at": "2024-01-01T00:00:00Z", "entities": entities}
        )

    return _make


@pytest.fixture
def english_about_snapshot(make_snapshot: SnapshotFactory) -> Snapshot:
    """One language and one page referencing it.

    Returns:
        Snapshot with languages ``en`` and page ``about``
    """
    return make_snapshot(
        languages=[{"local_id": 1, "code": "en", "name": "English", "is_default": True}],
        pages=[
            {
                "local_id": 1,
                "title": "About",
                "slug": "about",
                "body": "<p>About us</p>",
                "status": "published",
                "language": 1,
            }
        ],
    )
