"""E2E test configuration and fixtures.

This module provides a seeded source site and an empty destination site,
each backed by its own SQLite database file so that a transfer crosses
real engine boundaries.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from seed_data import DataSeeder, SeededSite

from cms_transfer import SQLAlchemyContentStore


def pytest_configure(config: pytest.Config) -> None:
    """Register the e2e marker."""
    config.addinivalue_line("markers", "e2e: marks test as e2e (file-backed SQLite stores)")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test in this directory as e2e."""
    for item in items:
        if item.path.parent == Path(__file__).parent:
            item.add_marker(pytest.mark.e2e)


def _open_store(path: Path) -> SQLAlchemyContentStore:
    content_store = SQLAlchemyContentStore(f"sqlite:///{path}")
    content_store.create_schema()
    return content_store


@pytest.fixture
def source_store(tmp_path: Path) -> Iterator[SQLAlchemyContentStore]:
    """Source site database.

    Yields:
        Store with every content table created, not yet seeded
    """
    content_store = _open_store(tmp_path / "source.db")
    yield content_store
    content_store.dispose()


@pytest.fixture
def destination_store(tmp_path: Path) -> Iterator[SQLAlchemyContentStore]:
    """Empty destination site database.

    Yields:
        Store with every content table created and no rows
    """
    content_store = _open_store(tmp_path / "destination.db")
    yield content_store
    content_store.dispose()


@pytest.fixture
def seeded_site(source_store: SQLAlchemyContentStore) -> SeededSite:
    """Seed the source site.

    Returns:
        Ids and values of the seeded rows
    """
    return DataSeeder(source_store).seed_all()
