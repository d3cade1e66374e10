"""Tests for the snapshot document model."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from cms_transfer.models import (
    EntityType,
    LanguageEnvelope,
    PageEnvelope,
    Snapshot,
    SnapshotSource,
)

EXPORTED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestSnapshot:
    """Test snapshot parsing and accessors."""

    def test_dispatches_envelopes_by_type(self, english_about_snapshot):
        """Test that raw envelopes are parsed into their type's class."""
        assert isinstance(english_about_snapshot.envelopes(EntityType.LANGUAGES)[0], LanguageEnvelope)
        assert isinstance(english_about_snapshot.envelopes(EntityType.PAGES)[0], PageEnvelope)

    def test_entities_kept_in_dependency_order(self):
        """Test that uploaded key order does not matter."""
        snapshot = Snapshot.model_validate(
            {
                "exported_at": EXPORTED_AT,
                "entities": {
                    "pages": [{"local_id": 1, "title": "About", "slug": "about"}],
                    "config": [{"local_id": 1, "key": "site_name", "value": "Demo"}],
                    "languages": [{"local_id": 1, "code": "en", "name": "English"}],
                }
            }
        )

        assert list(snapshot.entities) == [
            EntityType.LANGUAGES,
            EntityType.PAGES,
            EntityType.CONFIG,
        ]

    def test_unknown_entity_type(self):
        """Test that an unknown type is rejected."""
        with pytest.raises(ValidationError, match="unknown entity type 'widgets'"):
            Snapshot.model_validate({"exported_at": EXPORTED_AT, "entities": {"widgets": []}})

    def test_type_must_be_list(self):
        """Test that each entity type maps to a list."""
        with pytest.raises(ValidationError, match="must be a list"):
            Snapshot.model_validate(
                {"exported_at": EXPORTED_AT, "entities": {"tags": {"local_id": 1}}}
            )

    def test_malformed_envelope_location(self):
        """Test that a malformed envelope reports its position."""
        with pytest.raises(ValidationError, match=r"entities\.tags\[1\]"):
            Snapshot.model_validate(
                {
                    "exported_at": EXPORTED_AT,
                    "entities": {
                        "tags": [
                            {"local_id": 1, "name": "Python", "slug": "python"},
                            {"local_id": 2, "name": "No slug"},
                        ]
                    }
                }
            )

    def test_counts(self, english_about_snapshot):
        """Test per-type and total counts."""
        assert english_about_snapshot.counts() == {
            EntityType.LANGUAGES: 1,
            EntityType.PAGES: 1,
        }
        assert english_about_snapshot.get_entity_count() == 2

    def test_absent_type_is_empty(self, english_about_snapshot):
        """Test accessing a type the snapshot does not carry."""
        assert english_about_snapshot.envelopes(EntityType.MENUS) == []

    def test_json_dump_keeps_envelope_fields(self, english_about_snapshot):
        """Test that subclass fields survive serialization."""
        dumped = english_about_snapshot.model_dump(mode="json")

        page = dumped["entities"]["pages"][0]
        assert page["slug"] == "about"
        assert page["language"] == 1
        assert dumped["format_version"] == 1

    def test_source(self):
        """Test optional source block."""
        snapshot = Snapshot(
            exported_at=EXPORTED_AT,
            source=SnapshotSource(name="demo", url="https://demo.example.com"),
        )

        assert snapshot.source.name == "demo"
        assert snapshot.entities == {}
        assert snapshot.exported_at.tzinfo is not None

    def test_exported_at_required(self):
        """Test that a document must carry its export timestamp."""
        with pytest.raises(ValidationError, match="exported_at"):
            Snapshot.model_validate({"format_version": 1, "entities": {}})
