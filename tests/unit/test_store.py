"""Tests for the SQLAlchemy content store."""

from datetime import datetime

import pytest

from cms_transfer import SQLAlchemyContentStore, TransferConfig
from cms_transfer.exceptions import StoreConstraintError, StoreError
from cms_transfer.models import EntityType, PageStatus
from cms_transfer.protocols import ContentStore, ContentTransaction


def _count(store, entity_type):
    with store.transaction(read_only=True) as tx:
        return len(list(tx.iter_rows(entity_type)))


class TestSQLAlchemyContentStore:
    """Test transactions and protocol conformance."""

    def test_implements_protocols(self, store):
        """Test that the store satisfies the engine protocols."""
        assert isinstance(store, ContentStore)
        with store.transaction(read_only=True) as tx:
            assert isinstance(tx, ContentTransaction)

    def test_from_config(self):
        """Test building a store from configuration."""
        config = TransferConfig(database_url="sqlite:///:memory:")

        content_store = SQLAlchemyContentStore.from_config(config)
        content_store.create_schema()

        assert _count(content_store, EntityType.LANGUAGES) == 0
        content_store.dispose()

    def test_commit(self, store):
        """Test that a successful transaction commits."""
        with store.transaction() as tx:
            tx.insert(EntityType.LANGUAGES, {"code": "en", "name": "English"})

        assert _count(store, EntityType.LANGUAGES) == 1

    def test_read_only_rolls_back(self, store):
        """Test that a read-only transaction never persists writes."""
        with store.transaction(read_only=True) as tx:
            tx.insert(EntityType.LANGUAGES, {"code": "en", "name": "English"})

        assert _count(store, EntityType.LANGUAGES) == 0

    def test_error_rolls_back(self, store):
        """Test that an exception rolls back every write."""
        with pytest.raises(RuntimeError):
            with store.transaction() as tx:
                tx.insert(EntityType.LANGUAGES, {"code": "en", "name": "English"})
                raise RuntimeError("boom")

        assert _count(store, EntityType.LANGUAGES) == 0

    def test_savepoint_isolates_failure(self, store):
        """Test that a failed savepoint keeps earlier writes of the transaction."""
        with store.transaction() as tx:
            tx.insert(EntityType.TAGS, {"name": "Python", "slug": "python"})
            with pytest.raises(StoreConstraintError):
                with tx.savepoint():
                    tx.insert(EntityType.TAGS, {"name": "Python", "slug": "python"})
            tx.insert(EntityType.TAGS, {"name": "Rust", "slug": "rust"})

        with store.transaction(read_only=True) as tx:
            slugs = [row["slug"] for row in tx.iter_rows(EntityType.TAGS)]
        assert slugs == ["python", "rust"]

    def test_foreign_keys_enforced(self, store):
        """Test that SQLite foreign keys are enforced."""
        with pytest.raises(StoreConstraintError):
            with store.transaction() as tx:
                tx.insert(EntityType.MENU_ITEMS, {"title": "Home", "menu": 999})


class TestSQLAlchemyTransaction:
    """Test typed row access."""

    def test_rows_use_reference_names(self, store):
        """Test that rows expose references under envelope names."""
        with store.transaction() as tx:
            en = tx.insert(EntityType.LANGUAGES, {"code": "en", "name": "English"})
            news = tx.insert(EntityType.CATEGORIES, {"name": "News", "slug": "news", "language": en})
            python = tx.insert(EntityType.TAGS, {"name": "Python", "slug": "python"})
            tx.insert(
                EntityType.PAGES,
                {
                    "title": "About",
                    "slug": "about",
                    "language": en,
                    "categories": [news],
                    "tags": [python, python],
                },
            )

        with store.transaction(read_only=True) as tx:
            page = next(tx.iter_rows(EntityType.PAGES))

        assert page["language"] == en
        assert page["categories"] == [news]
        assert page["tags"] == [python]
        assert "language_id" not in page
        assert page["status"] == "draft"

    def test_private_columns_hidden(self, store):
        """Test that password hashes never leave the store."""
        with store.transaction() as tx:
            tx.insert(
                EntityType.USERS,
                {"email": "jane@example.com", "name": "Jane", "password_hash": "x"},
            )

        with store.transaction(read_only=True) as tx:
            user = next(tx.iter_rows(EntityType.USERS))

        assert "password_hash" not in user
        assert user["email"] == "jane@example.com"

    def test_page_status_filter(self, store):
        """Test filtering pages by status."""
        with store.transaction() as tx:
            tx.insert(EntityType.PAGES, {"title": "A", "slug": "a", "status": "published"})
            tx.insert(EntityType.PAGES, {"title": "B", "slug": "b", "status": "draft"})

        with store.transaction(read_only=True) as tx:
            published = list(tx.iter_rows(EntityType.PAGES, page_status=PageStatus.PUBLISHED))
            everything = list(tx.iter_rows(EntityType.PAGES))

        assert [row["slug"] for row in published] == ["a"]
        assert len(everything) == 2

    def test_find_id(self, store):
        """Test identity lookup, including null components."""
        with store.transaction() as tx:
            en = tx.insert(EntityType.LANGUAGES, {"code": "en", "name": "English"})
            with_language = tx.insert(
                EntityType.PAGES, {"title": "About", "slug": "about", "language": en}
            )
            without_language = tx.insert(EntityType.PAGES, {"title": "About", "slug": "about"})

            assert tx.find_id(EntityType.PAGES, {"slug": "about", "language": en}) == with_language
            assert (
                tx.find_id(EntityType.PAGES, {"slug": "about", "language": None})
                == without_language
            )
            assert tx.find_id(EntityType.PAGES, {"slug": "contact", "language": en}) is None

    def test_find_submission_by_timestamp(self, store):
        """Test looking up a submission by its composite identity."""
        created_at = datetime(2024, 3, 1, 9, 30)
        with store.transaction() as tx:
            form = tx.insert(EntityType.FORMS, {"name": "Contact", "slug": "contact"})
            submission = tx.insert(
                EntityType.FORM_SUBMISSIONS,
                {"form": form, "data": '{"email": "a@b.c"}', "created_at": created_at},
            )

            identity = {"form": form, "created_at": created_at, "data": '{"email": "a@b.c"}'}
            assert tx.find_id(EntityType.FORM_SUBMISSIONS, identity) == submission

    def test_update_replaces_fields_and_links(self, store):
        """Test overwriting a row in place."""
        with store.transaction() as tx:
            python = tx.insert(EntityType.TAGS, {"name": "Python", "slug": "python"})
            rust = tx.insert(EntityType.TAGS, {"name": "Rust", "slug": "rust"})
            page = tx.insert(
                EntityType.PAGES, {"title": "About", "slug": "about", "tags": [python]}
            )

        with store.transaction() as tx:
            tx.update(
                EntityType.PAGES,
                page,
                {"title": "About us", "slug": "about", "tags": [rust]},
            )

        with store.transaction(read_only=True) as tx:
            row = next(tx.iter_rows(EntityType.PAGES))

        assert row["id"] == page
        assert row["title"] == "About us"
        assert row["tags"] == [rust]

    def test_translation_links(self, store):
        """Test that a translation link is stored on its owner only."""
        with store.transaction() as tx:
            python = tx.insert(EntityType.TAGS, {"name": "Python", "slug": "python"})
            rust = tx.insert(EntityType.TAGS, {"name": "Rust", "slug": "rust"})
            tx.update(EntityType.TAGS, python, {"translations": [rust]})

        with store.transaction(read_only=True) as tx:
            rows = {row["slug"]: row for row in tx.iter_rows(EntityType.TAGS)}

        assert rows["python"]["translations"] == [rust]
        assert rows["python"]["name"] == "Python"
        assert rows["rust"]["translations"] == []

    def test_update_missing_row(self, store):
        """Test that updating a missing row is a store error."""
        with pytest.raises(StoreError, match="does not exist"):
            with store.transaction() as tx:
                tx.update(EntityType.TAGS, 42, {"name": "x", "slug": "x"})

    def test_media_variants_round_trip(self, store):
        """Test that JSON columns keep their structure."""
        variants = [{"type": "thumbnail", "width": 150, "height": 150, "size": 2048}]
        with store.transaction() as tx:
            tx.insert(
                EntityType.MEDIA,
                {
                    "uuid": "a1",
                    "filename": "logo.png",
                    "mime_type": "image/png",
                    "variants": variants,
                },
            )

        with store.transaction(read_only=True) as tx:
            media = next(tx.iter_rows(EntityType.MEDIA))

        assert media["variants"] == variants
