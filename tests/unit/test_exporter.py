"""Tests for export orchestration."""

from contextlib import contextmanager
from datetime import datetime

import pytest

from cms_transfer import Exporter
from cms_transfer.exceptions import ExportError, StoreError
from cms_transfer.export import parse_snapshot
from cms_transfer.models import EntityType, ExcludedRef, ExportOptions, PageStatus


@pytest.fixture
def seeded_store(store):
    """Store holding a small site with every kind of reference."""
    with store.transaction() as tx:
        fr = tx.insert(EntityType.LANGUAGES, {"code": "fr", "name": "French"})
        en = tx.insert(EntityType.LANGUAGES, {"code": "en", "name": "English", "is_default": True})
        jane = tx.insert(
            EntityType.USERS,
            {"email": "jane@example.com", "name": "Jane", "role": "admin", "password_hash": "h"},
        )
        news = tx.insert(EntityType.CATEGORIES, {"name": "News", "slug": "news", "language": en})
        tx.insert(
            EntityType.CATEGORIES,
            {"name": "Local", "slug": "local", "parent": news, "language": fr},
        )
        python = tx.insert(EntityType.TAGS, {"name": "Python", "slug": "python"})
        images = tx.insert(EntityType.MEDIA_FOLDERS, {"name": "Images", "path": "/images/"})
        logo = tx.insert(
            EntityType.MEDIA,
            {
                "uuid": "m-1",
                "filename": "logo.png",
                "mime_type": "image/png",
                "folder": images,
                "uploaded_by": jane,
            },
        )
        about = tx.insert(
            EntityType.PAGES,
            {
                "title": "About",
                "slug": "about",
                "status": "published",
                "language": en,
                "author": jane,
                "categories": [news],
                "tags": [python],
                "featured_image": logo,
            },
        )
        draft = tx.insert(
            EntityType.PAGES,
            {"title": "Draft", "slug": "draft-page", "status": "draft", "language": en},
        )
        main = tx.insert(EntityType.MENUS, {"name": "Main", "slug": "main", "language": en})
        home = tx.insert(
            EntityType.MENU_ITEMS, {"title": "Home", "menu": main, "page": about, "position": 0}
        )
        tx.insert(
            EntityType.MENU_ITEMS,
            {"title": "Drafts", "menu": main, "page": draft, "parent": home, "position": 1},
        )
        contact = tx.insert(EntityType.FORMS, {"name": "Contact", "slug": "contact"})
        tx.insert(EntityType.FORM_FIELDS, {"name": "email", "field_type": "email", "form": contact})
        tx.insert(
            EntityType.FORM_SUBMISSIONS,
            {"form": contact, "data": "{}", "created_at": datetime(2024, 1, 1, 8, 0)},
        )
        tx.insert(EntityType.REDIRECTS, {"source_path": "/old/", "target_url": "/new/"})
        tx.insert(EntityType.CONFIG, {"key": "site_name", "value": "Demo Site"})
    return store


class TestExporter:
    """Test building snapshots from a store."""

    def test_default_export(self, seeded_store):
        """Test exporting with default options."""
        snapshot = Exporter(seeded_store).export()

        assert snapshot.counts() == {
            EntityType.LANGUAGES: 2,
            EntityType.USERS: 1,
            EntityType.CATEGORIES: 2,
            EntityType.TAGS: 1,
            EntityType.MEDIA_FOLDERS: 1,
            EntityType.MEDIA: 1,
            EntityType.PAGES: 2,
            EntityType.MENUS: 1,
            EntityType.MENU_ITEMS: 2,
            EntityType.FORMS: 1,
            EntityType.FORM_FIELDS: 1,
            EntityType.REDIRECTS: 1,
            EntityType.CONFIG: 1,
        }

    def test_local_ids_follow_identity_order(self, seeded_store):
        """Test that envelopes are numbered 1..n by identity key."""
        snapshot = Exporter(seeded_store).export()

        languages = snapshot.envelopes(EntityType.LANGUAGES)
        assert [(lang.local_id, lang.code) for lang in languages] == [(1, "en"), (2, "fr")]

    def test_references_use_local_ids(self, seeded_store):
        """Test that references point at local ids, never destination ids."""
        snapshot = Exporter(seeded_store).export()

        about = snapshot.envelopes(EntityType.PAGES)[0]
        assert about.slug == "about"
        assert about.language == 1
        assert about.author == 1
        assert about.categories == [2]
        assert about.tags == [1]
        assert about.featured_image == 1

    def test_parent_references_renumbered(self, seeded_store):
        """Test that self-references use the renumbered local ids."""
        snapshot = Exporter(seeded_store).export()

        local, news = snapshot.envelopes(EntityType.CATEGORIES)
        assert (local.slug, news.slug) == ("local", "news")
        assert local.parent == news.local_id == 2
        assert local.language == 2

        home, drafts = snapshot.envelopes(EntityType.MENU_ITEMS)
        assert drafts.parent == home.local_id

    def test_excluded_type_becomes_marker(self, seeded_store):
        """Test that references into excluded types carry natural keys."""
        snapshot = Exporter(seeded_store).export(
            ExportOptions(include_categories=False, include_users=False)
        )

        assert EntityType.CATEGORIES not in snapshot.entities
        about = snapshot.envelopes(EntityType.PAGES)[0]
        assert about.categories == [ExcludedRef(excluded=EntityType.CATEGORIES, key="news")]
        assert about.author == ExcludedRef(excluded=EntityType.USERS, key="jane@example.com")

    def test_page_status_filter(self, seeded_store):
        """Test that filtered-out pages become markers in menu items."""
        snapshot = Exporter(seeded_store).export(ExportOptions(page_status=PageStatus.PUBLISHED))

        assert [page.slug for page in snapshot.envelopes(EntityType.PAGES)] == ["about"]
        home, drafts = snapshot.envelopes(EntityType.MENU_ITEMS)
        assert home.page == 1
        assert drafts.page == ExcludedRef(excluded=EntityType.PAGES, key="draft-page")

    def test_submissions_opt_in(self, seeded_store):
        """Test that submissions are exported only when asked for."""
        snapshot = Exporter(seeded_store).export(ExportOptions(include_submissions=True))

        submission = snapshot.envelopes(EntityType.FORM_SUBMISSIONS)[0]
        assert submission.form == 1
        assert submission.created_at == datetime(2024, 1, 1, 8, 0)

    def test_submissions_without_forms_omitted(self, seeded_store):
        """Test that submissions are never exported without their forms."""
        snapshot = Exporter(seeded_store).export(
            ExportOptions(include_forms=False, include_submissions=True)
        )

        assert EntityType.FORM_SUBMISSIONS not in snapshot.entities

    def test_password_hash_not_exported(self, seeded_store):
        """Test that user envelopes hold no credentials."""
        snapshot = Exporter(seeded_store).export()

        user = snapshot.model_dump(mode="json")["entities"]["users"][0]
        assert "password_hash" not in user
        assert user["role"] == "admin"

    def test_source_from_site_config(self, seeded_store, transfer_config):
        """Test that the source block comes from site configuration."""
        snapshot = Exporter(seeded_store, transfer_config).export(ExportOptions.nothing())

        assert snapshot.entities == {}
        assert snapshot.source.name == "Demo Site"

    def test_source_defaults_to_config(self, store, transfer_config):
        """Test the source name fallback."""
        snapshot = Exporter(store, transfer_config).export()

        assert snapshot.source.name == "test-site"
        assert snapshot.get_entity_count() == 0

    def test_export_is_deterministic(self, seeded_store):
        """Test that two exports of the same data are identical."""
        exporter = Exporter(seeded_store)

        first = exporter.export().model_dump(mode="json", exclude={"exported_at"})
        second = exporter.export().model_dump(mode="json", exclude={"exported_at"})

        assert first == second

    def test_progress_callback(self, seeded_store):
        """Test progress reporting."""
        calls = []

        Exporter(seeded_store).export(
            ExportOptions.nothing().model_copy(update={"include_tags": True}),
            progress_callback=lambda current, total, message: calls.append((current, total)),
        )

        assert calls == [(0, 1), (1, 1)]

    def test_store_failure(self):
        """Test that read failures become export errors."""

        class BrokenStore:
            @contextmanager
            def transaction(self, *, read_only=False):
                raise StoreError("database is locked")
                yield

        with pytest.raises(ExportError, match="Export failed: database is locked"):
            Exporter(BrokenStore()).export()


@pytest.fixture
def multilingual_store(store):
    """Store with one page and one category translated into other languages."""
    with store.transaction() as tx:
        de = tx.insert(EntityType.LANGUAGES, {"code": "de", "name": "German"})
        en = tx.insert(EntityType.LANGUAGES, {"code": "en", "name": "English"})
        fr = tx.insert(EntityType.LANGUAGES, {"code": "fr", "name": "French"})
        pages = [
            tx.insert(
                EntityType.PAGES,
                {"title": title, "slug": slug, "status": status, "language": language},
            )
            for title, slug, status, language in (
                ("About", "about", "published", en),
                ("Über uns", "ueber", "published", de),
                ("À propos", "a-propos", "draft", fr),
            )
        ]
        for page_id in pages:
            others = [other for other in pages if other != page_id]
            tx.update(EntityType.PAGES, page_id, {"translations": others})
        news = tx.insert(EntityType.CATEGORIES, {"name": "News", "slug": "news", "language": en})
        nouvelles = tx.insert(
            EntityType.CATEGORIES,
            {"name": "Nouvelles", "slug": "nouvelles", "language": fr, "translations": [news]},
        )
        tx.update(EntityType.CATEGORIES, news, {"translations": [nouvelles]})
    return store


class TestTranslations:
    """Test exporting translation links."""

    def test_translations_use_local_ids(self, multilingual_store):
        """Test that links are renumbered with the type they point into."""
        snapshot = Exporter(multilingual_store).export()

        a_propos, about, ueber = snapshot.envelopes(EntityType.PAGES)
        assert [a_propos.slug, about.slug, ueber.slug] == ["a-propos", "about", "ueber"]
        assert about.translations == [1, 3]
        assert a_propos.translations == [2, 3]
        assert ueber.translations == [1, 2]

        news, nouvelles = snapshot.envelopes(EntityType.CATEGORIES)
        assert news.translations == [nouvelles.local_id]
        assert nouvelles.translations == [news.local_id]

    def test_filtered_translation_becomes_marker(self, multilingual_store):
        """Test that a link to a page left out by status carries its slug."""
        snapshot = Exporter(multilingual_store).export(
            ExportOptions(page_status=PageStatus.PUBLISHED)
        )

        about, ueber = snapshot.envelopes(EntityType.PAGES)
        assert about.translations == [
            ueber.local_id,
            ExcludedRef(excluded=EntityType.PAGES, key="a-propos"),
        ]

    def test_untranslated_tag(self, seeded_store):
        """Test that entities without translations export an empty list."""
        snapshot = Exporter(seeded_store).export()

        assert snapshot.envelopes(EntityType.TAGS)[0].translations == []


class TestExporterOutput:
    """Test writing exports to bytes and files."""

    def test_export_to_bytes(self, seeded_store):
        """Test that the byte document parses back to the same snapshot."""
        exporter = Exporter(seeded_store)

        body = exporter.export_to_bytes()
        snapshot = parse_snapshot(body)

        expected = exporter.export().model_dump(mode="json", exclude={"exported_at"})
        assert snapshot.model_dump(mode="json", exclude={"exported_at"}) == expected

    def test_save_and_load(self, seeded_store, tmp_path):
        """Test saving a snapshot to a file and loading it back."""
        path = tmp_path / "exports" / "site.json"

        snapshot = Exporter(seeded_store).export_to_file(ExportOptions(), path)
        loaded = Exporter.load_from_file(path)

        assert path.exists()
        assert loaded.counts() == snapshot.counts()
        assert loaded.source == snapshot.source

    def test_load_missing_file(self, tmp_path):
        """Test loading a file that does not exist."""
        with pytest.raises(ExportError, match="Failed to load export file"):
            Exporter.load_from_file(tmp_path / "missing.json")
