"""Tests for export and import options."""

from cms_transfer.models import (
    ConflictStrategy,
    EntityType,
    ExportOptions,
    ImportOptions,
    PageStatus,
)
from cms_transfer.models.options import ordered


class TestExportOptions:
    """Test export inclusion flags."""

    def test_defaults_exclude_submissions(self):
        """Test that everything but submissions is exported by default."""
        included = ExportOptions().included_types()

        assert EntityType.FORM_SUBMISSIONS not in included
        assert included == frozenset(EntityType) - {EntityType.FORM_SUBMISSIONS}

    def test_include_submissions(self):
        """Test opting in to submissions."""
        included = ExportOptions(include_submissions=True).included_types()

        assert EntityType.FORM_SUBMISSIONS in included

    def test_submissions_need_forms(self):
        """Test that submissions are dropped when forms are excluded."""
        included = ExportOptions(include_forms=False, include_submissions=True).included_types()

        assert EntityType.FORMS not in included
        assert EntityType.FORM_FIELDS not in included
        assert EntityType.FORM_SUBMISSIONS not in included

    def test_media_flag_covers_folders(self):
        """Test that the media flag selects folders and media together."""
        included = ExportOptions(include_media=False).included_types()

        assert EntityType.MEDIA not in included
        assert EntityType.MEDIA_FOLDERS not in included

    def test_nothing(self):
        """Test options with every flag off."""
        options = ExportOptions.nothing()

        assert options.included_types() == frozenset()
        assert options.page_status is PageStatus.ALL

    def test_page_status_from_string(self):
        """Test parsing the page status filter."""
        assert ExportOptions(page_status="published").page_status is PageStatus.PUBLISHED


class TestImportOptions:
    """Test import selection flags."""

    def test_defaults(self):
        """Test default import options."""
        options = ImportOptions()

        assert options.dry_run is False
        assert options.conflict_strategy is ConflictStrategy.SKIP
        assert options.selected_types() == frozenset(EntityType)

    def test_menus_flag_covers_items(self):
        """Test that the menus flag selects menus and their items."""
        selected = ImportOptions(import_menus=False).selected_types()

        assert EntityType.MENUS not in selected
        assert EntityType.MENU_ITEMS not in selected
        assert EntityType.PAGES in selected

    def test_submissions_need_forms(self):
        """Test that submissions are not applied without their forms."""
        selected = ImportOptions(import_forms=False).selected_types()

        assert EntityType.FORM_SUBMISSIONS not in selected

    def test_progress_callback_not_dumped(self):
        """Test that the callback is excluded from serialization."""
        options = ImportOptions(progress_callback=lambda current, total, message: None)

        assert "progress_callback" not in options.model_dump()


class TestOrdered:
    """Test dependency ordering of type selections."""

    def test_ordered(self):
        """Test that types come back in apply order."""
        types = frozenset({EntityType.CONFIG, EntityType.PAGES, EntityType.LANGUAGES})

        assert ordered(types) == [EntityType.LANGUAGES, EntityType.PAGES, EntityType.CONFIG]

    def test_ordered_empty(self):
        """Test ordering an empty selection."""
        assert ordered(frozenset()) == []
