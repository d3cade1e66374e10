"""Export and import options."""

from collections.abc import Callable
from enum import Enum

from pydantic import BaseModel, Field

from .schema import DEPENDENCY_ORDER, EntityType


class ConflictStrategy(str, Enum):
    """What to do when an imported entity's identity key already exists."""

    SKIP = "skip"
    OVERWRITE = "overwrite"
    RENAME = "rename"


class PageStatus(str, Enum):
    """Page status filter for export."""

    ALL = "all"
    PUBLISHED = "published"
    DRAFT = "draft"


# Option flag suffix -> entity types it covers
TYPE_GROUPS: dict[str, tuple[EntityType, ...]] = {
    "languages": (EntityType.LANGUAGES,),
    "users": (EntityType.USERS,),
    "categories": (EntityType.CATEGORIES,),
    "tags": (EntityType.TAGS,),
    "media": (EntityType.MEDIA_FOLDERS, EntityType.MEDIA),
    "pages": (EntityType.PAGES,),
    "menus": (EntityType.MENUS, EntityType.MENU_ITEMS),
    "forms": (EntityType.FORMS, EntityType.FORM_FIELDS),
    "submissions": (EntityType.FORM_SUBMISSIONS,),
    "redirects": (EntityType.REDIRECTS,),
    "config": (EntityType.CONFIG,),
}


def _selected(flags: dict[str, bool]) -> frozenset[EntityType]:
    selected: set[EntityType] = set()
    for group, enabled in flags.items():
        if enabled:
            selected.update(TYPE_GROUPS[group])
    # A submission cannot exist without its form
    if not flags.get("forms"):
        selected.discard(EntityType.FORM_SUBMISSIONS)
    return frozenset(selected)


def ordered(types: frozenset[EntityType]) -> list[EntityType]:
    """Return entity types in dependency order."""
    return [entity_type for entity_type in DEPENDENCY_ORDER if entity_type in types]


class ExportOptions(BaseModel):
    """Selects what an export includes.

    Defaults include everything except form submissions, which hold
    visitor data.

    Example:
        >>> options = ExportOptions(include_users=False, page_status=PageStatus.PUBLISHED)
        >>> EntityType.USERS in options.included_types()
        False
    """

    include_languages: bool = True
    include_users: bool = True
    include_categories: bool = True
    include_tags: bool = True
    include_media: bool = True
    include_pages: bool = True
    include_menus: bool = True
    include_forms: bool = True
    include_submissions: bool = False
    include_redirects: bool = True
    include_config: bool = True
    page_status: PageStatus = PageStatus.ALL

    @classmethod
    def nothing(cls) -> "ExportOptions":
        """Options with every inclusion flag off."""
        return cls(**{f"include_{group}": False for group in TYPE_GROUPS})

    def included_types(self) -> frozenset[EntityType]:
        """Entity types selected by the inclusion flags."""
        return _selected({group: getattr(self, f"include_{group}") for group in TYPE_GROUPS})


class ImportOptions(BaseModel):
    """Controls how a snapshot is applied.

    Attributes:
        dry_run: Simulate the import without persisting anything
        conflict_strategy: Policy for identity key collisions
        progress_callback: Optional callback(current, total, message)
    """

    model_config = {"arbitrary_types_allowed": True}

    dry_run: bool = False
    conflict_strategy: ConflictStrategy = ConflictStrategy.SKIP
    import_languages: bool = True
    import_users: bool = True
    import_categories: bool = True
    import_tags: bool = True
    import_media: bool = True
    import_pages: bool = True
    import_menus: bool = True
    import_forms: bool = True
    import_submissions: bool = True
    import_redirects: bool = True
    import_config: bool = True
    progress_callback: Callable[[int, int, str], None] | None = Field(default=None, exclude=True)

    def selected_types(self) -> frozenset[EntityType]:
        """Entity types selected by the import flags."""
        return _selected({group: getattr(self, f"import_{group}") for group in TYPE_GROUPS})
