"""Entity types and the dependency order they are applied in."""

from dataclasses import dataclass
from enum import Enum


class EntityType(str, Enum):
    """Transferable entity types, declared in dependency order."""

    LANGUAGES = "languages"
    USERS = "users"
    CATEGORIES = "categories"
    TAGS = "tags"
    MEDIA_FOLDERS = "media_folders"
    MEDIA = "media"
    PAGES = "pages"
    MENUS = "menus"
    MENU_ITEMS = "menu_items"
    FORMS = "forms"
    FORM_FIELDS = "form_fields"
    FORM_SUBMISSIONS = "form_submissions"
    REDIRECTS = "redirects"
    CONFIG = "config"


# Every type appears after every type it references. Media precede pages
# because a page points at its featured and OG images.
DEPENDENCY_ORDER: tuple[EntityType, ...] = tuple(EntityType)


@dataclass(frozen=True)
class RefSpec:
    """Declared reference from one envelope field to another entity type.

    Attributes:
        target: Entity type the reference points at
        many: Whether the field holds a list of references
        required: Whether a missing reference makes the envelope invalid
        deferred: Written only after every envelope of the type is applied;
            set on links between entities of one type that may point at
            each other
    """

    target: EntityType
    many: bool = False
    required: bool = False
    deferred: bool = False