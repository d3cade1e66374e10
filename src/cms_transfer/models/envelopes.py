"""Typed envelopes for every transferable entity.

An envelope is one entity's portable representation: its own field values,
its snapshot-local id, and references to other envelopes in the same
snapshot. References never hold destination database ids.

A reference value has three states:

- ``None``: no reference
- ``int``: local id of an envelope of the declared target type
- ``ExcludedRef``: the target type was left out of the export; the value
  records the natural key of the target for display
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Annotated, Any, ClassVar

from pydantic import BaseModel, Field

from ..utils.keys import format_identity
from .schema import EntityType, RefSpec

LocalId = Annotated[int, Field(ge=1)]


class ExcludedRef(BaseModel):
    """Reference whose target type was deliberately excluded from the export.

    Example:
        >>> ExcludedRef(excluded=EntityType.CATEGORIES, key="news").model_dump(mode="json")
        {'excluded': 'categories', 'key': 'news'}
    """

    model_config = {"extra": "forbid", "frozen": True}

    excluded: EntityType
    key: str = ""

    def __str__(self) -> str:
        return f"{self.key or '?'} (excluded {self.excluded.value})"


Ref = LocalId | ExcludedRef | None
RefList = list[LocalId | ExcludedRef]


def flatten_ref(value: Any) -> list[int | ExcludedRef]:
    """Return the non-null reference values of a single or many-valued field."""
    if value is None:
        return []
    if isinstance(value, list):
        return list(value)
    return [value]


def _sortable(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return f"{value:012d}"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, ExcludedRef):
        return f"~{value.excluded.value}:{value.key}"
    return str(value)


class Envelope(BaseModel):
    """Base class of all entity envelopes.

    Subclasses declare:

    - ``entity_type``: the type tag
    - ``identity_fields``: fields forming the natural identity key; a field
      that is also a reference compares by local id inside a snapshot and by
      destination id against the store
    - ``rename_field``: identity component suffixed by the rename strategy,
      or ``None`` when the type cannot be renamed
    - ``references``: reference fields and their targets
    """

    model_config = {"extra": "forbid"}

    entity_type: ClassVar[EntityType]
    identity_fields: ClassVar[tuple[str, ...]]
    rename_field: ClassVar[str | None] = None
    references: ClassVar[dict[str, RefSpec]] = {}

    local_id: LocalId

    def field_values(self) -> dict[str, Any]:
        """Own field values, without the local id and references."""
        return self.model_dump(exclude={"local_id", *self.references})

    def reference_values(self) -> dict[str, Any]:
        """Raw reference values keyed by reference field."""
        return {name: getattr(self, name) for name in self.references}

    def identity(self, resolved: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Identity components of this envelope.

        Args:
            resolved: Destination ids for reference fields. When given,
                reference components are taken from here instead of the
                snapshot-local values.

        Returns:
            Mapping of identity field name to value
        """
        values: dict[str, Any] = {}
        for name in self.identity_fields:
            if resolved is not None and name in self.references:
                values[name] = resolved.get(name)
            else:
                values[name] = getattr(self, name)
        return values

    def identity_key(self) -> tuple[Any, ...]:
        """Hashable snapshot-local identity key."""
        return tuple(self.identity().values())

    def sort_key(self) -> tuple[str, ...]:
        """Total ordering over identity keys, used for deterministic export."""
        return tuple(_sortable(value) for value in self.identity_key())

    def display_key(self) -> str:
        """Short human-readable identity for messages."""
        return format_identity(self.identity())


class MediaVariant(BaseModel):
    """Generated rendition of a media item (thumbnail, etc.)."""

    type: str
    width: int = 0
    height: int = 0
    size: int = 0


class LanguageEnvelope(Envelope):
    entity_type: ClassVar[EntityType] = EntityType.LANGUAGES
    identity_fields: ClassVar[tuple[str, ...]] = ("code",)
    rename_field: ClassVar[str | None] = "code"

    code: str
    name: str
    native_name: str = ""
    is_default: bool = False
    is_active: bool = True
    direction: str = "ltr"
    position: int = 0


class UserEnvelope(Envelope):
    """User account. Password hashes are never exported."""

    entity_type: ClassVar[EntityType] = EntityType.USERS
    identity_fields: ClassVar[tuple[str, ...]] = ("email",)
    rename_field: ClassVar[str | None] = "email"

    email: str
    name: str
    role: str = "editor"
    created_at: datetime | None = None


class CategoryEnvelope(Envelope):
    entity_type: ClassVar[EntityType] = EntityType.CATEGORIES
    identity_fields: ClassVar[tuple[str, ...]] = ("slug",)
    rename_field: ClassVar[str | None] = "slug"
    references: ClassVar[dict[str, RefSpec]] = {
        "parent": RefSpec(EntityType.CATEGORIES),
        "language": RefSpec(EntityType.LANGUAGES),
        "translations": RefSpec(EntityType.CATEGORIES, many=True, deferred=True),
    }

    name: str
    slug: str
    description: str = ""
    position: int = 0
    parent: Ref = None
    language: Ref = None
    translations: RefList = Field(default_factory=list)


class TagEnvelope(Envelope):
    entity_type: ClassVar[EntityType] = EntityType.TAGS
    identity_fields: ClassVar[tuple[str, ...]] = ("slug",)
    rename_field: ClassVar[str | None] = "slug"
    references: ClassVar[dict[str, RefSpec]] = {
        "language": RefSpec(EntityType.LANGUAGES),
        "translations": RefSpec(EntityType.TAGS, many=True, deferred=True),
    }

    name: str
    slug: str
    language: Ref = None
    translations: RefList = Field(default_factory=list)


class MediaFolderEnvelope(Envelope):
    entity_type: ClassVar[EntityType] = EntityType.MEDIA_FOLDERS
    identity_fields: ClassVar[tuple[str, ...]] = ("path",)
    rename_field: ClassVar[str | None] = "path"
    references: ClassVar[dict[str, RefSpec]] = {
        "parent": RefSpec(EntityType.MEDIA_FOLDERS),
    }

    name: str
    path: str
    position: int = 0
    parent: Ref = None


class MediaEnvelope(Envelope):
    """Media metadata row. Binary payloads are not transferred."""

    entity_type: ClassVar[EntityType] = EntityType.MEDIA
    identity_fields: ClassVar[tuple[str, ...]] = ("uuid",)
    rename_field: ClassVar[str | None] = "uuid"
    references: ClassVar[dict[str, RefSpec]] = {
        "folder": RefSpec(EntityType.MEDIA_FOLDERS),
        "uploaded_by": RefSpec(EntityType.USERS),
        "language": RefSpec(EntityType.LANGUAGES),
    }

    uuid: str
    filename: str
    mime_type: str
    size: int = 0
    width: int | None = None
    height: int | None = None
    alt: str = ""
    caption: str = ""
    variants: list[MediaVariant] = Field(default_factory=list)
    created_at: datetime | None = None
    folder: Ref = None
    uploaded_by: Ref = None
    language: Ref = None


class PageEnvelope(Envelope):
    entity_type: ClassVar[EntityType] = EntityType.PAGES
    identity_fields: ClassVar[tuple[str, ...]] = ("slug", "language")
    rename_field: ClassVar[str | None] = "slug"
    references: ClassVar[dict[str, RefSpec]] = {
        "author": RefSpec(EntityType.USERS),
        "language": RefSpec(EntityType.LANGUAGES),
        "categories": RefSpec(EntityType.CATEGORIES, many=True),
        "tags": RefSpec(EntityType.TAGS, many=True),
        "featured_image": RefSpec(EntityType.MEDIA),
        "og_image": RefSpec(EntityType.MEDIA),
        "translations": RefSpec(EntityType.PAGES, many=True, deferred=True),
    }

    title: str
    slug: str
    body: str = ""
    status: str = "draft"
    meta_title: str = ""
    meta_description: str = ""
    meta_keywords: str = ""
    no_index: bool = False
    no_follow: bool = False
    canonical_url: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    published_at: datetime | None = None
    scheduled_at: datetime | None = None
    author: Ref = None
    language: Ref = None
    categories: RefList = Field(default_factory=list)
    tags: RefList = Field(default_factory=list)
    featured_image: Ref = None
    og_image: Ref = None
    translations: RefList = Field(default_factory=list)


class MenuEnvelope(Envelope):
    entity_type: ClassVar[EntityType] = EntityType.MENUS
    identity_fields: ClassVar[tuple[str, ...]] = ("slug",)
    rename_field: ClassVar[str | None] = "slug"
    references: ClassVar[dict[str, RefSpec]] = {
        "language": RefSpec(EntityType.LANGUAGES),
    }

    name: str
    slug: str
    language: Ref = None


class MenuItemEnvelope(Envelope):
    entity_type: ClassVar[EntityType] = EntityType.MENU_ITEMS
    identity_fields: ClassVar[tuple[str, ...]] = ("menu", "position", "title")
    rename_field: ClassVar[str | None] = "title"
    references: ClassVar[dict[str, RefSpec]] = {
        "menu": RefSpec(EntityType.MENUS, required=True),
        "parent": RefSpec(EntityType.MENU_ITEMS),
        "page": RefSpec(EntityType.PAGES),
    }

    title: str
    url: str = ""
    target: str = "_self"
    css_class: str = ""
    is_active: bool = True
    position: int = 0
    menu: Ref = None
    parent: Ref = None
    page: Ref = None


class FormEnvelope(Envelope):
    entity_type: ClassVar[EntityType] = EntityType.FORMS
    identity_fields: ClassVar[tuple[str, ...]] = ("slug", "language")
    rename_field: ClassVar[str | None] = "slug"
    references: ClassVar[dict[str, RefSpec]] = {
        "language": RefSpec(EntityType.LANGUAGES),
    }

    name: str
    slug: str
    title: str = ""
    description: str = ""
    success_message: str = ""
    email_to: str = ""
    is_active: bool = True
    language: Ref = None


class FormFieldEnvelope(Envelope):
    entity_type: ClassVar[EntityType] = EntityType.FORM_FIELDS
    identity_fields: ClassVar[tuple[str, ...]] = ("form", "name")
    rename_field: ClassVar[str | None] = "name"
    references: ClassVar[dict[str, RefSpec]] = {
        "form": RefSpec(EntityType.FORMS, required=True),
    }

    field_type: str = "text"
    name: str
    label: str = ""
    placeholder: str = ""
    help_text: str = ""
    options: str = ""
    validation: str = ""
    is_required: bool = False
    position: int = 0
    form: Ref = None


class FormSubmissionEnvelope(Envelope):
    """Form submission. Submissions are never renamed."""

    entity_type: ClassVar[EntityType] = EntityType.FORM_SUBMISSIONS
    identity_fields: ClassVar[tuple[str, ...]] = ("form", "created_at", "data")
    references: ClassVar[dict[str, RefSpec]] = {
        "form": RefSpec(EntityType.FORMS, required=True),
    }

    data: str
    ip_address: str = ""
    user_agent: str = ""
    is_read: bool = False
    created_at: datetime
    form: Ref = None


class RedirectEnvelope(Envelope):
    entity_type: ClassVar[EntityType] = EntityType.REDIRECTS
    identity_fields: ClassVar[tuple[str, ...]] = ("source_path",)
    rename_field: ClassVar[str | None] = "source_path"

    source_path: str
    target_url: str
    status_code: int = 301
    is_wildcard: bool = False
    target_type: str = "_self"
    enabled: bool = True


class ConfigEnvelope(Envelope):
    entity_type: ClassVar[EntityType] = EntityType.CONFIG
    identity_fields: ClassVar[tuple[str, ...]] = ("key",)
    rename_field: ClassVar[str | None] = "key"

    key: str
    value: str = ""
    value_type: str = "string"
    description: str = ""


ENVELOPE_TYPES: dict[EntityType, type[Envelope]] = {
    cls.entity_type: cls
    for cls in (
        LanguageEnvelope,
        UserEnvelope,
        CategoryEnvelope,
        TagEnvelope,
        MediaFolderEnvelope,
        MediaEnvelope,
        PageEnvelope,
        MenuEnvelope,
        MenuItemEnvelope,
        FormEnvelope,
        FormFieldEnvelope,
        FormSubmissionEnvelope,
        RedirectEnvelope,
        ConfigEnvelope,
    )
}
