"""ORM models of the CMS content store, one per transferable entity type.

Column names match envelope field names. Reference columns are named
``<reference>_id``; many-valued references live in association tables.
``TABLES`` maps every entity type to its model and reference columns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..models.schema import EntityType


class Base(DeclarativeBase):
    """Declarative base for all content tables."""

    pass


page_categories = Table(
    "page_categories",
    Base.metadata,
    Column("page_id", Integer, ForeignKey("pages.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "category_id", Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True
    ),
)

page_tags = Table(
    "page_tags",
    Base.metadata,
    Column("page_id", Integer, ForeignKey("pages.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


def _translation_table(name: str, owner_table: str) -> Table:
    # Both columns point at the owner table; rows are written per direction
    return Table(
        name,
        Base.metadata,
        Column(
            "owner_id",
            Integer,
            ForeignKey(f"{owner_table}.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        Column(
            "translation_id",
            Integer,
            ForeignKey(f"{owner_table}.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )


page_translations = _translation_table("page_translations", "pages")
category_translations = _translation_table("category_translations", "categories")
tag_translations = _translation_table("tag_translations", "tags")


class Language(Base):
    __tablename__ = "languages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    native_name: Mapped[str] = mapped_column(String(100), default="")
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    direction: Mapped[str] = mapped_column(String(3), default="ltr")
    position: Mapped[int] = mapped_column(Integer, default=0)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), default="editor")
    password_hash: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, doc="Null for imported users until they reset it"
    )
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    position: Mapped[int] = mapped_column(Integer, default=0)
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    language_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("languages.id", ondelete="SET NULL"), nullable=True
    )


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    language_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("languages.id", ondelete="SET NULL"), nullable=True
    )


class MediaFolder(Base):
    __tablename__ = "media_folders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    path: Mapped[str] = mapped_column(String(1024), unique=True, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0)
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("media_folders.id", ondelete="SET NULL"), nullable=True
    )


class Media(Base):
    __tablename__ = "media"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    uuid: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(127), nullable=False)
    size: Mapped[int] = mapped_column(Integer, default=0)
    width: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    alt: Mapped[str] = mapped_column(Text, default="")
    caption: Mapped[str] = mapped_column(Text, default="")
    variants: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, default=list, doc="Rendition metadata (type, width, height, size)"
    )
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    folder_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("media_folders.id", ondelete="SET NULL"), nullable=True
    )
    uploaded_by_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    language_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("languages.id", ondelete="SET NULL"), nullable=True
    )


class Page(Base):
    __tablename__ = "pages"
    __table_args__ = (UniqueConstraint("slug", "language_id", name="uq_page_slug_language"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(16), default="draft")
    meta_title: Mapped[str] = mapped_column(String(255), default="")
    meta_description: Mapped[str] = mapped_column(Text, default="")
    meta_keywords: Mapped[str] = mapped_column(Text, default="")
    no_index: Mapped[bool] = mapped_column(Boolean, default=False)
    no_follow: Mapped[bool] = mapped_column(Boolean, default=False)
    canonical_url: Mapped[str] = mapped_column(String(1024), default="")
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    scheduled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    author_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    language_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("languages.id", ondelete="SET NULL"), nullable=True
    )
    featured_image_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("media.id", ondelete="SET NULL"), nullable=True
    )
    og_image_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("media.id", ondelete="SET NULL"), nullable=True
    )


class Menu(Base):
    __tablename__ = "menus"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    language_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("languages.id", ondelete="SET NULL"), nullable=True
    )


class MenuItem(Base):
    __tablename__ = "menu_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(1024), default="")
    target: Mapped[str] = mapped_column(String(16), default="_self")
    css_class: Mapped[str] = mapped_column(String(255), default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    menu_id: Mapped[int] = mapped_column(
        ForeignKey("menus.id", ondelete="CASCADE"), nullable=False
    )
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("menu_items.id", ondelete="CASCADE"), nullable=True
    )
    page_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("pages.id", ondelete="SET NULL"), nullable=True
    )


class Form(Base):
    __tablename__ = "forms"
    __table_args__ = (UniqueConstraint("slug", "language_id", name="uq_form_slug_language"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(255), default="")
    description: Mapped[str] = mapped_column(Text, default="")
    success_message: Mapped[str] = mapped_column(Text, default="")
    email_to: Mapped[str] = mapped_column(String(255), default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    language_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("languages.id", ondelete="SET NULL"), nullable=True
    )


class FormField(Base):
    __tablename__ = "form_fields"
    __table_args__ = (UniqueConstraint("form_id", "name", name="uq_form_field_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    field_type: Mapped[str] = mapped_column(String(32), default="text")
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    label: Mapped[str] = mapped_column(String(255), default="")
    placeholder: Mapped[str] = mapped_column(String(255), default="")
    help_text: Mapped[str] = mapped_column(Text, default="")
    options: Mapped[str] = mapped_column(Text, default="")
    validation: Mapped[str] = mapped_column(Text, default="")
    is_required: Mapped[bool] = mapped_column(Boolean, default=False)
    position: Mapped[int] = mapped_column(Integer, default=0)
    form_id: Mapped[int] = mapped_column(
        ForeignKey("forms.id", ondelete="CASCADE"), nullable=False
    )


class FormSubmission(Base):
    __tablename__ = "form_submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    data: Mapped[str] = mapped_column(Text, nullable=False, doc="JSON-encoded field values")
    ip_address: Mapped[str] = mapped_column(String(45), default="")
    user_agent: Mapped[str] = mapped_column(Text, default="")
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    form_id: Mapped[int] = mapped_column(
        ForeignKey("forms.id", ondelete="CASCADE"), nullable=False
    )


class Redirect(Base):
    __tablename__ = "redirects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source_path: Mapped[str] = mapped_column(String(1024), unique=True, nullable=False)
    target_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    status_code: Mapped[int] = mapped_column(Integer, default=301)
    is_wildcard: Mapped[bool] = mapped_column(Boolean, default=False)
    target_type: Mapped[str] = mapped_column(String(16), default="_self")
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)


class ConfigItem(Base):
    __tablename__ = "config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    value: Mapped[str] = mapped_column(Text, default="")
    value_type: Mapped[str] = mapped_column(String(32), default="string")
    description: Mapped[str] = mapped_column(Text, default="")


@dataclass(frozen=True)
class TableSpec:
    """How an entity type is stored.

    Attributes:
        model: ORM model class
        refs: Single reference name -> foreign key attribute
        links: Many reference name -> (association table, owner column, target column)
        private: Columns never exposed to export
    """

    model: type[Base]
    refs: dict[str, str] = field(default_factory=dict)
    links: dict[str, tuple[Table, str, str]] = field(default_factory=dict)
    private: frozenset[str] = frozenset()


TABLES: dict[EntityType, TableSpec] = {
    EntityType.LANGUAGES: TableSpec(Language),
    EntityType.USERS: TableSpec(User, private=frozenset({"password_hash"})),
    EntityType.CATEGORIES: TableSpec(
        Category,
        refs={"parent": "parent_id", "language": "language_id"},
        links={"translations": (category_translations, "owner_id", "translation_id")},
    ),
    EntityType.TAGS: TableSpec(
        Tag,
        refs={"language": "language_id"},
        links={"translations": (tag_translations, "owner_id", "translation_id")},
    ),
    EntityType.MEDIA_FOLDERS: TableSpec(MediaFolder, refs={"parent": "parent_id"}),
    EntityType.MEDIA: TableSpec(
        Media,
        refs={
            "folder": "folder_id",
            "uploaded_by": "uploaded_by_id",
            "language": "language_id",
        },
    ),
    EntityType.PAGES: TableSpec(
        Page,
        refs={
            "author": "author_id",
            "language": "language_id",
            "featured_image": "featured_image_id",
            "og_image": "og_image_id",
        },
        links={
            "categories": (page_categories, "page_id", "category_id"),
            "tags": (page_tags, "page_id", "tag_id"),
            "translations": (page_translations, "owner_id", "translation_id"),
        },
    ),
    EntityType.MENUS: TableSpec(Menu, refs={"language": "language_id"}),
    EntityType.MENU_ITEMS: TableSpec(
        MenuItem, refs={"menu": "menu_id", "parent": "parent_id", "page": "page_id"}
    ),
    EntityType.FORMS: TableSpec(Form, refs={"language": "language_id"}),
    EntityType.FORM_FIELDS: TableSpec(FormField, refs={"form": "form_id"}),
    EntityType.FORM_SUBMISSIONS: TableSpec(FormSubmission, refs={"form": "form_id"}),
    EntityType.REDIRECTS: TableSpec(Redirect),
    EntityType.CONFIG: TableSpec(ConfigItem),
}
