"""
homestash database models.

Five relations: profiles (tenants), containers, categories, items and the
polymorphic images table. Every row carries owner_id; the schema-level
guards (casefolded category name keys, image slot uniqueness, restrict on
delete) are declared here and mirrored by the alembic migrations.
"""

from datetime import datetime, timezone
from enum import Enum as PyEnum
import uuid

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey,
    CheckConstraint, Index, UniqueConstraint, Enum, event, func, text, true,
)
from sqlalchemy.orm import relationship, declarative_base, validates

import core.config as config

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid_default() -> str:
    return str(uuid.uuid4())


def category_name_key(name: str) -> str:
    """Comparison key for category names, identical on every backend."""
    return name.strip().casefold()


# =============================================================================
# Enums
# =============================================================================

class ParentKind(str, PyEnum):
    item = "item"
    container = "container"


# =============================================================================
# Shared columns
# =============================================================================

class TimestampMixin:
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


@event.listens_for(TimestampMixin, "before_update", propagate=True)
def _stamp_updated_at(mapper, connection, target) -> None:
    target.updated_at = utcnow()


def _owner_column():
    return Column(
        String(config.MAX_TENANT_ID_LENGTH),
        ForeignKey("profiles.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )


def _name_checks(table: str) -> tuple:
    return (
        CheckConstraint(
            f"length(trim(name)) >= 1 AND length(name) <= {config.MAX_NAME_LENGTH}",
            name=f"ck_{table}_name_length",
        ),
    )


def _description_check(table: str) -> CheckConstraint:
    return CheckConstraint(
        f"description IS NULL OR length(description) <= {config.MAX_DESCRIPTION_LENGTH}",
        name=f"ck_{table}_description_length",
    )


# =============================================================================
# Profiles (one per tenant)
# =============================================================================

class Profile(TimestampMixin, Base):
    __tablename__ = "profiles"

    id = Column(String(config.MAX_TENANT_ID_LENGTH), primary_key=True)


# =============================================================================
# Containers
# =============================================================================

class Container(TimestampMixin, Base):
    __tablename__ = "containers"

    id = Column(String(36), primary_key=True, default=_uuid_default)
    owner_id = _owner_column()
    name = Column(String(config.MAX_NAME_LENGTH), nullable=False)
    description = Column(Text)

    items = relationship("Item", back_populates="container", passive_deletes="all")

    __table_args__ = (
        *_name_checks("containers"),
        _description_check("containers"),
        Index("ix_containers_owner_id", "owner_id"),
    )


# =============================================================================
# Categories
# =============================================================================

class Category(TimestampMixin, Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=_uuid_default)
    owner_id = _owner_column()
    name = Column(String(config.MAX_NAME_LENGTH), nullable=False)
    # Set from name in Python; sqlite lower() only folds ASCII
    name_key = Column(Text, nullable=False)

    items = relationship("Item", back_populates="category", passive_deletes="all")

    __table_args__ = (
        *_name_checks("categories"),
        Index("ix_categories_owner_id", "owner_id"),
    )

    @validates("name")
    def _sync_name_key(self, key, value):
        if value is not None:
            self.name_key = category_name_key(value)
        return value


# Case-insensitive unique names per owner; authoritative duplicate guard
CATEGORY_NAME_INDEX = "uq_categories_owner_name_key"
Index(CATEGORY_NAME_INDEX, Category.owner_id, Category.name_key, unique=True)


# =============================================================================
# Items
# =============================================================================

class Item(TimestampMixin, Base):
    __tablename__ = "items"

    id = Column(String(36), primary_key=True, default=_uuid_default)
    owner_id = _owner_column()
    name = Column(String(config.MAX_NAME_LENGTH), nullable=False)
    category_id = Column(String(36), ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False)
    container_id = Column(String(36), ForeignKey("containers.id", ondelete="RESTRICT"), nullable=False)
    is_in = Column(Boolean, nullable=False, default=True, server_default=true())
    description = Column(Text)
    quantity = Column(Integer)

    category = relationship("Category", back_populates="items")
    container = relationship("Container", back_populates="items")

    __table_args__ = (
        *_name_checks("items"),
        _description_check("items"),
        CheckConstraint("quantity IS NULL OR quantity > 0", name="ck_items_quantity_positive"),
        Index("ix_items_owner_id", "owner_id"),
        Index("ix_items_category_id", "category_id"),
        Index("ix_items_container_id", "container_id"),
        Index("ix_items_owner_is_in", "owner_id", "is_in"),
        Index("ix_items_owner_created", "owner_id", "created_at"),
        Index("ix_items_owner_filters", "owner_id", "category_id", "container_id", "is_in"),
    )


Index("ix_items_owner_lower_name", Item.owner_id, func.lower(Item.name))


# =============================================================================
# Images (polymorphic attachments)
# =============================================================================

IMAGE_SLOT_INDEX = "uq_images_parent_display_order"


class Image(TimestampMixin, Base):
    __tablename__ = "images"

    id = Column(String(36), primary_key=True, default=_uuid_default)
    owner_id = _owner_column()
    # No FK on parent_id: it points into items or containers depending on parent_kind
    parent_kind = Column(Enum(ParentKind, name="parent_kind_enum"), nullable=False)
    parent_id = Column(String(36), nullable=False)
    storage_path = Column(Text, nullable=False)
    display_order = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("parent_kind", "parent_id", "display_order", name=IMAGE_SLOT_INDEX),
        CheckConstraint(
            f"display_order >= 1 AND display_order <= {config.MAX_IMAGES_PER_PARENT}",
            name="ck_images_display_order_range",
        ),
        Index("ix_images_owner_id", "owner_id"),
        Index(
            "ix_images_item_parent",
            "parent_id",
            postgresql_where=text("parent_kind = 'item'"),
            sqlite_where=text("parent_kind = 'item'"),
        ),
        Index(
            "ix_images_container_parent",
            "parent_id",
            postgresql_where=text("parent_kind = 'container'"),
            sqlite_where=text("parent_kind = 'container'"),
        ),
    )


PARENT_MODELS = {
    ParentKind.item: Item,
    ParentKind.container: Container,
}

OWNED_MODELS = (Image, Item, Category, Container)
