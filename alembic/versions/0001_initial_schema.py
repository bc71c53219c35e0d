"""Initial inventory schema.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-09-28
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


TENANT_ID_LENGTH = 255
NAME_LENGTH = 255
DESCRIPTION_LENGTH = 10000
MAX_IMAGES_PER_PARENT = 5


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _owner_id() -> sa.Column:
    return sa.Column(
        "owner_id",
        sa.String(length=TENANT_ID_LENGTH),
        sa.ForeignKey("profiles.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )


def _name_check(table: str) -> sa.CheckConstraint:
    return sa.CheckConstraint(
        f"length(trim(name)) >= 1 AND length(name) <= {NAME_LENGTH}",
        name=f"ck_{table}_name_length",
    )


def _description_check(table: str) -> sa.CheckConstraint:
    return sa.CheckConstraint(
        f"description IS NULL OR length(description) <= {DESCRIPTION_LENGTH}",
        name=f"ck_{table}_description_length",
    )


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(length=TENANT_ID_LENGTH), primary_key=True),
        *_timestamps(),
    )

    op.create_table(
        "containers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _owner_id(),
        sa.Column("name", sa.String(length=NAME_LENGTH), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        _name_check("containers"),
        _description_check("containers"),
    )
    op.create_index("ix_containers_owner_id", "containers", ["owner_id"])

    op.create_table(
        "categories",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _owner_id(),
        sa.Column("name", sa.String(length=NAME_LENGTH), nullable=False),
        sa.Column("name_key", sa.Text(), nullable=False),
        *_timestamps(),
        _name_check("categories"),
    )
    op.create_index("ix_categories_owner_id", "categories", ["owner_id"])
    op.create_index(
        "uq_categories_owner_name_key",
        "categories",
        ["owner_id", "name_key"],
        unique=True,
    )

    op.create_table(
        "items",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _owner_id(),
        sa.Column("name", sa.String(length=NAME_LENGTH), nullable=False),
        sa.Column(
            "category_id",
            sa.String(length=36),
            sa.ForeignKey("categories.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "container_id",
            sa.String(length=36),
            sa.ForeignKey("containers.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("is_in", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        *_timestamps(),
        _name_check("items"),
        _description_check("items"),
        sa.CheckConstraint("quantity IS NULL OR quantity > 0", name="ck_items_quantity_positive"),
    )
    op.create_index("ix_items_owner_id", "items", ["owner_id"])
    op.create_index("ix_items_category_id", "items", ["category_id"])
    op.create_index("ix_items_container_id", "items", ["container_id"])
    op.create_index("ix_items_owner_is_in", "items", ["owner_id", "is_in"])
    op.create_index("ix_items_owner_created", "items", ["owner_id", "created_at"])
    op.create_index(
        "ix_items_owner_filters",
        "items",
        ["owner_id", "category_id", "container_id", "is_in"],
    )
    op.create_index("ix_items_owner_lower_name", "items", ["owner_id", sa.text("lower(name)")])

    op.create_table(
        "images",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _owner_id(),
        sa.Column(
            "parent_kind",
            sa.Enum("item", "container", name="parent_kind_enum"),
            nullable=False,
        ),
        sa.Column("parent_id", sa.String(length=36), nullable=False),
        sa.Column("storage_path", sa.Text(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "parent_kind",
            "parent_id",
            "display_order",
            name="uq_images_parent_display_order",
        ),
        sa.CheckConstraint(
            f"display_order >= 1 AND display_order <= {MAX_IMAGES_PER_PARENT}",
            name="ck_images_display_order_range",
        ),
    )
    op.create_index("ix_images_owner_id", "images", ["owner_id"])
    op.create_index(
        "ix_images_item_parent",
        "images",
        ["parent_id"],
        postgresql_where=sa.text("parent_kind = 'item'"),
        sqlite_where=sa.text("parent_kind = 'item'"),
    )
    op.create_index(
        "ix_images_container_parent",
        "images",
        ["parent_id"],
        postgresql_where=sa.text("parent_kind = 'container'"),
        sqlite_where=sa.text("parent_kind = 'container'"),
    )


def downgrade() -> None:
    op.drop_index("ix_images_container_parent", table_name="images")
    op.drop_index("ix_images_item_parent", table_name="images")
    op.drop_index("ix_images_owner_id", table_name="images")
    op.drop_table("images")
    sa.Enum(name="parent_kind_enum").drop(op.get_bind(), checkfirst=True)

    op.drop_index("ix_items_owner_lower_name", table_name="items")
    op.drop_index("ix_items_owner_filters", table_name="items")
    op.drop_index("ix_items_owner_created", table_name="items")
    op.drop_index("ix_items_owner_is_in", table_name="items")
    op.drop_index("ix_items_container_id", table_name="items")
    op.drop_index("ix_items_category_id", table_name="items")
    op.drop_index("ix_items_owner_id", table_name="items")
    op.drop_table("items")

    op.drop_index("uq_categories_owner_name_key", table_name="categories")
    op.drop_index("ix_categories_owner_id", table_name="categories")
    op.drop_table("categories")

    op.drop_index("ix_containers_owner_id", table_name="containers")
    op.drop_table("containers")

    op.drop_table("profiles")
