"""Row-level security policies keyed on app.tenant_id.

Revision ID: 0002_row_level_security
Revises: 0001_initial_schema
Create Date: 2026-09-30

Postgres only. Every tenant transaction stamps app.tenant_id with
set_config(..., true); the policies below admit only rows whose owner matches.
Policies do not bind the table owner, so the service must connect as a
separate, non-owner role for them to take effect.
"""

from alembic import op


revision = "0002_row_level_security"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


POLICY_NAME = "tenant_isolation"
TENANT_SETTING = "current_setting('app.tenant_id', true)"

OWNED_TABLES = {
    "profiles": "id",
    "containers": "owner_id",
    "categories": "owner_id",
    "items": "owner_id",
    "images": "owner_id",
}


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name != "postgresql":
        return

    for table, column in OWNED_TABLES.items():
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(
            f"CREATE POLICY {POLICY_NAME} ON {table} "
            f"USING ({column} = {TENANT_SETTING}) "
            f"WITH CHECK ({column} = {TENANT_SETTING})"
        )


def downgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name != "postgresql":
        return

    for table in OWNED_TABLES:
        op.execute(f"DROP POLICY IF EXISTS {POLICY_NAME} ON {table}")
        op.execute(f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY")
