"""deleted catalog objects

Revision ID: 002_deleted_catalog_objects
Revises: 001_billing_sync
Create Date: 2026-10-18 12:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

revision = "002_deleted_catalog_objects"
down_revision = "001_billing_sync"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "deleted_catalog_objects",
        sa.Column("id", sa.String(length=255), nullable=False),
        sa.Column("object_type", sa.String(length=40), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("deleted_catalog_objects")
