"""Add prefix and auto_expire_on_use to access_codes

Revision ID: 8b44e2f7a6c3
Revises: 3f1a9c0d2b71
Create Date: 2025-01-27 16:40:02.551920
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "8b44e2f7a6c3"
down_revision = "3f1a9c0d2b71"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("access_codes", sa.Column("prefix", sa.String(4), nullable=True))
    op.add_column(
        "access_codes",
        sa.Column("auto_expire_on_use", sa.Boolean(), nullable=True, server_default=sa.true()),
    )
    op.create_index("ix_access_codes_prefix", "access_codes", ["prefix"])


def downgrade() -> None:
    op.drop_index("ix_access_codes_prefix", table_name="access_codes")
    op.drop_column("access_codes", "auto_expire_on_use")
    op.drop_column("access_codes", "prefix")
