"""Add max_uses and current_uses to access_codes

Revision ID: c5d07a13e9f8
Revises: 8b44e2f7a6c3
Create Date: 2025-01-31 11:05:37.902114
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "c5d07a13e9f8"
down_revision = "8b44e2f7a6c3"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("access_codes", sa.Column("max_uses", sa.Integer(), nullable=True))
    op.add_column(
        "access_codes",
        sa.Column("current_uses", sa.Integer(), nullable=False, server_default="0"),
    )


def downgrade() -> None:
    op.drop_column("access_codes", "current_uses")
    op.drop_column("access_codes", "max_uses")
