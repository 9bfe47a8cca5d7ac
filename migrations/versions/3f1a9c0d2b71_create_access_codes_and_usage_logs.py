"""Create access_codes and usage_logs

Revision ID: 3f1a9c0d2b71
Revises:
Create Date: 2025-01-20 09:12:44.118302
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "3f1a9c0d2b71"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "access_codes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(8), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("used_by", sa.String(255), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("created_by", sa.String(255), nullable=True, server_default="admin"),
    )
    op.create_index("ix_access_codes_code", "access_codes", ["code"], unique=True)
    op.create_index("ix_access_codes_is_active", "access_codes", ["is_active"])
    op.create_index("ix_access_codes_expires_at", "access_codes", ["expires_at"])

    op.create_table(
        "usage_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(8), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.CheckConstraint(
            "action IN ('generated', 'used', 'expired', 'revoked')",
            name="ck_usage_logs_action",
        ),
    )
    op.create_index("ix_usage_logs_code", "usage_logs", ["code"])
    op.create_index("ix_usage_logs_action", "usage_logs", ["action"])
    op.create_index("ix_usage_logs_timestamp", "usage_logs", ["timestamp"])


def downgrade() -> None:
    op.drop_table("usage_logs")
    op.drop_table("access_codes")
