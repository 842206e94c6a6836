"""water_logs: intake entries behind the water analytics endpoints

Revision ID: 002
Revises: 001
Create Date: 2025-03-24

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "water_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("amount_ml", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("type", sa.String(32), server_default="custom", nullable=False),
        sa.Column("notes", sa.String(200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_water_logs_user_id", "water_logs", ["user_id"], unique=False)
    op.create_index("ix_water_logs_user_timestamp", "water_logs", ["user_id", "timestamp"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_water_logs_user_timestamp", table_name="water_logs")
    op.drop_index("ix_water_logs_user_id", table_name="water_logs")
    op.drop_table("water_logs")
