"""add phone lines and call routing rules

Revision ID: c7a1e2f3d4b5
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "c7a1e2f3d4b5"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- phone_lines table ---
    op.create_table(
        "phone_lines",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("phone_number", sa.String(length=20), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("is_default", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("forward_to", sa.String(length=20), nullable=True),
        sa.Column("forward_after_rings", sa.Integer(), server_default="3", nullable=False),
        sa.Column("total_inbound_calls", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_inbound_call", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_phone_lines_phone_number", "phone_lines", ["phone_number"], unique=True)
    op.create_index("ix_phone_lines_user_id", "phone_lines", ["user_id"], unique=False)
    op.create_index("ix_phone_lines_user_default", "phone_lines", ["user_id", "is_default"], unique=False)

    # --- call_routing_rules table ---
    op.create_table(
        "call_routing_rules",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("phone_line_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("priority", sa.Integer(), server_default="0", nullable=False),
        sa.Column("position", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("condition", sa.String(length=32), nullable=False),
        sa.Column("schedule", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("no_answer_rings", sa.Integer(), server_default="3", nullable=False),
        sa.Column("action", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("triggered_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_triggered", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("priority >= 0 AND priority <= 100", name="ck_call_routing_rules_priority_range"),
        sa.ForeignKeyConstraint(["phone_line_id"], ["phone_lines.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_call_routing_rules_phone_line_id", "call_routing_rules", ["phone_line_id"], unique=False)
    op.create_index(
        "ix_call_routing_rules_line_active_priority",
        "call_routing_rules",
        ["phone_line_id", "is_active", "priority"],
        unique=False,
    )
    op.create_index(
        "ix_call_routing_rules_line_condition",
        "call_routing_rules",
        ["phone_line_id", "condition"],
        unique=False,
    )


def downgrade() -> None:
    # --- call_routing_rules rollback ---
    op.drop_index("ix_call_routing_rules_line_condition", table_name="call_routing_rules")
    op.drop_index("ix_call_routing_rules_line_active_priority", table_name="call_routing_rules")
    op.drop_index("ix_call_routing_rules_phone_line_id", table_name="call_routing_rules")
    op.drop_table("call_routing_rules")

    # --- phone_lines rollback ---
    op.drop_index("ix_phone_lines_user_default", table_name="phone_lines")
    op.drop_index("ix_phone_lines_user_id", table_name="phone_lines")
    op.drop_index("ix_phone_lines_phone_number", table_name="phone_lines")
    op.drop_table("phone_lines")
