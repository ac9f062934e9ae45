"""Initial schema - customers and messages.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Customers
    op.create_table(
        "customers",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("phone_number", sa.String(32), nullable=False, unique=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="lead"),
        sa.Column("is_human_takeover", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("qualification_score", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("qualification_score >= 0", name="ck_customers_score_nonnegative"),
    )
    op.create_index("ix_customers_status", "customers", ["status"])
    op.create_index("ix_customers_created_at", "customers", ["created_at"])

    # Messages
    op.create_table(
        "messages",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("customer_id", sa.Uuid, sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("phone_number", sa.String(32), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("direction", sa.String(10), nullable=False),
        sa.Column("sender", sa.String(10), nullable=False),
        sa.Column("provider_sid", sa.String(64)),
        sa.Column("delivery_status", sa.String(20), server_default="received"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_messages_customer_id", "messages", ["customer_id"])
    op.create_index("ix_messages_phone_created", "messages", ["phone_number", "created_at"])
    op.create_index("ix_messages_provider_sid", "messages", ["provider_sid"])


def downgrade() -> None:
    op.drop_table("messages")
    op.drop_table("customers")
