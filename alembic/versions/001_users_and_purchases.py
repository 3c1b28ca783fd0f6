"""Create users and purchases tables.

Revision ID: 001_users_and_purchases
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_users_and_purchases"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create tables (idempotent: app startup may already have run create_all)."""
    inspector = sa.inspect(op.get_bind())

    if not inspector.has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("name", sa.String(), nullable=True),
            sa.Column("avatar_url", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_users_id", "users", ["id"])
        op.create_index("ix_users_email", "users", ["email"], unique=True)

    if not inspector.has_table("purchases"):
        op.create_table(
            "purchases",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "user_id",
                sa.String(),
                sa.ForeignKey("users.id", ondelete="CASCADE"),
                nullable=False,
            ),
            # Checkout session id or subscription id; the idempotency key for webhooks
            sa.Column("dodo_session_id", sa.String(), nullable=False),
            sa.Column("product_id", sa.String(), nullable=True),
            sa.Column("amount", sa.Integer(), nullable=True),
            sa.Column("currency", sa.String(), nullable=False, server_default="usd"),
            sa.Column("status", sa.String(), nullable=False, server_default="completed"),
            sa.Column("plan_type", sa.String(), nullable=True),
            sa.Column("payment_data", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.CheckConstraint(
                "status IN ('completed', 'active', 'cancelled', 'on_hold', 'failed', 'expired')",
                name="ck_purchases_status",
            ),
        )
        op.create_index("ix_purchases_id", "purchases", ["id"])
        op.create_index("ix_purchases_user_id", "purchases", ["user_id"])
        op.create_index("ix_purchases_dodo_session_id", "purchases", ["dodo_session_id"], unique=True)


def downgrade() -> None:
    op.drop_table("purchases")
    op.drop_table("users")
