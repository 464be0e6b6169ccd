"""add per-user category budgets

Revision ID: 202610191000
Revises: 202610190900
Create Date: 2026-10-19 10:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "202610191000"
down_revision = "202610190900"
branch_labels = None
depends_on = None

CATEGORY_VALUES = (
    "Groceries",
    "Rent",
    "Salary",
    "Utilities",
    "Food & Dining",
    "Healthcare",
    "Entertainment",
    "Transportation",
    "Education",
    "Shopping",
    "Travel",
    "Technology",
    "Gifts",
    "Business",
    "Other",
)

# The "category" type already exists on PostgreSQL (created with transactions).
EXISTING_CATEGORY_ENUM = postgresql.ENUM(
    *CATEGORY_VALUES, name="category", create_type=False
)
CATEGORY_TYPE = sa.Enum(*CATEGORY_VALUES, name="category").with_variant(
    EXISTING_CATEGORY_ENUM, "postgresql"
)


def upgrade() -> None:
    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("category", CATEGORY_TYPE, nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_budget_amount_positive"),
        sa.UniqueConstraint("user_id", "category", name="uq_budget_user_category"),
    )


def downgrade() -> None:
    op.drop_table("budgets")
