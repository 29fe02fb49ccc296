"""initial schema

Revision ID: 202501050900
Revises:
Create Date: 2025-01-05 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202501050900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "expenses",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("due_date", sa.String(length=10), nullable=False),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("created_at", sa.String(length=40), nullable=False),
        sa.Column("updated_at", sa.String(length=40), nullable=False),
        sa.CheckConstraint("amount >= 0", name="ck_expenses_amount_positive"),
    )

    op.create_table(
        "budget_categories",
        sa.Column("id", sa.String(length=160), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("limit", sa.Float(), nullable=False),
        sa.Column("spent", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.String(length=40), nullable=False),
        sa.Column("updated_at", sa.String(length=40), nullable=False),
        sa.UniqueConstraint("name", name="uq_budget_category_name"),
        sa.CheckConstraint('"limit" >= 0', name="ck_budget_category_limit_positive"),
        sa.CheckConstraint("spent >= 0", name="ck_budget_category_spent_positive"),
    )

    op.create_table(
        "grocery_lists",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("total_cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.String(length=40), nullable=False),
        sa.Column("updated_at", sa.String(length=40), nullable=False),
        sa.CheckConstraint("total_cost >= 0", name="ck_grocery_list_total_positive"),
    )

    op.create_table(
        "grocery_items",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "list_id",
            sa.String(length=64),
            sa.ForeignKey("grocery_lists.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price_per_unit", sa.Float(), nullable=False),
        sa.Column("total_cost", sa.Float(), nullable=False),
        sa.Column(
            "is_purchased", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("store_location", sa.String(length=120)),
        sa.Column("created_at", sa.String(length=40), nullable=False),
        sa.Column("updated_at", sa.String(length=40), nullable=False),
        sa.CheckConstraint("quantity >= 1", name="ck_grocery_item_quantity_positive"),
        sa.CheckConstraint(
            "price_per_unit >= 0", name="ck_grocery_item_price_positive"
        ),
    )
    op.create_index("ix_grocery_items_list", "grocery_items", ["list_id"])

    op.create_table(
        "price_history",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "item_id",
            sa.String(length=64),
            sa.ForeignKey("grocery_items.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("date", sa.String(length=10), nullable=False),
        sa.Column("created_at", sa.String(length=40), nullable=False),
    )
    op.create_index("ix_price_history_item", "price_history", ["item_id"])

    op.create_table(
        "financial_settings",
        sa.Column("id", sa.String(length=16), primary_key=True),
        sa.Column("monthly_income", sa.Float(), nullable=False),
        sa.Column("savings_goal", sa.Float(), nullable=False),
        sa.Column("current_savings", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.String(length=40), nullable=False),
        sa.Column("updated_at", sa.String(length=40), nullable=False),
    )


def downgrade():
    op.drop_table("financial_settings")
    op.drop_index("ix_price_history_item", table_name="price_history")
    op.drop_table("price_history")
    op.drop_index("ix_grocery_items_list", table_name="grocery_items")
    op.drop_table("grocery_items")
    op.drop_table("grocery_lists")
    op.drop_table("budget_categories")
    op.drop_table("expenses")
