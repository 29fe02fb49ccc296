"""monthly buckets for expenses, budgets and savings

Revision ID: 202502011200
Revises: 202501050900
Create Date: 2025-02-01 12:00:00.000000

"""

import re
from datetime import datetime, timezone

from alembic import op
import sqlalchemy as sa


revision = "202502011200"
down_revision = "202501050900"
branch_labels = None
depends_on = None

_WHITESPACE = re.compile(r"\s+")


def _bucket_budget_categories(bind) -> None:
    # Categories predate monthly budgets: they become the current month's
    # and take the <slug>_<month> id. Names equal up to case or spacing
    # would share an id, so later ones keep their old id.
    month = datetime.now(timezone.utc).strftime("%Y-%m")
    rows = bind.execute(
        sa.text("SELECT id, name FROM budget_categories ORDER BY created_at, id")
    ).fetchall()
    taken = set()
    for old_id, name in rows:
        slug = _WHITESPACE.sub("_", name.strip().lower())
        new_id = f"{slug}_{month}"
        if new_id in taken:
            new_id = old_id
        taken.add(new_id)
        bind.execute(
            sa.text(
                "UPDATE budget_categories SET id = :new_id, month = :month "
                "WHERE id = :old_id"
            ),
            {"new_id": new_id, "month": month, "old_id": old_id},
        )


def upgrade():
    with op.batch_alter_table("expenses") as batch:
        batch.add_column(
            sa.Column("month", sa.String(length=7), nullable=False, server_default="")
        )
        batch.add_column(sa.Column("charge_day", sa.Integer(), nullable=True))
        batch.create_check_constraint(
            "ck_expenses_charge_day_range",
            "charge_day IS NULL OR (charge_day BETWEEN 1 AND 31)",
        )

    # Existing expenses fall into the bucket of their due date; recurring
    # templates keep their due day as the charge day.
    op.execute("UPDATE expenses SET month = substr(due_date, 1, 7)")
    op.execute(
        "UPDATE expenses SET charge_day = CAST(substr(due_date, 9, 2) AS INTEGER) "
        "WHERE is_recurring = 1"
    )
    op.create_index("ix_expenses_month", "expenses", ["month"])
    op.create_index("ix_expenses_recurring", "expenses", ["is_recurring"])

    with op.batch_alter_table("budget_categories") as batch:
        batch.add_column(
            sa.Column("month", sa.String(length=7), nullable=False, server_default="")
        )
        batch.drop_constraint("uq_budget_category_name", type_="unique")
        batch.create_unique_constraint(
            "uq_budget_category_name_month", ["name", "month"]
        )
    _bucket_budget_categories(op.get_bind())
    op.create_index("ix_budget_categories_month", "budget_categories", ["month"])

    op.create_table(
        "monthly_savings",
        sa.Column("id", sa.String(length=20), primary_key=True),
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("income", sa.Float(), nullable=False),
        sa.Column("total_expenses", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_saved", sa.Float(), nullable=False, server_default="0"),
        sa.Column("savings_goal", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.String(length=40), nullable=False),
        sa.Column("updated_at", sa.String(length=40), nullable=False),
        sa.UniqueConstraint("month", name="uq_monthly_savings_month"),
        sa.CheckConstraint(
            "total_saved >= 0", name="ck_monthly_savings_saved_positive"
        ),
    )


def downgrade():
    op.drop_table("monthly_savings")

    op.drop_index("ix_budget_categories_month", table_name="budget_categories")
    with op.batch_alter_table("budget_categories") as batch:
        batch.drop_constraint("uq_budget_category_name_month", type_="unique")
        batch.create_unique_constraint("uq_budget_category_name", ["name"])
        batch.drop_column("month")

    op.drop_index("ix_expenses_recurring", table_name="expenses")
    op.drop_index("ix_expenses_month", table_name="expenses")
    with op.batch_alter_table("expenses") as batch:
        batch.drop_constraint("ck_expenses_charge_day_range", type_="check")
        batch.drop_column("charge_day")
        batch.drop_column("month")
