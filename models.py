from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class TimestampMixin:
    # ISO-8601 text, written by the service layer so both backends agree
    created_at: Mapped[str] = mapped_column(String(40), nullable=False)
    updated_at: Mapped[str] = mapped_column(String(40), nullable=False)


class Expense(Base, TimestampMixin):
    __tablename__ = "expenses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    due_date: Mapped[str] = mapped_column(String(10), nullable=False)
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    charge_day: Mapped[Optional[int]] = mapped_column(Integer)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_recurring: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    __table_args__ = (
        Index("ix_expenses_month", "month"),
        Index("ix_expenses_recurring", "is_recurring"),
        CheckConstraint("amount >= 0", name="ck_expenses_amount_positive"),
        CheckConstraint(
            "charge_day IS NULL OR (charge_day BETWEEN 1 AND 31)",
            name="ck_expenses_charge_day_range",
        ),
    )


class BudgetCategory(Base, TimestampMixin):
    __tablename__ = "budget_categories"

    id: Mapped[str] = mapped_column(String(160), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    limit: Mapped[float] = mapped_column(Float, nullable=False)
    spent: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    month: Mapped[str] = mapped_column(String(7), nullable=False)

    __table_args__ = (
        UniqueConstraint("name", "month", name="uq_budget_category_name_month"),
        Index("ix_budget_categories_month", "month"),
        CheckConstraint('"limit" >= 0', name="ck_budget_category_limit_positive"),
        CheckConstraint("spent >= 0", name="ck_budget_category_spent_positive"),
    )


class GroceryList(Base, TimestampMixin):
    __tablename__ = "grocery_lists"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    total_cost: Mapped[float] = mapped_column(Float, default=0, nullable=False)

    __table_args__ = (
        CheckConstraint("total_cost >= 0", name="ck_grocery_list_total_positive"),
    )


class GroceryItem(Base, TimestampMixin):
    __tablename__ = "grocery_items"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    list_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("grocery_lists.id", ondelete="CASCADE")
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_unit: Mapped[float] = mapped_column(Float, nullable=False)
    total_cost: Mapped[float] = mapped_column(Float, nullable=False)
    is_purchased: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    store_location: Mapped[Optional[str]] = mapped_column(String(120))

    __table_args__ = (
        Index("ix_grocery_items_list", "list_id"),
        CheckConstraint("quantity >= 1", name="ck_grocery_item_quantity_positive"),
        CheckConstraint(
            "price_per_unit >= 0", name="ck_grocery_item_price_positive"
        ),
    )


class PriceHistory(Base):
    __tablename__ = "price_history"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    item_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("grocery_items.id", ondelete="CASCADE")
    )
    price: Mapped[float] = mapped_column(Float, nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[str] = mapped_column(String(40), nullable=False)

    __table_args__ = (Index("ix_price_history_item", "item_id"),)


class FinancialSettings(Base, TimestampMixin):
    __tablename__ = "financial_settings"

    id: Mapped[str] = mapped_column(String(16), primary_key=True)
    monthly_income: Mapped[float] = mapped_column(Float, nullable=False)
    savings_goal: Mapped[float] = mapped_column(Float, nullable=False)
    current_savings: Mapped[float] = mapped_column(Float, default=0, nullable=False)


class MonthlySavings(Base, TimestampMixin):
    __tablename__ = "monthly_savings"

    id: Mapped[str] = mapped_column(String(20), primary_key=True)
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    income: Mapped[float] = mapped_column(Float, nullable=False)
    total_expenses: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    total_saved: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    savings_goal: Mapped[float] = mapped_column(Float, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("month", name="uq_monthly_savings_month"),
        CheckConstraint("total_saved >= 0", name="ck_monthly_savings_saved_positive"),
    )
