import datetime as dt
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from periods import MONTH_PATTERN


class ExpenseIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., ge=0)
    category: str = Field(..., min_length=1, max_length=100)
    due_date: date
    month: Optional[str] = Field(default=None, pattern=MONTH_PATTERN)
    charge_day: Optional[int] = Field(default=None, ge=1, le=31)
    is_paid: bool = False
    is_recurring: bool = False


class ExpenseUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    due_date: Optional[date] = None
    month: Optional[str] = Field(default=None, pattern=MONTH_PATTERN)
    charge_day: Optional[int] = Field(default=None, ge=1, le=31)
    is_paid: Optional[bool] = None
    is_recurring: Optional[bool] = None


class ExpenseOut(BaseModel):
    id: str
    name: str
    amount: float
    category: str
    due_date: date
    month: str
    charge_day: Optional[int] = None
    is_paid: bool
    is_recurring: bool
    created_at: datetime
    updated_at: datetime


class CategoryTotal(BaseModel):
    category: str
    total: float


class BudgetCategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    limit: float = Field(..., ge=0)
    spent: float = Field(default=0, ge=0)
    month: Optional[str] = Field(default=None, pattern=MONTH_PATTERN)


class BudgetCategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    limit: Optional[float] = Field(default=None, ge=0)
    spent: Optional[float] = Field(default=None, ge=0)


class BudgetCategoryOut(BaseModel):
    id: str
    name: str
    limit: float
    spent: float
    month: str
    created_at: datetime
    updated_at: datetime


class PriceHistoryIn(BaseModel):
    item_id: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    date: Optional[dt.date] = None


class PriceHistoryOut(BaseModel):
    id: str
    item_id: Optional[str]
    price: float
    date: dt.date
    created_at: datetime


class GroceryItemIn(BaseModel):
    list_id: Optional[str] = Field(default=None, min_length=1)
    name: str = Field(..., min_length=1, max_length=120)
    quantity: int = Field(default=1, ge=1)
    price_per_unit: float = Field(..., ge=0)
    is_purchased: bool = False
    store_location: Optional[str] = Field(default=None, max_length=120)


class GroceryItemUpdate(BaseModel):
    list_id: Optional[str] = Field(default=None, min_length=1)
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    quantity: Optional[int] = Field(default=None, ge=1)
    price_per_unit: Optional[float] = Field(default=None, ge=0)
    is_purchased: Optional[bool] = None
    store_location: Optional[str] = Field(default=None, max_length=120)


class GroceryItemOut(BaseModel):
    id: str
    list_id: Optional[str]
    name: str
    quantity: int
    price_per_unit: float
    total_cost: float
    is_purchased: bool
    store_location: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    price_history: list[PriceHistoryOut] = Field(default_factory=list)


class GroceryListIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)


class GroceryListUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)


class GroceryListOut(BaseModel):
    id: str
    name: str
    total_cost: float
    created_at: datetime
    updated_at: datetime
    items: list[GroceryItemOut] = Field(default_factory=list)


class FinancialSettingsIn(BaseModel):
    monthly_income: float = Field(default=0, ge=0)
    savings_goal: float = Field(default=0, ge=0)
    current_savings: float = Field(default=0, ge=0)


class FinancialSettingsUpdate(BaseModel):
    monthly_income: Optional[float] = Field(default=None, ge=0)
    savings_goal: Optional[float] = Field(default=None, ge=0)
    current_savings: Optional[float] = Field(default=None, ge=0)


class FinancialSettingsOut(BaseModel):
    id: str
    monthly_income: float
    savings_goal: float
    current_savings: float
    created_at: datetime
    updated_at: datetime


class MonthlySavingsIn(BaseModel):
    month: str = Field(..., pattern=MONTH_PATTERN)
    income: Optional[float] = Field(default=None, ge=0)
    savings_goal: Optional[float] = Field(default=None, ge=0)


class MonthlySavingsUpdate(BaseModel):
    income: Optional[float] = Field(default=None, ge=0)
    savings_goal: Optional[float] = Field(default=None, ge=0)


class MonthlySavingsOut(BaseModel):
    id: str
    month: str
    income: float
    total_expenses: float
    total_saved: float
    savings_goal: float
    created_at: datetime
    updated_at: datetime


class DashboardData(BaseModel):
    month: str
    monthly_income: float
    total_expenses: float
    remaining_income: float
    savings_goal: float
    current_savings: float
    savings_progress: float
    total_budget_limit: float
    total_budget_spent: float
    remaining_budget: float
    total_saved_this_month: float
