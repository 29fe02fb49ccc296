"""Recompute rules for the denormalised totals.

Both rules are full re-scans of the current source records, never deltas,
so any later mutation in the same scope repairs an aggregate left stale by
an interrupted write.
"""

from __future__ import annotations

import logging
import warnings
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Union

from errors import ConsistencyWarning
from identity import SETTINGS_ID, monthly_savings_id, stamp_new, stamp_update
from store import Collection, EntityStore, Record

logger = logging.getLogger(__name__)

Number = Union[int, float, Decimal]

_CENT = Decimal("0.01")


def _decimal(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def to_money(value: Number) -> float:
    return float(_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP))


def sum_money(values: Iterable[Number]) -> float:
    return to_money(sum((_decimal(v) for v in values), Decimal("0")))


def line_total(quantity: int, price_per_unit: Number) -> float:
    return to_money(Decimal(quantity) * _decimal(price_per_unit))


def saved_amount(income: Number, total_expenses: Number) -> float:
    return max(0.0, to_money(_decimal(income) - _decimal(total_expenses)))


def recompute_grocery_list_total(
    store: EntityStore, list_id: str
) -> Optional[Record]:
    with store.locks.hold(f"list:{list_id}"):
        grocery_list = store.get(Collection.grocery_lists, list_id)
        items = store.filter(
            Collection.grocery_items, lambda item: item.get("list_id") == list_id
        )
        if grocery_list is None:
            message = (
                f"grocery list {list_id} is missing but referenced by "
                f"{len(items)} item(s)"
            )
            logger.warning(f"consistency_warning: {message}")
            warnings.warn(message, ConsistencyWarning, stacklevel=2)
            return None

        grocery_list["total_cost"] = sum_money(item["total_cost"] for item in items)
        stamp_update(grocery_list)
        store.put(Collection.grocery_lists, grocery_list)
        logger.debug(
            f"recompute_grocery_list_total: list_id={list_id} "
            f"items={len(items)} total_cost={grocery_list['total_cost']}"
        )
        return grocery_list


def get_or_create_monthly_savings(store: EntityStore, month: str) -> Record:
    savings_id = monthly_savings_id(month)
    with store.locks.hold(f"month:{month}"):
        existing = store.get(Collection.monthly_savings, savings_id)
        if existing is not None:
            return existing

        settings = store.get(Collection.financial_settings, SETTINGS_ID) or {}
        record = stamp_new(
            {
                "id": savings_id,
                "month": month,
                "income": to_money(settings.get("monthly_income", 0)),
                "total_expenses": 0.0,
                "total_saved": 0.0,
                "savings_goal": to_money(settings.get("savings_goal", 0)),
            }
        )
        store.put(Collection.monthly_savings, record)
        logger.debug(f"monthly_savings_created: month={month}")
        return record


def recompute_monthly_savings(store: EntityStore, month: str) -> Record:
    with store.locks.hold(f"month:{month}"):
        expenses = store.filter(
            Collection.expenses, lambda expense: expense.get("month") == month
        )
        total_expenses = sum_money(expense["amount"] for expense in expenses)

        savings = get_or_create_monthly_savings(store, month)
        savings["total_expenses"] = total_expenses
        savings["total_saved"] = saved_amount(savings["income"], total_expenses)
        stamp_update(savings)
        store.put(Collection.monthly_savings, savings)
        logger.debug(
            f"recompute_monthly_savings: month={month} expenses={len(expenses)} "
            f"total_expenses={total_expenses} total_saved={savings['total_saved']}"
        )
        return savings
