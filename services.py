from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Optional, Union

import pydantic
from pydantic import BaseModel

from aggregates import (
    get_or_create_monthly_savings,
    line_total,
    recompute_grocery_list_total,
    recompute_monthly_savings,
    saved_amount,
    sum_money,
    to_money,
)
from errors import ValidationError
from identity import (
    SETTINGS_ID,
    budget_category_id,
    monthly_savings_id,
    new_id,
    stamp_new,
    stamp_update,
)
from periods import current_month, local_today, month_key, parse_month, previous_month
from recurrence import RecurringEngine
from schemas import (
    BudgetCategoryIn,
    BudgetCategoryOut,
    BudgetCategoryUpdate,
    CategoryTotal,
    DashboardData,
    ExpenseIn,
    ExpenseOut,
    ExpenseUpdate,
    FinancialSettingsIn,
    FinancialSettingsOut,
    FinancialSettingsUpdate,
    GroceryItemIn,
    GroceryItemOut,
    GroceryItemUpdate,
    GroceryListIn,
    GroceryListOut,
    GroceryListUpdate,
    MonthlySavingsIn,
    MonthlySavingsOut,
    MonthlySavingsUpdate,
    PriceHistoryIn,
    PriceHistoryOut,
)
from store import Collection, EntityStore, Record

logger = logging.getLogger(__name__)

Payload = Union[dict[str, Any], BaseModel]


def _validate(schema: type[BaseModel], payload: Payload) -> Any:
    try:
        return schema.model_validate(payload)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid {schema.__name__}: {exc}") from exc


def _changes(data: BaseModel, nullable: frozenset[str] = frozenset()) -> dict:
    changes = data.model_dump(mode="json", exclude_unset=True)
    return {k: v for k, v in changes.items() if v is not None or k in nullable}


def _month(month: Optional[str]) -> str:
    if month is None:
        return current_month()
    try:
        parse_month(month)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    return month


def _newest_first(records: list[Record]) -> list[Record]:
    return sorted(records, key=lambda r: (r["created_at"], r["id"]), reverse=True)


def _oldest_first(records: list[Record]) -> list[Record]:
    return sorted(records, key=lambda r: (r["created_at"], r["id"]))


class ExpenseService:
    def __init__(self, store: EntityStore) -> None:
        self.store = store

    def get_all(self) -> list[ExpenseOut]:
        records = self.store.get_all(Collection.expenses)
        return [ExpenseOut.model_validate(r) for r in _newest_first(records)]

    def get_by_id(self, expense_id: str) -> Optional[ExpenseOut]:
        record = self.store.get(Collection.expenses, expense_id)
        return ExpenseOut.model_validate(record) if record else None

    def create(self, payload: Payload) -> ExpenseOut:
        data: ExpenseIn = _validate(ExpenseIn, payload)
        record = data.model_dump(mode="json")
        record["id"] = new_id()
        record["month"] = data.month or month_key(data.due_date)
        stamp_new(record)
        self.store.put(Collection.expenses, record)
        recompute_monthly_savings(self.store, record["month"])
        return ExpenseOut.model_validate(record)

    def update(self, expense_id: str, payload: Payload) -> Optional[ExpenseOut]:
        changes = _changes(
            _validate(ExpenseUpdate, payload), nullable=frozenset({"charge_day"})
        )
        record = self.store.get(Collection.expenses, expense_id)
        if record is None:
            return None
        old_month = record["month"]
        record.update(changes)
        stamp_update(record)
        self.store.put(Collection.expenses, record)
        # the month the expense left must be recomputed as well
        for month in sorted({old_month, record["month"]}):
            recompute_monthly_savings(self.store, month)
        return ExpenseOut.model_validate(record)

    def delete(self, expense_id: str) -> None:
        record = self.store.get(Collection.expenses, expense_id)
        if record is None:
            return
        self.store.delete(Collection.expenses, expense_id)
        recompute_monthly_savings(self.store, record["month"])

    def toggle_paid(self, expense_id: str) -> Optional[ExpenseOut]:
        record = self.store.get(Collection.expenses, expense_id)
        if record is None:
            return None
        return self.update(expense_id, {"is_paid": not record["is_paid"]})

    def get_by_month(self, month: Optional[str] = None) -> list[ExpenseOut]:
        month = _month(month)
        records = self.store.filter(Collection.expenses, lambda r: r["month"] == month)
        records.sort(key=lambda r: (r["due_date"], r["name"], r["id"]))
        return [ExpenseOut.model_validate(r) for r in records]

    def get_recurring_expenses(self) -> list[ExpenseOut]:
        records = self.store.filter(Collection.expenses, lambda r: r["is_recurring"])
        records.sort(key=lambda r: (r.get("charge_day") or 0, r["name"], r["id"]))
        return [ExpenseOut.model_validate(r) for r in records]

    def get_total_monthly_expenses(self, month: Optional[str] = None) -> float:
        month = _month(month)
        records = self.store.filter(Collection.expenses, lambda r: r["month"] == month)
        return sum_money(r["amount"] for r in records)

    def get_expenses_by_category(
        self, month: Optional[str] = None
    ) -> list[CategoryTotal]:
        month = _month(month)
        by_category: dict[str, list[float]] = defaultdict(list)
        for record in self.store.filter(
            Collection.expenses, lambda r: r["month"] == month
        ):
            by_category[record["category"]].append(record["amount"])
        totals = [
            CategoryTotal(category=category, total=sum_money(amounts))
            for category, amounts in by_category.items()
        ]
        totals.sort(key=lambda t: (-t.total, t.category))
        return totals

    def create_recurring_expenses_for_month(
        self, month: Optional[str] = None
    ) -> list[ExpenseOut]:
        return RecurringEngine(self.store).post_month(_month(month))


class BudgetCategoryService:
    def __init__(self, store: EntityStore) -> None:
        self.store = store

    def get_all(self) -> list[BudgetCategoryOut]:
        records = self.store.get_all(Collection.budget_categories)
        records.sort(key=lambda r: (r["name"].lower(), r["month"]))
        return [BudgetCategoryOut.model_validate(r) for r in records]

    def get_by_id(self, category_id: str) -> Optional[BudgetCategoryOut]:
        record = self.store.get(Collection.budget_categories, category_id)
        return BudgetCategoryOut.model_validate(record) if record else None

    def get_by_month(self, month: Optional[str] = None) -> list[BudgetCategoryOut]:
        month = _month(month)
        records = self.store.filter(
            Collection.budget_categories, lambda r: r["month"] == month
        )
        records.sort(key=lambda r: r["name"].lower())
        return [BudgetCategoryOut.model_validate(r) for r in records]

    def _find_by_name(
        self, month: str, name: str, exclude_id: Optional[str] = None
    ) -> Optional[Record]:
        wanted = name.strip().lower()
        for record in self.store.filter(
            Collection.budget_categories, lambda r: r["month"] == month
        ):
            if record["id"] != exclude_id and record["name"].lower() == wanted:
                return record
        return None

    def _require_free_id(self, category_id: str, name: str) -> None:
        taken = self.store.get(Collection.budget_categories, category_id)
        if taken is not None:
            raise ValidationError(
                f"Budget category {name!r} collides with {taken['name']!r} "
                f"({category_id})"
            )

    def create(self, payload: Payload) -> BudgetCategoryOut:
        """Create a category, or return the same-named one already in the month."""
        data: BudgetCategoryIn = _validate(BudgetCategoryIn, payload)
        name = data.name.strip()
        if not name:
            raise ValidationError("Budget category name cannot be empty")
        month = data.month or current_month()

        with self.store.locks.hold(f"budgets:{month}"):
            existing = self._find_by_name(month, name)
            if existing is not None:
                logger.debug(f"budget_category_exists: id={existing['id']}")
                return BudgetCategoryOut.model_validate(existing)

            category_id = budget_category_id(name, month)
            self._require_free_id(category_id, name)
            record = stamp_new(
                {
                    "id": category_id,
                    "name": name,
                    "limit": data.limit,
                    "spent": data.spent,
                    "month": month,
                }
            )
            self.store.put(Collection.budget_categories, record)
        return BudgetCategoryOut.model_validate(record)

    def update(
        self, category_id: str, payload: Payload
    ) -> Optional[BudgetCategoryOut]:
        """Apply a partial update; a rename moves the category to its new id."""
        changes = _changes(_validate(BudgetCategoryUpdate, payload))
        record = self.store.get(Collection.budget_categories, category_id)
        if record is None:
            return None
        month = record["month"]

        with self.store.locks.hold(f"budgets:{month}"):
            record = self.store.get(Collection.budget_categories, category_id)
            if record is None:
                return None
            new_id = category_id
            if "name" in changes:
                name = changes["name"] = changes["name"].strip()
                if not name:
                    raise ValidationError("Budget category name cannot be empty")
                if self._find_by_name(month, name, exclude_id=category_id):
                    raise ValidationError(
                        f"Budget category {name!r} already exists in {month}"
                    )
                new_id = budget_category_id(name, month)
                if new_id != category_id:
                    self._require_free_id(new_id, name)

            record.update(changes)
            stamp_update(record)
            if new_id != category_id:
                # the old row goes first, (name, month) stays unique
                self.store.delete(Collection.budget_categories, category_id)
                record["id"] = new_id
                logger.info(f"budget_category_rekeyed: {category_id} -> {new_id}")
            self.store.put(Collection.budget_categories, record)
        return BudgetCategoryOut.model_validate(record)

    def delete(self, category_id: str) -> None:
        self.store.delete(Collection.budget_categories, category_id)

    def update_spent(
        self, category_id: str, amount: float
    ) -> Optional[BudgetCategoryOut]:
        return self.update(category_id, {"spent": amount})

    def create_monthly_budgets(
        self, month: str, previous: Optional[str] = None
    ) -> list[BudgetCategoryOut]:
        month = _month(month)
        previous = _month(previous) if previous else previous_month(month)

        created: list[BudgetCategoryOut] = []
        for template in self.get_by_month(previous):
            if self._find_by_name(month, template.name) is not None:
                continue
            created.append(
                self.create(
                    BudgetCategoryIn(
                        name=template.name,
                        limit=template.limit,
                        spent=0,
                        month=month,
                    )
                )
            )
        logger.info(
            f"monthly_budgets_created: month={month} from={previous} "
            f"created={len(created)}"
        )
        return created


class PriceHistoryService:
    def __init__(self, store: EntityStore) -> None:
        self.store = store

    def get_all(self) -> list[PriceHistoryOut]:
        records = self.store.get_all(Collection.price_history)
        records.sort(key=lambda r: (r["date"], r["created_at"], r["id"]), reverse=True)
        return [PriceHistoryOut.model_validate(r) for r in records]

    def get_by_id(self, history_id: str) -> Optional[PriceHistoryOut]:
        record = self.store.get(Collection.price_history, history_id)
        return PriceHistoryOut.model_validate(record) if record else None

    def get_by_item_id(self, item_id: str) -> list[PriceHistoryOut]:
        records = self.store.filter(
            Collection.price_history, lambda r: r["item_id"] == item_id
        )
        records.sort(key=lambda r: (r["date"], r["created_at"], r["id"]), reverse=True)
        return [PriceHistoryOut.model_validate(r) for r in records]

    def create(self, payload: Payload) -> PriceHistoryOut:
        data: PriceHistoryIn = _validate(PriceHistoryIn, payload)
        if self.store.get(Collection.grocery_items, data.item_id) is None:
            raise ValidationError(f"Grocery item {data.item_id} not found")
        record = stamp_new(
            {
                "id": new_id(),
                "item_id": data.item_id,
                "price": data.price,
                "date": (data.date or local_today()).isoformat(),
            },
            with_updated=False,
        )
        self.store.put(Collection.price_history, record)
        return PriceHistoryOut.model_validate(record)

    def delete(self, history_id: str) -> None:
        self.store.delete(Collection.price_history, history_id)

    def delete_for_item(self, item_id: str) -> None:
        for record in self.store.filter(
            Collection.price_history, lambda r: r["item_id"] == item_id
        ):
            self.store.delete(Collection.price_history, record["id"])


class GroceryItemService:
    def __init__(self, store: EntityStore) -> None:
        self.store = store
        self.history = PriceHistoryService(store)

    def _out(self, record: Record) -> GroceryItemOut:
        return GroceryItemOut.model_validate(
            {**record, "price_history": self.history.get_by_item_id(record["id"])}
        )

    def _require_list(self, list_id: Optional[str]) -> None:
        if list_id and self.store.get(Collection.grocery_lists, list_id) is None:
            raise ValidationError(f"Grocery list {list_id} not found")

    def get_all(self) -> list[GroceryItemOut]:
        records = self.store.get_all(Collection.grocery_items)
        return [self._out(r) for r in _oldest_first(records)]

    def get_by_id(self, item_id: str) -> Optional[GroceryItemOut]:
        record = self.store.get(Collection.grocery_items, item_id)
        return self._out(record) if record else None

    def get_by_list_id(self, list_id: str) -> list[GroceryItemOut]:
        records = self.store.filter(
            Collection.grocery_items, lambda r: r["list_id"] == list_id
        )
        return [self._out(r) for r in _oldest_first(records)]

    def create(self, payload: Payload) -> GroceryItemOut:
        data: GroceryItemIn = _validate(GroceryItemIn, payload)
        self._require_list(data.list_id)

        record = data.model_dump(mode="json")
        record["id"] = new_id()
        record["total_cost"] = line_total(data.quantity, data.price_per_unit)
        stamp_new(record)
        self.store.put(Collection.grocery_items, record)

        self.history.create(
            PriceHistoryIn(item_id=record["id"], price=data.price_per_unit)
        )
        if record["list_id"]:
            recompute_grocery_list_total(self.store, record["list_id"])
        return self._out(record)

    def update(self, item_id: str, payload: Payload) -> Optional[GroceryItemOut]:
        changes = _changes(
            _validate(GroceryItemUpdate, payload),
            nullable=frozenset({"list_id", "store_location"}),
        )
        record = self.store.get(Collection.grocery_items, item_id)
        if record is None:
            return None
        if "list_id" in changes:
            self._require_list(changes["list_id"])

        old_list_id = record["list_id"]
        record.update(changes)
        record["total_cost"] = line_total(record["quantity"], record["price_per_unit"])
        stamp_update(record)
        self.store.put(Collection.grocery_items, record)

        for list_id in sorted({old_list_id, record["list_id"]} - {None}):
            recompute_grocery_list_total(self.store, list_id)
        return self._out(record)

    def delete(self, item_id: str) -> None:
        record = self.store.get(Collection.grocery_items, item_id)
        if record is None:
            return
        self.history.delete_for_item(item_id)
        self.store.delete(Collection.grocery_items, item_id)
        if record["list_id"]:
            recompute_grocery_list_total(self.store, record["list_id"])

    def toggle_purchased(self, item_id: str) -> Optional[GroceryItemOut]:
        record = self.store.get(Collection.grocery_items, item_id)
        if record is None:
            return None
        return self.update(item_id, {"is_purchased": not record["is_purchased"]})


class GroceryListService:
    def __init__(self, store: EntityStore) -> None:
        self.store = store
        self.items = GroceryItemService(store)

    def _out(self, record: Record) -> GroceryListOut:
        return GroceryListOut.model_validate(
            {**record, "items": self.items.get_by_list_id(record["id"])}
        )

    def get_all(self) -> list[GroceryListOut]:
        records = self.store.get_all(Collection.grocery_lists)
        return [self._out(r) for r in _newest_first(records)]

    def get_by_id(self, list_id: str) -> Optional[GroceryListOut]:
        record = self.store.get(Collection.grocery_lists, list_id)
        return self._out(record) if record else None

    def create(self, payload: Payload) -> GroceryListOut:
        data: GroceryListIn = _validate(GroceryListIn, payload)
        record = stamp_new({"id": new_id(), "name": data.name, "total_cost": 0.0})
        self.store.put(Collection.grocery_lists, record)
        return self._out(record)

    def update(self, list_id: str, payload: Payload) -> Optional[GroceryListOut]:
        changes = _changes(_validate(GroceryListUpdate, payload))
        record = self.store.get(Collection.grocery_lists, list_id)
        if record is None:
            return None
        record.update(changes)
        stamp_update(record)
        self.store.put(Collection.grocery_lists, record)
        return self._out(record)

    def delete(self, list_id: str) -> None:
        with self.store.locks.hold(f"list:{list_id}"):
            for item in self.store.filter(
                Collection.grocery_items, lambda r: r["list_id"] == list_id
            ):
                self.items.history.delete_for_item(item["id"])
                self.store.delete(Collection.grocery_items, item["id"])
            self.store.delete(Collection.grocery_lists, list_id)

    def update_total_cost(self, list_id: str) -> Optional[GroceryListOut]:
        record = recompute_grocery_list_total(self.store, list_id)
        return self._out(record) if record else None


class FinancialSettingsService:
    def __init__(self, store: EntityStore) -> None:
        self.store = store

    def get(self) -> Optional[FinancialSettingsOut]:
        record = self.store.get(Collection.financial_settings, SETTINGS_ID)
        return FinancialSettingsOut.model_validate(record) if record else None

    def create(self, payload: Payload) -> Optional[FinancialSettingsOut]:
        """Create the singleton; returns None when it already exists."""
        data: FinancialSettingsIn = _validate(FinancialSettingsIn, payload)
        with self.store.locks.hold("settings"):
            if self.store.get(Collection.financial_settings, SETTINGS_ID):
                return None
            record = stamp_new({"id": SETTINGS_ID, **data.model_dump()})
            self.store.put(Collection.financial_settings, record)
        return FinancialSettingsOut.model_validate(record)

    def get_or_create(self) -> FinancialSettingsOut:
        with self.store.locks.hold("settings"):
            existing = self.get()
            if existing is not None:
                return existing
            logger.info("financial_settings_created: id=default")
            return self.create(FinancialSettingsIn())

    def update(self, payload: Payload) -> Optional[FinancialSettingsOut]:
        changes = _changes(_validate(FinancialSettingsUpdate, payload))
        record = self.store.get(Collection.financial_settings, SETTINGS_ID)
        if record is None:
            return None
        record.update(changes)
        stamp_update(record)
        self.store.put(Collection.financial_settings, record)
        return FinancialSettingsOut.model_validate(record)

    def update_savings(self, amount: float) -> Optional[FinancialSettingsOut]:
        return self.update({"current_savings": amount})

    def delete(self) -> None:
        self.store.delete(Collection.financial_settings, SETTINGS_ID)

    def get_dashboard_data(self, month: Optional[str] = None) -> DashboardData:
        """
        Summary of one month for the overview screen.

        Not free of writes: the settings singleton is created with zero
        defaults when it does not exist yet, through ``get_or_create``.
        """
        month = _month(month)
        settings = self.get_or_create()
        total_expenses = ExpenseService(self.store).get_total_monthly_expenses(month)
        categories = BudgetCategoryService(self.store).get_by_month(month)
        total_budget_limit = sum_money(c.limit for c in categories)
        total_budget_spent = sum_money(c.spent for c in categories)

        savings = self.store.get(Collection.monthly_savings, monthly_savings_id(month))
        if savings is not None:
            total_saved = savings["total_saved"]
        else:
            total_saved = saved_amount(settings.monthly_income, total_expenses)

        if settings.savings_goal > 0:
            progress = round(settings.current_savings / settings.savings_goal * 100, 2)
        else:
            progress = 0.0

        return DashboardData(
            month=month,
            monthly_income=settings.monthly_income,
            total_expenses=total_expenses,
            remaining_income=to_money(settings.monthly_income - total_expenses),
            savings_goal=settings.savings_goal,
            current_savings=settings.current_savings,
            savings_progress=progress,
            total_budget_limit=total_budget_limit,
            total_budget_spent=total_budget_spent,
            remaining_budget=to_money(total_budget_limit - total_budget_spent),
            total_saved_this_month=total_saved,
        )


class MonthlySavingsService:
    def __init__(self, store: EntityStore) -> None:
        self.store = store

    def get_all(self) -> list[MonthlySavingsOut]:
        records = self.store.get_all(Collection.monthly_savings)
        records.sort(key=lambda r: r["month"], reverse=True)
        return [MonthlySavingsOut.model_validate(r) for r in records]

    def get_by_id(self, savings_id: str) -> Optional[MonthlySavingsOut]:
        record = self.store.get(Collection.monthly_savings, savings_id)
        return MonthlySavingsOut.model_validate(record) if record else None

    def get_by_month(self, month: str) -> Optional[MonthlySavingsOut]:
        return self.get_by_id(monthly_savings_id(_month(month)))

    def get_or_create(self, month: Optional[str] = None) -> MonthlySavingsOut:
        record = get_or_create_monthly_savings(self.store, _month(month))
        return MonthlySavingsOut.model_validate(record)

    def get_savings_by_months(self, limit: int = 6) -> list[MonthlySavingsOut]:
        if limit < 0:
            raise ValidationError("limit must not be negative")
        return self.get_all()[:limit]

    def create(self, payload: Payload) -> Optional[MonthlySavingsOut]:
        """Create the row for a month; returns None when it already exists."""
        data: MonthlySavingsIn = _validate(MonthlySavingsIn, payload)
        savings_id = monthly_savings_id(data.month)
        with self.store.locks.hold(f"month:{data.month}"):
            if self.store.get(Collection.monthly_savings, savings_id):
                return None
            record = get_or_create_monthly_savings(self.store, data.month)
            overrides = _changes(data)
            overrides.pop("month", None)
            if overrides:
                record.update(overrides)
                self.store.put(Collection.monthly_savings, record)
            return MonthlySavingsOut.model_validate(
                recompute_monthly_savings(self.store, data.month)
            )

    def update(
        self, savings_id: str, payload: Payload
    ) -> Optional[MonthlySavingsOut]:
        changes = _changes(_validate(MonthlySavingsUpdate, payload))
        record = self.store.get(Collection.monthly_savings, savings_id)
        if record is None:
            return None
        month = record["month"]
        with self.store.locks.hold(f"month:{month}"):
            record.update(changes)
            stamp_update(record)
            self.store.put(Collection.monthly_savings, record)
            # total_saved depends on income
            return MonthlySavingsOut.model_validate(
                recompute_monthly_savings(self.store, month)
            )

    def delete(self, savings_id: str) -> None:
        self.store.delete(Collection.monthly_savings, savings_id)

    def update_monthly_expenses(self, month: Optional[str] = None) -> MonthlySavingsOut:
        record = recompute_monthly_savings(self.store, _month(month))
        return MonthlySavingsOut.model_validate(record)
