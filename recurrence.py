import logging
from typing import Optional

from periods import current_month, due_date_for_month
from schemas import ExpenseIn, ExpenseOut
from store import Collection, EntityStore, Record

logger = logging.getLogger(__name__)


def _pair(expense: Record) -> tuple[str, str]:
    return (expense["name"], expense["category"])


class RecurringEngine:
    def __init__(self, store: EntityStore) -> None:
        self.store = store

    def templates(self) -> list[Record]:
        return self.store.filter(
            Collection.expenses, lambda expense: bool(expense.get("is_recurring"))
        )

    def pending_for_month(self, month: str) -> list[ExpenseIn]:
        existing = {
            _pair(expense)
            for expense in self.store.filter(
                Collection.expenses, lambda expense: expense.get("month") == month
            )
        }
        pending: list[ExpenseIn] = []
        for template in sorted(
            self.templates(), key=lambda t: (t["created_at"], t["id"])
        ):
            pair = _pair(template)
            if pair in existing or not template.get("charge_day"):
                continue
            # two templates sharing a name and category yield one instance
            existing.add(pair)
            pending.append(
                ExpenseIn(
                    name=template["name"],
                    amount=template["amount"],
                    category=template["category"],
                    due_date=due_date_for_month(month, template["charge_day"]),
                    month=month,
                    charge_day=template["charge_day"],
                    is_paid=False,
                    is_recurring=False,
                )
            )
        return pending

    def post_month(self, month: Optional[str] = None) -> list[ExpenseOut]:
        from services import ExpenseService

        month = month or current_month()
        expenses = ExpenseService(self.store)
        with self.store.locks.hold(f"recurring:{month}"):
            created = [expenses.create(data) for data in self.pending_for_month(month)]
        logger.info(f"recurring_posted: month={month} created={len(created)}")
        return created
