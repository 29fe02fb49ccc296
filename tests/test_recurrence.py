from datetime import date

from recurrence import RecurringEngine
from services import ExpenseService, FinancialSettingsService, MonthlySavingsService


def _template(name: str, amount: float, category: str, charge_day, month="2025-01"):
    return {
        "name": name,
        "amount": amount,
        "category": category,
        "due_date": f"{month}-{charge_day or 1:02d}",
        "month": month,
        "charge_day": charge_day,
        "is_recurring": True,
    }


def _seed_templates(expenses: ExpenseService) -> None:
    expenses.create(_template("Rent", 1200, "Housing", 1))
    expenses.create(_template("Electricity", 85, "Utilities", 15))
    expenses.create(_template("Gym", 30, "Health", 31))
    expenses.create(_template("Gift", 50, "Misc", None))


def test_templates_instantiate_into_the_target_month(store) -> None:
    expenses = ExpenseService(store)
    _seed_templates(expenses)

    created = expenses.create_recurring_expenses_for_month("2025-02")

    assert sorted(e.name for e in created) == ["Electricity", "Gym", "Rent"]
    by_name = {e.name: e for e in created}
    assert by_name["Rent"].due_date == date(2025, 2, 1)
    assert by_name["Electricity"].due_date == date(2025, 2, 15)
    assert by_name["Gym"].due_date == date(2025, 2, 28)
    assert all(e.month == "2025-02" for e in created)
    assert all(not e.is_recurring and not e.is_paid for e in created)
    assert len(expenses.get_recurring_expenses()) == 4


def test_instantiation_is_idempotent(store) -> None:
    expenses = ExpenseService(store)
    _seed_templates(expenses)

    first = expenses.create_recurring_expenses_for_month("2025-03")
    second = expenses.create_recurring_expenses_for_month("2025-03")

    assert len(first) == 3
    assert second == []
    march = expenses.get_by_month("2025-03")
    pairs = [(e.name, e.category) for e in march]
    assert len(pairs) == len(set(pairs)) == 3


def test_template_month_is_not_duplicated(store) -> None:
    expenses = ExpenseService(store)
    _seed_templates(expenses)

    assert expenses.create_recurring_expenses_for_month("2025-01") == []


def test_existing_expense_with_same_pair_blocks_instantiation(store) -> None:
    expenses = ExpenseService(store)
    expenses.create(_template("Rent", 1200, "Housing", 1))
    expenses.create(
        {
            "name": "Rent",
            "amount": 1250,
            "category": "Housing",
            "due_date": "2025-04-03",
            "month": "2025-04",
        }
    )
    expenses.create(
        {
            "name": "Rent",
            "amount": 1200,
            "category": "Parking",
            "due_date": "2025-04-03",
            "month": "2025-04",
        }
    )

    assert expenses.create_recurring_expenses_for_month("2025-04") == []


def test_pending_for_month_does_not_write(store) -> None:
    expenses = ExpenseService(store)
    _seed_templates(expenses)

    pending = RecurringEngine(store).pending_for_month("2025-05")

    assert sorted(p.name for p in pending) == ["Electricity", "Gym", "Rent"]
    assert expenses.get_by_month("2025-05") == []


def test_instantiated_expenses_update_monthly_savings(store) -> None:
    FinancialSettingsService(store).create({"monthly_income": 4500})
    expenses = ExpenseService(store)
    _seed_templates(expenses)

    expenses.create_recurring_expenses_for_month("2025-02")

    february = MonthlySavingsService(store).get_by_month("2025-02")
    assert february.total_expenses == 1315
    assert february.total_saved == 3185
