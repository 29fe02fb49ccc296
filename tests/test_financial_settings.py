import pytest

from errors import ValidationError
from identity import SETTINGS_ID
from services import (
    BudgetCategoryService,
    ExpenseService,
    FinancialSettingsService,
)


def test_get_or_create_defaults_to_zero(store) -> None:
    settings = FinancialSettingsService(store)
    assert settings.get() is None

    created = settings.get_or_create()
    again = settings.get_or_create()

    assert created.id == SETTINGS_ID
    assert (created.monthly_income, created.savings_goal, created.current_savings) == (
        0,
        0,
        0,
    )
    assert again.created_at == created.created_at


def test_create_refuses_a_second_singleton(store) -> None:
    settings = FinancialSettingsService(store)

    assert settings.create({"monthly_income": 4500}) is not None
    assert settings.create({"monthly_income": 1}) is None
    assert settings.get().monthly_income == 4500


def test_update_requires_existing_settings(store) -> None:
    settings = FinancialSettingsService(store)
    assert settings.update({"monthly_income": 10}) is None
    assert settings.get() is None

    settings.create({"monthly_income": 4500, "savings_goal": 800})
    updated = settings.update({"savings_goal": 900})

    assert updated.savings_goal == 900
    assert updated.monthly_income == 4500


def test_update_savings(store) -> None:
    settings = FinancialSettingsService(store)
    settings.create({"current_savings": 100})

    assert settings.update_savings(450).current_savings == 450
    with pytest.raises(ValidationError):
        settings.update_savings(-5)


def test_delete_settings(store) -> None:
    settings = FinancialSettingsService(store)
    settings.create({"monthly_income": 1})
    settings.delete()
    assert settings.get() is None


def test_dashboard_combines_settings_expenses_and_budgets(store) -> None:
    settings = FinancialSettingsService(store)
    settings.create(
        {"monthly_income": 4500, "savings_goal": 800, "current_savings": 450}
    )
    expenses = ExpenseService(store)
    for name, amount in (("Rent", 1200), ("Electricity", 85)):
        expenses.create(
            {
                "name": name,
                "amount": amount,
                "category": "Bills",
                "due_date": "2025-01-05",
                "month": "2025-01",
            }
        )
    budgets = BudgetCategoryService(store)
    budgets.create(
        {"name": "Housing", "limit": 1500, "spent": 1200, "month": "2025-01"}
    )
    budgets.create(
        {"name": "Utilities", "limit": 200, "spent": 145, "month": "2025-01"}
    )

    dashboard = settings.get_dashboard_data("2025-01")

    assert dashboard.month == "2025-01"
    assert dashboard.total_expenses == 1285
    assert dashboard.remaining_income == 3215
    assert dashboard.total_saved_this_month == 3215
    assert dashboard.total_budget_limit == 1700
    assert dashboard.total_budget_spent == 1345
    assert dashboard.remaining_budget == 355
    assert dashboard.savings_progress == 56.25


def test_dashboard_for_an_empty_month(store) -> None:
    settings = FinancialSettingsService(store)
    dashboard = settings.get_dashboard_data("2030-07")

    assert settings.get().monthly_income == 0

    assert dashboard.total_expenses == 0
    assert dashboard.savings_progress == 0
    assert dashboard.total_saved_this_month == 0
