import pytest

from errors import ValidationError
from services import BudgetCategoryService
from store import Collection


def test_category_id_is_derived_from_name_and_month(store) -> None:
    budgets = BudgetCategoryService(store)

    housing = budgets.create({"name": "Housing", "limit": 1500, "month": "2025-03"})
    dining = budgets.create({"name": "Dining Out", "limit": 200, "month": "2025-03"})

    assert housing.id == "housing_2025-03"
    assert dining.id == "dining_out_2025-03"


def test_creating_the_same_category_twice_is_idempotent(store) -> None:
    budgets = BudgetCategoryService(store)

    first = budgets.create({"name": "Housing", "limit": 1500, "month": "2025-03"})
    second = budgets.create({"name": "housing", "limit": 99, "month": "2025-03"})

    assert second.id == first.id
    assert second.limit == 1500
    assert len(store.get_all(Collection.budget_categories)) == 1


def test_same_name_in_another_month_is_a_new_category(store) -> None:
    budgets = BudgetCategoryService(store)
    budgets.create({"name": "Housing", "limit": 1500, "month": "2025-03"})
    budgets.create({"name": "Housing", "limit": 1600, "month": "2025-04"})

    assert [c.limit for c in budgets.get_by_month("2025-04")] == [1600]
    assert len(budgets.get_all()) == 2


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "   ", "limit": 10, "month": "2025-03"},
        {"name": "Food", "limit": -1, "month": "2025-03"},
        {"name": "Food", "limit": 10, "month": "March"},
    ],
)
def test_invalid_categories_are_rejected(store, payload) -> None:
    with pytest.raises(ValidationError):
        BudgetCategoryService(store).create(payload)
    assert store.get_all(Collection.budget_categories) == []


def test_update_spent_is_manual(store) -> None:
    budgets = BudgetCategoryService(store)
    groceries = budgets.create({"name": "Groceries", "limit": 400, "month": "2025-03"})

    updated = budgets.update_spent(groceries.id, 280)

    assert updated.spent == 280
    assert updated.limit == 400
    assert budgets.update_spent("missing", 1) is None


def test_rename_to_an_existing_name_is_rejected(store) -> None:
    budgets = BudgetCategoryService(store)
    budgets.create({"name": "Housing", "limit": 1500, "month": "2025-03"})
    rent = budgets.create({"name": "Rent", "limit": 1200, "month": "2025-03"})

    with pytest.raises(ValidationError):
        budgets.update(rent.id, {"name": "HOUSING"})

    assert budgets.get_by_id(rent.id).name == "Rent"


def test_monthly_budgets_copy_limits_from_previous_month(store) -> None:
    budgets = BudgetCategoryService(store)
    budgets.create(
        {"name": "Housing", "limit": 1500, "spent": 1200, "month": "2024-12"}
    )
    budgets.create(
        {"name": "Utilities", "limit": 200, "spent": 145, "month": "2024-12"}
    )
    budgets.create({"name": "Housing", "limit": 1700, "month": "2025-01"})

    created = budgets.create_monthly_budgets("2025-01")

    assert [c.name for c in created] == ["Utilities"]
    assert created[0].spent == 0
    assert created[0].id == "utilities_2025-01"
    january = {c.name: c.limit for c in budgets.get_by_month("2025-01")}
    assert january == {"Housing": 1700, "Utilities": 200}
    assert budgets.create_monthly_budgets("2025-01") == []


def test_monthly_budgets_from_explicit_source_month(store) -> None:
    budgets = BudgetCategoryService(store)
    budgets.create({"name": "Travel", "limit": 500, "month": "2024-06"})

    created = budgets.create_monthly_budgets("2025-01", previous="2024-06")

    assert [c.id for c in created] == ["travel_2025-01"]


def test_delete_category(store) -> None:
    budgets = BudgetCategoryService(store)
    housing = budgets.create({"name": "Housing", "limit": 1500, "month": "2025-03"})

    budgets.delete(housing.id)
    budgets.delete(housing.id)

    assert budgets.get_by_id(housing.id) is None


def test_rename_moves_the_category_to_its_new_id(store) -> None:
    budgets = BudgetCategoryService(store)
    rent = budgets.create({"name": "Rent", "limit": 1200, "month": "2025-03"})

    renamed = budgets.update(rent.id, {"name": "Mortgage", "spent": 50})

    assert renamed.id == "mortgage_2025-03"
    assert (renamed.name, renamed.limit, renamed.spent) == ("Mortgage", 1200, 50)
    assert renamed.created_at == rent.created_at
    assert budgets.get_by_id(rent.id) is None
    assert [c.id for c in budgets.get_by_month("2025-03")] == ["mortgage_2025-03"]


def test_old_name_can_be_created_again_after_a_rename(store) -> None:
    budgets = BudgetCategoryService(store)
    housing = budgets.create({"name": "Housing", "limit": 1500, "month": "2025-03"})
    budgets.update(housing.id, {"name": "Home"})

    recreated = budgets.create({"name": "Housing", "limit": 900, "month": "2025-03"})

    assert (recreated.id, recreated.name, recreated.limit) == (
        "housing_2025-03",
        "Housing",
        900,
    )
    march = {c.name: c.id for c in budgets.get_by_month("2025-03")}
    assert march == {"Home": "home_2025-03", "Housing": "housing_2025-03"}


def test_monthly_budgets_copy_a_name_freed_by_a_rename(store) -> None:
    budgets = BudgetCategoryService(store)
    budgets.create({"name": "Housing", "limit": 1500, "month": "2025-02"})
    march = budgets.create({"name": "Housing", "limit": 1500, "month": "2025-03"})
    budgets.update(march.id, {"name": "Home"})

    created = budgets.create_monthly_budgets("2025-03")

    assert [(c.id, c.name) for c in created] == [("housing_2025-03", "Housing")]
    names = sorted(c.name for c in budgets.get_by_month("2025-03"))
    assert names == ["Home", "Housing"]
    assert budgets.create_monthly_budgets("2025-03") == []


def test_names_that_share_an_id_are_rejected(store) -> None:
    budgets = BudgetCategoryService(store)
    dining = budgets.create({"name": "Dining Out", "limit": 200, "month": "2025-03"})
    rent = budgets.create({"name": "Rent", "limit": 1200, "month": "2025-03"})

    with pytest.raises(ValidationError):
        budgets.create({"name": "dining   out", "limit": 1, "month": "2025-03"})
    with pytest.raises(ValidationError):
        budgets.update(rent.id, {"name": "Dining  Out"})

    assert budgets.get_by_id(dining.id).limit == 200
    assert budgets.get_by_id(rent.id).name == "Rent"


def test_blank_rename_is_rejected(store) -> None:
    budgets = BudgetCategoryService(store)
    rent = budgets.create({"name": "Rent", "limit": 1200, "month": "2025-03"})

    with pytest.raises(ValidationError):
        budgets.update(rent.id, {"name": "   "})
