import logging
from typing import Optional

from config import Settings, get_settings
from errors import CorruptStoreError
from periods import current_month, due_date_for_month
from schemas import (
    BudgetCategoryIn,
    ExpenseIn,
    FinancialSettingsIn,
    GroceryItemIn,
    GroceryListIn,
)
from services import (
    BudgetCategoryService,
    ExpenseService,
    FinancialSettingsService,
    GroceryItemService,
    GroceryListService,
)
from store import Collection, EntityStore, create_store

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = FinancialSettingsIn(
    monthly_income=4500, savings_goal=800, current_savings=450
)

DEFAULT_BUDGETS = (
    ("Housing", 1500, 1200),
    ("Utilities", 200, 145),
    ("Groceries", 400, 280),
    ("Transportation", 300, 150),
)

# name, amount, category, charge day, paid
DEFAULT_RECURRING = (
    ("Rent", 1200, "Housing", 1, True),
    ("Electricity", 85, "Utilities", 15, False),
    ("Internet", 60, "Utilities", 20, False),
)

DEFAULT_GROCERIES = (
    ("Milk", 2, 3.99, True),
    ("Bread", 1, 2.49, False),
)


def _probe(store: EntityStore) -> None:
    store.create_schema()
    for collection in Collection:
        store.get_all(collection)


def initialize_store(store: EntityStore) -> EntityStore:
    """
    Make sure every collection is readable.

    Stored data whose layout no longer matches (a damaged document, a table
    from an older schema) is reset once. Any other storage failure, such as
    a locked database, propagates and leaves the data alone.
    """
    try:
        _probe(store)
    except CorruptStoreError:
        logger.exception("store_init_failed: stored layout mismatch, resetting")
        store.reset()
        _probe(store)
    logger.info("store_initialized")
    return store


def seed_database(store: EntityStore, month: Optional[str] = None) -> bool:
    """Load demo data into an empty store. Returns False when already seeded."""
    month = month or current_month()
    settings = FinancialSettingsService(store)
    if settings.get() is not None:
        logger.info("seed_skipped: store already seeded")
        return False

    settings.create(DEFAULT_SETTINGS)

    budgets = BudgetCategoryService(store)
    for name, limit, spent in DEFAULT_BUDGETS:
        budgets.create(
            BudgetCategoryIn(name=name, limit=limit, spent=spent, month=month)
        )

    expenses = ExpenseService(store)
    for name, amount, category, charge_day, is_paid in DEFAULT_RECURRING:
        expenses.create(
            ExpenseIn(
                name=name,
                amount=amount,
                category=category,
                due_date=due_date_for_month(month, charge_day),
                month=month,
                charge_day=charge_day,
                is_paid=is_paid,
                is_recurring=True,
            )
        )

    lists = GroceryListService(store)
    grocery_list = lists.create(GroceryListIn(name="Weekly Shopping"))
    items = GroceryItemService(store)
    for name, quantity, price, purchased in DEFAULT_GROCERIES:
        items.create(
            GroceryItemIn(
                list_id=grocery_list.id,
                name=name,
                quantity=quantity,
                price_per_unit=price,
                is_purchased=purchased,
                store_location="Walmart",
            )
        )

    logger.info(f"seed_complete: month={month}")
    return True


def open_store(settings: Optional[Settings] = None) -> EntityStore:
    settings = settings or get_settings()
    store = initialize_store(create_store(settings))
    if settings.seed_on_startup:
        seed_database(store)
    return store
