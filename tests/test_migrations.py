from datetime import datetime, timezone
from pathlib import Path

import sqlalchemy as sa
from alembic import command
from alembic.config import Config

from config import get_settings
from database import make_engine
from services import BudgetCategoryService, ExpenseService
from store import Collection, SQLEntityStore

ROOT = Path(__file__).resolve().parents[1]
STAMP = "2024-11-02T08:00:00+00:00"


def _alembic(url: str, monkeypatch) -> Config:
    monkeypatch.setenv("HOUSEHOLD_DATABASE_URL", url)
    get_settings.cache_clear()
    cfg = Config()
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", url)
    return cfg


def _legacy_rows(url: str) -> None:
    engine = sa.create_engine(url)
    with engine.begin() as conn:
        conn.execute(
            sa.text(
                "INSERT INTO expenses (id, name, amount, category, due_date, "
                "is_paid, is_recurring, created_at, updated_at) VALUES "
                "('e1', 'Rent', 1200, 'Housing', '2024-11-01', 1, 1, :ts, :ts), "
                "('e2', 'Dentist', 90, 'Health', '2024-10-17', 0, 0, :ts, :ts), "
                "('e3', 'Gym', 30, 'Health', '2024-11-28', 0, 1, :ts, :ts)"
            ),
            {"ts": STAMP},
        )
        conn.execute(
            sa.text(
                'INSERT INTO budget_categories (id, name, "limit", spent, '
                "created_at, updated_at) VALUES "
                "('housing', 'Housing', 1500, 1200, :ts, :ts), "
                "('dining', 'Dining  Out', 200, 20, :ts, :ts)"
            ),
            {"ts": STAMP},
        )
    engine.dispose()


def test_monthly_upgrade_backfills_buckets(tmp_path, monkeypatch) -> None:
    url = f"sqlite:///{tmp_path / 'legacy.db'}"
    cfg = _alembic(url, monkeypatch)
    command.upgrade(cfg, "202501050900")
    _legacy_rows(url)

    command.upgrade(cfg, "head")

    store = SQLEntityStore(make_engine(url), create_schema=False)
    expenses = {e["id"]: e for e in store.get_all(Collection.expenses)}
    assert {k: e["month"] for k, e in expenses.items()} == {
        "e1": "2024-11",
        "e2": "2024-10",
        "e3": "2024-11",
    }
    assert {k: e["charge_day"] for k, e in expenses.items()} == {
        "e1": 1,
        "e2": None,
        "e3": 28,
    }

    month = datetime.now(timezone.utc).strftime("%Y-%m")
    budgets = {b["id"]: b for b in store.get_all(Collection.budget_categories)}
    assert set(budgets) == {f"housing_{month}", f"dining_out_{month}"}
    assert budgets[f"housing_{month}"]["spent"] == 1200
    assert store.get_all(Collection.monthly_savings) == []
    store.close()


def test_upgraded_database_serves_the_services(tmp_path, monkeypatch) -> None:
    url = f"sqlite:///{tmp_path / 'legacy.db'}"
    cfg = _alembic(url, monkeypatch)
    command.upgrade(cfg, "202501050900")
    _legacy_rows(url)
    command.upgrade(cfg, "head")

    store = SQLEntityStore(make_engine(url), create_schema=False)
    month = datetime.now(timezone.utc).strftime("%Y-%m")
    budgets = BudgetCategoryService(store)

    again = budgets.create({"name": "Housing", "limit": 1, "month": month})

    assert again.id == f"housing_{month}"
    assert again.limit == 1500
    assert len(budgets.get_by_month(month)) == 2

    created = ExpenseService(store).create_recurring_expenses_for_month("2024-12")
    assert sorted(e.due_date.day for e in created) == [1, 28]
    store.close()
