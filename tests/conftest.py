import pytest

from config import get_settings
from database import make_engine
from store import DocumentEntityStore, SQLEntityStore


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setenv("HOUSEHOLD_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("HOUSEHOLD_TIMEZONE", "UTC")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(params=["sql", "document"])
def store(request):
    if request.param == "sql":
        backend = SQLEntityStore(make_engine("sqlite:///:memory:"))
    else:
        backend = DocumentEntityStore()
    yield backend
    backend.close()
