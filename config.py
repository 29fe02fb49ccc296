import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        storage_backend: str,
        document_path: str,
        timezone: str,
        seed_on_startup: bool,
    ) -> None:
        self.database_url = database_url
        self.storage_backend = storage_backend
        self.document_path = document_path
        self.timezone = timezone
        self.seed_on_startup = seed_on_startup


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("HOUSEHOLD_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "household.db"
    default_doc = data_dir / "household.json"
    database_url = os.getenv("HOUSEHOLD_DATABASE_URL", f"sqlite:///{default_db}")
    storage_backend = os.getenv("HOUSEHOLD_STORAGE_BACKEND", "sql").strip().lower()
    if storage_backend not in {"sql", "document"}:
        raise ValueError(f"Unsupported storage backend: {storage_backend}")
    document_path = os.getenv("HOUSEHOLD_DOCUMENT_PATH", str(default_doc))
    timezone = os.getenv("HOUSEHOLD_TIMEZONE", "UTC")
    seed_on_startup = _env_flag("HOUSEHOLD_SEED")
    return Settings(
        database_url=database_url,
        storage_backend=storage_backend,
        document_path=document_path,
        timezone=timezone,
        seed_on_startup=seed_on_startup,
    )
