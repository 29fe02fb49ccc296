import re
import uuid
from datetime import datetime, timezone
from typing import Any

SETTINGS_ID = "default"

_WHITESPACE = re.compile(r"\s+")


def new_id() -> str:
    return uuid.uuid4().hex


def slugify(name: str) -> str:
    return _WHITESPACE.sub("_", name.strip().lower())


def budget_category_id(name: str, month: str) -> str:
    return f"{slugify(name)}_{month}"


def monthly_savings_id(month: str) -> str:
    return f"{month}_savings"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def stamp_new(record: dict[str, Any], *, with_updated: bool = True) -> dict[str, Any]:
    now = utc_now_iso()
    record["created_at"] = now
    if with_updated:
        record["updated_at"] = now
    return record


def stamp_update(record: dict[str, Any]) -> dict[str, Any]:
    record["updated_at"] = utc_now_iso()
    return record
