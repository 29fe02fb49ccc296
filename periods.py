import calendar
import re
from datetime import date, datetime
from typing import Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"
_MONTH_RE = re.compile(MONTH_PATTERN)


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def current_month(today: Optional[date] = None) -> str:
    today = today or local_today()
    return f"{today.year}-{today.month:02d}"


def parse_month(bucket: str) -> tuple[int, int]:
    if not isinstance(bucket, str) or not _MONTH_RE.match(bucket):
        raise ValueError(f"Invalid month bucket: {bucket!r}")
    year, month = bucket.split("-")
    return int(year), int(month)


def month_key(value: Union[date, datetime, str, None] = None) -> str:
    """Map an expense date (or today when omitted) to its ``YYYY-MM`` bucket."""
    if value is None:
        return current_month()
    if isinstance(value, str):
        if _MONTH_RE.match(value):
            return value
        value = date.fromisoformat(value[:10])
    return f"{value.year}-{value.month:02d}"


def month_name(bucket: str) -> str:
    year, month = parse_month(bucket)
    return f"{calendar.month_name[month]} {year}"


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def previous_month(bucket: str) -> str:
    year, month = parse_month(bucket)
    if month == 1:
        return f"{year - 1}-12"
    return f"{year}-{month - 1:02d}"


def next_month(bucket: str) -> str:
    year, month = parse_month(bucket)
    if month == 12:
        return f"{year + 1}-01"
    return f"{year}-{month + 1:02d}"


def due_date_for_month(bucket: str, charge_day: int) -> date:
    if not 1 <= charge_day <= 31:
        raise ValueError(f"Invalid charge day: {charge_day}")
    year, month = parse_month(bucket)
    # charge days past the end of a short month snap to its last day
    return date(year, month, min(charge_day, days_in_month(year, month)))
