from datetime import date, datetime, timezone
from typing import Any, Optional

import pytz

from ..config import settings

_FALLBACK_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d",
    "%d-%m-%Y",
    "%d/%m/%Y",
    "%d.%m.%Y",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Best-effort conversion of API/spreadsheet input to a datetime.

    Returns None when the value cannot be read as a date.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None
    raw = value.strip()
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    return None


def local_display(value: Optional[datetime]) -> str:
    """Format a timestamp in the business timezone for customer-facing text."""
    if value is None:
        return "N/A"
    tz = pytz.timezone(settings.tz_default)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz).strftime("%d/%m/%Y, %I:%M:%S %p")


def iso_date(value: Optional[datetime]) -> str:
    return value.date().isoformat() if value else ""


def iso_or_none(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
