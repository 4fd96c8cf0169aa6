from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterator, Optional
from zoneinfo import ZoneInfo

from inventory_ledger.config import get_settings


def normalize_date(value):
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        value_text = value.strip()
        if not value_text:
            return None
        try:
            return date.fromisoformat(value_text[:10])
        except ValueError:
            return None
    return None


def resolve_timezone(mode: str) -> Optional[tzinfo]:
    """Map a LEDGER_TIMEZONE / SCHEDULER_TZ value to a tzinfo (None = local)."""
    text = (mode or "local").strip()
    if text.lower() == "local":
        return None
    if text.lower() == "utc":
        return timezone.utc
    return ZoneInfo(text)


def ledger_now() -> datetime:
    return datetime.now(tz=resolve_timezone(get_settings().LEDGER_TIMEZONE))


def ledger_today() -> date:
    return ledger_now().date()


def to_ledger_time(value: datetime) -> datetime:
    """Naive wall time in the ledger timezone; naive input is taken as-is."""
    if value.tzinfo is None:
        return value
    tz = resolve_timezone(get_settings().LEDGER_TIMEZONE)
    local = value.astimezone(tz) if tz is not None else value.astimezone()
    return local.replace(tzinfo=None)


def movement_date(value: datetime) -> date:
    """Calendar day a movement belongs to, in the ledger timezone."""
    if isinstance(value, datetime):
        value = to_ledger_time(value)
    return normalize_date(value)


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
