import calendar
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc_aware(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_months(start: datetime, months: int) -> datetime:
    """
    Add calendar months, keeping the day in range
    (Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    last_day = calendar.monthrange(y, m)[1]
    return start.replace(year=y, month=m, day=min(start.day, last_day))
