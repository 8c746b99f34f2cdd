"""Calendar-day helpers.

Injections are stored in UTC; "which day" a dose belongs to is decided in
the configured local timezone (``APP_TIMEZONE``).
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.config import settings
from app.core.errors import ValidationAppError

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@lru_cache(maxsize=8)
def _zone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError as exc:
        raise ValidationAppError(
            code="invalid_timezone",
            message=f"Unknown timezone '{name}'",
        ) from exc


def local_tz() -> tzinfo:
    return _zone(settings.app.timezone)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Attach the local timezone to naive datetimes."""
    if value.tzinfo is None:
        return value.replace(tzinfo=local_tz())
    return value


def to_local(value: datetime) -> datetime:
    return ensure_aware(value).astimezone(local_tz())


def local_date(value: datetime) -> date:
    """Calendar day of ``value`` in the local timezone."""
    return to_local(value).date()


def today(now: datetime | None = None) -> date:
    return local_date(now or utcnow())


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return the [start, end) UTC instants covering a local calendar day."""
    tz = local_tz()
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def window_days(days: int, now: datetime | None = None) -> list[date]:
    """The last ``days`` local calendar days, oldest first, ending today."""
    if days < 1:
        raise ValueError("days must be >= 1")
    end = today(now)
    return [end - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def window_bounds(days: int, now: datetime | None = None) -> tuple[datetime, datetime]:
    """UTC [start, end) covering the last ``days`` local days including today."""
    span = window_days(days, now)
    start, _ = day_bounds(span[0])
    _, end = day_bounds(span[-1])
    return start, end


def parse_date(value: str, *, field: str = "date") -> date:
    """Parse a strict ``YYYY-MM-DD`` string.

    Raises:
        ValidationAppError: If the value is malformed or not a real date.
    """
    if not DATE_PATTERN.match(value or ""):
        raise ValidationAppError(
            code="invalid_date",
            message="Invalid date format. Expected YYYY-MM-DD",
            details={"field": field},
        )
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationAppError(
            code="invalid_date",
            message=f"Invalid date '{value}'",
            details={"field": field},
        ) from exc
