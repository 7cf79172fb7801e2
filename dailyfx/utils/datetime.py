"""Shared datetime helpers for UTC awareness and the home business date."""

from __future__ import annotations

import re
from collections.abc import Iterator
from datetime import UTC, date, datetime, timedelta, timezone

DEFAULT_HOME_OFFSET_MINUTES = 345

_ISO_DATE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def ensure_utc(value: datetime) -> datetime:
    """Return a timezone-aware datetime in UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_now() -> datetime:
    """Return the current UTC datetime."""

    return datetime.now(UTC)


def home_timezone(offset_minutes: int = DEFAULT_HOME_OFFSET_MINUTES) -> timezone:
    """Fixed-offset timezone of the home market (NPT is UTC+05:45)."""

    return timezone(timedelta(minutes=offset_minutes))


def home_today(
    offset_minutes: int = DEFAULT_HOME_OFFSET_MINUTES, now: datetime | None = None
) -> date:
    """Return the business date in the home market for the given UTC instant.

    The server's local timezone is never consulted.
    """

    instant = ensure_utc(now) if now is not None else utc_now()
    return instant.astimezone(home_timezone(offset_minutes)).date()


def parse_iso_date(value: str | date) -> date:
    """Parse a strict ``YYYY-MM-DD`` string; dates pass through unchanged."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not _ISO_DATE.fullmatch(text):
        raise ValueError(f"Invalid date '{value}'. Expected YYYY-MM-DD.")
    return date.fromisoformat(text)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every date from ``start`` to ``end`` inclusive."""

    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def span_days(start: date, end: date) -> int:
    """Inclusive number of days between two dates."""

    return (end - start).days + 1
