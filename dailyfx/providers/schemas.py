"""Dataclasses describing parsed upstream rate publications."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List

from dailyfx.utils.datetime import ensure_utc


def _normalize_code(code: str) -> str:
    normalized = code.strip().upper()
    if not normalized.isascii() or not normalized:
        raise ValueError(f"Currency code must be non-empty ASCII: {code!r}")
    return normalized


def parse_decimal(value: Any) -> Decimal | None:
    """Parse an upstream numeric field; unparsable values become ``None``."""

    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


@dataclass(frozen=True)
class PublishedRate:
    """One currency quote as published upstream, in upstream units."""

    code: str
    buy: Decimal | None
    sell: Decimal | None
    unit: int = 1
    name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", _normalize_code(self.code))
        object.__setattr__(self, "buy", parse_decimal(self.buy))
        object.__setattr__(self, "sell", parse_decimal(self.sell))
        try:
            unit = int(self.unit)
        except (TypeError, ValueError):
            unit = 0
        object.__setattr__(self, "unit", unit)


@dataclass(frozen=True)
class DayPublication:
    """All quotes published for a single business date."""

    date: date
    rates: List[PublishedRate] = field(default_factory=list)
    published_on: datetime | None = None
    modified_on: datetime | None = None

    def __post_init__(self) -> None:
        for attr in ("published_on", "modified_on"):
            value = getattr(self, attr)
            if value is not None:
                object.__setattr__(self, attr, ensure_utc(value))
        object.__setattr__(self, "rates", list(self._validate_rates(self.rates)))

    @staticmethod
    def _validate_rates(rates: Iterable[PublishedRate]) -> Iterable[PublishedRate]:
        for rate in rates:
            if not isinstance(rate, PublishedRate):
                raise TypeError("rates must contain PublishedRate instances")
            yield rate


@dataclass(frozen=True)
class RatesPublication:
    """Normalized upstream response for a requested date range."""

    source: str
    start: date
    end: date
    days: List[DayPublication] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.source or not self.source.strip():
            raise ValueError("source must be provided for RatesPublication")
        if self.start > self.end:
            raise ValueError("start must not be after end")
        ordered = sorted(self.days, key=lambda day: day.date)
        object.__setattr__(self, "days", ordered)

    @property
    def is_empty(self) -> bool:
        return not any(day.rates for day in self.days)

    def for_date(self, target: date) -> DayPublication | None:
        for day in self.days:
            if day.date == target:
                return day
        return None
