"""Per-currency chart series derived from sparse daily records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Callable, Iterable

from dailyfx.utils.currencies import registry
from dailyfx.utils.datetime import iter_days

from .rate_store import DailyRateRecord, RateRecordStore


class Sampling(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


@dataclass(frozen=True)
class SeriesPoint:
    date: date
    buy: Decimal | None
    sell: Decimal | None

    def as_dict(self) -> dict[str, object]:
        return {
            "date": self.date.isoformat(),
            "buy": float(self.buy) if self.buy is not None else None,
            "sell": float(self.sell) if self.sell is not None else None,
        }


_SAMPLING_PREDICATES: dict[Sampling, Callable[[date], bool]] = {
    Sampling.WEEKLY: lambda day: day.weekday() == 3,  # Thursday
    Sampling.MONTHLY: lambda day: day.day in (1, 15),
    Sampling.YEARLY: lambda day: day.timetuple().tm_yday in (1, 180, 365),
}


def _positive(value: Decimal | None) -> Decimal | None:
    if value is None or value <= 0:
        return None
    return value


def to_series(
    records: Iterable[DailyRateRecord],
    currency: str,
    start: date,
    end: date,
    sampling: Sampling | str = Sampling.DAILY,
) -> list[SeriesPoint]:
    """Shape ``records`` into a series for ``currency`` between ``start`` and ``end``.

    Daily series carry the last known value across missing days. Other
    cadences keep only real observations on matching days plus the range ends.
    """

    cadence = Sampling(sampling)
    code = currency.strip().upper()
    by_date = {record.date: record for record in records if start <= record.date <= end}

    if cadence is Sampling.DAILY:
        return _forward_filled(by_date, code, start, end)

    predicate = _SAMPLING_PREDICATES[cadence]
    points = []
    for day in sorted(by_date):
        if not (predicate(day) or day in (start, end)):
            continue
        pair = by_date[day].get(code)
        if pair is None:
            continue
        buy, sell = _positive(pair.buy), _positive(pair.sell)
        if buy is None and sell is None:
            continue
        points.append(SeriesPoint(day, buy, sell))
    return points


def _forward_filled(
    by_date: dict[date, DailyRateRecord], code: str, start: date, end: date
) -> list[SeriesPoint]:
    last_buy: Decimal | None = None
    last_sell: Decimal | None = None
    points = []
    for day in iter_days(start, end):
        record = by_date.get(day)
        pair = record.get(code) if record is not None else None
        if pair is not None:
            last_buy = _positive(pair.buy) or last_buy
            last_sell = _positive(pair.sell) or last_sell
        if last_buy is None and last_sell is None:
            continue
        points.append(SeriesPoint(day, last_buy, last_sell))
    return points


class SeriesShaper:
    """Store-backed series builder used by the historical endpoint."""

    def __init__(self, store: RateRecordStore) -> None:
        self._store = store

    def build_series(
        self,
        currency: str,
        start: date,
        end: date,
        sampling: Sampling | str = Sampling.DAILY,
    ) -> list[SeriesPoint]:
        if start > end:
            raise ValueError("start must not be after end")
        if not registry.is_allowed(currency):
            raise ValueError(f"Unsupported currency '{currency}'")
        records = self._store.get_range(start, end)
        return to_series(records, currency, start, end, sampling)
