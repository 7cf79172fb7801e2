"""Mock publisher for testing and local development."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from dailyfx.utils.currencies import SUPPORTED_CURRENCIES
from dailyfx.utils.datetime import iter_days

from .base import BaseRatePublisher, NotYetPublished
from .schemas import DayPublication, PublishedRate, RatesPublication


class MockRatePublisher(BaseRatePublisher):
    """Deterministic publisher returning synthetic quotes in upstream units.

    Dates listed in ``unpublished`` are treated as holidays and omitted.
    """

    name = "mock"

    def __init__(self, unpublished: Iterable[date] | None = None) -> None:
        self.unpublished = set(unpublished or ())
        self.calls: list[tuple[date, date]] = []

    def fetch_range(self, start: date, end: date) -> RatesPublication:
        self._check_range(start, end)
        self.calls.append((start, end))

        days = [
            self._publication_for(day)
            for day in iter_days(start, end)
            if day not in self.unpublished
        ]
        if not days:
            raise NotYetPublished(start, end)
        return RatesPublication(source=self.name, start=start, end=end, days=days)

    @staticmethod
    def _publication_for(day: date) -> DayPublication:
        drift = Decimal(day.toordinal() % 100) / Decimal(100)
        rates = []
        for index, currency in enumerate(SUPPORTED_CURRENCIES, start=1):
            buy = (Decimal(index) * Decimal("10") + drift) * currency.unit
            rates.append(
                PublishedRate(
                    code=currency.code,
                    buy=buy,
                    sell=buy + Decimal("0.60") * currency.unit,
                    unit=currency.unit,
                    name=currency.name,
                )
            )
        return DayPublication(date=day, rates=rates)
