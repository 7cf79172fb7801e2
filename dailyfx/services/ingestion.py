"""Turn upstream publications into idempotent store mutations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from dailyfx.logging import sync_log_extra
from dailyfx.providers.schemas import DayPublication, PublishedRate, RatesPublication
from dailyfx.utils.currencies import CurrencyRegistry, registry as default_registry

from .rate_store import DailyRateRecord, MergeMode, RatePair, RateRecordStore

logger = logging.getLogger(__name__)


def to_per_unit(value: Decimal | None, unit: int) -> Decimal | None:
    """Convert a quote given per ``unit`` foreign units into a per-unit value.

    Missing, zero and negative quotes are treated as unpublished and return ``None``.
    """

    if value is None or value <= 0:
        return None
    if unit <= 0:
        raise ValueError(f"unit must be positive, got {unit}")
    return value / Decimal(unit)


@dataclass(frozen=True)
class MergeResult:
    affected: int = 0
    failed: list[date] = field(default_factory=list)
    skipped: list[date] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failed)


class IngestionMerger:
    """Normalize publications to per-unit records and upsert them as one batch."""

    def __init__(
        self, store: RateRecordStore, currency_registry: CurrencyRegistry | None = None
    ) -> None:
        self._store = store
        self._registry = currency_registry or default_registry

    def to_records(self, publication: RatesPublication) -> list[DailyRateRecord]:
        records = []
        for day in publication.days:
            record = self._day_to_record(day)
            if record.has_values:
                records.append(record)
            else:
                logger.info("Skipping %s: no usable quotes in publication", day.date)
        return records

    def merge(self, publication: RatesPublication, mode: MergeMode | str) -> MergeResult:
        records = self.to_records(publication)
        kept = {record.date for record in records}
        skipped = [day.date for day in publication.days if day.date not in kept]
        if not records:
            return MergeResult(affected=0, skipped=skipped)

        result = self._store.upsert(records, MergeMode(mode))
        if result.failed:
            logger.error(
                "Partial ingestion failure: %d date(s) not stored",
                len(result.failed),
                extra=sync_log_extra(
                    event="ingestion.partial_failure",
                    outcome="partial",
                    failed_dates=[failed.isoformat() for failed in result.failed],
                ),
            )
        return MergeResult(affected=result.stored_count, failed=result.failed, skipped=skipped)

    def _day_to_record(self, day: DayPublication) -> DailyRateRecord:
        rates: dict[str, RatePair] = {}
        for published in day.rates:
            if not self._registry.is_allowed(published.code):
                continue
            pair = self._normalize(published)
            if not pair.is_empty:
                rates[published.code] = pair
        return DailyRateRecord(
            date=day.date,
            rates=rates,
            published_on=day.published_on,
            modified_on=day.modified_on,
        )

    def _normalize(self, published: PublishedRate) -> RatePair:
        # Prefer the unit reported alongside the quote; fall back to the known one.
        unit = published.unit if published.unit > 0 else self._registry.unit_for(published.code)
        return RatePair(
            buy=to_per_unit(published.buy, unit),
            sell=to_per_unit(published.sell, unit),
        )
