"""Durable storage of one daily rate record per calendar date."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Callable, Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dailyfx.database import get_session
from dailyfx.models import RATE_SIDES, DailyRate
from dailyfx.utils.currencies import CURRENCY_CODES
from dailyfx.utils.datetime import utc_now

logger = logging.getLogger(__name__)

STORED_QUANTUM = Decimal("0.000001")


class StoreError(RuntimeError):
    """Raised when the rate store cannot be read or a batch cannot be committed."""


class MergeMode(str, Enum):
    FILL = "fill"
    OVERWRITE = "overwrite"


@dataclass(frozen=True)
class RatePair:
    """Per-unit buy/sell quote for one currency; either side may be unknown."""

    buy: Decimal | None = None
    sell: Decimal | None = None

    @property
    def is_empty(self) -> bool:
        return self.buy is None and self.sell is None


@dataclass
class DailyRateRecord:
    """Detached view of a ``daily_rates`` row or of a parsed publication day."""

    date: date
    rates: dict[str, RatePair] = field(default_factory=dict)
    updated_at: datetime | None = None
    published_on: datetime | None = None
    modified_on: datetime | None = None

    def get(self, code: str) -> RatePair | None:
        return self.rates.get(code.upper())

    @property
    def has_values(self) -> bool:
        return any(not pair.is_empty for pair in self.rates.values())

    @classmethod
    def from_row(cls, row: DailyRate) -> DailyRateRecord:
        rates: dict[str, RatePair] = {}
        for code in CURRENCY_CODES:
            pair = RatePair(buy=row.get_side(code, "buy"), sell=row.get_side(code, "sell"))
            if not pair.is_empty:
                rates[code] = pair
        return cls(date=row.date, rates=rates, updated_at=row.updated_at)


@dataclass(frozen=True)
class UpsertResult:
    """Dates whose row was created or changed, and dates rolled back."""

    stored: list[date] = field(default_factory=list)
    failed: list[date] = field(default_factory=list)

    @property
    def stored_count(self) -> int:
        return len(self.stored)


class RateRecordStore:
    """Keyed store over the ``daily_rates`` table.

    Reads and writes use the thread-local scoped session, so the store may be
    shared between request threads, the scheduler and background workers.
    """

    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        self._session_factory = session_factory or get_session

    def get(self, target: date) -> DailyRateRecord | None:
        row = self._read(
            lambda session: session.get(DailyRate, target, populate_existing=True)
        )
        return DailyRateRecord.from_row(row) if row is not None else None

    def get_range(self, start: date, end: date) -> list[DailyRateRecord]:
        stmt = (
            select(DailyRate)
            .execution_options(populate_existing=True)
            .where(DailyRate.date >= start, DailyRate.date <= end)
            .order_by(DailyRate.date.asc())
        )
        rows = self._read(lambda session: session.scalars(stmt).all())
        return [DailyRateRecord.from_row(row) for row in rows]

    def existing_dates(self, start: date, end: date) -> set[date]:
        stmt = select(DailyRate.date).where(DailyRate.date >= start, DailyRate.date <= end)
        return set(self._read(lambda session: session.scalars(stmt).all()))

    def latest(self, on_or_before: date | None = None) -> DailyRateRecord | None:
        stmt = (
            select(DailyRate)
            .execution_options(populate_existing=True)
            .order_by(DailyRate.date.desc())
            .limit(1)
        )
        if on_or_before is not None:
            stmt = stmt.where(DailyRate.date <= on_or_before)
        row = self._read(lambda session: session.scalars(stmt).first())
        return DailyRateRecord.from_row(row) if row is not None else None

    def upsert(
        self, records: Iterable[DailyRateRecord], mode: MergeMode | str = MergeMode.FILL
    ) -> UpsertResult:
        """Apply ``records`` in one transaction with a savepoint per date.

        Dates that fail are merged once more in a fresh transaction after the
        batch commits. A concurrent writer that created the same row first has
        committed by then, so the retry merges into its row instead of losing
        the values only this batch carried.
        """

        merge_mode = MergeMode(mode)
        batch = list(records)
        stored, failed = self._apply_batch(batch, merge_mode)
        if not failed:
            return UpsertResult(stored=stored, failed=[])

        retry_dates = set(failed)
        logger.warning("Retrying %d failed date(s) in a new transaction", len(retry_dates))
        try:
            retried, failed = self._apply_batch(
                [record for record in batch if record.date in retry_dates], merge_mode
            )
        except StoreError as exc:
            logger.error("Retry of failed dates could not be committed: %s", exc)
            return UpsertResult(stored=stored, failed=failed)
        return UpsertResult(stored=sorted(stored + retried), failed=failed)

    def _apply_batch(
        self, records: list[DailyRateRecord], mode: MergeMode
    ) -> tuple[list[date], list[date]]:
        session = self._session_factory()
        stored: list[date] = []
        failed: list[date] = []
        try:
            for record in records:
                try:
                    with session.begin_nested():
                        changed = self._apply(session, record, mode)
                except SQLAlchemyError as exc:
                    logger.error("Failed to store rates for %s: %s", record.date, exc)
                    failed.append(record.date)
                    continue
                if changed:
                    stored.append(record.date)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreError(f"Failed to commit rate batch: {exc}") from exc
        return stored, failed

    def _read(self, query: Callable[[Session], object]):
        session = self._session_factory()
        try:
            result = query(session)
            # End the read transaction so later reads see other threads' commits.
            session.commit()
            return result
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreError(f"Failed to read rates: {exc}") from exc

    @staticmethod
    def _apply(session: Session, record: DailyRateRecord, mode: MergeMode) -> bool:
        row = session.get(DailyRate, record.date, populate_existing=True)
        created = row is None
        if row is None:
            row = DailyRate(date=record.date)
            session.add(row)

        changed = created
        for code, pair in _supported_pairs(record.rates):
            for side in RATE_SIDES:
                incoming = getattr(pair, side)
                if incoming is None:
                    continue
                incoming = incoming.quantize(STORED_QUANTUM)
                current = row.get_side(code, side)
                if current is not None and (mode is MergeMode.FILL or current == incoming):
                    continue
                row.set_side(code, side, incoming)
                changed = True

        if changed:
            row.updated_at = utc_now()
        return changed


def _supported_pairs(rates: Mapping[str, RatePair]) -> Iterable[tuple[str, RatePair]]:
    for code, pair in rates.items():
        normalized = code.upper()
        if normalized in CURRENCY_CODES:
            yield normalized, pair
